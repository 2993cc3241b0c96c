"""OFX date/time token parsing.

OFX encodes instants as ``YYYYMMDD[HHMMSS[.XXX][[gmt offset[:tz name]]]]``.
Banks use every optional variant, so a single token grammar is matched and
each form is turned into an aware UTC ``datetime``:

==============================  =========================================
``20170716``                    midnight UTC on that date
``20170717091500``              that wall-clock time, already UTC
``20170717091500.123``          same, with milliseconds
``20170717091500[-5:EST]``      local time; milliseconds default to 000
``20170717091500.123[0:GMT]``   offset 0 is UTC
==============================  =========================================

Offsets are whole hours. Fractional offsets such as ``[-3.5:NST]`` are valid
OFX but unsupported here: they fail the parse rather than being rounded.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone

from dateutil import tz


MAX_OFFSET_HOURS = 14

_OFX_DATETIME_PATTERN = re.compile(
    r"""
    (?P<year>\d{4})(?P<month>\d{2})(?P<day>\d{2})
    (?:
        (?P<hour>\d{2})(?P<minute>\d{2})(?P<second>\d{2})
        (?:\.(?P<msec>\d{3}))?
        (?:\[(?P<offset>[+-]?\d+(?:\.\d+)?)(?::(?P<tzname>[A-Za-z]\w*))?\])?
    )?
    """,
    re.VERBOSE | re.ASCII,
)


@dataclass(frozen=True, slots=True)
class DateParseResult:
    """Outcome of parsing one OFX date token: a UTC instant or an error message."""

    token: str
    value: datetime | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.value is not None

    @classmethod
    def failure(cls, token: str, error: str) -> "DateParseResult":
        return cls(token=token, error=error)


def _resolve_offset(raw_offset: str, tzname: str | None) -> tuple[tz.tzoffset | timezone | None, str | None]:
    """Turn ``-5`` / ``+10`` / ``0`` into a tzinfo, or return an error message."""
    sign = -1 if raw_offset.startswith("-") else 1
    digits = raw_offset.lstrip("+-")

    if "." in digits:
        return None, f"fractional timezone offset {raw_offset!r} is not supported"
    if len(digits) > 2:
        return None, f"timezone offset {raw_offset!r} has too many digits"

    hours = int(digits)
    if hours == 0:
        return timezone.utc, None
    if hours > MAX_OFFSET_HOURS:
        return None, f"timezone offset {raw_offset!r} is out of range"

    return tz.tzoffset(tzname, sign * hours * 3600), None


def parse_ofx_datetime(token: str | None) -> DateParseResult:
    """Parse an OFX date/time token into an aware UTC datetime.

    Never raises; check ``result.ok`` and drop the record on failure.
    """
    raw = token if isinstance(token, str) else ""
    match = _OFX_DATETIME_PATTERN.fullmatch(raw.strip())
    if match is None:
        return DateParseResult.failure(raw, f"unrecognised OFX date {raw!r}")

    parts = match.groupdict()
    year, month, day = int(parts["year"]), int(parts["month"]), int(parts["day"])

    try:
        if parts["hour"] is None:
            return DateParseResult(token=raw, value=datetime(year, month, day, tzinfo=timezone.utc))

        hour, minute, second = int(parts["hour"]), int(parts["minute"]), int(parts["second"])
        microsecond = int(parts["msec"] or "000") * 1000

        tzinfo: tz.tzoffset | timezone | None = timezone.utc
        if parts["offset"] is not None:
            tzinfo, error = _resolve_offset(parts["offset"], parts["tzname"])
            if error:
                return DateParseResult.failure(raw, error)

        local = datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tzinfo)
    except ValueError as exc:
        # Impossible calendar values, e.g. 20170230 or hour 25
        return DateParseResult.failure(raw, f"invalid OFX date {raw!r}: {exc}")

    return DateParseResult(token=raw, value=local.astimezone(timezone.utc))
