"""Command-line interface for bankfeed.

``bankfeed upload`` pushes every OFX export in a directory to the ledger;
``bankfeed normalize`` shows what would be uploaded for one file.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import click

from bankfeed.core.config import get_settings
from bankfeed.core.exceptions import ConfigurationError, InvalidAccountIdentifierError, OfxParseError
from bankfeed.core.logging_config import setup_logging
from bankfeed.core.models import format_instant
from bankfeed.ingestion.ofx import decode_export, read_statement
from bankfeed.ingestion.sources import DirectoryExportSource
from bankfeed.processing.normalizer import normalize_transactions
from bankfeed.processing.pipeline import AccountState, PipelineResult, run_upload

EXIT_ACCOUNT_FAILURES = 1
EXIT_FATAL = 2

_STATE_ICONS = {
    AccountState.UPLOADED: "✓",
    AccountState.SKIPPED: "-",
    AccountState.FAILED: "❌",
}


@click.group()
@click.option("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
@click.option("--log-json", is_flag=True, help="Emit logs as JSON lines")
def main(log_level: Optional[str], log_json: bool) -> None:
    """Upload OFX bank statement exports to the ledger."""
    setup_logging(log_level or get_settings().LOG_LEVEL, json_output=log_json)


def _export_source(export_dir: Optional[Path]) -> DirectoryExportSource:
    settings = get_settings()
    return DirectoryExportSource(export_dir or settings.EXPORT_DIR, account_label=settings.account_label)


@main.command("accounts")
@click.argument("export_dir", required=False, type=click.Path(file_okay=False, path_type=Path))
def accounts_command(export_dir: Optional[Path]) -> None:
    """List the accounts available in an export directory."""
    source = _export_source(export_dir)
    try:
        accounts = asyncio.run(source.list_accounts())
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e

    if not accounts:
        click.echo(f"No OFX exports found in {source.directory}")
        return
    for account in accounts:
        click.echo(f"{account.number:16}  {account.display_name}")


@main.command("normalize")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print the upload payload as JSON")
def normalize_command(file_path: Path, as_json: bool) -> None:
    """Parse one OFX file and show the transactions that would be uploaded."""
    text = decode_export(file_path.read_bytes())
    try:
        statement = read_statement(text)
        result = normalize_transactions(statement.account_id, statement.lines)
    except (OfxParseError, InvalidAccountIdentifierError) as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json.dumps([t.to_dict() for t in result.transactions], indent=2))
    else:
        click.echo(f"Account {result.account.sort_code} {result.account.account_number}")
        for txn in result.transactions:
            click.echo(
                f"  {format_instant(txn.date)}  {txn.amount_minor_units:>10}  {txn.description}"
            )
        click.echo(f"✓ {len(result.transactions)} transactions")

    if result.skipped:
        click.echo(f"⚠ Skipped {len(result.skipped)} lines:", err=True)
        for skipped in result.skipped:
            click.echo(f"  - {skipped.line.to_dict()}: {skipped.reason}", err=True)


def _echo_summary(result: PipelineResult) -> None:
    for outcome in result.outcomes:
        icon = _STATE_ICONS.get(outcome.state, "?")
        name = outcome.account.display_name
        if outcome.state is AccountState.UPLOADED:
            click.echo(f"{icon} {name}: uploaded {outcome.transaction_count} transactions")
        elif outcome.state is AccountState.FAILED:
            stage = outcome.failed_stage.value if outcome.failed_stage else "?"
            click.echo(f"{icon} {name}: failed at {stage}: {outcome.error}", err=True)
        else:
            click.echo(f"{icon} {name}: {outcome.state.value} ({outcome.error})")


@main.command("upload")
@click.argument("export_dir", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.option("--insecure", is_flag=True, help="Skip TLS certificate verification")
@click.option("--max-concurrency", type=click.IntRange(min=1), default=None, help="Parallel uploads")
def upload_command(export_dir: Optional[Path], insecure: bool, max_concurrency: Optional[int]) -> None:
    """Normalize every export in EXPORT_DIR and upload it to the ledger."""
    settings = get_settings()
    source = _export_source(export_dir)

    try:
        result = asyncio.run(
            run_upload(
                settings,
                source,
                verify_ssl=False if insecure else None,
                max_concurrent_uploads=max_concurrency,
            )
        )
    except ConfigurationError as e:
        click.echo(f"❌ {e}", err=True)
        click.echo("Set LEDGER_BASE_URL, LEDGER_CLIENT_ID and LEDGER_CLIENT_SECRET in .env", err=True)
        sys.exit(EXIT_FATAL)
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e

    _echo_summary(result)

    if result.auth_failed:
        click.echo(f"❌ Ledger authentication failed: {result.auth_error}", err=True)
        sys.exit(EXIT_FATAL)
    if result.failed:
        sys.exit(EXIT_ACCOUNT_FAILURES)


if __name__ == "__main__":
    main()
