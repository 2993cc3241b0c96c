
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bankfeed.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    # App
    LOG_LEVEL: str = "INFO"

    # Ledger API (OAuth client-credentials)
    LEDGER_BASE_URL: str | None = None
    LEDGER_CLIENT_ID: str | None = None
    LEDGER_CLIENT_SECRET: str | None = None

    # HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0
    VERIFY_SSL: bool = True

    # Token cache
    TOKEN_EXPIRY_MARGIN_SECONDS: int = 30
    TOKEN_DEFAULT_TTL_SECONDS: int = 300

    # Pipeline
    MAX_CONCURRENT_UPLOADS: int = 4

    # Account number -> friendly label, e.g. ACCOUNT_ALIASES='{"20325512345678": "Main"}'
    ACCOUNT_ALIASES: dict[str, str] = {}

    # Default directory for the file-based export source
    EXPORT_DIR: Path = Path("data/exports")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @field_validator("LEDGER_BASE_URL")
    @classmethod
    def _ensure_trailing_slash(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            return None
        if not value.endswith("/"):
            value += "/"
        return value

    @field_validator("MAX_CONCURRENT_UPLOADS")
    @classmethod
    def _positive_concurrency(cls, value: int) -> int:
        if value < 1:
            raise ValueError("MAX_CONCURRENT_UPLOADS must be at least 1")
        return value

    @property
    def token_url(self) -> str:
        return f"{self.LEDGER_BASE_URL}oauth/token"

    @property
    def upload_url(self) -> str:
        return f"{self.LEDGER_BASE_URL}api/cc/bank-transactions/upload"

    def require_upload_credentials(self) -> None:
        """Raise ConfigurationError unless the ledger connection is configured."""
        missing = [
            name
            for name in ("LEDGER_BASE_URL", "LEDGER_CLIENT_ID", "LEDGER_CLIENT_SECRET")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(
                "Ledger upload has not been configured. Missing: " + ", ".join(missing)
            )

    def account_label(self, account_number: str) -> str:
        """Return the configured alias for an account, or the number itself."""
        return self.ACCOUNT_ALIASES.get(account_number) or account_number


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
