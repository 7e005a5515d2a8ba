"""Configuration management for QuickCode."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Google Sheets ledger
    sheets_spreadsheet_id: str
    sheets_log_title: str = "Credit Card - Log"
    sheets_read_range: str = "A1:Z10000"
    google_application_credentials: Path = Path("credentials") / "service-account.json"

    # Lookup tabs
    jobs_title: str = "Feed - Job Master"
    cost_codes_title: str = "Lookup - Cost Codes"
    gl_accounts_title: str = "Lookup - GL Accounts"
    users_title: str = "Lookup - Users"
    job_lookback_years: int = 2  # Jobs older than this are not offered

    # Identity
    firebase_project_id: str | None = None
    allowed_domain: str = ""  # Blank allows any verified e-mail

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8787


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Make sure you have created a .env file "
            f"with at least SHEETS_SPREADSHEET_ID set. See .env.example for reference.\n"
            f"Error: {e}"
        ) from e
