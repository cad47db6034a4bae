"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Mailer configuration. All values come from environment variables."""

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001)
    static_dir: Path = Field(default=Path("public"))

    # Database (scheduled email jobs)
    database_path: Path = Field(default=Path("data/mailer.db"))

    # ZeptoMail template API
    zeptomail_url: str = Field(default="api.zeptomail.in/")
    zeptomail_token: str = Field(default="")
    mail_sender_name: str = Field(default="Skillang")

    # SMTP (OTP and acknowledgment emails)
    smtp_host: str = Field(default="smtp.gmail.com")
    smtp_port: int = Field(default=465)
    smtp_use_tls: bool = Field(default=True)
    email_user: str = Field(default="")
    email_pass: str = Field(default="")

    # Google Sheets
    google_service_account_file: Path = Field(default=Path("service-account.json"))
    sheet_id: str = Field(default="")
    partnership_sheet_id: str = Field(default="")
    sheet_timezone: str = Field(default="Asia/Kolkata")

    # OTP
    otp_ttl_seconds: int = Field(default=600)

    # Scheduler
    scheduler_timezone: str = Field(default="UTC")
    scheduled_list_limit: int = Field(default=100)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_file=_env_file(), env_file_encoding="utf-8", extra="forbid"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @property
    def zeptomail_endpoint(self) -> str:
        """Full URL of the ZeptoMail template-send endpoint."""
        base = self.zeptomail_url
        if not base.endswith("/"):
            base += "/"
        return f"https://{base}v1.1/email/template"


settings = Settings()
