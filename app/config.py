from typing import Optional

from pydantic_settings import BaseSettings

# Detected manual interventions have used both 1h and 24h historically; keep it explicit.
DEFAULT_MANUAL_INTERVENTION_HOURS = 24


class Settings(BaseSettings):
    owner_number: str = "1234567890"
    group_suffix: str = "@g.us"
    transport_domain: str = "@s.whatsapp.net"

    business_timezone: str = "America/New_York"
    business_hours_file: Optional[str] = None

    command_disable_default_hours: int = 24
    command_disable_max_hours: int = 168
    manual_intervention_hours: int = DEFAULT_MANUAL_INTERVENTION_HOURS
    completed_chat_hours: int = 24

    reactivation_enabled: bool = True
    reactivation_interval_minutes: int = 5

    idle_session_days: int = 30
    inactivity_months: int = 3
    cleanup_enabled: bool = True
    cleanup_day: int = 1
    cleanup_hour: int = 3

    storage_backend: str = "json"
    data_dir: str = "./data"
    database_url: str = "sqlite:///./data/doncash.db"

    backup_enabled: bool = True
    backup_dir: str = "./backups"
    backup_interval_hours: int = 24
    max_backups: int = 30
    max_named_backups: int = 10

    transport_api_url: str = "http://localhost:3000/api"
    transport_token: Optional[str] = None
    transport_instance_id: Optional[str] = None
    transport_timeout_seconds: float = 30.0

    dialogflow_project_id: Optional[str] = None
    dialogflow_credentials_file: Optional[str] = None
    dialogflow_language_default: str = "es"
    dialogflow_timeout_seconds: float = 15.0

    sent_message_ttl_seconds: int = 60

    qr_lifetime_seconds: int = 60
    qr_telegram_enabled: bool = False
    telegram_bot_token: Optional[str] = None
    telegram_chat_ids: str = ""
    qr_email_enabled: bool = False
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_ssl: bool = False
    qr_email_from: Optional[str] = None
    qr_email_to: str = ""
    qr_api_enabled: bool = True
    qr_api_username: str = "admin"
    qr_api_password: Optional[str] = None

    admin_token: Optional[str] = None
    log_level: str = "INFO"
    log_format: str = "json"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def telegram_chat_id_list(self) -> list[str]:
        return [item.strip() for item in self.telegram_chat_ids.split(",") if item.strip()]

    @property
    def qr_email_recipients(self) -> list[str]:
        return [item.strip() for item in self.qr_email_to.split(",") if item.strip()]


settings = Settings()
