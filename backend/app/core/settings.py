import os
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def _getenv(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.environment = (_getenv("ENVIRONMENT", "development") or "development").lower()
        self.database_url = _getenv("DATABASE_URL", "sqlite:///./sql_app.db") or "sqlite:///./sql_app.db"
        self.db_auto_create = _getenv_bool("DB_AUTO_CREATE", default=True)
        self.supabase_url = _getenv("SUPABASE_URL") or _getenv("EXPO_PUBLIC_SUPABASE_URL")
        self.supabase_anon_key = _getenv("SUPABASE_ANON_KEY") or _getenv("EXPO_PUBLIC_SUPABASE_ANON_KEY")
        self.supabase_jwt_audience = _getenv("SUPABASE_JWT_AUD", "authenticated")
        self.supabase_jwt_issuer = _getenv("SUPABASE_JWT_ISSUER")
        self.basic_auth_enabled = _getenv_bool("BASIC_AUTH_ENABLED", default=False)
        self.basic_auth_username = _getenv("BASIC_AUTH_USERNAME")
        self.basic_auth_password = _getenv("BASIC_AUTH_PASSWORD")
        self.cors_allow_origins = _getenv("CORS_ALLOW_ORIGINS")

        self.resend_api_key = _getenv("RESEND_API_KEY")
        self.resend_endpoint = _getenv("RESEND_ENDPOINT", "https://api.resend.com/emails") or "https://api.resend.com/emails"
        self.from_email = _getenv("FROM_EMAIL", "noreply@subscriptionreminder.app") or "noreply@subscriptionreminder.app"
        self.email_timeout_s = float(_getenv("EMAIL_TIMEOUT_S", "15") or "15")
        self.email_sending_stale_minutes = _getenv_int("EMAIL_SENDING_STALE_MINUTES", 30)
        self.email_queue_batch_size = _getenv_int("EMAIL_QUEUE_BATCH_SIZE", 50)

        self.cron_secret = _getenv("CRON_SECRET")
        self.app_timezone = _getenv("APP_TIMEZONE", "Asia/Karachi") or "Asia/Karachi"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def email_configured(self) -> bool:
        return bool(self.resend_api_key)

    def resolved_cors_origins(self) -> list[str]:
        raw = self.cors_allow_origins
        if raw is None:
            return ["http://localhost:8081", "http://localhost:19006", "http://localhost:8000"]
        if raw.strip() == "*":
            return ["*"]
        origins = [o.strip() for o in raw.split(",") if o.strip()]
        return origins


settings = Settings()


def today_in_app_timezone() -> date:
    try:
        tz = ZoneInfo(settings.app_timezone)
    except ZoneInfoNotFoundError:
        tz = ZoneInfo("UTC")
    return datetime.now(tz).date()
