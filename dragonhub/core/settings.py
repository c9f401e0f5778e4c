from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database (set via .env; avoid hardcoding secrets here)
    # DATABASE_URL wins when set; otherwise an MSSQL URL is built from the parts below.
    DATABASE_URL: str = ""
    DB_SERVER: str = ""  # e.g. 192.168.1.50 or hostname
    DB_NAME: str = "DragonHub"
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    DB_DRIVER: str = "ODBC Driver 17 for SQL Server"
    DB_PORT: int = 1433

    # Security
    SECRET_KEY: str = "CHANGE_THIS_TO_A_SECRET_KEY"
    SESSION_TTL_MINUTES: int = 60 * 24 * 14
    COOKIE_SECURE: bool = False

    # App/Base URL
    BASE_URL: str = "http://localhost:8000"

    # School context
    CURRENT_SCHOOL_YEAR: str = "2026-2027"

    # Event plans
    EVENT_PLAN_APPROVAL_THRESHOLD: int = 2
    # Allow a rejected plan to go back to pending_approval
    EVENT_PLAN_ALLOW_RESUBMIT: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True
    LOG_FILE: str = "logs/app.log"
    LOG_MAX_BYTES: int = 5_000_000  # 5 MB
    LOG_BACKUP_COUNT: int = 5

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()

# Basic validation for required settings to prevent confusing runtime errors
_missing = []
if not settings.DATABASE_URL:
    if not settings.DB_SERVER:
        _missing.append("DB_SERVER")
    if not settings.DB_USER:
        _missing.append("DB_USER")
    if not settings.DB_PASSWORD:
        _missing.append("DB_PASSWORD")
if settings.SECRET_KEY == "CHANGE_THIS_TO_A_SECRET_KEY" or not settings.SECRET_KEY:
    _missing.append("SECRET_KEY")

if _missing:
    # Do not crash imports in some tools; instead, provide a helpful message.
    import warnings

    warnings.warn(
        "Missing required settings in .env: "
        + ", ".join(_missing)
        + ". Update .env and restart the app."
    )

# Secure cookies when running under HTTPS
if not settings.COOKIE_SECURE and settings.BASE_URL.lower().startswith("https"):
    settings.COOKIE_SECURE = True
