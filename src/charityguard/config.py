"""ABOUTME: Configuration management for the CharityGuard Flask application
ABOUTME: Loads environment variables and provides configuration objects for different environments"""

import logging
import os
from dataclasses import dataclass
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


class InvalidConfig(Exception):
    """Error for when the config is not valid"""


SQLITE_DB_URI = "sqlite:///:memory:"
DEFAULT_SECRET_KEY = "dev-secret-key-change-in-production"  # noqa: S105


def to_bool(value: str | None, context_str: str = "") -> bool:
    """
    Convert string to boolean. Valid options (after stripping whitespace and making lower-case)
    - False: "false", "no", "off", "0", None, ""
    - True: "true", "yes", "on", "1"

    The `context_str` is there for the error message, to help find the issue.
    """
    if value is None:
        return False
    value = value.lower().strip()
    if value in ("false", "no", "off", "0", ""):
        return False
    if value in ("true", "yes", "on", "1"):
        return True
    raise ValueError(
        f"Cannot convert '{context_str}{value}' to boolean. "
        "Valid values are: true/false, 1/0, yes/no, on/off (case-insensitive)"
    )


def bool_environ_get(key: str, default: str = "") -> bool:
    return to_bool(os.environ.get(key, default), context_str=f"{key}=")


def _int_environ_get(key: str, default: int) -> int:
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise InvalidConfig(f"{key} must be an integer, got '{raw}'") from e


@dataclass(slots=True, kw_only=True)
class PostgresCfg:
    user: str
    password: str
    host: str
    port: int
    db_name: str

    def to_url(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.db_name}"

    @classmethod
    def from_env(cls, default_db_name: str = "charityguard", user: str = "charityguard") -> "PostgresCfg":
        host = os.environ.get("DB_HOST", "localhost")
        default_port = 54321 if host == "localhost" else 5432
        return PostgresCfg(
            user=os.environ.get("DB_USER", user),
            password=os.environ.get("DB_PASSWORD", "abc123"),
            host=host,
            port=int(os.environ.get("DB_PORT", default_port)),
            db_name=os.environ.get("DB_NAME", default_db_name),
        )


def get_db_uri() -> str:
    return os.environ.get("DB_URI", PostgresCfg.from_env().to_url())


def is_development() -> bool:
    return os.environ.get("FLASK_ENV", "development").lower().strip() == "development"


def get_log_level() -> int:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper().strip()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise InvalidConfig(f"LOG_LEVEL '{level_name}' is not a valid logging level")
    return level


def should_log_all_requests() -> bool:
    return bool_environ_get("LOG_ALL_REQUESTS")


def is_otp_login_disabled() -> bool:
    """The OTP kill switch. When set, every send-otp/verify-otp route refuses to serve."""
    return bool_environ_get("DISABLE_OTP_LOGIN")


def get_owner_email() -> str:
    return os.environ.get("OWNER_EMAIL", "").strip().lower()


@dataclass(slots=True, kw_only=True)
class SecurityCfg:
    """Tunable limits for OTPs, tokens, sessions and request monitoring."""

    otp_max_attempts: int = 5
    otp_lock_time: timedelta = timedelta(minutes=15)
    otp_rate_window: timedelta = timedelta(seconds=60)
    otp_max_requests_per_window: int = 3
    employee_otp_ttl_minutes: int = 5
    donor_login_otp_ttl_minutes: int = 5
    donor_registration_otp_ttl_minutes: int = 10
    token_ttl: timedelta = timedelta(hours=24)
    session_timeout: timedelta = timedelta(hours=24)
    session_activity_timeout: timedelta = timedelta(minutes=30)
    max_concurrent_sessions: int = 3
    session_cleanup_interval: timedelta = timedelta(minutes=5)
    slow_request_threshold: timedelta = timedelta(seconds=5)
    fraud_threshold: int = 5
    attempt_tracking_window: timedelta = timedelta(minutes=15)

    @classmethod
    def from_env(cls) -> "SecurityCfg":
        return SecurityCfg(
            otp_max_attempts=_int_environ_get("OTP_MAX_ATTEMPTS", 5),
            otp_lock_time=timedelta(minutes=_int_environ_get("OTP_LOCK_MINUTES", 15)),
            otp_rate_window=timedelta(seconds=_int_environ_get("OTP_RATE_WINDOW_SECONDS", 60)),
            otp_max_requests_per_window=_int_environ_get("OTP_MAX_REQUESTS_PER_WINDOW", 3),
            employee_otp_ttl_minutes=_int_environ_get("EMPLOYEE_OTP_TTL_MINUTES", 5),
            donor_login_otp_ttl_minutes=_int_environ_get("DONOR_LOGIN_OTP_TTL_MINUTES", 5),
            donor_registration_otp_ttl_minutes=_int_environ_get("DONOR_REGISTRATION_OTP_TTL_MINUTES", 10),
            token_ttl=timedelta(hours=_int_environ_get("TOKEN_TTL_HOURS", 24)),
            session_timeout=timedelta(hours=_int_environ_get("SESSION_TIMEOUT_HOURS", 24)),
            session_activity_timeout=timedelta(minutes=_int_environ_get("SESSION_ACTIVITY_TIMEOUT_MINUTES", 30)),
            max_concurrent_sessions=_int_environ_get("MAX_CONCURRENT_SESSIONS", 3),
            session_cleanup_interval=timedelta(seconds=_int_environ_get("SESSION_CLEANUP_INTERVAL_SECONDS", 300)),
            slow_request_threshold=timedelta(seconds=_int_environ_get("SLOW_REQUEST_SECONDS", 5)),
            fraud_threshold=_int_environ_get("FRAUD_THRESHOLD", 5),
            attempt_tracking_window=timedelta(minutes=_int_environ_get("ATTEMPT_TRACKING_MINUTES", 15)),
        )


@dataclass(slots=True, kw_only=True)
class EmailCfg:
    backend: str
    host: str
    port: int
    username: str
    password: str
    use_tls: bool
    from_email: str
    from_name: str

    @classmethod
    def from_env(cls) -> "EmailCfg":
        backend = os.environ.get("EMAIL_BACKEND", "console").lower().strip()
        if backend not in ("console", "smtp"):
            raise InvalidConfig(f"EMAIL_BACKEND must be 'console' or 'smtp', got '{backend}'")
        return EmailCfg(
            backend=backend,
            host=os.environ.get("SMTP_HOST", "localhost"),
            port=_int_environ_get("SMTP_PORT", 587),
            username=os.environ.get("SMTP_USERNAME", ""),
            password=os.environ.get("SMTP_PASSWORD", ""),
            use_tls=bool_environ_get("SMTP_USE_TLS", "true"),
            from_email=os.environ.get("SMTP_FROM_EMAIL", "noreply@charityguard.local"),
            from_name=os.environ.get("SMTP_FROM_NAME", "CharityGuard"),
        )


class FlaskBaseConfig:
    """Base configuration class that loads from environment variables."""

    TESTING = False
    JSON_SORT_KEYS = False

    def __init__(self) -> None:
        self.SQLALCHEMY_DATABASE_URI = get_db_uri()
        self.SECRET_KEY: str = os.environ.get("SECRET_KEY", DEFAULT_SECRET_KEY)
        self.FLASK_ENV: str = os.environ.get("FLASK_ENV", "development")
        self.DEBUG: bool = bool_environ_get("DEBUG", "False")
        self.FORCE_HTTPS: bool = bool_environ_get("FORCE_HTTPS")
        self.START_BACKGROUND_TASKS: bool = True

        self.BABEL_DEFAULT_LOCALE = os.environ.get("BABEL_DEFAULT_LOCALE", "en")
        self.BABEL_DEFAULT_TIMEZONE = os.environ.get("BABEL_DEFAULT_TIMEZONE", "UTC")
        self.LANGUAGES = ["en", "ar"]

        self.SECURITY = SecurityCfg.from_env()
        self.EMAIL = EmailCfg.from_env()


class FlaskConfig(FlaskBaseConfig):
    pass


class FlaskTestConfig(FlaskBaseConfig):
    """Test configuration that uses SQLite in-memory database."""

    TESTING = True

    def __init__(self) -> None:
        super().__init__()
        self.SQLALCHEMY_DATABASE_URI = SQLITE_DB_URI
        self.SECRET_KEY = "test-secret-key-aockgn298zx081238"  # noqa: S105
        self.FLASK_ENV = "testing"
        self.START_BACKGROUND_TASKS = False
        self.EMAIL.backend = "console"


class FlaskProductionConfig(FlaskConfig):
    """Production configuration with stricter defaults."""

    def __init__(self) -> None:
        super().__init__()
        self.FLASK_ENV = "production"
        self.FORCE_HTTPS = bool_environ_get("FORCE_HTTPS", "true")

        # Ensure production has proper secret key
        if self.SECRET_KEY == DEFAULT_SECRET_KEY:
            raise InvalidConfig("SECRET_KEY must be set in production")


def get_config(config_name: str = "") -> FlaskBaseConfig:
    """Return the appropriate configuration based on FLASK_ENV or config_name."""
    env = config_name.strip() or os.environ.get("FLASK_ENV", "development")
    env = env.lower().strip()

    config_classes = {
        "development": FlaskConfig,
        "testing": FlaskTestConfig,
        "production": FlaskProductionConfig,
    }

    # Fall back to development if unknown config
    config_cls = config_classes.get(env, FlaskConfig)
    return config_cls()
