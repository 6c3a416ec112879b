"""Environment-aware configuration for the Flask application."""
import os


DEFAULT_SPAM_KEYWORDS = "viagra,casino,lottery,winner,click here,free money"
DEFAULT_BLOCKED_USER_AGENTS = "sqlmap,nikto,dirb,dirbuster,nessus,openvas,w3af,skipfish,arachni"


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _csv_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class BaseConfig:
    def __init__(self) -> None:
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
        db_url = os.getenv("DATABASE_URL")
        # If DATABASE_URL points to a placeholder host (e.g., db_host) or is missing, fall back to SQLite for local dev.
        if db_url and "db_host" not in db_url:
            self.SQLALCHEMY_DATABASE_URI = db_url
        else:
            self.SQLALCHEMY_DATABASE_URI = os.getenv(
                "SQLITE_URL",
                f"sqlite:///{os.path.join(os.getcwd(), 'instance', 'complaints.db')}",
            )
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.DB_CONNECT_TIMEOUT = int(os.getenv("DB_CONNECT_TIMEOUT", 30))
        self.SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_size": int(os.getenv("DB_POOL_SIZE", 10)),
            "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", 20)),
            "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", 30)),
            "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", 1800)),
            "pool_pre_ping": True,
            "connect_args": self._connect_args(),
        }
        self.PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")
        self.TRUST_PROXY = _flag("TRUST_PROXY")
        self.MAX_CONTENT_LENGTH = int(os.getenv("MAX_REQUEST_BYTES", 1024 * 1024))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))

        # Rate limiting: one window, two thresholds (whole API vs. complaint creation).
        self.RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", 15 * 60))
        self.RATE_LIMIT_API_MAX = int(os.getenv("RATE_LIMIT_API_MAX", 1000))
        self.RATE_LIMIT_COMPLAINTS_MAX = int(os.getenv("RATE_LIMIT_COMPLAINTS_MAX", 10))

        # Complaint validation
        self.DESCRIPTION_MIN_LENGTH = int(os.getenv("DESCRIPTION_MIN_LENGTH", 20))
        self.DESCRIPTION_MAX_LENGTH = int(os.getenv("DESCRIPTION_MAX_LENGTH", 5000))
        self.SPAM_KEYWORDS = _csv_list(os.getenv("SPAM_KEYWORDS", DEFAULT_SPAM_KEYWORDS))
        self.ENTITY_NAME_MATCH = os.getenv("ENTITY_NAME_MATCH", "substring").lower()
        self.BLOCKED_USER_AGENTS = _csv_list(os.getenv("BLOCKED_USER_AGENTS", DEFAULT_BLOCKED_USER_AGENTS))

        # Audit trail and email notifications
        self.AUDIT_ENABLED = _flag("AUDIT_ENABLED")
        self.AUDIT_LOG_PATH = os.getenv("AUDIT_LOG_PATH", os.path.join(self.LOG_DIR, "audit.log"))
        self.EMAIL_NOTIFICATIONS_ENABLED = _flag("EMAIL_NOTIFICATIONS_ENABLED")
        self.MAIL_SERVER = os.getenv("MAIL_SERVER", "")
        self.MAIL_PORT = int(os.getenv("MAIL_PORT", 587))
        self.MAIL_USERNAME = os.getenv("MAIL_USERNAME", "")
        self.MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "")
        self.MAIL_USE_TLS = _flag("MAIL_USE_TLS", "true")
        self.MAIL_USE_SSL = _flag("MAIL_USE_SSL")
        self.MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "Complaints Desk <noreply@complaints.local>")
        self.MAIL_AUDIT_RECIPIENT = os.getenv("MAIL_AUDIT_RECIPIENT", "")

        self.SEED_DEFAULT_ENTITIES = _flag("SEED_DEFAULT_ENTITIES", "true")

    def _connect_args(self) -> dict:
        timeout = int(os.getenv("DB_CONNECT_TIMEOUT", 30))
        if self.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            return {"timeout": timeout}
        args = {"connect_timeout": timeout}
        if self.SQLALCHEMY_DATABASE_URI.startswith("postgres"):
            # Bound statement time as well; connect_timeout only covers the handshake.
            args["options"] = f"-c statement_timeout={timeout * 1000}"
        return args


class DevelopmentConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = True
        self.ENV = "development"


class ProductionConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = False
        self.ENV = "production"
        self.RATE_LIMIT_API_MAX = int(os.getenv("RATE_LIMIT_API_MAX", 50))


class TestingConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.TESTING = True
        self.ENV = "testing"
        self.SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite://")
        # In-memory SQLite runs on a single static connection; pool sizing does not apply.
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        self.PREFERRED_URL_SCHEME = "http"
        self.LOG_LEVEL = "WARNING"
        self.AUDIT_ENABLED = False
        self.EMAIL_NOTIFICATIONS_ENABLED = False
        self.SEED_DEFAULT_ENTITIES = False
