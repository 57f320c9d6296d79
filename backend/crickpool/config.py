import os


def _normalize_database_url(url: str) -> str:
    # Render/Heroku sometimes provide postgres:// which SQLAlchemy expects as postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Config:
    # Base directory of the backend (one level above this `crickpool` package)
    BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    INSTANCE_DIR = os.path.join(BACKEND_DIR, "instance")

    CRICKPOOL_ENV = (os.getenv("CRICKPOOL_ENV", "dev") or "dev").strip().lower()
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")

    _default_sqlite_path = os.path.join(INSTANCE_DIR, "crickpool.db").replace("\\", "/")
    _db_url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL") or f"sqlite:///{_default_sqlite_path}"
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(_db_url)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CORS: comma-separated origins for the admin console
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")

    LOG_LEVEL = (os.getenv("LOG_LEVEL", "INFO") or "INFO").upper()

    # Shared secrets for ops routes. Empty means the check is disabled (dev).
    CRON_SECRET = os.getenv("CRON_SECRET", "")
    ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN", "")

    # Settlement / reconciliation
    RECONCILE_WINDOW_DAYS = _env_int("RECONCILE_WINDOW_DAYS", 7)
    RECONCILE_REPAIR_BALANCES = _env_bool("RECONCILE_REPAIR_BALANCES", True)
    RECONCILER_LEASE_SECONDS = _env_int("RECONCILER_LEASE_SECONDS", 300)
    COMPLETED_MATCH_LOOKBACK_HOURS = _env_int("COMPLETED_MATCH_LOOKBACK_HOURS", 48)
    BALANCE_TOLERANCE = float(os.getenv("BALANCE_TOLERANCE", "0.01") or 0.01)

    # Autopilot: settle + reconcile from a request hook, throttled by a lease
    AUTOPILOT_ENABLED = _env_bool("AUTOPILOT_ENABLED", False)
    AUTOPILOT_INTERVAL_SECONDS = _env_int("AUTOPILOT_INTERVAL_SECONDS", 600)
