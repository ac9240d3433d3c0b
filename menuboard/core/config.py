import os
from dotenv import load_dotenv

# Loads .env from the project root
load_dotenv()


def _flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./menuboard.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

# Schema is created on startup in dev; other environments rely on Alembic.
AUTO_CREATE_SCHEMA = _flag("AUTO_CREATE_SCHEMA", "1" if IS_DEV else "0")

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

# Owner session cookie
SESSION_SECRET = os.getenv("SESSION_SECRET", "")
SESSION_MAX_AGE_SECONDS = int(os.getenv("SESSION_MAX_AGE_SECONDS", "604800"))
SESSION_COOKIE_SECURE = _flag("SESSION_COOKIE_SECURE", "0" if IS_DEV else "1")
SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "lax").strip().lower()
if SESSION_COOKIE_SAMESITE not in {"lax", "strict", "none"}:
    SESSION_COOKIE_SAMESITE = "lax"
SESSION_COOKIE_DOMAIN = os.getenv("SESSION_COOKIE_DOMAIN", "").strip() or None

# Item images (R2 credentials are read when an upload happens)
MAX_IMAGE_SIZE_BYTES = int(os.getenv("MAX_IMAGE_SIZE_BYTES", str(5 * 1024 * 1024)))

# Realtime consumers
REALTIME_RETRY_INITIAL_DELAY = float(os.getenv("REALTIME_RETRY_INITIAL_DELAY", "1.0"))
REALTIME_RETRY_MAX_DELAY = float(os.getenv("REALTIME_RETRY_MAX_DELAY", "30.0"))
REALTIME_RETRY_MAX_ATTEMPTS = int(os.getenv("REALTIME_RETRY_MAX_ATTEMPTS", "10"))
