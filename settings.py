import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


RENTAL_RATE_PER_MONTH = float(os.getenv("RENTAL_RATE_PER_MONTH", "29.99"))
SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "7"))
SEED_SAMPLE_DATA = _flag("SEED_SAMPLE_DATA", "true")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", "8000"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

BOOTSTRAP_ADMIN_EMAIL = os.getenv("BOOTSTRAP_ADMIN_EMAIL", "admin@demo.com")
BOOTSTRAP_ADMIN_PASSWORD = os.getenv("BOOTSTRAP_ADMIN_PASSWORD", "demo1234")
