import os
from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: str) -> list:
    raw = os.getenv(name) or default
    return [part.strip() for part in raw.split(",") if part.strip()]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tasks.db")

# JWT
SECRET_KEY = os.getenv("SECRET_KEY") or "devsecret"
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 1440)

# Fernet-Key fuer Titel/Beschreibung. Ohne Key wird im Klartext gespeichert.
DB_ENCRYPTION_KEY = os.getenv("DB_ENCRYPTION_KEY")

MAX_ATTACHMENT_SIZE = _env_int("MAX_ATTACHMENT_SIZE", 100 * 1024 * 1024)

LOGIN_RATE_LIMIT = os.getenv("LOGIN_RATE_LIMIT", "10/minute")

CORS_ORIGINS = _env_list("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
ALLOWED_HOSTS = _env_list("ALLOWED_HOSTS", "localhost,127.0.0.1,0.0.0.0")

# Optional: Admin-Konto beim Start anlegen
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Administrator")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
