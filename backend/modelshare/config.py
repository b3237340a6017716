import os
from pathlib import Path


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or "=" not in stripped:
                continue
            key, value = stripped.split("=", 1)
            key = key.strip()
            if not key or key in os.environ:
                continue
            os.environ[key] = value.strip().strip('"').strip("'")
    except OSError:
        return


def _load_env() -> None:
    current = Path(__file__).resolve()
    for candidate in (current.parents[1] / ".env", current.parents[2] / ".env"):
        _load_env_file(candidate)


_load_env()


def _split_env_list(value: str) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


TESTING = os.getenv("TESTING") == "1"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./modelshare.db")

SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
TOKEN_ALGORITHM = os.getenv("TOKEN_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "memory://")

# chat webhook used for out-of-band alert delivery; unset disables delivery
ALERT_WEBHOOK_URL = os.getenv("ALERT_WEBHOOK_URL", "")
ALERT_WEBHOOK_TIMEOUT = float(os.getenv("ALERT_WEBHOOK_TIMEOUT", "5"))

CORS_ORIGINS = _split_env_list(
    os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
)

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
GIT_VERSION = os.getenv("GIT_VERSION", "")
