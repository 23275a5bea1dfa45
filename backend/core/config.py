import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=True)


def _env_flag(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


CLERK_WEBHOOK_SECRET = str(os.getenv("CLERK_WEBHOOK_SECRET") or "").strip()

# role assigned to identities seen for the first time, whatever the event implied
DEFAULT_USER_ROLE = str(os.getenv("DEFAULT_USER_ROLE") or "candidate").strip().lower()

USE_REDIS_STORE = _env_flag("USE_REDIS_STORE")
REDIS_URL = str(os.getenv("REDIS_URL") or "").strip()

RECONCILE_INTERVAL_SEC = max(30, int(os.getenv("RECONCILE_INTERVAL_SEC", "300")))
SESSION_CLEANUP_TTL_SEC = max(60, int(os.getenv("SESSION_CLEANUP_TTL_SEC", "1800")))
SESSION_CLEANUP_INTERVAL_SEC = max(30, int(os.getenv("SESSION_CLEANUP_INTERVAL_SEC", "120")))
