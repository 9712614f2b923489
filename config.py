from pathlib import Path
from dotenv import load_dotenv, find_dotenv
import os

dotenv_path = find_dotenv(filename=".env", usecwd=True)
if not dotenv_path:
    dotenv_path = str((Path(__file__).parent / ".env").resolve())
load_dotenv(dotenv_path=dotenv_path, override=True)


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


APP_VERSION = os.getenv("APP_VERSION", "v1.0.0")

PWNED_PASSWORDS_API = (os.getenv("PWNED_PASSWORDS_API") or "https://api.pwnedpasswords.com").strip().rstrip("/")
USER_AGENT = (os.getenv("PWNED_USER_AGENT") or "").strip() or f"pwncheck/{APP_VERSION.lstrip('v')}"
TIMEOUT_SEC = float(os.getenv("PWNED_TIMEOUT_SEC", "10.0"))
ADD_PADDING = _env_bool("PWNED_ADD_PADDING", True)

ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
