"""
Configuration for TalkItOut.

Values come from the process environment. A ``.env`` file at the project
root is read first; it never overrides variables that are already set.
Missing API keys are not errors: every provider has a fallback path.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_FEEDBACK_THRESHOLD = 3
DEFAULT_PUBLIC_BASE_URL = "http://localhost:5001"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def load_dotenv(env_path: Optional[Path] = None):
    """Load KEY=VALUE lines from a .env file into os.environ if present."""
    env_path = env_path or PROJECT_ROOT / ".env"
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            key, _, value = line.partition("=")
            os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))


load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            "Ignoring non-integer %s=%r, using %d", name, raw, default
        )
        return default


@dataclass
class Settings:
    """Runtime settings resolved from the environment."""
    openai_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    elevenlabs_api_key: Optional[str] = None
    google_ai_api_key: Optional[str] = None
    public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    feedback_threshold: int = DEFAULT_FEEDBACK_THRESHOLD
    secret_key: Optional[str] = None
    log_level: str = "INFO"
    port: int = 5001

    @classmethod
    def from_env(cls) -> "Settings":
        threshold = _int_env("FEEDBACK_THRESHOLD", DEFAULT_FEEDBACK_THRESHOLD)
        return cls(
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            groq_api_key=os.environ.get("GROQ_API_KEY") or None,
            elevenlabs_api_key=os.environ.get("ELEVENLABS_API_KEY") or None,
            google_ai_api_key=os.environ.get("GOOGLE_AI_API_KEY") or None,
            public_base_url=os.environ.get("PUBLIC_BASE_URL", DEFAULT_PUBLIC_BASE_URL).rstrip("/"),
            feedback_threshold=max(threshold, 1),
            secret_key=os.environ.get("FLASK_SECRET_KEY") or None,
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            port=_int_env("PORT", 5001),
        )


def setup_logging(level: str = "INFO"):
    """Configure the root logger once for an entry point."""
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
