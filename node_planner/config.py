"""Runtime configuration for the recommendation service.

Everything environment-derived is read once into an ``AppConfig`` and handed to
the collaborators that need it (the LLM client, the HTTP app).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger("node_planner")

MODULE_DIR = Path(__file__).resolve().parent
REPO_ROOT = MODULE_DIR.parent

DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_REQUEST_TIMEOUT_SEC = 120.0
DEFAULT_MAX_TOKENS = 8000


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _first_nonempty_env(*keys: str) -> Optional[str]:
    for key in keys:
        value = os.getenv(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return _is_truthy(raw)


def _env_float(name: str, default: float, minimum: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return max(minimum, float(raw))
    except ValueError:
        logger.warning("Invalid %s=%r; using default %s", name, raw, default)
        return default


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        logger.warning("Invalid %s=%r; using default %s", name, raw, default)
        return default


def load_env_files() -> None:
    """Load ``.env`` files without overriding variables already in the process.

    Priority: existing process env > node_planner/.env > repo/.env
    """
    for path in (MODULE_DIR / ".env", REPO_ROOT / ".env"):
        if path.is_file():
            load_dotenv(dotenv_path=path, override=False)


@dataclass(frozen=True)
class AppConfig:
    openrouter_api_key: str = ""
    base_url: str = DEFAULT_OPENROUTER_BASE_URL
    free_model: str = ""
    paid_model: str = ""
    use_paid_model: bool = False
    web_search: bool = True
    request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC
    max_tokens: int = DEFAULT_MAX_TOKENS

    @property
    def model_name(self) -> str:
        return self.paid_model if self.use_paid_model else self.free_model

    @property
    def llm_configured(self) -> bool:
        return bool(self.openrouter_api_key and self.model_name)

    @classmethod
    def from_env(cls, *, load_files: bool = True) -> "AppConfig":
        if load_files:
            load_env_files()
        return cls(
            openrouter_api_key=_first_nonempty_env("OPENROUTER_API_KEY") or "",
            base_url=_first_nonempty_env("OPENROUTER_BASE_URL") or DEFAULT_OPENROUTER_BASE_URL,
            free_model=_first_nonempty_env("OPENROUTER_FREE_MODEL") or "",
            paid_model=_first_nonempty_env("OPENROUTER_PAID_MODEL") or "",
            use_paid_model=_env_flag("USE_PAID_MODEL", False),
            web_search=_env_flag("OPENROUTER_WEB_SEARCH", True),
            request_timeout_sec=_env_float("LLM_REQUEST_TIMEOUT_SEC", DEFAULT_REQUEST_TIMEOUT_SEC, minimum=5.0),
            max_tokens=_env_int("LLM_MAX_TOKENS", DEFAULT_MAX_TOKENS, minimum=256),
        )
