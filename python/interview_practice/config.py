"""
Runtime configuration for the interview practice client.

Values come from the process environment, after loading an optional ``.env``
file that sits next to the package directory. Validation is strict: a bad
value raises RuntimeError naming the variable instead of silently falling
back to a default.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .i18n import Language

logger = logging.getLogger(__name__)

_env_path = Path(__file__).parent.parent / ".env"

DEFAULT_API_URL = "http://127.0.0.1:8766"
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_PROGRESS_HISTORY_LIMIT = 200
DEFAULT_MAX_INFO_POINTS = 8


@dataclass(frozen=True)
class PracticeConfig:
    """Client configuration resolved from the environment."""

    api_base_url: str = DEFAULT_API_URL
    language: Language = Language.EN
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    auth_token: Optional[str] = None
    user_id: Optional[str] = None
    thinking_time_scale: float = 1.0
    progress_history_limit: int = DEFAULT_PROGRESS_HISTORY_LIMIT
    max_info_points: int = DEFAULT_MAX_INFO_POINTS


def _read(name: str, default: str) -> str:
    return (os.environ.get(name, default) or "").strip()


def _read_float(name: str, default: float, *, minimum: float, inclusive: bool) -> float:
    raw = _read(name, str(default))
    if not raw:
        raise RuntimeError(f"{name} resolved to empty value.")
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number. Got: {raw}") from exc
    if value < minimum or (not inclusive and value == minimum):
        bound = ">=" if inclusive else ">"
        raise RuntimeError(f"{name} must be {bound} {minimum}. Got: {value}.")
    return value


def _read_int(name: str, default: int, *, minimum: int) -> int:
    raw = _read(name, str(default))
    if not raw:
        raise RuntimeError(f"{name} resolved to empty value.")
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer. Got: {raw}") from exc
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}. Got: {value}.")
    return value


def load_practice_config(*, load_env_file: bool = True) -> PracticeConfig:
    """
    Load client config from environment with strict validation.

    Args:
        load_env_file: Load ``python/.env`` before reading variables.

    Returns:
        Frozen PracticeConfig.

    Raises:
        RuntimeError: If any variable is present but invalid.
    """
    if load_env_file:
        load_dotenv(_env_path)

    api_base_url = _read("PRACTICE_API_URL", DEFAULT_API_URL).rstrip("/")
    if not api_base_url:
        raise RuntimeError("PRACTICE_API_URL resolved to empty value.")
    if not api_base_url.startswith(("http://", "https://")):
        raise RuntimeError(
            f"PRACTICE_API_URL must start with http:// or https://. Got: {api_base_url}"
        )

    language_raw = _read("PRACTICE_LANGUAGE", Language.EN.value).lower()
    try:
        language = Language(language_raw)
    except ValueError as exc:
        allowed = ", ".join(lang.value for lang in Language)
        raise RuntimeError(
            f"PRACTICE_LANGUAGE must be one of: {allowed}. Got: {language_raw}"
        ) from exc

    config = PracticeConfig(
        api_base_url=api_base_url,
        language=language,
        http_timeout_seconds=_read_float(
            "PRACTICE_HTTP_TIMEOUT",
            DEFAULT_HTTP_TIMEOUT_SECONDS,
            minimum=0.0,
            inclusive=False,
        ),
        auth_token=_read("PRACTICE_AUTH_TOKEN", "") or None,
        user_id=_read("PRACTICE_USER_ID", "") or None,
        thinking_time_scale=_read_float(
            "PRACTICE_THINKING_SCALE", 1.0, minimum=0.0, inclusive=True
        ),
        progress_history_limit=_read_int(
            "PRACTICE_PROGRESS_HISTORY", DEFAULT_PROGRESS_HISTORY_LIMIT, minimum=1
        ),
        max_info_points=_read_int(
            "PRACTICE_MAX_INFO_POINTS", DEFAULT_MAX_INFO_POINTS, minimum=1
        ),
    )
    logger.debug(
        "Practice config loaded: api=%s language=%s timeout=%.1fs",
        config.api_base_url,
        config.language.value,
        config.http_timeout_seconds,
    )
    return config
