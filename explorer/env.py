from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AnyHttpUrl

from .constants import (
    DEFAULT_API_URL,
    DEFAULT_PAGE_SIZE,
    DEFAULT_STATE_PATH,
    DEFAULT_TIMEOUT_SECONDS,
    LOGGER,
    MAX_PAGE_SIZE,
    MIN_PAGE_SIZE,
)


@dataclass
class ExplorerSettings:
    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    state_path: Path = Path(DEFAULT_STATE_PATH)
    page_size: int = DEFAULT_PAGE_SIZE
    clock_skew_seconds: float = 0.0
    debug: bool = True


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a numeric value.")


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    load_dotenv(env_path, override=True)


def validate_env() -> None:
    api_url = os.getenv("EXPLORER_API_URL", DEFAULT_API_URL).strip()
    try:
        AnyHttpUrl(api_url)
    except ValueError as error:
        raise RuntimeError(
            "EXPLORER_API_URL must be a valid HTTP(S) URL (for example: "
            "http://127.0.0.1:8080/api/v1)."
        ) from error

    timeout = _get_env_float("EXPLORER_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
    if timeout <= 0:
        raise RuntimeError("EXPLORER_TIMEOUT must be greater than zero.")

    page_size = _get_env_int("EXPLORER_PAGE_SIZE", DEFAULT_PAGE_SIZE)
    if not MIN_PAGE_SIZE <= page_size <= MAX_PAGE_SIZE:
        raise RuntimeError(
            f"EXPLORER_PAGE_SIZE must be between {MIN_PAGE_SIZE} and {MAX_PAGE_SIZE}."
        )

    if _get_env_float("EXPLORER_CLOCK_SKEW", 0.0) < 0:
        raise RuntimeError("EXPLORER_CLOCK_SKEW must not be negative.")


def load_settings() -> ExplorerSettings:
    validate_env()
    return ExplorerSettings(
        api_url=os.getenv("EXPLORER_API_URL", DEFAULT_API_URL).strip().rstrip("/"),
        timeout=_get_env_float("EXPLORER_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
        state_path=Path(os.getenv("EXPLORER_STATE_PATH", "").strip() or DEFAULT_STATE_PATH),
        page_size=_get_env_int("EXPLORER_PAGE_SIZE", DEFAULT_PAGE_SIZE),
        clock_skew_seconds=_get_env_float("EXPLORER_CLOCK_SKEW", 0.0),
        debug=is_truthy(os.getenv("EXPLORER_DEBUG", "1")),
    )


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("EXPLORER_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
