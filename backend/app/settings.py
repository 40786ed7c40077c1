from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_STATIC_DIR = Path(__file__).resolve().parents[1] / "data" / "static"


def _bool_env(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _float_env(name: str, default: str) -> float:
    raw = os.getenv(name, default).strip()
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return float(default)


def _list_env(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [value.strip() for value in raw.split(",") if value.strip()]


def _path_env(name: str) -> Optional[Path]:
    value = os.getenv(name)
    if not value:
        return None
    return Path(value)


def _optional_env(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def load_live_api_url(config_path: Optional[Path]) -> Optional[str]:
    """Read ``liveApiUrl`` from a viewer ``config.json``.

    A missing or unreadable file disables the live source instead of failing.
    """
    if not config_path:
        return None
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, ValueError):
        logger.warning(f"[Config] No usable config at {config_path}, live mode disabled")
        return None
    if not isinstance(payload, dict):
        return None
    value = payload.get("liveApiUrl")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


@dataclass(frozen=True)
class Settings:
    live_api_url: Optional[str]
    live_timeout: float
    tunnel_bypass: bool
    static_dir: Optional[Path]
    static_url: Optional[str]
    static_timeout: float
    cors_origins: List[str]
    log_level: str

    @property
    def live_enabled(self) -> bool:
        return bool(self.live_api_url)

    @classmethod
    def from_env(cls) -> "Settings":
        live_api_url = _optional_env("KRATOS_LIVE_API_URL")
        if live_api_url is None:
            live_api_url = load_live_api_url(_path_env("KRATOS_CONFIG_PATH"))

        static_url = _optional_env("KRATOS_STATIC_URL")
        static_dir = _path_env("KRATOS_STATIC_DIR")
        if static_dir is None and static_url is None:
            static_dir = DEFAULT_STATIC_DIR

        return cls(
            live_api_url=live_api_url,
            live_timeout=_float_env("KRATOS_LIVE_TIMEOUT", "5"),
            tunnel_bypass=_bool_env("KRATOS_TUNNEL_BYPASS", "true"),
            static_dir=static_dir,
            static_url=static_url,
            static_timeout=_float_env("KRATOS_STATIC_TIMEOUT", "30"),
            cors_origins=_list_env("KRATOS_CORS_ORIGINS")
            or ["http://localhost:3000", "http://localhost:3001"],
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        )
