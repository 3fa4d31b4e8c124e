from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .retry_policy import MAX_QUERY_RETRIES, RETRY_DELAY_MS


logger = logging.getLogger(__name__)

CONFIG_FILENAME = "reservation-client.json"
DEFAULT_BASE_URL = "http://localhost:8080"


@dataclass
class ClientConfig:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 15.0
    # refresh 调用自身的超时；等待方共享该调用，因此也决定了最长等待时间
    refresh_timeout: float = 10.0
    retry_delay_ms: int = RETRY_DELAY_MS
    max_query_retries: int = MAX_QUERY_RETRIES

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_config_path() -> str:
    base_dir = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return os.path.join(base_dir, "reservation-client", CONFIG_FILENAME)


def load_config(path: Optional[str]) -> Dict[str, Any]:
    p = (path or "").strip() or default_config_path()
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("ignoring unreadable config file %s: %s", p, exc)
        return {}


def save_config(path: Optional[str], payload: Dict[str, Any]) -> None:
    p = (path or "").strip() or default_config_path()
    os.makedirs(os.path.dirname(p), exist_ok=True)

    tmp = p + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    os.replace(tmp, p)


def _pick(env_key: str, cfg: Dict[str, Any], cfg_key: str, default: Any, cast) -> Any:
    raw = os.environ.get(env_key)
    if raw is None or raw == "":
        raw = cfg.get(cfg_key)
    if raw is None:
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError):
        logger.warning("invalid value for %s: %r, using default %r", cfg_key, raw, default)
        return default


def get_config(path: Optional[str] = None) -> ClientConfig:
    """环境变量 > 配置文件 > 默认值。"""

    config_path = path or os.environ.get("RESERVATION_CLIENT_CONFIG") or default_config_path()
    cfg = load_config(config_path)

    return ClientConfig(
        base_url=_pick("RESERVATION_BASE_URL", cfg, "base_url", DEFAULT_BASE_URL, str),
        timeout=_pick("RESERVATION_TIMEOUT", cfg, "timeout", 15.0, float),
        refresh_timeout=_pick("RESERVATION_REFRESH_TIMEOUT", cfg, "refresh_timeout", 10.0, float),
        retry_delay_ms=_pick("RESERVATION_RETRY_DELAY_MS", cfg, "retry_delay_ms", RETRY_DELAY_MS, int),
        max_query_retries=_pick("RESERVATION_MAX_QUERY_RETRIES", cfg, "max_query_retries", MAX_QUERY_RETRIES, int),
    )


__all__ = ["ClientConfig", "default_config_path", "get_config", "load_config", "save_config"]
