"""错误提示（toast）占位实现。

登录/注册等未认证页面会临时禁用 toast，避免刷屏；禁用期间的提示直接丢弃。
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List


logger = logging.getLogger(__name__)


class Toaster:
    def __init__(self) -> None:
        self.toasts: List[Dict[str, str]] = []
        self._disabled = False
        self._lock = threading.Lock()

    @property
    def disabled(self) -> bool:
        return self._disabled

    def disable(self) -> None:
        self._disabled = True

    def enable(self) -> None:
        self._disabled = False

    def show(self, title: str, description: str, variant: str = "destructive") -> None:
        if self._disabled:
            logger.debug("toast suppressed: %s - %s", title, description)
            return
        with self._lock:
            self.toasts.append({"title": title, "description": description, "variant": variant})


__all__ = ["Toaster"]
