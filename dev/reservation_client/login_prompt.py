from __future__ import annotations

import logging
import threading

from .event_bus import LOGIN_REQUIRED, SESSION_RESTORED, EventBus


class LoginRequiredPrompt:
    """“需要重新登录”弹窗的内存替身。

    真实项目中由 UI 层实现同名接口（trigger_login_required / set_open），
    这里只记录开关状态，便于在单元测试和无界面场景中复用。
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._open = False
        self.times_opened = 0
        self._logger = logging.getLogger(__name__)

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._open

    def set_open(self, is_open: bool) -> None:
        with self._lock:
            if is_open and not self._open:
                self.times_opened += 1
            self._open = is_open

    def trigger_login_required(self) -> None:
        """已打开时不重复弹出。"""

        self._logger.debug("login prompt requested (open=%s)", self.is_open)
        self.set_open(True)

    def attach(self, bus: EventBus) -> None:
        bus.on(LOGIN_REQUIRED, lambda _payload: self.trigger_login_required())
        bus.on(SESSION_RESTORED, lambda _payload: self.set_open(False))


__all__ = ["LoginRequiredPrompt"]
