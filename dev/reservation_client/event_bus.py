"""事件总线与会话过期信号。

- EventBus.emit(event, payload): 记录并分发事件给已注册的处理器（0 个、1 个或多个）。
- SessionExpirySignal.notify(): 通知 UI 层需要重新登录；后台线程投递，不阻塞错误路径，
  投递完成前的重复通知合并为一次。
- SessionExpirySignal.dismiss(): 请求重新成功后通知 UI 关闭登录弹窗；尚未投递的通知直接作废。
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)

LOGIN_REQUIRED = "loginRequired"
SESSION_RESTORED = "sessionRestored"


class EventBus:
    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []
        self.handlers: Dict[str, List[Callable[[Any], None]]] = {}
        self._lock = threading.Lock()

    def on(self, event: str, handler: Callable[[Any], None]) -> None:
        with self._lock:
            self.handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Callable[[Any], None]) -> None:
        with self._lock:
            handlers = self.handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)

    def emit(self, event: str, payload: Any = None) -> None:
        with self._lock:
            self.events.append({"event": event, "payload": payload})
        self.dispatch(event, payload)

    def dispatch(self, event: str, payload: Any = None) -> None:
        with self._lock:
            handlers = list(self.handlers.get(event, []))
        for h in handlers:
            try:
                h(payload)
            except Exception:  # noqa: BLE001
                # 单个监听方出错不影响其他监听方
                logger.exception("handler for %s failed", event)


class SessionExpirySignal:
    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._lock = threading.Lock()
        # 投递与撤销串行执行，保证 LOGIN_REQUIRED / SESSION_RESTORED 的先后顺序
        self._emit_lock = threading.RLock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="session-expiry")
        self._queued = False
        self._generation = 0
        self._last: Optional[Future] = None
        self._raised = False

    @property
    def raised(self) -> bool:
        with self._lock:
            return self._raised

    def notify(self) -> None:
        with self._lock:
            if self._queued:
                logger.debug("login required already pending, coalescing")
                return
            self._queued = True
            self._generation += 1
            self._last = self._executor.submit(self._deliver, self._generation)

    def dismiss(self) -> None:
        with self._emit_lock:
            with self._lock:
                if self._queued:
                    # 尚未投递的通知作废
                    logger.debug("login required cancelled before delivery")
                    self._queued = False
                    self._generation += 1
                if not self._raised:
                    return
                self._raised = False
            self._bus.emit(SESSION_RESTORED)

    def flush(self, timeout: Optional[float] = None) -> None:
        # 单工作线程按提交顺序投递，最后一个完成即全部完成
        with self._lock:
            last = self._last
        if last is not None:
            wait([last], timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def _deliver(self, generation: int) -> None:
        with self._emit_lock:
            with self._lock:
                if generation != self._generation:
                    return
                self._raised = True
                # 投递开始后再来的通知视为新一轮
                self._queued = False
            logger.info("session expired, login required")
            self._bus.emit(LOGIN_REQUIRED)


__all__ = ["EventBus", "LOGIN_REQUIRED", "SESSION_RESTORED", "SessionExpirySignal"]
