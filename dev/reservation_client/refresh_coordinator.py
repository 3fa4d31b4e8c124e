"""Token 刷新协调（single-flight）。

同一刷新窗口内，无论多少请求同时遇到 401，只发出一次 `POST /api/auth/refresh`，
所有等待方拿到同一个结果。刷新结束（成功或失败）后立即清空句柄，
下一次过期会重新发起刷新，而不是复用旧结果。

requests 为阻塞 I/O，并发请求跑在多个线程上，因此“检查句柄 → 创建句柄”需要加锁。
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Callable, Optional

import requests

from .error_classifier import RefreshError


logger = logging.getLogger(__name__)


@dataclass
class RefreshOperation:
    future: Future = field(default_factory=Future)
    waiters: int = 0


class RefreshCoordinator:
    def __init__(self, refresh_call: Callable[[], requests.Response]) -> None:
        """refresh_call: 执行一次刷新请求并返回响应，不做任何重试。"""

        self._refresh_call = refresh_call
        self._lock = threading.Lock()
        self._current: Optional[RefreshOperation] = None

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._current is not None

    @property
    def waiting(self) -> int:
        with self._lock:
            return self._current.waiters if self._current is not None else 0

    def reset(self) -> None:
        with self._lock:
            self._current = None

    def ensure_refreshed(self) -> None:
        """等待（或发起）一次刷新；失败时抛出 RefreshError。"""

        with self._lock:
            op = self._current
            if op is not None:
                op.waiters += 1
                owner = False
            else:
                op = self._current = RefreshOperation()
                owner = True

        if not owner:
            # 与发起方共享同一结果，异常实例也相同
            op.future.result()
            return

        error: Optional[RefreshError] = RefreshError("refresh interrupted")
        try:
            error = self._run_refresh()
        finally:
            with self._lock:
                if self._current is op:
                    self._current = None
            if error is None:
                op.future.set_result(None)
            else:
                op.future.set_exception(error)

        if error is not None:
            raise error

    def _run_refresh(self) -> Optional[RefreshError]:
        try:
            resp = self._refresh_call()
        except requests.exceptions.RequestException as exc:
            logger.warning("token refresh failed: %s", exc)
            error = RefreshError(f"refresh request failed: {exc}")
            error.__cause__ = exc
            return error
        except Exception as exc:  # noqa: BLE001
            # 等待方不能因为发起方的意外异常而永远阻塞
            logger.exception("token refresh raised unexpectedly")
            error = RefreshError(f"refresh request failed: {exc}")
            error.__cause__ = exc
            return error

        if not 200 <= resp.status_code < 300:
            logger.warning("token refresh rejected with status %s", resp.status_code)
            return RefreshError(f"refresh rejected with HTTP {resp.status_code}", status_code=resp.status_code)

        logger.debug("token refresh succeeded")
        return None


__all__ = ["RefreshCoordinator", "RefreshOperation"]
