"""出站请求拦截器。

流程：
1. 首次发送前缓存一次性请求体；
2. 发送一次，非 401 原样返回（成功或其他失败均由上层处理）；
3. 401 且 refresh 凭证无效 → 直接走第 6 步；
4. 否则等待 single-flight 刷新，成功后按原样重放一次，重放结果即最终结果；
5. 刷新失败 → 第 6 步；
6. 基于最初的 401 响应抛出 ClassifiedError，并异步通知 UI 需要重新登录。
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict

import requests

from .envelope import RequestEnvelope
from .error_classifier import ClassifiedError, RefreshError
from .event_bus import SessionExpirySignal
from .refresh_coordinator import RefreshCoordinator
from .session_state import SessionState


logger = logging.getLogger(__name__)

Send = Callable[[Dict[str, Any]], requests.Response]


class RequestInterceptor:
    def __init__(
        self,
        send: Send,
        session_state: SessionState,
        coordinator: RefreshCoordinator,
        signal: SessionExpirySignal,
    ) -> None:
        self._send = send
        self._state = session_state
        self._coordinator = coordinator
        self._signal = signal

    def __call__(self, envelope: RequestEnvelope) -> requests.Response:
        envelope.capture()

        resp = self._send(envelope.send_kwargs())
        if resp.status_code != 401:
            self._after_response(resp)
            return resp

        if not self._state.has_valid_refresh_credential():
            logger.info("401 on %s %s without a valid refresh credential", envelope.method, envelope.url)
            raise self._unrecoverable(resp)

        try:
            self._coordinator.ensure_refreshed()
        except RefreshError as exc:
            logger.warning("401 on %s %s not recoverable: %s", envelope.method, envelope.url, exc)
            raise self._unrecoverable(resp) from exc

        retried = self._send(envelope.send_kwargs(replay=True))
        self._after_response(retried)
        return retried

    def _after_response(self, resp: requests.Response) -> None:
        if 200 <= resp.status_code < 300:
            self._signal.dismiss()

    def _unrecoverable(self, original: requests.Response) -> ClassifiedError:
        # 先通知 UI，再解析响应体
        self._signal.notify()
        return ClassifiedError.from_response(original)


__all__ = ["RequestInterceptor", "Send"]
