"""后端 HTTP 调用封装（客户端侧）。

功能：
- 统一基地址与超时，所有业务请求经过 RequestInterceptor（401 → single-flight 刷新 → 重放一次）。
- 非 2xx 响应转换为 ClassifiedError 抛出；网络异常（requests.RequestException）原样抛出。
- Cookie 由 requests.Session 保存并自动携带，refresh 凭证过期时间也从中读取。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Optional

import requests

from .envelope import RequestEnvelope
from .error_classifier import ClassifiedError
from .event_bus import SessionExpirySignal
from .interceptor import RequestInterceptor
from .refresh_coordinator import RefreshCoordinator
from .session_state import SessionState, now_utc


REFRESH_PATH = "/api/auth/refresh"


class HttpClient:
    def __init__(
        self,
        base_url: str,
        signal: SessionExpirySignal,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
        refresh_timeout: float = 10.0,
        now_provider: Callable[[], datetime] = now_utc,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.refresh_timeout = refresh_timeout
        self.session = session or requests.Session()
        self.signal = signal

        self.state = SessionState(self.session.cookies, now_provider=now_provider)
        self.coordinator = RefreshCoordinator(self._refresh_call)
        self.interceptor = RequestInterceptor(self._send, self.state, self.coordinator, signal)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _send(self, kwargs: Dict[str, Any]) -> requests.Response:
        return self.session.request(timeout=self.timeout, **kwargs)

    def _refresh_call(self) -> requests.Response:
        return self.session.post(self._url(REFRESH_PATH), timeout=self.refresh_timeout)

    def _envelope(self, method: str, path: str, **kwargs: Any) -> RequestEnvelope:
        headers = {"Accept": "application/json"}
        headers.update(kwargs.pop("headers", None) or {})
        return RequestEnvelope(method=method, url=self._url(path), headers=headers, **kwargs)

    def request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        body_factory: Optional[Callable[[], Any]] = None,
    ) -> requests.Response:
        envelope = self._envelope(
            method, path, headers=headers, body=body, json=json, params=params, body_factory=body_factory
        )
        resp = self.interceptor(envelope)
        if not resp.ok:
            raise ClassifiedError.from_response(resp)
        return resp

    def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = self.request(method, path, **kwargs)
        if resp.content:
            return resp.json()
        return None

    def _request_raw(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        envelope = self._envelope(method, path, **kwargs)
        envelope.capture()
        return self._send(envelope.send_kwargs())

    # --- API wrappers ---

    def login(self, username: str, password: str) -> None:
        # 登录失败的 401 属于凭证错误，由调用方处理，不走刷新流程
        resp = self._request_raw("POST", "/api/auth/login", json={"username": username, "password": password})
        if not resp.ok:
            raise ClassifiedError.from_response(resp)
        self.signal.dismiss()

    def logout(self) -> None:
        self.request("POST", "/api/auth/logout")

    def current_user(self) -> Dict[str, Any]:
        return self.request_json("GET", "/api/users/me")

    def auth_status(self) -> bool:
        resp = self._request_raw("GET", "/api/users/me")
        return resp.status_code != 401


__all__ = ["HttpClient", "REFRESH_PATH"]
