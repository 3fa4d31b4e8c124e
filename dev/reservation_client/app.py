"""客户端入口（无界面版本，用于集成自测）。

组合 EventBus + SessionExpirySignal + LoginRequiredPrompt + Toaster + HttpClient + QueryClient，
提供查询/变更/登录/退出的最小可用流程。

使用方式：在集成测试或脚本中直接调用 ReservationClientApp 的方法。
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .config import ClientConfig, get_config
from .event_bus import LOGIN_REQUIRED, SESSION_RESTORED, EventBus, SessionExpirySignal
from .http_client import HttpClient
from .login_prompt import LoginRequiredPrompt
from .query_client import QueryClient
from .retry_policy import RetryPolicy
from .toaster import Toaster


logger = logging.getLogger(__name__)


class ReservationClientApp:
    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        bus: Optional[EventBus] = None,
        http_client: Optional[HttpClient] = None,
        prompt: Optional[LoginRequiredPrompt] = None,
        toaster: Optional[Toaster] = None,
        sleep=None,
    ) -> None:
        self.config = config or get_config()
        self.events: List[Dict[str, Any]] = []  # 用于测试观测广播

        self.bus = bus or EventBus()
        self.signal = SessionExpirySignal(self.bus)
        self.bus.on(LOGIN_REQUIRED, lambda payload: self._record(LOGIN_REQUIRED, payload))
        self.bus.on(SESSION_RESTORED, lambda payload: self._record(SESSION_RESTORED, payload))

        self.prompt = prompt or LoginRequiredPrompt()
        self.prompt.attach(self.bus)
        self.toaster = toaster or Toaster()

        self.http = http_client or HttpClient(
            self.config.base_url,
            self.signal,
            timeout=self.config.timeout,
            refresh_timeout=self.config.refresh_timeout,
        )

        policy = RetryPolicy(max_query_retries=self.config.max_query_retries, delay_ms=self.config.retry_delay_ms)
        kwargs = {"sleep": sleep} if sleep is not None else {}
        self.queries = QueryClient(self.signal, self.toaster, policy=policy, **kwargs)

    # --- Public API ---
    def query(self, method: str, path: str, **kwargs: Any) -> Any:
        return self.queries.fetch_query(lambda: self.http.request_json(method, path, **kwargs))

    def mutate(self, method: str, path: str, **kwargs: Any) -> Any:
        return self.queries.mutate(lambda: self.http.request_json(method, path, **kwargs))

    def login(self, username: str, password: str) -> Dict[str, Any]:
        self.http.login(username, password)
        return self.query("GET", "/api/users/me")

    def logout(self) -> None:
        self.queries.mutate(self.http.logout)

    def is_logged_in(self) -> bool:
        return self.http.auth_status()

    def close(self) -> None:
        self.signal.shutdown()
        self.http.session.close()

    # --- Helpers ---
    def _record(self, status: str, payload: Any = None) -> None:
        logger.debug("session event: %s", status)
        self.events.append({"status": status, "payload": payload})


__all__ = ["ReservationClientApp"]
