"""极简 stub 后端：基于 Cookie 的 access/refresh 凭证，按 mode 返回约定错误或成功响应。

仅用于本地集成测试，替代真实后端。
"""

from __future__ import annotations

import argparse
import json
import threading
import time
from http.cookies import SimpleCookie
from http.server import BaseHTTPRequestHandler, HTTPServer
from socketserver import ThreadingMixIn
from typing import Any, Dict, List, Optional


class StubState:
    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.mode = "ok"  # ok / bad_credentials / rate_limit / refresh_rejected / no_expiration_cookie / events_error / validation
        self.access_token = "A-0"
        self.refresh_token = "R-STUB"
        self.refresh_delay = 0.0
        self.refresh_calls = 0
        self.events_calls = 0
        self.received_bodies: List[bytes] = []
        self._seq = 0
        self.lock = threading.Lock()

    def next_access_token(self) -> str:
        with self.lock:
            self._seq += 1
            self.access_token = f"A-{self._seq}"
            return self.access_token

    def expire_access(self) -> None:
        """让当前 access token 失效，下一次业务请求返回 401。"""

        with self.lock:
            self.access_token = "A-expired"


state = StubState()


def _send_json(
    handler: BaseHTTPRequestHandler,
    code: int,
    payload: Any,
    cookies: Optional[Dict[str, str]] = None,
) -> None:
    body = json.dumps(payload).encode("utf-8")
    handler.send_response(code)
    handler.send_header("Content-Type", "application/json")
    handler.send_header("Content-Length", str(len(body)))
    for name, value in (cookies or {}).items():
        handler.send_header("Set-Cookie", f"{name}={value}; Path=/")
    handler.end_headers()
    handler.wfile.write(body)


class StubHandler(BaseHTTPRequestHandler):
    def do_POST(self):  # noqa: N802
        try:
            # 先读完请求体，未认证时直接关闭连接会让客户端收到 RST
            self._body = self._read_body()
            if self.path == "/api/auth/login":
                return self._handle_login()
            if self.path == "/api/auth/refresh":
                return self._handle_refresh()
            if self.path == "/api/auth/logout":
                return self._handle_logout()
            if self.path == "/api/events":
                return self._handle_create_event()
            _send_json(self, 404, {"message": "Not found"})
        except Exception as exc:  # noqa: BLE001
            _send_json(self, 500, {"message": "Internal error", "detail": str(exc)})

    def do_GET(self):  # noqa: N802
        try:
            if self.path == "/health":
                return _send_json(self, 200, {"ok": True})
            if self.path == "/api/users/me":
                return self._handle_me()
            if self.path == "/api/events":
                return self._handle_list_events()
            _send_json(self, 404, {"message": "Not found"})
        except Exception as exc:  # noqa: BLE001
            _send_json(self, 500, {"message": "Internal error", "detail": str(exc)})

    # --- helpers ---
    def _cookies(self) -> Dict[str, str]:
        jar = SimpleCookie()
        jar.load(self.headers.get("Cookie", ""))
        return {k: m.value for k, m in jar.items()}

    def _read_body(self) -> bytes:
        length = int(self.headers.get("Content-Length") or 0)
        return self.rfile.read(length) if length else b""

    def _authorized(self) -> bool:
        if self._cookies().get("accessToken") == state.access_token:
            return True
        _send_json(self, 401, {"message": "Unauthorized"})
        return False

    def _session_cookies(self) -> Dict[str, str]:
        cookies = {"accessToken": state.next_access_token(), "refreshToken": state.refresh_token}
        if state.mode != "no_expiration_cookie":
            cookies["refreshToken_expiration"] = str(int(time.time()) + 3600)
        return cookies

    # --- handlers ---
    def _handle_login(self):
        data = json.loads(self._body or b"{}")
        if state.mode == "rate_limit":
            return _send_json(self, 429, {"message": "Too many login attempts", "retryAfter": "2030-01-01T00:00:00Z"})
        if state.mode == "bad_credentials" or data.get("password") != "secret":
            return _send_json(self, 401, {"message": "Invalid username or password"})
        return _send_json(self, 200, {}, cookies=self._session_cookies())

    def _handle_refresh(self):
        with state.lock:
            state.refresh_calls += 1
        if state.refresh_delay:
            time.sleep(state.refresh_delay)
        if state.mode == "refresh_rejected" or self._cookies().get("refreshToken") != state.refresh_token:
            return _send_json(self, 401, {"message": "Refresh token expired"})
        return _send_json(self, 200, {}, cookies=self._session_cookies())

    def _handle_logout(self):
        if not self._authorized():
            return None
        state.access_token = "A-logged-out"
        return _send_json(self, 200, {"message": "Logged out"})

    def _handle_me(self):
        if not self._authorized():
            return None
        return _send_json(self, 200, {"username": "admin", "roles": ["ADMIN"]})

    def _handle_list_events(self):
        if not self._authorized():
            return None
        with state.lock:
            state.events_calls += 1
        if state.mode == "events_error":
            return _send_json(self, 500, {"message": "Database unavailable"})
        return _send_json(self, 200, [{"id": 1, "name": "Spring concert"}])

    def _handle_create_event(self):
        if not self._authorized():
            return None
        body = self._body
        state.received_bodies.append(body)
        if state.mode == "validation":
            return _send_json(
                self,
                400,
                {
                    "title": "Constraint Violation",
                    "status": 400,
                    "violations": [
                        {"field": "name", "message": "must not be blank"},
                        {"field": "startTime", "message": "must be in the future"},
                    ],
                },
            )
        return _send_json(self, 201, {"id": 2, "raw": body.decode("utf-8")})

    def log_message(self, format: str, *args):  # noqa: A003
        return  # silence


class ThreadingHTTPServer(ThreadingMixIn, HTTPServer):
    daemon_threads = True
    allow_reuse_address = True


def create_server(host: str = "127.0.0.1", port: int = 8090) -> HTTPServer:
    """用于测试的 server 工厂，可在测试中调用 shutdown() 结束。"""

    return ThreadingHTTPServer((host, port), StubHandler)


def run_stub_server(host: str = "127.0.0.1", port: int = 8090) -> None:
    httpd = create_server(host, port)
    httpd.serve_forever()


if __name__ == "__main__":  # pragma: no cover
    parser = argparse.ArgumentParser(description="Seat reservation stub backend (for local client integration tests)")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8090)
    args = parser.parse_args()

    run_stub_server(host=args.host, port=args.port)
