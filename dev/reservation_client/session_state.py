"""会话状态（只读派生）。

- refresh 凭证是否可用，取决于后端写入的 `refreshToken_expiration` Cookie（秒级时间戳）。
- 每次判断都从 Cookie Jar 重新读取，不做缓存。
- Cookie 缺失 / 无法解析 / 不晚于当前时间 → 视为“无可用 refresh 凭证”。
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional
from urllib.parse import unquote

from requests.cookies import RequestsCookieJar


UTC = timezone.utc

REFRESH_EXPIRATION_COOKIE = "refreshToken_expiration"


def now_utc() -> datetime:
    return datetime.now(UTC)


def read_refresh_expiration(
    cookies: RequestsCookieJar, name: str = REFRESH_EXPIRATION_COOKIE
) -> Optional[datetime]:
    # 同名 Cookie 可能存在于多个 domain/path，jar.get() 会抛 CookieConflictError，这里取第一个
    raw = None
    for cookie in cookies:
        if cookie.name == name:
            raw = cookie.value
            break
    if raw is None:
        return None

    try:
        seconds = int(unquote(raw).strip())
        return datetime.fromtimestamp(seconds, UTC)
    except (ValueError, OverflowError, OSError):
        return None


class SessionState:
    def __init__(
        self,
        cookies: RequestsCookieJar,
        now_provider: Callable[[], datetime] = now_utc,
        cookie_name: str = REFRESH_EXPIRATION_COOKIE,
    ) -> None:
        self._cookies = cookies
        self._now = now_provider
        self._cookie_name = cookie_name

    def refresh_expiration(self) -> Optional[datetime]:
        return read_refresh_expiration(self._cookies, self._cookie_name)

    def has_valid_refresh_credential(self, now: Optional[datetime] = None) -> bool:
        expires_at = self.refresh_expiration()
        if expires_at is None:
            return False
        return expires_at > (now or self._now())


__all__ = [
    "REFRESH_EXPIRATION_COOKIE",
    "SessionState",
    "now_utc",
    "read_refresh_expiration",
]
