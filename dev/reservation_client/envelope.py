"""出站请求描述（RequestEnvelope）。

一次性可读的请求体（文件对象、生成器等）在首次发送前先读出并缓存为 bytes，
refresh 成功后的重放使用同一份内容，保证逐字节一致；
若读取失败，则用 body_factory 按原始参数重新构造请求体。
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional


logger = logging.getLogger(__name__)


def is_single_read(body: Any) -> bool:
    if body is None or isinstance(body, (bytes, bytearray, str, dict, list, tuple)):
        return False
    return hasattr(body, "read") or isinstance(body, Iterator)


def _drain(body: Any) -> Any:
    if hasattr(body, "read"):
        return body.read()
    chunks = list(body)
    if chunks and all(isinstance(c, str) for c in chunks):
        return "".join(chunks)
    return b"".join(c.encode("utf-8") if isinstance(c, str) else bytes(c) for c in chunks)


@dataclass
class RequestEnvelope:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    json: Any = None
    params: Optional[Dict[str, Any]] = None
    body_factory: Optional[Callable[[], Any]] = None

    captured: bool = field(default=False, init=False)
    replayable: bool = field(default=True, init=False)
    _captured_body: Any = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = dict(self.headers or {})

    def capture(self) -> None:
        """首次发送前调用；可重复调用。"""

        if self.captured:
            return
        self.captured = True
        if not is_single_read(self.body):
            self._captured_body = self.body
            return
        try:
            self._captured_body = _drain(self.body)
        except (OSError, ValueError) as exc:
            logger.warning("request body for %s %s cannot be duplicated: %s", self.method, self.url, exc)
            self.replayable = False

    def first_body(self) -> Any:
        if self.captured and self.replayable:
            return self._captured_body
        return self.body

    def replay_body(self) -> Any:
        if self.captured and self.replayable:
            return self._captured_body
        if self.body_factory is not None:
            return self.body_factory()
        logger.warning("replaying %s %s with its original body object", self.method, self.url)
        return self.body

    def send_kwargs(self, *, replay: bool = False) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "method": self.method,
            "url": self.url,
            "headers": dict(self.headers),
        }
        data = self.replay_body() if replay else self.first_body()
        if data is not None:
            kwargs["data"] = data
        if self.json is not None:
            kwargs["json"] = self.json
        if self.params:
            kwargs["params"] = dict(self.params)
        return kwargs


__all__ = ["RequestEnvelope", "is_single_read"]
