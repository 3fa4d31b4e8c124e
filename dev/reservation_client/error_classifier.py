"""请求失败的错误分类（与前端 toast 文案约定对齐）。

- classify_description: 从响应体中提取给用户看的描述，按顺序匹配，命中即停止：
  JSON 字符串 → `message` 字段 → `violations[].message` 拼接 → `error` 字段 → 兜底文案。
- classify_title: 与描述配套的标题。
- ClassifiedError: 对外抛出的结构化错误，status_code/description 为一等字段，
  调用方按 status_code 分支，无需再次解析响应体。
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Optional, Tuple

import requests


FALLBACK_DESCRIPTION = "Unknown error. Please try again."
DEFAULT_TITLE = "An error occurred"


class ErrorKind(str, Enum):
    TRANSPORT = "transport"
    UNAUTHORIZED = "unauthorized"
    CLIENT = "client"
    SERVER = "server"
    REFRESH_FAILED = "refresh_failed"


def map_status_to_kind(status_code: Optional[int]) -> ErrorKind:
    if status_code is None:
        return ErrorKind.TRANSPORT
    if status_code == 401:
        return ErrorKind.UNAUTHORIZED
    if status_code >= 500:
        return ErrorKind.SERVER
    return ErrorKind.CLIENT


def _parse_json(body: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(body)
    except (TypeError, ValueError, RecursionError):
        # 嵌套过深的响应体同样视为无法解析
        return False, None


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _violation_messages(data: dict) -> list:
    violations = data.get("violations")
    if not isinstance(violations, list):
        return []
    return [
        v["message"]
        for v in violations
        if isinstance(v, dict) and _text(v.get("message"))
    ]


def classify_description(body: str) -> str:
    if not body:
        return body

    ok, data = _parse_json(body)
    if not ok:
        return FALLBACK_DESCRIPTION

    if _text(data):
        return data
    if isinstance(data, dict):
        if _text(data.get("message")):
            return data["message"]
        messages = _violation_messages(data)
        if messages:
            return ", ".join(messages)
        if _text(data.get("error")):
            return data["error"]
    return FALLBACK_DESCRIPTION


def classify_title(body: str) -> str:
    ok, data = _parse_json(body) if body else (False, None)
    if not ok or not isinstance(data, dict):
        return DEFAULT_TITLE
    if _violation_messages(data):
        title = data.get("title")
        return title if isinstance(title, str) and title else "Constraint Violation"
    if _text(data.get("error")) or _text(data.get("message")):
        return "Error"
    return DEFAULT_TITLE


class ClassifiedError(Exception):
    """一次失败请求对应的结构化错误，创建后只读。"""

    def __init__(
        self,
        status_code: int,
        raw_body: str,
        description: str,
        *,
        title: str = DEFAULT_TITLE,
        retry_after: Optional[Any] = None,
    ) -> None:
        super().__init__(description)
        self._status_code = status_code
        self._raw_body = raw_body
        self._description = description
        self._title = title
        self._retry_after = retry_after

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def raw_body(self) -> str:
        return self._raw_body

    @property
    def description(self) -> str:
        return self._description

    @property
    def title(self) -> str:
        return self._title

    @property
    def retry_after(self) -> Optional[Any]:
        return self._retry_after

    @property
    def kind(self) -> ErrorKind:
        return map_status_to_kind(self._status_code)

    @classmethod
    def from_response(cls, response: requests.Response) -> "ClassifiedError":
        raw_body = response.text or ""
        # 空响应体不做解析，退化为状态行描述，保证对外描述非空
        description = classify_description(raw_body) or response.reason or FALLBACK_DESCRIPTION

        retry_after = None
        if response.status_code == 429:
            ok, data = _parse_json(raw_body)
            if ok and isinstance(data, dict):
                retry_after = data.get("retryAfter")

        return cls(
            response.status_code,
            raw_body,
            description,
            title=classify_title(raw_body),
            retry_after=retry_after,
        )

    def __repr__(self) -> str:
        return f"ClassifiedError(status_code={self._status_code!r}, description={self._description!r})"


class RefreshError(Exception):
    """refresh 调用失败（非 2xx 或网络异常），所有等待方收到同一个实例。"""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.kind = ErrorKind.REFRESH_FAILED


__all__ = [
    "DEFAULT_TITLE",
    "FALLBACK_DESCRIPTION",
    "ClassifiedError",
    "ErrorKind",
    "RefreshError",
    "classify_description",
    "classify_title",
    "map_status_to_kind",
]
