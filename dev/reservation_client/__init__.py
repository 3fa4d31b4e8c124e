"""座位预约 Web 客户端的认证请求管线。

- 401 时 single-flight 刷新 token 并重放原请求；
- 查询/变更的重试策略与错误分类；
- 无法恢复时通过事件总线通知 UI 重新登录。
"""

from .app import ReservationClientApp
from .error_classifier import ClassifiedError, RefreshError, classify_description
from .http_client import HttpClient
from .retry_policy import RetryDecision, decide_mutation_retry, decide_query_retry

__all__ = [
    "ClassifiedError",
    "HttpClient",
    "RefreshError",
    "ReservationClientApp",
    "RetryDecision",
    "classify_description",
    "decide_mutation_retry",
    "decide_query_retry",
]
