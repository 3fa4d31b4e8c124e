"""查询/变更的重试决策，对应前端数据层的 retry 配置。

- 查询（读）：401 不重试（拦截器已尝试过刷新），其他失败在 attempt_number < 2 时按固定间隔重试；
- 变更（写）：一律不自动重试，避免重复提交，由用户手动重新提交。

attempt_number 为刚失败那次尝试的序号，从 0 开始。status_code 为 None 表示网络层失败。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


MAX_QUERY_RETRIES = 2
RETRY_DELAY_MS = 1000


@dataclass(frozen=True)
class RetryDecision:
    should_retry: bool
    delay_ms: int = 0


NO_RETRY = RetryDecision(should_retry=False)


class RetryPolicy:
    def __init__(self, max_query_retries: int = MAX_QUERY_RETRIES, delay_ms: int = RETRY_DELAY_MS) -> None:
        self.max_query_retries = max_query_retries
        self.delay_ms = delay_ms

    def decide_query(self, attempt_number: int, status_code: Optional[int]) -> RetryDecision:
        if status_code == 401:
            return NO_RETRY
        if attempt_number < self.max_query_retries:
            return RetryDecision(should_retry=True, delay_ms=self.delay_ms)
        return NO_RETRY

    def decide_mutation(self, attempt_number: int, status_code: Optional[int]) -> RetryDecision:
        return NO_RETRY


_default_policy = RetryPolicy()


def decide_query_retry(attempt_number: int, status_code: Optional[int]) -> RetryDecision:
    return _default_policy.decide_query(attempt_number, status_code)


def decide_mutation_retry(attempt_number: int, status_code: Optional[int]) -> RetryDecision:
    return _default_policy.decide_mutation(attempt_number, status_code)


__all__ = [
    "MAX_QUERY_RETRIES",
    "NO_RETRY",
    "RETRY_DELAY_MS",
    "RetryDecision",
    "RetryPolicy",
    "decide_mutation_retry",
    "decide_query_retry",
]
