"""数据层：按 RetryPolicy 驱动查询重试，并把失败转成 toast / 重新登录信号。"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

import requests

from .error_classifier import DEFAULT_TITLE, FALLBACK_DESCRIPTION, ClassifiedError
from .event_bus import SessionExpirySignal
from .retry_policy import RetryPolicy
from .toaster import Toaster


logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (ClassifiedError, requests.exceptions.RequestException)


def failure_status(exc: BaseException) -> Optional[int]:
    if isinstance(exc, ClassifiedError):
        return exc.status_code
    return None


def failure_description(exc: BaseException) -> str:
    if isinstance(exc, ClassifiedError):
        return exc.description
    return str(exc) or FALLBACK_DESCRIPTION


class QueryClient:
    def __init__(
        self,
        signal: SessionExpirySignal,
        toaster: Toaster,
        *,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.signal = signal
        self.toaster = toaster
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def fetch_query(self, fn: Callable[[], T]) -> T:
        attempt = 0
        while True:
            try:
                return fn()
            except RETRYABLE_ERRORS as exc:
                status = failure_status(exc)
                decision = self.policy.decide_query(attempt, status)
                if status == 401:
                    self.signal.notify()
                if not decision.should_retry:
                    if status != 401:
                        self.toaster.show(DEFAULT_TITLE, failure_description(exc))
                    logger.info("query failed after %d attempt(s): status=%s", attempt + 1, status)
                    raise
                logger.debug("query attempt %d failed (status=%s), retrying in %dms", attempt, status, decision.delay_ms)
            self._sleep(decision.delay_ms / 1000.0)
            attempt += 1

    def mutate(self, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except RETRYABLE_ERRORS as exc:
            status = failure_status(exc)
            decision = self.policy.decide_mutation(0, status)
            if status == 401:
                self.signal.notify()
            title = exc.title if isinstance(exc, ClassifiedError) else DEFAULT_TITLE
            self.toaster.show(title, failure_description(exc))
            logger.info("mutation failed: status=%s retry=%s", status, decision.should_retry)
            raise


__all__ = ["QueryClient", "failure_description", "failure_status"]
