import os
import sys
import threading
import time

import unittest

import requests

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from reservation_client.error_classifier import RefreshError  # type: ignore  # noqa: E402
from reservation_client.refresh_coordinator import RefreshCoordinator  # type: ignore  # noqa: E402


def _response(status: int) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = b""
    return resp


def _wait_until(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.005)


class BlockingRefresh:
    """刷新调用在 release 之前一直阻塞，用于制造“同一刷新窗口”。"""

    def __init__(self, status: int = 200) -> None:
        self.status = status
        self.calls = 0
        self.release = threading.Event()

    def __call__(self) -> requests.Response:
        self.calls += 1
        self.release.wait(5)
        return _response(self.status)


class RefreshCoordinatorTests(unittest.TestCase):
    def _run_concurrently(self, coordinator: RefreshCoordinator, refresh: BlockingRefresh, n: int):
        outcomes: list = []
        lock = threading.Lock()

        def worker() -> None:
            try:
                coordinator.ensure_refreshed()
                result = "ok"
            except RefreshError as exc:
                result = exc
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(n)]
        for t in threads:
            t.start()
        _wait_until(lambda: coordinator.waiting == n - 1)
        refresh.release.set()
        for t in threads:
            t.join(5)
        return outcomes

    def test_concurrent_callers_share_one_refresh(self) -> None:
        refresh = BlockingRefresh()
        coordinator = RefreshCoordinator(refresh)

        outcomes = self._run_concurrently(coordinator, refresh, 5)

        self.assertEqual(refresh.calls, 1)
        self.assertEqual(outcomes, ["ok"] * 5)
        self.assertFalse(coordinator.in_flight)

    def test_failure_delivered_identically_to_all_waiters(self) -> None:
        refresh = BlockingRefresh(status=401)
        coordinator = RefreshCoordinator(refresh)

        outcomes = self._run_concurrently(coordinator, refresh, 4)

        self.assertEqual(refresh.calls, 1)
        self.assertEqual(len(outcomes), 4)
        self.assertTrue(all(isinstance(o, RefreshError) for o in outcomes))
        self.assertEqual(len({id(o) for o in outcomes}), 1)
        self.assertEqual(outcomes[0].status_code, 401)
        self.assertFalse(coordinator.in_flight)

    def test_handle_cleared_after_success_and_failure(self) -> None:
        statuses = [200, 500, 204]
        calls: list = []

        def refresh() -> requests.Response:
            calls.append(1)
            return _response(statuses[len(calls) - 1])

        coordinator = RefreshCoordinator(refresh)
        coordinator.ensure_refreshed()
        with self.assertRaises(RefreshError):
            coordinator.ensure_refreshed()
        coordinator.ensure_refreshed()

        self.assertEqual(len(calls), 3)
        self.assertFalse(coordinator.in_flight)

    def test_network_error_becomes_refresh_error(self) -> None:
        def refresh() -> requests.Response:
            raise requests.exceptions.ConnectionError("connection refused")

        coordinator = RefreshCoordinator(refresh)
        with self.assertRaises(RefreshError) as ctx:
            coordinator.ensure_refreshed()
        self.assertIsNone(ctx.exception.status_code)
        self.assertIsInstance(ctx.exception.__cause__, requests.exceptions.ConnectionError)
        self.assertFalse(coordinator.in_flight)

    def test_reset_clears_handle(self) -> None:
        refresh = BlockingRefresh()
        coordinator = RefreshCoordinator(refresh)
        t = threading.Thread(target=coordinator.ensure_refreshed)
        t.start()
        _wait_until(lambda: coordinator.in_flight)
        coordinator.reset()
        self.assertFalse(coordinator.in_flight)
        refresh.release.set()
        t.join(5)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
