import os
import sys
import threading

import unittest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from reservation_client.event_bus import (  # type: ignore  # noqa: E402
    LOGIN_REQUIRED,
    SESSION_RESTORED,
    EventBus,
    SessionExpirySignal,
)
from reservation_client.login_prompt import LoginRequiredPrompt  # type: ignore  # noqa: E402


class EventBusTests(unittest.TestCase):
    def test_emit_without_listeners_is_recorded(self) -> None:
        bus = EventBus()
        bus.emit(LOGIN_REQUIRED)
        self.assertEqual(bus.events, [{"event": LOGIN_REQUIRED, "payload": None}])

    def test_multiple_listeners_and_off(self) -> None:
        bus = EventBus()
        seen: list = []

        def first(payload):
            seen.append(("first", payload))

        bus.on("x", first)
        bus.on("x", lambda payload: seen.append(("second", payload)))
        bus.emit("x", 1)
        bus.off("x", first)
        bus.emit("x", 2)

        self.assertEqual(seen, [("first", 1), ("second", 1), ("second", 2)])

    def test_failing_listener_does_not_block_others(self) -> None:
        bus = EventBus()
        seen: list = []

        def broken(_payload):
            raise RuntimeError("ui gone")

        bus.on("x", broken)
        bus.on("x", lambda payload: seen.append(payload))
        with self.assertLogs("reservation_client.event_bus", level="ERROR"):
            bus.emit("x", "ok")
        self.assertEqual(seen, ["ok"])


class SessionExpirySignalTests(unittest.TestCase):
    def setUp(self) -> None:
        self.bus = EventBus()
        self.signal = SessionExpirySignal(self.bus)
        self.prompt = LoginRequiredPrompt()
        self.prompt.attach(self.bus)

    def tearDown(self) -> None:
        self.signal.shutdown()

    def _count(self, event: str) -> int:
        return sum(1 for e in self.bus.events if e["event"] == event)

    def test_notify_opens_prompt_once(self) -> None:
        for _ in range(5):
            self.signal.notify()
        self.signal.flush(5)

        self.assertTrue(self.prompt.is_open)
        self.assertEqual(self.prompt.times_opened, 1)
        self.assertTrue(self.signal.raised)

    def test_pending_notifications_coalesced(self) -> None:
        started = threading.Event()
        release = threading.Event()

        def slow_listener(_payload):
            started.set()
            release.wait(5)

        self.bus.on(LOGIN_REQUIRED, slow_listener)

        self.signal.notify()
        self.assertTrue(started.wait(5))
        # 第一次投递进行中：之后的通知只排队一次
        self.signal.notify()
        self.signal.notify()
        self.signal.notify()
        release.set()
        self.signal.flush(5)

        self.assertEqual(self._count(LOGIN_REQUIRED), 2)
        self.assertEqual(self.prompt.times_opened, 1)

    def test_notify_does_not_block_caller(self) -> None:
        release = threading.Event()
        self.bus.on(LOGIN_REQUIRED, lambda _payload: release.wait(5))

        self.signal.notify()  # 监听方阻塞时调用方仍立即返回
        release.set()
        self.signal.flush(5)
        self.assertEqual(self._count(LOGIN_REQUIRED), 1)

    def test_dismiss_only_after_login_required(self) -> None:
        self.signal.dismiss()
        self.assertEqual(self._count(SESSION_RESTORED), 0)

        self.signal.notify()
        self.signal.flush(5)
        self.signal.dismiss()
        self.signal.dismiss()

        self.assertEqual(self._count(SESSION_RESTORED), 1)
        self.assertFalse(self.prompt.is_open)
        self.assertFalse(self.signal.raised)

    def test_dismiss_cancels_undelivered_notice(self) -> None:
        for _ in range(200):
            self.signal.notify()
            self.signal.dismiss()
            self.signal.flush(5)
            self.assertFalse(self.prompt.is_open)
            self.assertFalse(self.signal.raised)

    def test_dismiss_waits_for_delivery_in_progress(self) -> None:
        started = threading.Event()
        release = threading.Event()

        def slow_listener(_payload):
            started.set()
            release.wait(5)

        self.bus.on(LOGIN_REQUIRED, slow_listener)
        self.signal.notify()
        self.assertTrue(started.wait(5))

        dismisser = threading.Thread(target=self.signal.dismiss)
        dismisser.start()
        release.set()
        dismisser.join(5)
        self.signal.flush(5)

        self.assertFalse(self.prompt.is_open)
        self.assertEqual(self._count(SESSION_RESTORED), 1)

    def test_dismiss_closes_open_prompt_despite_pending_notice(self) -> None:
        self.signal.notify()
        self.signal.flush(5)
        self.assertTrue(self.prompt.is_open)

        self.signal.notify()
        self.signal.dismiss()
        self.signal.flush(5)

        self.assertFalse(self.prompt.is_open)
        self.assertEqual(self._count(SESSION_RESTORED), 1)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
