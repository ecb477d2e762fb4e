import unittest

from xchat.contracts.v1 import ChatState
from xchat.kernel.guard import SkipReason, TriggerGuard


class TestTriggerGuard(unittest.TestCase):
    def _state(self, **kw) -> ChatState:
        kw.setdefault("enabled", True)
        kw.setdefault("cooldown_ms", 0)
        return ChatState(**kw)

    def test_admitted_trigger_marks_in_flight_and_stamps_time(self) -> None:
        g = TriggerGuard()
        st = self._state()
        self.assertIsNone(g.admit("c1", st, "hello", now=1_000))
        self.assertTrue(g.is_in_flight("c1"))
        self.assertEqual(st.last_trigger_at, 1_000)

    def test_single_flight(self) -> None:
        g = TriggerGuard()
        st = self._state()
        self.assertIsNone(g.admit("c1", st, "first", now=1_000))
        self.assertEqual(g.admit("c1", st, "second", now=2_000), SkipReason.IN_FLIGHT)
        # Other chats are independent.
        self.assertIsNone(g.admit("c2", self._state(), "x", now=2_000))

        g.release("c1")
        self.assertIsNone(g.admit("c1", st, "third", now=3_000))

    def test_claim_refuses_a_busy_chat(self) -> None:
        g = TriggerGuard()
        self.assertTrue(g.claim("c1"))
        self.assertFalse(g.claim("c1"))
        self.assertEqual(g.admit("c1", self._state(), "hi", now=1), SkipReason.IN_FLIGHT)
        g.release("c1")
        g.release("c1")
        self.assertFalse(g.is_in_flight("c1"))

    def test_slash_text_is_never_a_trigger(self) -> None:
        g = TriggerGuard()
        st = self._state()
        self.assertEqual(g.admit("c1", st, "  /start", now=1_000), SkipReason.CONTROL)
        self.assertFalse(g.is_in_flight("c1"))
        self.assertEqual(st.last_trigger_at, 0)

    def test_cooldown(self) -> None:
        g = TriggerGuard()
        st = self._state(cooldown_ms=8_000, last_trigger_at=10_000)
        self.assertEqual(g.admit("c1", st, "hi", now=17_999), SkipReason.COOLDOWN)
        self.assertEqual(st.last_trigger_at, 10_000)
        self.assertIsNone(g.admit("c1", st, "hi", now=18_000))

    def test_seventh_trigger_in_window_is_dropped(self) -> None:
        g = TriggerGuard(max_triggers_per_minute=6, window_ms=60_000)
        st = self._state()
        results = []
        for i in range(7):
            now = 100_000 + i * 1_500  # 7 triggers within 10 s
            results.append(g.admit("c1", st, f"msg {i}", now=now))
            g.release("c1")
        self.assertEqual(results[:6], [None] * 6)
        self.assertEqual(results[6], SkipReason.RATE_LIMIT)
        self.assertEqual(st.last_trigger_at, 100_000 + 5 * 1_500)

        # 60s after the first trigger the dropped 7th still counts, so the window stays full.
        self.assertEqual(g.admit("c1", st, "just after a minute", now=100_000 + 60_001), SkipReason.RATE_LIMIT)

        # Once the window has moved past all of them, a trigger is accepted again.
        self.assertIsNone(g.admit("c1", st, "later", now=100_000 + 70_000))

    def test_rate_window_is_per_chat(self) -> None:
        g = TriggerGuard(max_triggers_per_minute=1)
        self.assertIsNone(g.admit("c1", self._state(), "a", now=1_000))
        self.assertIsNone(g.admit("c2", self._state(), "b", now=1_000))

    def test_clock_is_used_when_now_is_omitted(self) -> None:
        g = TriggerGuard(clock=lambda: 42_000)
        st = self._state()
        self.assertIsNone(g.admit("c1", st, "hi"))
        self.assertEqual(st.last_trigger_at, 42_000)


if __name__ == "__main__":
    unittest.main()
