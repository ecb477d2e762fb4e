from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from ..contracts.v1 import ChatState
from ..util.time import now_ms

logger = logging.getLogger(__name__)


def is_control_command(text: str) -> bool:
    """Slash commands are meant for some bot, never ordinary relay input."""
    return (text or "").strip().startswith("/")


class SkipReason(str, Enum):
    CONTROL = "control"
    IN_FLIGHT = "in_flight"
    COOLDOWN = "cooldown"
    RATE_LIMIT = "rate_limit"


class TriggerGuard:
    """Process-local trigger bookkeeping shared by every chat relay.

    Holds the in-flight set and the per-chat sliding window of trigger times.
    Nothing here is persisted; a restart starts from a clean slate.
    """

    def __init__(
        self,
        *,
        max_triggers_per_minute: int = 6,
        window_ms: int = 60_000,
        clock: Callable[[], int] = now_ms,
    ):
        self.max_triggers_per_minute = int(max_triggers_per_minute)
        self.window_ms = int(window_ms)
        self.clock = clock
        self.in_flight: Set[str] = set()
        self.recent: Dict[str, List[int]] = {}

    def is_in_flight(self, chat_id: str) -> bool:
        return chat_id in self.in_flight

    def claim(self, chat_id: str) -> bool:
        """Mark a chat in flight. False if a run already holds it."""
        if chat_id in self.in_flight:
            return False
        self.in_flight.add(chat_id)
        return True

    def release(self, chat_id: str) -> None:
        self.in_flight.discard(chat_id)

    def admit(self, chat_id: str, state: ChatState, text: str, *, now: Optional[int] = None) -> Optional[SkipReason]:
        """Decide whether an ordinary utterance triggers a run.

        Returns None when admitted; the chat is then in flight and
        `state.last_trigger_at` is stamped. Otherwise returns why it was dropped.
        """
        if is_control_command(text):
            return SkipReason.CONTROL
        if chat_id in self.in_flight:
            return SkipReason.IN_FLIGHT

        ts = self.clock() if now is None else int(now)
        if ts - state.last_trigger_at < state.cooldown_ms:
            return SkipReason.COOLDOWN

        window_start = ts - self.window_ms
        window = [t for t in self.recent.get(chat_id, []) if t >= window_start]
        # A dropped trigger still counts against the window.
        window.append(ts)
        self.recent[chat_id] = window
        if len(window) > self.max_triggers_per_minute:
            logger.info("rate limited (%d in window)", len(window), extra={"chat_id": chat_id})
            return SkipReason.RATE_LIMIT

        state.last_trigger_at = ts
        self.in_flight.add(chat_id)
        return None
