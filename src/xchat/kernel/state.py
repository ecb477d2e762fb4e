"""Durable per-chat relay state.

One JSON document, {"chats": {<chat_id>: ChatState}}, rewritten wholesale after
every mutation. A missing or unreadable document reads as empty.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

from pydantic import ValidationError

from ..contracts.v1 import ChatState, clamp_rounds
from ..util.fs import read_json, write_json

logger = logging.getLogger(__name__)

__all__ = ["ChatStateStore", "clamp_rounds"]


class ChatStateStore:
    def __init__(self, path: Path, *, default_rounds: int = 1, default_cooldown_ms: int = 8_000):
        self.path = Path(path)
        self.default_rounds = clamp_rounds(default_rounds)
        self.default_cooldown_ms = int(default_cooldown_ms)
        self._chats: Dict[str, ChatState] = {}

    def load(self) -> "ChatStateStore":
        doc = read_json(self.path)
        chats = doc.get("chats")
        self._chats = {}
        if not isinstance(chats, dict):
            return self
        for chat_id, raw in chats.items():
            if not isinstance(raw, dict):
                logger.warning("dropping malformed chat state", extra={"chat_id": chat_id})
                continue
            try:
                self._chats[str(chat_id)] = ChatState.model_validate(raw)
            except ValidationError as e:
                logger.warning("resetting invalid chat state: %s", e, extra={"chat_id": chat_id})
        return self

    def save(self) -> None:
        write_json(self.path, {"chats": {cid: st.model_dump() for cid, st in self._chats.items()}})

    def get(self, chat_id: str) -> Optional[ChatState]:
        return self._chats.get(chat_id)

    def ensure(self, chat_id: str) -> ChatState:
        """Return the record for `chat_id`, creating it with defaults if missing.

        Fields absent from an older record were already backfilled by the model
        defaults when it was loaded.
        """
        st = self._chats.get(chat_id)
        if st is None:
            st = ChatState(rounds=self.default_rounds, cooldown_ms=self.default_cooldown_ms)
            self._chats[chat_id] = st
        return st

    def items(self) -> Iterator[Tuple[str, ChatState]]:
        return iter(list(self._chats.items()))

    def __len__(self) -> int:
        return len(self._chats)
