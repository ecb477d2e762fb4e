"""Turn scheduler: drive a fixed sequence of backend calls per relay round.

duo:  a -> b per round; b's output seeds the next round's a prompt.
trio: a -> b -> c per round; c's output (or b's when empty) seeds the next round.

The bridge context is saved after every single call, so a crash mid-round loses
at most the call in progress. There is no cancellation: a chat switched off
mid-run still finishes the run and keeps its outputs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from ..contracts.v1 import BackendRole, ChatSession, ChatState, RelayMode, clamp_rounds, normalize_mode
from . import prompts
from .prompts import Cast
from .state import ChatStateStore

logger = logging.getLogger(__name__)

KICKOFF_MIN_ROUNDS = 2


class AgentInvoker(Protocol):
    """What the scheduler needs from a backend gateway."""

    name: str

    async def run_agent(
        self,
        *,
        session_key: str,
        reply_to: str,
        message: str,
    ) -> Any: ...


@dataclass
class Turn:
    round: int
    role: BackendRole
    backend: str
    text: str


@dataclass
class RunResult:
    chat_id: str
    mode: RelayMode
    rounds: int
    turns: List[Turn] = field(default_factory=list)


def resolve_rounds(state: ChatState, rounds_override: Optional[int], *, kickoff: bool) -> int:
    rounds = clamp_rounds(state.rounds if rounds_override is None else rounds_override)
    if kickoff:
        rounds = max(KICKOFF_MIN_ROUNDS, rounds)
    return rounds


class TurnScheduler:
    def __init__(
        self,
        *,
        store: ChatStateStore,
        backends: Mapping[str, AgentInvoker],
        cast: Cast,
        reply_to: Callable[[str], str],
    ):
        self.store = store
        self.backends: Dict[str, AgentInvoker] = dict(backends)
        self.cast = cast
        self._reply_to = reply_to

    async def run(
        self,
        session: ChatSession,
        user_text: str,
        *,
        rounds_override: Optional[int] = None,
        mode_override: Optional[str] = None,
        kickoff: bool = False,
    ) -> RunResult:
        state = self.store.ensure(session.chat_id)
        mode = normalize_mode(mode_override or state.mode)
        rounds = resolve_rounds(state, rounds_override, kickoff=kickoff)
        result = RunResult(chat_id=session.chat_id, mode=mode, rounds=rounds)
        logger.info(
            "relay run start (rounds=%d kickoff=%s)",
            rounds,
            kickoff,
            extra={"chat_id": session.chat_id, "mode": mode},
        )

        if mode == "trio":
            await self._run_trio(session, state, user_text, rounds, result)
        else:
            await self._run_duo(session, state, user_text, rounds, result)

        self.store.save()
        logger.info("relay run done (%d turns)", len(result.turns), extra={"chat_id": session.chat_id, "mode": mode})
        return result

    async def _run_duo(
        self, session: ChatSession, state: ChatState, user_text: str, rounds: int, result: RunResult
    ) -> None:
        seed = state.bridge.last_b
        for rnd in range(1, rounds + 1):
            a_text = await self._call(session, state, result, rnd, "a", prompts.duo_a(self.cast, user_text, seed))
            b_text = await self._call(session, state, result, rnd, "b", prompts.duo_b(self.cast, user_text, a_text))
            seed = b_text

    async def _run_trio(
        self, session: ChatSession, state: ChatState, user_text: str, rounds: int, result: RunResult
    ) -> None:
        seed = state.bridge.last_c or state.bridge.last_b
        for rnd in range(1, rounds + 1):
            a_text = await self._call(session, state, result, rnd, "a", prompts.trio_a(self.cast, user_text, seed))
            b_text = await self._call(session, state, result, rnd, "b", prompts.trio_b(self.cast, user_text, a_text))
            c_text = await self._call(
                session, state, result, rnd, "c", prompts.trio_c(self.cast, user_text, a_text, b_text)
            )
            seed = c_text or b_text

    async def _call(
        self,
        session: ChatSession,
        state: ChatState,
        result: RunResult,
        rnd: int,
        role: BackendRole,
        message: str,
    ) -> str:
        backend = self.backends[role]
        reply = await backend.run_agent(
            session_key=session.session_key,
            reply_to=self._reply_to(session.chat_id),
            message=message,
        )
        text = str(getattr(reply, "text", "") or "")
        state.bridge.set(role, text)
        self.store.save()
        result.turns.append(Turn(round=rnd, role=role, backend=backend.name, text=text))
        logger.info(
            "turn done (%d chars)",
            len(text),
            extra={"chat_id": session.chat_id, "backend": backend.name, "mode": result.mode, "round": rnd},
        )
        return text
