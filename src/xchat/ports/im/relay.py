"""
Per-chat relay.

Handles, for one chat and in transcript order:
- transcript line -> user utterance
- control commands -> chat state changes (with backend session patches)
- ordinary utterances -> trigger guard -> scheduler run
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Mapping, Optional, Set, Tuple

from ...contracts.v1 import ChatSession, ChatState, GroupActivation, RelayMode, clamp_rounds
from ...kernel.errors import TranscriptError
from ...kernel.guard import TriggerGuard
from ...kernel.prompts import kickoff_text
from ...kernel.scheduler import KICKOFF_MIN_ROUNDS, TurnScheduler
from ...kernel.settings import PRIMARY_ROLE, RelaySettings
from ...kernel.state import ChatStateStore
from ...kernel.transcript import extract_user_text
from ..gateway.client import AgentGateway
from .commands import (
    CommandType,
    ParsedCommand,
    format_busy,
    format_disabled,
    format_enabled,
    format_failure,
    format_help,
    format_kickoff_started,
    format_rounds_set,
    format_run_error,
    format_status,
    parse_command,
)

logger = logging.getLogger(__name__)

# Backends that would otherwise answer every group message on their own.
SECONDARY_ROLES: Tuple[str, ...] = ("a", "b")


class ChatRelay:
    """
    Relay for one chat session.

    Accepted runs are spawned as tasks so the tail keeps reading; anything that
    arrives while a run holds the chat is dropped by the guard, not queued.
    """

    def __init__(
        self,
        session: ChatSession,
        *,
        store: ChatStateStore,
        guard: TriggerGuard,
        scheduler: TurnScheduler,
        gateways: Mapping[str, AgentGateway],
        settings: RelaySettings,
    ):
        self.session = session
        self.store = store
        self.guard = guard
        self.scheduler = scheduler
        self.gateways = gateways
        self.settings = settings
        self._runs: Set["asyncio.Task[Any]"] = set()

    @property
    def chat_id(self) -> str:
        return self.session.chat_id

    @property
    def reply_to(self) -> str:
        return self.settings.reply_to(self.chat_id)

    @property
    def state(self) -> ChatState:
        return self.store.ensure(self.chat_id)

    def _labels(self) -> Tuple[str, str, str]:
        cast = self.scheduler.cast
        return cast.a_label, cast.b_label, cast.c_label

    def _log_extra(self, **kw: Any) -> dict:
        return {"chat_id": self.chat_id, **kw}

    # =========================================================================
    # Inbound
    # =========================================================================

    async def handle_line(self, line: str) -> None:
        """Tail callback: one raw transcript line."""
        try:
            text = extract_user_text(line)
        except TranscriptError as e:
            logger.warning("skipping unreadable transcript line: %s", e, extra=self._log_extra())
            return
        if not text:
            return
        await self.handle_text(text)

    async def handle_text(self, text: str) -> None:
        cmd = parse_command(text)
        if cmd is not None:
            await self.handle_command(cmd)
            return

        state = self.state
        if not state.enabled:
            return

        reason = self.guard.admit(self.chat_id, state, text)
        if reason is not None:
            logger.info("skip: %s", reason.value, extra=self._log_extra(reason=reason.value))
            return

        self.store.save()
        self._spawn(self._run_trigger(text))

    async def handle_command(self, cmd: ParsedCommand) -> None:
        logger.info("command %s", cmd.type.value, extra=self._log_extra(op=cmd.type.value, mode=cmd.mode))
        if cmd.type == CommandType.ON:
            await self._handle_on(cmd.mode or "duo")
        elif cmd.type == CommandType.KICKOFF:
            await self._handle_kickoff(cmd.mode)
        elif cmd.type == CommandType.OFF:
            await self._handle_off()
        elif cmd.type == CommandType.STATUS:
            await self._notify(format_status(self.state, in_flight=self.guard.is_in_flight(self.chat_id)))
        elif cmd.type == CommandType.ROUNDS and cmd.rounds is not None:
            state = self.state
            state.rounds = cmd.rounds
            self.store.save()
            await self._notify(format_rounds_set(state.rounds))
        elif cmd.type == CommandType.HELP:
            await self._notify(format_help())

    # =========================================================================
    # Command handlers
    # =========================================================================

    async def _handle_on(self, mode: RelayMode) -> None:
        try:
            await self._set_activation("mention")
        except Exception as e:
            logger.warning("failed to enable relay (session patch): %s", e, extra=self._log_extra(op="on"))
            await self._notify(format_failure("交流模式开启", e))
            return

        state = self._activate(mode)
        await self._notify(format_enabled(mode, state.rounds, labels=self._labels()))
        self._start_kickoff(mode)

    async def _handle_kickoff(self, requested: Optional[RelayMode]) -> None:
        mode: RelayMode = requested or self.state.mode
        try:
            await self._set_activation("mention")
        except Exception as e:
            logger.warning("failed to kick off relay (session patch): %s", e, extra=self._log_extra(op="kickoff"))
            await self._notify(format_failure("开场互聊", e))
            return

        state = self._activate(mode)
        await self._notify(format_kickoff_started(mode, state.rounds))
        self._start_kickoff(mode)

    async def _handle_off(self) -> None:
        try:
            await self._set_activation(None)
        except Exception as e:
            logger.warning("failed to disable relay (session patch): %s", e, extra=self._log_extra(op="off"))
            await self._notify(format_failure("交流模式关闭", e))
            return

        self.state.enabled = False
        self.store.save()
        await self._notify(format_disabled())

    def _activate(self, mode: RelayMode) -> ChatState:
        state = self.state
        state.enabled = True
        state.mode = mode
        # Relay mode runs at least two rounds unless lowered afterwards.
        state.rounds = clamp_rounds(max(state.rounds, KICKOFF_MIN_ROUNDS))
        self.store.save()
        return state

    async def _set_activation(self, activation: GroupActivation) -> None:
        key = self.session.session_key
        await asyncio.gather(*(self.gateways[role].patch_session(key, activation) for role in SECONDARY_ROLES))

    # =========================================================================
    # Runs
    # =========================================================================

    def _spawn(self, coro: Awaitable[Any]) -> "asyncio.Task[Any]":
        task = asyncio.ensure_future(coro)
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
        return task

    def _start_kickoff(self, mode: RelayMode) -> None:
        if not self.guard.claim(self.chat_id):
            logger.info("skip kickoff: in_flight", extra=self._log_extra(reason="in_flight"))
            self._spawn(self._notify(format_busy()))
            return
        self._spawn(self._run_kickoff(mode))

    async def _run_trigger(self, text: str) -> None:
        try:
            await self.scheduler.run(self.session, text)
        except Exception as e:
            logger.exception("exchange error", extra=self._log_extra())
            await self._notify(format_run_error(e))
        finally:
            self.guard.release(self.chat_id)
            self.store.save()

    async def _run_kickoff(self, mode: RelayMode) -> None:
        try:
            await self.scheduler.run(
                self.session,
                kickoff_text(self.scheduler.cast, mode),
                mode_override=mode,
                kickoff=True,
            )
        except Exception as e:
            logger.exception("kickoff error", extra=self._log_extra(mode=mode))
            await self._notify(format_failure("开场互聊", e))
        finally:
            self.guard.release(self.chat_id)
            self.store.save()

    async def _notify(self, message: str) -> None:
        """Send a system notice through the primary bot; delivery failures are logged only."""
        try:
            await self.gateways[PRIMARY_ROLE].send(self.reply_to, message)
        except Exception:
            logger.exception("notice delivery failed", extra=self._log_extra())

    async def drain(self) -> None:
        """Wait until every spawned run and notice has finished."""
        while self._runs:
            await asyncio.gather(*list(self._runs), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._runs):
            task.cancel()
        await self.drain()
