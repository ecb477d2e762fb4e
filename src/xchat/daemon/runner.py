"""Relay daemon: wire gateways, chat sessions, state and tailers into one loop."""
from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import Dict, List, Optional

from ..contracts.v1 import ChatSession
from ..kernel.errors import NoSessionsError
from ..kernel.guard import TriggerGuard
from ..kernel.prompts import Cast
from ..kernel.scheduler import TurnScheduler
from ..kernel.sessions import discover_sessions
from ..kernel.settings import BACKEND_ROLES, RelaySettings
from ..kernel.state import ChatStateStore
from ..kernel.tail import TranscriptTailer
from ..ports.gateway import AgentGateway, build_gateways
from ..ports.im.relay import ChatRelay

logger = logging.getLogger(__name__)


class RelayDaemon:
    def __init__(self, settings: RelaySettings, *, gateways: Optional[Dict[str, AgentGateway]] = None):
        self.settings = settings
        self.gateways: Dict[str, AgentGateway] = dict(gateways or {})
        self.store = ChatStateStore(
            settings.state_path,
            default_rounds=settings.rounds,
            default_cooldown_ms=settings.cooldown_ms,
        )
        self.guard = TriggerGuard(
            max_triggers_per_minute=settings.max_triggers_per_minute,
            window_ms=settings.trigger_window_ms,
        )
        self.relays: Dict[str, ChatRelay] = {}
        self.tailers: List[TranscriptTailer] = []
        self._stop: Optional[asyncio.Event] = None
        self._stop_requested = False
        self._started_channels: List[AgentGateway] = []

    async def start(self) -> None:
        """Bring everything up. Any error here is fatal to the daemon."""
        if not self.gateways:
            self.gateways = build_gateways(self.settings)
        for role in BACKEND_ROLES:
            gw = self.gateways[role]
            gw.start()
            self._started_channels.append(gw)
        await asyncio.gather(
            *(
                gw.wait_ready(deadline_s=self.settings.ready_timeout_s, interval_s=self.settings.ready_interval_s)
                for gw in self.gateways.values()
            )
        )
        logger.info("gateways ready: %s", ", ".join(gw.name for gw in self.gateways.values()))

        sessions = discover_sessions(self.settings.session_store_path, key_filter=self.settings.session_key_filter)
        self.store.load()
        scheduler = TurnScheduler(
            store=self.store,
            backends=self.gateways,
            cast=Cast.from_settings(self.settings),
            reply_to=self.settings.reply_to,
        )
        for session in sessions:
            self._attach(session, scheduler)
        self.store.save()
        if not self.tailers:
            raise NoSessionsError("no chat transcript could be tailed")

    def _attach(self, session: ChatSession, scheduler: TurnScheduler) -> None:
        chat_id = session.chat_id
        state = self.store.ensure(chat_id)
        relay = ChatRelay(
            session,
            store=self.store,
            guard=self.guard,
            scheduler=scheduler,
            gateways=self.gateways,
            settings=self.settings,
        )
        tailer = TranscriptTailer(Path(session.transcript_path), relay.handle_line, chat_id=chat_id)
        try:
            tailer.start(from_end=True, interval=self.settings.poll_interval_s)
        except OSError as e:
            logger.error("cannot tail transcript %s: %s", session.transcript_path, e, extra={"chat_id": chat_id})
            return
        self.relays[chat_id] = relay
        self.tailers.append(tailer)
        logger.info(
            "watching chat (enabled=%s rounds=%d)",
            state.enabled,
            state.rounds,
            extra={"chat_id": chat_id, "mode": state.mode},
        )

    def request_stop(self) -> None:
        self._stop_requested = True
        if self._stop is not None:
            self._stop.set()

    async def shutdown(self) -> None:
        for tailer in self.tailers:
            tailer.stop()
        for relay in self.relays.values():
            await relay.close()
        for gw in self._started_channels:
            try:
                gw.stop()
            except Exception:
                logger.exception("failed to stop gateway channel", extra={"backend": gw.name})
        self._started_channels.clear()
        if self.relays:
            self.store.save()
        logger.info("relay stopped")

    async def run_forever(self) -> None:
        loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        if self._stop_requested:
            self._stop.set()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
                installed.append(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                # Not on the main thread or not supported by this platform.
                pass
        try:
            await self.start()
            logger.info("relay running (%d chats)", len(self.relays))
            await self._stop.wait()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self.shutdown()
