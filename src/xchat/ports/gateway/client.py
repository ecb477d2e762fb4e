from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ...contracts.v1 import AgentParams, AgentResponse, GroupActivation, SendParams, SessionPatchParams
from ...kernel.errors import GatewayError, GatewayNotReady
from ...kernel.prompts import clamp_prompt
from ...kernel.settings import DEFAULT_MAX_CHARS_PER_PROMPT
from .base import RpcChannel

logger = logging.getLogger(__name__)


@dataclass
class AgentReply:
    text: str
    meta: Dict[str, Any] = field(default_factory=dict)


class AgentGateway:
    """The relay's view of one backend: run a turn, patch a session, send a notice."""

    def __init__(
        self,
        name: str,
        channel: RpcChannel,
        *,
        reply_channel: str = "telegram",
        max_chars: int = DEFAULT_MAX_CHARS_PER_PROMPT,
    ):
        self.name = name
        self.channel = channel
        self.reply_channel = reply_channel
        self.max_chars = int(max_chars)

    def start(self) -> None:
        self.channel.start()

    def stop(self) -> None:
        self.channel.stop()

    async def _request(self, method: str, params: Dict[str, Any]) -> Any:
        try:
            return await self.channel.request(method, params, expect_final=True)
        except GatewayError:
            raise
        except Exception as e:
            raise GatewayError(self.name, f"{method} failed: {e}") from e

    async def wait_ready(self, *, deadline_s: float = 10.0, interval_s: float = 0.25) -> None:
        """Poll `status` until it answers; GatewayNotReady after `deadline_s`."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + deadline_s
        while True:
            try:
                await self.channel.request("status", {}, expect_final=True)
                return
            except Exception as e:
                logger.debug("gateway not ready yet: %s", e, extra={"backend": self.name})
            if loop.time() + interval_s > deadline:
                break
            await asyncio.sleep(interval_s)
        raise GatewayNotReady(self.name, f"gateway not ready after {deadline_s:g}s")

    async def run_agent(
        self,
        *,
        session_key: str,
        reply_to: str,
        message: str,
        extra_system_prompt: Optional[str] = None,
    ) -> AgentReply:
        params = AgentParams(
            message=clamp_prompt(message, self.max_chars),
            session_key=session_key,
            reply_channel=self.reply_channel,
            reply_to=reply_to,
            extra_system_prompt=extra_system_prompt,
        )
        payload = await self._request("agent", params.model_dump(by_alias=True, exclude_none=True))
        if not isinstance(payload, dict):
            raise GatewayError(self.name, f"agent failed: {payload!r}")
        try:
            resp = AgentResponse.model_validate(payload)
        except ValidationError as e:
            raise GatewayError(self.name, f"agent returned an unreadable result: {e}") from e
        if not resp.ok:
            raise GatewayError(self.name, f"agent failed: {json.dumps(payload, ensure_ascii=False, default=str)}")
        return AgentReply(text=resp.text(), meta=dict(resp.result.meta))

    async def patch_session(self, key: str, group_activation: GroupActivation) -> Any:
        params = SessionPatchParams(key=key, group_activation=group_activation)
        payload = await self._request("sessions.patch", params.model_dump(by_alias=True))
        patched = payload.get("key") if isinstance(payload, dict) else None
        logger.info("sessions.patch ok key=%s", patched or key, extra={"backend": self.name})
        return payload

    async def send(self, to: str, message: str) -> Any:
        params = SendParams(to=to, message=message, channel=self.reply_channel)
        return await self._request("send", params.model_dump(by_alias=True))
