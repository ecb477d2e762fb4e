from __future__ import annotations

from .chat import (
    DEFAULT_COOLDOWN_MS,
    MAX_ROUNDS,
    MIN_ROUNDS,
    BackendRole,
    BridgeContext,
    ChatSession,
    ChatState,
    RelayMode,
    clamp_rounds,
    normalize_mode,
)
from .gateway import AgentParams, AgentPayload, AgentResponse, AgentResult, GroupActivation, SendParams, SessionPatchParams
from .transcript import TranscriptMessage, TranscriptRecord

__all__ = [
    "AgentParams",
    "AgentPayload",
    "AgentResponse",
    "AgentResult",
    "BackendRole",
    "BridgeContext",
    "ChatSession",
    "ChatState",
    "DEFAULT_COOLDOWN_MS",
    "GroupActivation",
    "MAX_ROUNDS",
    "MIN_ROUNDS",
    "RelayMode",
    "SendParams",
    "SessionPatchParams",
    "TranscriptMessage",
    "TranscriptRecord",
    "clamp_rounds",
    "normalize_mode",
]
