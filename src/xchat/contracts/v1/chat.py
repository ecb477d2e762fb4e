from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ...util.conv import coerce_bool, coerce_int

RelayMode = Literal["duo", "trio"]
BackendRole = Literal["a", "b", "c"]

MIN_ROUNDS = 1
MAX_ROUNDS = 3
DEFAULT_COOLDOWN_MS = 8_000


def clamp_rounds(value: Any) -> int:
    """Clamp a round count into [1, 3]; anything non-numeric counts as 1."""
    return coerce_int(value, default=MIN_ROUNDS, minimum=MIN_ROUNDS, maximum=MAX_ROUNDS)


def normalize_mode(value: Any) -> RelayMode:
    return "trio" if str(value or "").strip().lower() == "trio" else "duo"


class ChatSession(BaseModel):
    """A relay-eligible chat found in the session index."""

    chat_id: str
    transcript_path: str
    session_key: str

    model_config = ConfigDict(extra="forbid", frozen=True)


class BridgeContext(BaseModel):
    """Last textual output of each backend, carried across rounds and triggers."""

    # Older state files used per-bot camelCase keys.
    last_a: str = Field(default="", validation_alias=AliasChoices("last_a", "lastA", "lastDeepseek"))
    last_b: str = Field(default="", validation_alias=AliasChoices("last_b", "lastB", "lastGlm"))
    last_c: str = Field(default="", validation_alias=AliasChoices("last_c", "lastC", "lastOpenclaw"))

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    @field_validator("last_a", "last_b", "last_c", mode="before")
    @classmethod
    def _text_or_empty(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    def set(self, role: BackendRole, text: str) -> None:
        setattr(self, f"last_{role}", text)


class ChatState(BaseModel):
    """Durable per-chat relay record."""

    enabled: bool = False
    mode: RelayMode = "duo"
    rounds: int = MIN_ROUNDS
    cooldown_ms: int = Field(
        default=DEFAULT_COOLDOWN_MS, validation_alias=AliasChoices("cooldown_ms", "cooldownMs")
    )
    last_trigger_at: int = Field(default=0, validation_alias=AliasChoices("last_trigger_at", "lastTriggerAt"))
    bridge: BridgeContext = Field(default_factory=BridgeContext)

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    @field_validator("enabled", mode="before")
    @classmethod
    def _loose_bool(cls, v: Any) -> bool:
        return coerce_bool(v, default=False)

    @field_validator("mode", mode="before")
    @classmethod
    def _known_mode(cls, v: Any) -> str:
        return normalize_mode(v)

    @field_validator("rounds", mode="before")
    @classmethod
    def _clamped_rounds(cls, v: Any) -> int:
        return clamp_rounds(v)

    @field_validator("cooldown_ms", mode="before")
    @classmethod
    def _cooldown(cls, v: Any) -> int:
        return coerce_int(v, default=DEFAULT_COOLDOWN_MS, minimum=0)

    @field_validator("last_trigger_at", mode="before")
    @classmethod
    def _timestamp(cls, v: Any) -> int:
        return coerce_int(v, default=0, minimum=0)

    @field_validator("bridge", mode="before")
    @classmethod
    def _bridge_or_empty(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, BridgeContext)) else {}
