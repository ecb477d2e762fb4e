from __future__ import annotations

import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

GroupActivation = Optional[Literal["mention"]]


def _idempotency_key() -> str:
    return str(uuid.uuid4())


class AgentParams(BaseModel):
    """Params of the `agent` method: run one conversational turn and deliver the reply."""

    message: str
    session_key: str = Field(serialization_alias="sessionKey")
    deliver: bool = True
    reply_channel: str = Field(default="telegram", serialization_alias="replyChannel")
    reply_to: str = Field(serialization_alias="replyTo")
    extra_system_prompt: Optional[str] = Field(default=None, serialization_alias="extraSystemPrompt")
    idempotency_key: str = Field(default_factory=_idempotency_key, serialization_alias="idempotencyKey")

    model_config = ConfigDict(extra="forbid")


class SessionPatchParams(BaseModel):
    """Params of `sessions.patch`; a null activation restores the backend default."""

    key: str
    group_activation: GroupActivation = Field(default=None, serialization_alias="groupActivation")

    model_config = ConfigDict(extra="forbid")


class SendParams(BaseModel):
    """Params of `send`: direct delivery that bypasses agent reasoning."""

    to: str
    message: str
    channel: str = "telegram"
    idempotency_key: str = Field(default_factory=_idempotency_key, serialization_alias="idempotencyKey")

    model_config = ConfigDict(extra="forbid")


class AgentPayload(BaseModel):
    text: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("text", mode="before")
    @classmethod
    def _text_or_none(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None


class AgentResult(BaseModel):
    payloads: List[AgentPayload] = Field(default_factory=list)
    meta: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    # A null or malformed part of an ok reply reads as empty; only status decides success.
    @field_validator("payloads", mode="before")
    @classmethod
    def _payload_objects(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        return [p for p in v if isinstance(p, (dict, AgentPayload))]

    @field_validator("meta", mode="before")
    @classmethod
    def _meta_or_empty(cls, v: Any) -> Dict[str, Any]:
        return v if isinstance(v, dict) else {}


class AgentResponse(BaseModel):
    status: str = ""
    result: AgentResult = Field(default_factory=AgentResult)

    model_config = ConfigDict(extra="ignore")

    @field_validator("status", mode="before")
    @classmethod
    def _status_text(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("result", mode="before")
    @classmethod
    def _result_or_empty(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, AgentResult)) else {}

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def text(self) -> str:
        parts = [p.text for p in self.result.payloads if isinstance(p.text, str) and p.text]
        return "\n".join(parts).strip()
