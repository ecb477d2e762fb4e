from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class TranscriptMessage(BaseModel):
    role: str = ""
    content: Any = None

    model_config = ConfigDict(extra="ignore")


class TranscriptRecord(BaseModel):
    """One line of a backend-written transcript. Only `type == "message"` matters here."""

    type: str = ""
    message: Optional[TranscriptMessage] = None

    model_config = ConfigDict(extra="ignore")
