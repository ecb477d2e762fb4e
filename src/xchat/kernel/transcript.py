"""Turn raw transcript lines into user utterances."""
from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from ..contracts.v1 import TranscriptRecord
from .errors import TranscriptError

CONVERSATION_INFO_MARKER = "Conversation info (untrusted metadata):"
SENDER_INFO_MARKER = "Sender (untrusted metadata):"
FENCE = "```"


def text_from_content(content: Any) -> str:
    """Join the text segments of a message's content, in order, one per line."""
    if not isinstance(content, list):
        return ""
    parts = []
    for seg in content:
        if isinstance(seg, dict) and seg.get("type") == "text":
            text = seg.get("text")
            if isinstance(text, str) and text:
                parts.append(text)
    return "\n".join(parts).strip()


def strip_untrusted_metadata(raw: str) -> str:
    """Drop the group metadata preamble some gateways prepend to user text.

    When both metadata markers are present the real text follows the last fenced
    block; without a fence (or with nothing after it) the text is kept as is.
    """
    s = (raw or "").strip()
    if not s:
        return ""
    if CONVERSATION_INFO_MARKER in s and SENDER_INFO_MARKER in s:
        idx = s.rfind(FENCE)
        if idx != -1:
            after = s[idx + len(FENCE):].strip()
            if after:
                return after
    return s


def parse_record(line: str) -> TranscriptRecord:
    try:
        obj = json.loads(line)
    except ValueError as e:
        raise TranscriptError(f"not json: {e}") from e
    if not isinstance(obj, dict):
        raise TranscriptError("record is not an object")
    try:
        return TranscriptRecord.model_validate(obj)
    except ValidationError as e:
        raise TranscriptError(f"invalid record: {e}") from e


def extract_user_text(line: str) -> str:
    """Return the user-authored text of a transcript line, or "" if the line is not one."""
    record = parse_record(line)
    if record.type != "message" or record.message is None:
        return ""
    if record.message.role != "user":
        return ""
    return strip_untrusted_metadata(text_from_content(record.message.content))
