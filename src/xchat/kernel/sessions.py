from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from ..contracts.v1 import ChatSession
from ..util.fs import read_json_strict
from .errors import ConfigError, NoSessionsError

logger = logging.getLogger(__name__)


def list_chat_sessions(store_path: Path, *, key_filter: str) -> List[ChatSession]:
    """List group chat sessions from the primary bot's session index.

    The index maps session keys (e.g. "agent:main:telegram:group:-100123") to
    entries carrying a `sessionFile`; the chat id is the key's last segment.
    """
    try:
        store = read_json_strict(store_path)
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read session index {store_path}: {e}") from e

    sessions: List[ChatSession] = []
    seen = set()
    for key, value in store.items():
        if key_filter and key_filter not in key:
            continue
        if not isinstance(value, dict):
            continue
        session_file = value.get("sessionFile")
        if not isinstance(session_file, str) or not session_file.strip():
            continue
        chat_id = key.split(":")[-1].strip()
        if not chat_id or chat_id in seen:
            continue
        transcript = Path(session_file).expanduser()
        if not transcript.is_absolute():
            transcript = store_path.parent / transcript
        seen.add(chat_id)
        sessions.append(ChatSession(chat_id=chat_id, transcript_path=str(transcript), session_key=key))
    return sessions


def discover_sessions(store_path: Path, *, key_filter: str) -> List[ChatSession]:
    """Like list_chat_sessions, but an empty result is fatal."""
    sessions = list_chat_sessions(store_path, key_filter=key_filter)
    if not sessions:
        raise NoSessionsError(f"no group chat sessions found in {store_path}")
    logger.info("found chat sessions: %s", ", ".join(s.chat_id for s in sessions))
    return sessions
