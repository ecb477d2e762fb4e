from __future__ import annotations

import os
from pathlib import Path


def xchat_home() -> Path:
    env = os.environ.get("XCHAT_HOME", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return (Path.home() / ".xchat").resolve()


def settings_path() -> Path:
    env = os.environ.get("XCHAT_SETTINGS", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return xchat_home() / "settings.yaml"


def default_state_path() -> Path:
    return xchat_home() / "state.json"


def default_session_store_path() -> Path:
    # The primary bot keeps its session index under its own home directory.
    openclaw_dir = os.environ.get("OPENCLAW_DIR", "").strip()
    base = Path(openclaw_dir).expanduser() if openclaw_dir else Path.home() / ".openclaw"
    agent_id = os.environ.get("OPENCLAW_AGENT_ID", "").strip() or "main"
    return (base / "agents" / agent_id / "sessions" / "sessions.json").resolve()
