from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .daemon.runner import RelayDaemon
from .kernel.errors import XChatError
from .kernel.sessions import list_chat_sessions
from .kernel.settings import RelaySettings, load_settings, save_settings
from .kernel.state import ChatStateStore
from .paths import settings_path
from .util.obslog import setup_root_json_logging

logger = logging.getLogger("xchat.daemon")


def _print_json(obj: object) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _cmd_run(settings: RelaySettings) -> int:
    try:
        asyncio.run(RelayDaemon(settings).run_forever())
    except XChatError as e:
        logger.error("relay failed to start: %s", e)
        return 1
    return 0


def _cmd_sessions(settings: RelaySettings) -> int:
    sessions = list_chat_sessions(settings.session_store_path, key_filter=settings.session_key_filter)
    _print_json([s.model_dump() for s in sessions])
    return 0


def _cmd_status(settings: RelaySettings, chat_id: str) -> int:
    store = ChatStateStore(
        settings.state_path,
        default_rounds=settings.rounds,
        default_cooldown_ms=settings.cooldown_ms,
    ).load()
    if chat_id:
        state = store.get(chat_id)
        if state is None:
            print(f"xchat: unknown chat {chat_id}", file=sys.stderr)
            return 1
        _print_json(state.model_dump())
        return 0
    _print_json({cid: st.model_dump() for cid, st in store.items()})
    return 0


def _cmd_init(path: Path, *, force: bool) -> int:
    if path.exists() and not force:
        print(f"xchat: {path} already exists (use --force to overwrite)", file=sys.stderr)
        return 1
    save_settings(RelaySettings(), path)
    print(f"xchat: wrote {path}")
    return 0


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(prog="xchat", description="Multi-bot relay for group chats")
    parser.add_argument("--settings", default="", help="Settings file (default: $XCHAT_HOME/settings.yaml)")
    parser.add_argument("--log-level", default="", help="Override log level (DEBUG/INFO/WARNING/ERROR)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("run", help="Run the relay in foreground")
    sub.add_parser("sessions", help="List discovered chat sessions")
    p_status = sub.add_parser("status", help="Show persisted chat state")
    p_status.add_argument("chat_id", nargs="?", default="", help="Only this chat")
    p_init = sub.add_parser("init", help="Write a default settings file")
    p_init.add_argument("--force", action="store_true", help="Overwrite an existing file")
    sub.add_parser("version", help="Show version")

    args = parser.parse_args(argv)
    path = Path(args.settings).expanduser() if args.settings else settings_path()

    if args.cmd == "version":
        print(__version__)
        return 0
    if args.cmd == "init":
        return _cmd_init(path, force=bool(args.force))

    try:
        settings = load_settings(path)
    except XChatError as e:
        print(f"xchat: {e}", file=sys.stderr)
        return 1
    setup_root_json_logging(component="xchat", level=args.log_level or settings.log_level)

    try:
        if args.cmd == "run":
            return _cmd_run(settings)
        if args.cmd == "sessions":
            return _cmd_sessions(settings)
        if args.cmd == "status":
            return _cmd_status(settings, args.chat_id)
    except XChatError as e:
        print(f"xchat: {e}", file=sys.stderr)
        return 1
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
