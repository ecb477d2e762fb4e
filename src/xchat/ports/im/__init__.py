"""
xchat chat-facing port.

Turns the user messages of a group chat into relay commands or relay runs:
- commands: exact-phrase control commands and the notices sent back
- relay: per-chat handler fed by the transcript tailer
"""

from .commands import COMMAND_TABLE, CommandType, ParsedCommand, parse_command
from .relay import ChatRelay

__all__ = ["COMMAND_TABLE", "ChatRelay", "CommandType", "ParsedCommand", "parse_command"]
