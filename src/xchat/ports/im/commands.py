"""
Relay control commands.

Matched by exact phrase (after trimming) against a bilingual table:
- enable (duo / trio), disable
- status, help
- kickoff (current mode / trio)
- rounds <1-3>
Anything else is ordinary conversation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from ...contracts.v1 import MAX_ROUNDS, MIN_ROUNDS, ChatState, RelayMode
from ...util.time import ms_to_iso


class CommandType(str, Enum):
    ON = "on"
    OFF = "off"
    STATUS = "status"
    KICKOFF = "kickoff"
    ROUNDS = "rounds"
    HELP = "help"


@dataclass(frozen=True)
class ParsedCommand:
    """A matched control command."""

    type: CommandType
    mode: Optional[RelayMode] = None  # ON: always set; KICKOFF: only when trio was asked for
    rounds: Optional[int] = None  # ROUNDS only


def _phrases(*items: str) -> FrozenSet[str]:
    return frozenset(items)


COMMAND_TABLE: List[Tuple[FrozenSet[str], ParsedCommand]] = [
    (
        _phrases("开启三方交流模式", "开启三人交流模式", "开启三方互聊", "三方互聊开", "/xchat trio", "/xchat 三方", "/xchat 3"),
        ParsedCommand(CommandType.ON, mode="trio"),
    ),
    (
        _phrases("开启交流模式", "打开交流模式", "交流模式开", "/xchat on", "/xchat 开", "/xchat 开启"),
        ParsedCommand(CommandType.ON, mode="duo"),
    ),
    (
        _phrases("关闭交流模式", "退出交流模式", "交流模式关", "/xchat off", "/xchat 关", "/xchat 关闭"),
        ParsedCommand(CommandType.OFF),
    ),
    (
        _phrases("交流模式状态", "/xchat status", "/xchat 状态"),
        ParsedCommand(CommandType.STATUS),
    ),
    (
        _phrases("开场三方互聊", "三方交流开场", "/xchat kickoff3", "/xchat 三方开场"),
        ParsedCommand(CommandType.KICKOFF, mode="trio"),
    ),
    (
        _phrases("开场互聊", "交流开场", "/xchat kickoff", "/xchat 开场"),
        ParsedCommand(CommandType.KICKOFF),
    ),
    (
        _phrases("交流模式帮助", "/xchat help", "/xchat 帮助"),
        ParsedCommand(CommandType.HELP),
    ),
]

_ROUNDS_RE = re.compile(r"^(?:交流轮数|/xchat rounds)\s+(\d+)$")


def parse_command(text: str) -> Optional[ParsedCommand]:
    """
    Match an utterance against the command table.

    Examples:
        "开启交流模式" -> ON(duo)
        "  /xchat kickoff3 " -> KICKOFF(trio)
        "交流轮数 2" -> ROUNDS(2)
        "交流轮数 5" -> None
        "hello" -> None
    """
    t = (text or "").strip()
    if not t:
        return None
    for phrases, cmd in COMMAND_TABLE:
        if t in phrases:
            return cmd
    m = _ROUNDS_RE.match(t)
    if m:
        n = int(m.group(1))
        if MIN_ROUNDS <= n <= MAX_ROUNDS:
            return ParsedCommand(CommandType.ROUNDS, rounds=n)
    return None


# =========================================================================
# Notices
# =========================================================================


def format_enabled(mode: RelayMode, rounds: int, *, labels: Tuple[str, str, str]) -> str:
    a, b, c = labels
    if mode == "trio":
        return (
            "三方交流模式: 已开启\n"
            f"- 触发: 每条消息驱动 {a} -> {b} -> {c} 接力发言（通过编排器互相可见）\n"
            f"- 当前轮数: {rounds}（可发“交流轮数 1/2/3”调整）\n"
            "- 开场: 发送“开场三方互聊”\n"
            "- 关闭: 发送“关闭交流模式”"
        )
    return (
        "交流模式: 已开启\n"
        f"- 触发: 每条消息驱动 {a} <-> {b} 轮流发言（通过编排器互相可见）\n"
        f"- 当前轮数: {rounds}（可发“交流轮数 1/2/3”调整）\n"
        "- 开场: 发送“开场互聊”\n"
        "- 关闭: 发送“关闭交流模式”"
    )


def format_disabled() -> str:
    return "交流模式: 已关闭"


def format_kickoff_started(mode: RelayMode, rounds: int) -> str:
    name = "开场三方互聊" if mode == "trio" else "开场互聊"
    return f"{name}开始（{rounds}轮）"


def format_status(state: ChatState, *, in_flight: bool = False) -> str:
    lines = [
        f"交流模式: {'开启' if state.enabled else '关闭'}",
        f"- 模式: {state.mode}",
        f"- 轮数: {state.rounds}",
        f"- 冷却: {state.cooldown_ms}ms",
    ]
    if state.last_trigger_at:
        lines.append(f"- 上次触发: {ms_to_iso(state.last_trigger_at)}")
    if in_flight:
        lines.append("- 正在进行: 是")
    return "\n".join(lines)


def format_rounds_set(rounds: int) -> str:
    return f"交流轮数已设置为 {rounds}"


def format_busy() -> str:
    return "交流进行中，请稍后再试"


def format_failure(what: str, err: BaseException) -> str:
    return f"{what}失败: {err}"


def format_help() -> str:
    return """交流模式命令:

开启 / 关闭:
  开启交流模式 (/xchat on) - 两方接力
  开启三方交流模式 (/xchat trio) - 三方接力
  关闭交流模式 (/xchat off)

开场:
  开场互聊 (/xchat kickoff)
  开场三方互聊 (/xchat kickoff3)

设置:
  交流轮数 1/2/3 (/xchat rounds <n>)

查询:
  交流模式状态 (/xchat status)
  交流模式帮助 (/xchat help)"""


def format_run_error(err: BaseException) -> str:
    return f"交流模式出错: {err}"
