"""Role templates for relay turns.

Each builder returns the full message text for one backend call. Labels and
chat handles come from settings so the same templates serve any three bots.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from ..contracts.v1 import RelayMode
from .settings import RelaySettings

_VISIBILITY = "你会通过编排器看到对方的回复，所以可以直接引用/回应；不要讨论 Telegram/Bot API 的限制。"


@dataclass(frozen=True)
class Cast:
    """Display labels and chat handles of the three backends."""

    a_label: str = "DeepSeek"
    b_label: str = "GLM"
    c_label: str = "Jarvis"
    a_handle: str = "@deepseek_bot"
    b_handle: str = "@glm_bot"
    c_handle: str = "@openclaw_bot"

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> "Cast":
        a, b, c = settings.backend("a"), settings.backend("b"), settings.backend("c")
        return cls(
            a_label=a.label,
            b_label=b.label,
            c_label=c.label,
            a_handle=a.handle or f"@{a.name}",
            b_handle=b.handle or f"@{b.name}",
            c_handle=c.handle or f"@{c.name}",
        )


def _join(lines: List[str]) -> str:
    return "\n".join(ln for ln in lines if ln)


def clamp_prompt(text: str, max_chars: int) -> str:
    t = text if isinstance(text, str) else ""
    if len(t) <= max_chars:
        return t
    return t[:max_chars] + f"\n\n(已截断，原长 {len(t)} chars)"


def duo_a(cast: Cast, user_text: str, seed: str) -> str:
    return _join([
        f"你是 {cast.a_label} bot，在“交流模式”下与 {cast.b_label} 协作。",
        _VISIBILITY,
        f"请直接对 {cast.b_handle} 说话，第一行必须以“{cast.b_handle}”开头。",
        f"用户说: {user_text}",
        f"上一轮 {cast.b_label} 回复(供参考，可能与当前话题无关，必要时忽略): {seed}" if seed else "",
        f"如果上一轮里出现“问{cast.a_label}:”且与当前话题相关，请先用1-2句回答。",
        "请输出:",
        "- 你的观点/方案（3-6条要点）",
        "- 对上一轮的补充/修正（如果有）",
        f"- 你要问 {cast.b_label} 的一个具体问题（最后一行以“问{cast.b_label}:”开头）",
        "要求: 中文，<= 220 字。",
    ])


def duo_b(cast: Cast, user_text: str, a_text: str) -> str:
    return _join([
        f"你是 {cast.b_label} bot，在“交流模式”下接力 {cast.a_label}。",
        _VISIBILITY,
        f"请直接对 {cast.a_handle} 说话，第一行必须以“{cast.a_handle}”开头。",
        f"用户说: {user_text}",
        f"{cast.a_label} 回复: {a_text or '(空)'}",
        f"如果 {cast.a_label} 里出现“问{cast.b_label}:”请先用1-2句回答。",
        "请输出:",
        "- 你的收敛/执行建议（3-5条）",
        f"- 回答 {cast.a_label} 的问题（若有）",
        f"- 你要问 {cast.a_label} 的一个具体问题（倒数第二行以“问{cast.a_label}:”开头）",
        "- 给用户的 1 个澄清问题（最后一行以“问用户:”开头）",
        "要求: 中文，<= 260 字。",
    ])


def trio_a(cast: Cast, user_text: str, seed: str) -> str:
    return _join([
        f"你是 {cast.a_label} bot，在“三方交流模式”下与 {cast.b_label}、{cast.c_label} 协作。",
        _VISIBILITY,
        f"请直接对 {cast.b_handle} 说话，第一行必须以“{cast.b_handle}”开头。",
        f"用户说: {user_text}",
        f"上一轮 {cast.c_label}/{cast.b_label} 回复(供参考，必要时忽略): {seed}" if seed else "",
        "请输出:",
        "- 你的观点/方案（2-5条）",
        f"- 你要问 {cast.b_label} 的一个具体问题（最后一行以“问{cast.b_label}:”开头）",
        "要求: 中文，<= 220 字。",
    ])


def trio_b(cast: Cast, user_text: str, a_text: str) -> str:
    return _join([
        f"你是 {cast.b_label} bot，在“三方交流模式”下接力 {cast.a_label}。",
        _VISIBILITY,
        f"请直接对 {cast.c_handle} 说话，第一行必须以“{cast.c_handle}”开头。",
        f"用户说: {user_text}",
        f"{cast.a_label} 回复: {a_text or '(空)'}",
        f"如果 {cast.a_label} 里出现“问{cast.b_label}:”请先用1-2句回答。",
        "请输出:",
        "- 你的收敛/执行建议（2-5条）",
        f"- 你要问 {cast.c_label} 的一个具体问题（最后一行以“问{cast.c_label}:”开头）",
        "要求: 中文，<= 260 字。",
    ])


def trio_c(cast: Cast, user_text: str, a_text: str, b_text: str) -> str:
    return _join([
        f"你是 {cast.c_label}（主机器人），在“三方交流模式”下接力 {cast.b_label}。",
        f"你会通过编排器看到 {cast.a_label}/{cast.b_label} 的回复，所以可以直接引用/回应；不要讨论 Telegram/Bot API 的限制。",
        f"请直接对 {cast.a_handle} 说话，第一行必须以“{cast.a_handle}”开头。",
        f"用户说: {user_text}",
        f"{cast.a_label} 回复: {a_text or '(空)'}",
        f"{cast.b_label} 回复: {b_text or '(空)'}",
        "请输出:",
        "- 你对两者的整合/取舍（2-4条）",
        "- 给用户的 1 个澄清问题（最后一行以“问用户:”开头）",
        "要求: 中文，<= 260 字。",
    ])


def kickoff_text(cast: Cast, mode: RelayMode) -> str:
    if mode == "trio":
        return _join([
            f"三方交流开场：{cast.a_label}、{cast.b_label}、{cast.c_label} 依次自我介绍（各一句：模型/定位/擅长）。",
            f"然后选一个协作主题，按“{cast.a_label} -> {cast.b_label} -> {cast.c_label}”接力推进，最后给用户一个可执行的下一步。",
        ])
    return _join([
        "交流模式开场：你们两位先互相认识（各用一句话：模型/定位/擅长）。",
        "然后选一个协作主题开始讨论，最后给用户一个可执行的下一步。",
    ])
