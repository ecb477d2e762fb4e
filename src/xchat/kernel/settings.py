"""Relay settings.

Settings are stored in ~/.xchat/settings.yaml (or $XCHAT_SETTINGS) and include:
- where chat state and the session index live
- trigger limits (cooldown, per-minute cap) and default round count
- the three backends: display label, chat handle, gateway endpoint and channel
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml  # type: ignore

from ..contracts.v1 import DEFAULT_COOLDOWN_MS, BackendRole, clamp_rounds
from ..paths import default_session_store_path, default_state_path, settings_path
from ..util.conv import coerce_float, coerce_int
from ..util.fs import atomic_write_text, read_json_strict
from .errors import ConfigError

BACKEND_ROLES: Tuple[BackendRole, ...] = ("a", "b", "c")
PRIMARY_ROLE: BackendRole = "c"

DEFAULT_MAX_TRIGGERS_PER_MINUTE = 6
DEFAULT_TRIGGER_WINDOW_MS = 60_000
DEFAULT_MAX_CHARS_PER_PROMPT = 6_000


def _is_env_var_name(value: str) -> bool:
    return bool(re.fullmatch(r"[A-Z_][A-Z0-9_]*", (value or "").strip()))


@dataclass
class BackendSettings:
    """One agent backend and how to reach its gateway."""

    role: str
    name: str
    label: str
    handle: str = ""
    url: str = ""
    config_path: str = ""
    token: str = ""
    token_env: str = ""
    port: int = 0
    channel: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "handle": self.handle,
            "url": self.url,
            "config_path": self.config_path,
            "token": self.token,
            "token_env": self.token_env,
            "port": self.port,
            "channel": self.channel,
        }

    @classmethod
    def from_dict(cls, role: str, d: Dict[str, Any], base: "BackendSettings") -> "BackendSettings":
        def s(key: str) -> str:
            v = d.get(key)
            return str(v).strip() if v is not None else getattr(base, key)

        return cls(
            role=role,
            name=s("name") or base.name,
            label=s("label") or base.label,
            handle=s("handle"),
            url=s("url"),
            config_path=s("config_path"),
            token=s("token"),
            token_env=s("token_env"),
            port=coerce_int(d.get("port"), default=base.port, minimum=0, maximum=65535),
            channel=s("channel"),
        )

    def _env_token(self) -> str:
        raw = self.token_env.strip()
        if not raw:
            return ""
        if _is_env_var_name(raw):
            return os.environ.get(raw, "").strip()
        # Common misconfig: the token itself pasted into *_env.
        return raw

    def resolve_endpoint(self) -> Tuple[str, Optional[str]]:
        """Return (url, token) for this backend's gateway.

        An explicit `url` wins; otherwise the port and auth settings are read from
        the backend's own config file (`gateway.port`, `gateway.auth.{mode,token}`).
        """
        token = self.token or self._env_token()
        if self.url:
            return self.url, (token or None)

        port = self.port
        cfg_token = ""
        auth_mode = ""
        cfg_path = Path(self.config_path).expanduser() if self.config_path else None
        if cfg_path is not None and cfg_path.exists():
            try:
                cfg = read_json_strict(cfg_path)
            except (OSError, ValueError) as e:
                raise ConfigError(f"{self.name}: cannot read {cfg_path}: {e}") from e
            gateway = cfg.get("gateway") if isinstance(cfg.get("gateway"), dict) else {}
            port = coerce_int(gateway.get("port"), default=port, minimum=0, maximum=65535)
            auth = gateway.get("auth") if isinstance(gateway.get("auth"), dict) else {}
            auth_mode = str(auth.get("mode") or "").strip()
            raw_token = auth.get("token")
            cfg_token = raw_token.strip() if isinstance(raw_token, str) else ""

        token = token or cfg_token
        if auth_mode == "token" and not token:
            raise ConfigError(f"{self.name}: gateway auth token missing in {cfg_path}")
        if port <= 0:
            raise ConfigError(f"{self.name}: no gateway url or port configured")
        return f"ws://127.0.0.1:{port}", (token or None)


DEFAULT_BACKENDS: Dict[str, BackendSettings] = {
    "a": BackendSettings(
        role="a",
        name="deepseek",
        label="DeepSeek",
        handle="@deepseek_bot",
        config_path="~/.clawd-deepseek/clawdbot.json",
        port=18790,
    ),
    "b": BackendSettings(
        role="b",
        name="glm",
        label="GLM",
        handle="@glm_bot",
        config_path="~/.clawd-glm/clawdbot.json",
        port=18791,
    ),
    "c": BackendSettings(
        role="c",
        name="openclaw",
        label="Jarvis",
        handle="@openclaw_bot",
        config_path="~/.openclaw/openclaw.json",
        port=18789,
    ),
}


@dataclass
class RelaySettings:
    state_path: Path = field(default_factory=default_state_path)
    session_store_path: Path = field(default_factory=default_session_store_path)
    poll_interval_s: float = 0.25
    cooldown_ms: int = DEFAULT_COOLDOWN_MS
    max_triggers_per_minute: int = DEFAULT_MAX_TRIGGERS_PER_MINUTE
    trigger_window_ms: int = DEFAULT_TRIGGER_WINDOW_MS
    max_chars_per_prompt: int = DEFAULT_MAX_CHARS_PER_PROMPT
    rounds: int = 1
    reply_channel: str = "telegram"
    reply_to_template: str = "telegram:group:{chat_id}"
    session_key_filter: str = ":telegram:group:"
    ready_timeout_s: float = 10.0
    ready_interval_s: float = 0.25
    log_level: str = "INFO"
    channel: str = ""
    backends: Dict[str, BackendSettings] = field(
        default_factory=lambda: {r: BackendSettings(**b.to_dict(), role=r) for r, b in DEFAULT_BACKENDS.items()}
    )

    def backend(self, role: str) -> BackendSettings:
        return self.backends[role]

    def reply_to(self, chat_id: str) -> str:
        return self.reply_to_template.format(chat_id=chat_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state_path": str(self.state_path),
            "session_store_path": str(self.session_store_path),
            "poll_interval_s": self.poll_interval_s,
            "cooldown_ms": self.cooldown_ms,
            "max_triggers_per_minute": self.max_triggers_per_minute,
            "trigger_window_ms": self.trigger_window_ms,
            "max_chars_per_prompt": self.max_chars_per_prompt,
            "rounds": self.rounds,
            "reply_channel": self.reply_channel,
            "reply_to_template": self.reply_to_template,
            "session_key_filter": self.session_key_filter,
            "ready_timeout_s": self.ready_timeout_s,
            "ready_interval_s": self.ready_interval_s,
            "log_level": self.log_level,
            "channel": self.channel,
            "backends": {r: b.to_dict() for r, b in self.backends.items()},
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RelaySettings":
        base = cls()

        def text(key: str, default: str) -> str:
            v = d.get(key)
            return str(v).strip() if v is not None and str(v).strip() else default

        def path(key: str, default: Path) -> Path:
            v = d.get(key)
            return Path(str(v)).expanduser() if v else default

        backends_raw = d.get("backends") if isinstance(d.get("backends"), dict) else {}
        backends: Dict[str, BackendSettings] = {}
        for role in BACKEND_ROLES:
            raw = backends_raw.get(role)
            default = base.backends[role]
            backends[role] = BackendSettings.from_dict(role, raw, default) if isinstance(raw, dict) else default

        reply_to_template = text("reply_to_template", base.reply_to_template)
        if "{chat_id}" not in reply_to_template:
            raise ConfigError(f"reply_to_template must contain {{chat_id}}: {reply_to_template!r}")

        return cls(
            state_path=path("state_path", base.state_path),
            session_store_path=path("session_store_path", base.session_store_path),
            poll_interval_s=max(0.01, coerce_float(d.get("poll_interval_s"), default=base.poll_interval_s)),
            cooldown_ms=coerce_int(d.get("cooldown_ms"), default=base.cooldown_ms, minimum=0),
            max_triggers_per_minute=coerce_int(
                d.get("max_triggers_per_minute"), default=base.max_triggers_per_minute, minimum=1
            ),
            trigger_window_ms=coerce_int(d.get("trigger_window_ms"), default=base.trigger_window_ms, minimum=1),
            max_chars_per_prompt=coerce_int(
                d.get("max_chars_per_prompt"), default=base.max_chars_per_prompt, minimum=1
            ),
            rounds=clamp_rounds(d.get("rounds", base.rounds)),
            reply_channel=text("reply_channel", base.reply_channel),
            reply_to_template=reply_to_template,
            session_key_filter=text("session_key_filter", base.session_key_filter),
            ready_timeout_s=coerce_float(d.get("ready_timeout_s"), default=base.ready_timeout_s),
            ready_interval_s=coerce_float(d.get("ready_interval_s"), default=base.ready_interval_s),
            log_level=text("log_level", base.log_level),
            channel=text("channel", base.channel),
            backends=backends,
        )


def load_settings(path: Optional[Path] = None) -> RelaySettings:
    """Load settings from YAML. A missing file yields defaults; a broken one is a ConfigError."""
    p = path or settings_path()
    if not p.exists():
        return RelaySettings()
    try:
        doc = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read settings {p}: {e}") from e
    if not isinstance(doc, dict):
        raise ConfigError(f"settings root must be a mapping: {p}")
    return RelaySettings.from_dict(doc)


def save_settings(settings: RelaySettings, path: Optional[Path] = None) -> None:
    p = path or settings_path()
    atomic_write_text(p, yaml.safe_dump(settings.to_dict(), allow_unicode=True, sort_keys=False))
