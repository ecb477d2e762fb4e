"""In-memory stand-ins for backend gateways."""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from xchat.ports.gateway import AgentGateway, RpcChannel

BACKEND_NAMES = {"a": "deepseek", "b": "glm", "c": "openclaw"}


def ok_reply(text: str) -> Dict[str, Any]:
    return {"status": "ok", "result": {"payloads": [{"text": text}], "meta": {}}}


class FakeChannel(RpcChannel):
    """Scripted channel: records every request and answers from a reply queue."""

    def __init__(
        self,
        name: str = "fake",
        *,
        replies: Optional[Sequence[Any]] = None,
        fail_methods: Sequence[str] = (),
        log: Optional[List[Tuple[str, str, Dict[str, Any]]]] = None,
        ready: bool = True,
    ):
        self.name = name
        self.replies = list(replies or [])
        self.fail_methods = set(fail_methods)
        self.log = log if log is not None else []
        self.ready = ready
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def methods(self) -> List[str]:
        return [m for m, _ in self.calls]

    async def request(self, method: str, params: Dict[str, Any], *, expect_final: bool = True) -> Any:
        self.calls.append((method, dict(params)))
        self.log.append((self.name, method, dict(params)))
        if method in self.fail_methods:
            raise ConnectionError(f"{method} refused")
        if method == "status":
            if not self.ready:
                raise ConnectionError("gateway down")
            return {"ok": True}
        if method == "agent":
            reply = self.replies.pop(0) if self.replies else f"{self.name} says hi"
            return reply if isinstance(reply, dict) else ok_reply(str(reply))
        if method == "sessions.patch":
            return {"ok": True, "key": params.get("key")}
        return {"ok": True}


def make_gateways(
    *,
    replies: Optional[Dict[str, Sequence[Any]]] = None,
    fail_methods: Optional[Dict[str, Sequence[str]]] = None,
    log: Optional[List[Tuple[str, str, Dict[str, Any]]]] = None,
) -> Dict[str, AgentGateway]:
    shared = log if log is not None else []
    out: Dict[str, AgentGateway] = {}
    for role, name in BACKEND_NAMES.items():
        channel = FakeChannel(
            name,
            replies=(replies or {}).get(role),
            fail_methods=(fail_methods or {}).get(role, ()),
            log=shared,
        )
        out[role] = AgentGateway(name, channel)
    return out


class FakeInvoker:
    """Minimal backend for the scheduler: returns scripted texts and records prompts."""

    def __init__(self, name: str, texts: Sequence[str] = (), *, error: Optional[Exception] = None):
        self.name = name
        self.texts = list(texts)
        self.error = error
        self.prompts: List[str] = []

    async def run_agent(
        self,
        *,
        session_key: str,
        reply_to: str,
        message: str,
    ) -> Any:
        self.prompts.append(message)
        if self.error is not None:
            raise self.error
        text = self.texts.pop(0) if self.texts else ""
        return SimpleNamespace(text=text)


def channel_factory(*, url: str, token: Optional[str], name: str) -> FakeChannel:
    """Settings-loadable factory ("fakes:channel_factory")."""
    ch = FakeChannel(name)
    ch.url = url  # type: ignore[attr-defined]
    ch.token = token  # type: ignore[attr-defined]
    return ch
