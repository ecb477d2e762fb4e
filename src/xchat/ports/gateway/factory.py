from __future__ import annotations

import importlib
import logging
from typing import Callable, Dict

from ...kernel.errors import ConfigError
from ...kernel.settings import BACKEND_ROLES, BackendSettings, RelaySettings
from .base import RpcChannel
from .client import AgentGateway

logger = logging.getLogger(__name__)

ChannelFactory = Callable[..., RpcChannel]


def load_channel_factory(spec: str) -> ChannelFactory:
    """Resolve "package.module:attr" to a callable building an RpcChannel."""
    module_name, _, attr = (spec or "").strip().partition(":")
    if not module_name or not attr:
        raise ConfigError(f"channel must look like 'package.module:factory', got {spec!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"cannot import channel module {module_name!r}: {e}") from e
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigError(f"channel factory {spec!r} is not callable")
    return factory


def build_gateway(backend: BackendSettings, settings: RelaySettings) -> AgentGateway:
    spec = backend.channel or settings.channel
    if not spec:
        raise ConfigError(f"{backend.name}: no channel configured (set `channel` or `backends.{backend.role}.channel`)")
    url, token = backend.resolve_endpoint()
    channel = load_channel_factory(spec)(url=url, token=token, name=backend.name)
    if not isinstance(channel, RpcChannel) and not callable(getattr(channel, "request", None)):
        raise ConfigError(f"{backend.name}: channel factory {spec!r} did not return a channel")
    logger.info("gateway %s -> %s", backend.name, url, extra={"backend": backend.name})
    return AgentGateway(
        backend.name,
        channel,
        reply_channel=settings.reply_channel,
        max_chars=settings.max_chars_per_prompt,
    )


def build_gateways(settings: RelaySettings) -> Dict[str, AgentGateway]:
    return {role: build_gateway(settings.backend(role), settings) for role in BACKEND_ROLES}


__all__ = ["ChannelFactory", "build_gateway", "build_gateways", "load_channel_factory"]
