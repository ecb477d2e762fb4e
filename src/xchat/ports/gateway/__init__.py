"""
Agent gateway port.

The relay reaches each backend through an RpcChannel supplied by the
deployment (named in settings as "package.module:factory") and wraps it in an
AgentGateway for the four calls it makes: status, agent, sessions.patch, send.
"""

from .base import RpcChannel
from .client import AgentGateway, AgentReply
from .factory import build_gateway, build_gateways, load_channel_factory

__all__ = ["AgentGateway", "AgentReply", "RpcChannel", "build_gateway", "build_gateways", "load_channel_factory"]
