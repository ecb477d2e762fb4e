from __future__ import annotations


class XChatError(RuntimeError):
    """Base class for relay errors."""


class ConfigError(XChatError):
    """Settings or a backend config file cannot be used. Fatal at startup."""


class NoSessionsError(XChatError):
    """The session index lists no relay-eligible chats. Fatal at startup."""


class GatewayError(XChatError):
    """A gateway call failed or returned a non-ok status."""

    def __init__(self, backend: str, message: str):
        super().__init__(f"{backend}: {message}")
        self.backend = backend


class GatewayNotReady(GatewayError):
    """A gateway did not answer `status` before the startup deadline."""


class TranscriptError(XChatError):
    """A transcript line is not a readable record."""
