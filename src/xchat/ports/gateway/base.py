"""
Base class for agent gateway channels.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict


class RpcChannel(ABC):
    """
    One request/response connection to a backend's gateway.

    The wire protocol belongs to the deployment; the relay only needs:
    - start/stop of the underlying connection
    - request(method, params) returning the decoded result of the final response
    """

    def start(self) -> None:
        """Open the connection. Default: nothing to do."""

    def stop(self) -> None:
        """Close the connection. Default: nothing to do."""

    @abstractmethod
    async def request(self, method: str, params: Dict[str, Any], *, expect_final: bool = True) -> Any:
        """
        Send one request and await its result.
        Raises on transport errors.
        """
