"""Protocol clients used to import tool schemas from live servers."""

from mcpx.protocols.errors import ConnectionError, ProtocolError, RequestTimeoutError, ToolExecutionError, ToolNotFoundError

__all__ = [
    "ConnectionError",
    "ProtocolError",
    "RequestTimeoutError",
    "ToolExecutionError",
    "ToolNotFoundError",
]
