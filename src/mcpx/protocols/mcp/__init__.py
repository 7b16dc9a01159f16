"""MCP protocol — Model Context Protocol client for schema import."""

from mcpx.protocols.mcp.client import MCPClient
from mcpx.protocols.mcp.models import JsonRpcError, JsonRpcRequest, JsonRpcResponse, MCPServerRef, MCPToolDef
from mcpx.protocols.mcp.transport import MCPTransport, StdioTransport, WebSocketTransport

__all__ = [
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "MCPClient",
    "MCPServerRef",
    "MCPToolDef",
    "MCPTransport",
    "StdioTransport",
    "WebSocketTransport",
]
