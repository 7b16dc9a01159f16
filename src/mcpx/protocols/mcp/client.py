"""MCPClient — connects to an MCP server and reads its tools.

Implements tool discovery (``tools/list``) and execution (``tools/call``)
over an :class:`MCPTransport`. Discovered tools are converted to
:class:`~mcpx.discovery.models.ToolSchema` so they can be written into a
tools directory and indexed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, cast

from mcpx import __version__
from mcpx.discovery.models import ToolSchema
from mcpx.discovery.schema_parser import SchemaParser
from mcpx.protocols.errors import ConnectionError, RequestTimeoutError, ToolExecutionError, ToolNotFoundError
from mcpx.protocols.mcp.models import (
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    MCPServerRef,
    MCPToolDef,
)
from mcpx.protocols.mcp.transport import MCPTransport, StdioTransport, WebSocketTransport

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
DEFAULT_REQUEST_TIMEOUT = 30.0


class MCPClient:
    """Async context manager that connects to an MCP server.

    Usage::

        ref = MCPServerRef(name="fs", command="npx @mcp/filesystem")
        async with MCPClient(ref) as client:
            schemas = await client.discover_tools()
            text = await client.execute_tool("read_file", {"path": "/tmp/x"})
    """

    def __init__(
        self,
        server_ref: MCPServerRef,
        *,
        transport: MCPTransport | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._ref = server_ref
        self._transport = transport
        self._injected = transport is not None
        self._timeout = request_timeout
        self._tools: dict[str, MCPToolDef] = {}
        self._next_id = 1
        self._parser = SchemaParser()

    async def __aenter__(self) -> MCPClient:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    @property
    def tool_definitions(self) -> list[MCPToolDef]:
        return list(self._tools.values())

    async def connect(self) -> None:
        """Create the transport, connect, and perform the initialize handshake."""
        if self._transport is None:
            self._transport = self._create_transport()
        try:
            await self._transport.connect()
        except (OSError, RuntimeError, ValueError) as exc:
            raise ConnectionError(f"Cannot connect to MCP server {self._ref.name!r}: {exc}") from exc
        await self._handshake()
        logger.info("Connected to MCP server %s", self._ref.name)

    async def close(self) -> None:
        """Close the underlying transport."""
        if self._transport is not None:
            await self._transport.close()
            if not self._injected:
                self._transport = None

    async def discover_tools(self) -> list[ToolSchema]:
        """Send ``tools/list`` and convert the answer to tool schemas."""
        response = await self._send_request("tools/list")
        if response.error is not None:
            raise ConnectionError(f"tools/list failed: {response.error.message}")
        raw_tools: list[dict[str, Any]] = (
            cast("list[dict[str, Any]]", response.result.get("tools", []))
            if response.result
            else []
        )
        self._tools.clear()

        schemas: list[ToolSchema] = []
        for raw in raw_tools:
            tool_def = MCPToolDef.model_validate(raw)
            self._tools[tool_def.name] = tool_def
            schemas.append(self._to_tool_schema(tool_def))
        logger.info("Discovered %d tool(s) on %s", len(schemas), self._ref.name)
        return schemas

    async def execute_tool(self, name: str, arguments: dict[str, Any]) -> str:
        """Send ``tools/call`` for the named tool and return its text content."""
        if name not in self._tools:
            raise ToolNotFoundError(name)

        response = await self._send_request(
            "tools/call",
            params={"name": name, "arguments": arguments},
        )

        if response.error is not None:
            raise ToolExecutionError(name, response.error.message)
        if response.result and response.result.get("isError"):
            raise ToolExecutionError(name, self._extract_content(response))
        return self._extract_content(response)

    def _create_transport(self) -> MCPTransport:
        """Build the appropriate transport from the server reference."""
        if self._ref.transport == "stdio":
            if not self._ref.command:
                msg = "MCPServerRef with stdio transport must specify 'command'"
                raise ValueError(msg)
            env = dict(self._ref.env) if self._ref.env else None
            return StdioTransport(command=self._ref.command, env=env)
        if not self._ref.url:
            msg = "MCPServerRef with websocket transport must specify 'url'"
            raise ValueError(msg)
        return WebSocketTransport(url=self._ref.url)

    async def _handshake(self) -> None:
        """Perform the MCP initialize handshake."""
        response = await self._send_request(
            "initialize",
            params={
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": "mcpx", "version": __version__},
            },
        )
        if response.error is not None:
            raise ConnectionError(f"initialize failed: {response.error.message}")
        await self._notify("notifications/initialized")

    async def _notify(self, method: str) -> None:
        if self._transport is None:
            msg = "Client not connected"
            raise RuntimeError(msg)
        await self._transport.send(JsonRpcNotification(method=method).model_dump())

    async def _send_request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
    ) -> JsonRpcResponse:
        """Send a JSON-RPC request and wait for the matching response."""
        if self._transport is None:
            msg = "Client not connected"
            raise RuntimeError(msg)

        request_id = self._next_id
        self._next_id += 1

        request = JsonRpcRequest(
            method=method,
            id=request_id,
            params=params or {},
        )
        await self._transport.send(request.model_dump())
        try:
            return await asyncio.wait_for(self._receive_for(request_id), timeout=self._timeout)
        except TimeoutError:
            raise RequestTimeoutError(method, self._timeout) from None

    async def _receive_for(self, request_id: int) -> JsonRpcResponse:
        assert self._transport is not None
        while True:
            raw = await self._transport.receive()
            # server-initiated notifications carry no id
            if raw.get("id") != request_id:
                logger.debug("Ignoring MCP message: %s", raw.get("method", raw.get("id")))
                continue
            return JsonRpcResponse.model_validate(raw)

    def _to_tool_schema(self, tool_def: MCPToolDef) -> ToolSchema:
        return self._parser.parse_object(
            {
                "name": tool_def.name,
                "description": tool_def.description,
                "inputSchema": tool_def.input_schema or {"type": "object", "properties": {}},
            },
            source=f"mcp:{self._ref.name}",
        )

    @staticmethod
    def _extract_content(response: JsonRpcResponse) -> str:
        """Extract text from a tools/call response."""
        if response.result is None:
            return ""
        content = cast("list[dict[str, Any]]", response.result.get("content", []))
        parts: list[str] = []
        for item in content:
            if item.get("type") == "text":
                parts.append(str(item.get("text", "")))
        return "\n".join(parts) if parts else str(response.result)
