"""
MCP Stdio Transport

Content-Length framed JSON-RPC 2.0 over stdin/stdout. A StdioSession maps
the MCP methods palisade serves (initialize, tools/*, resources/*, shutdown)
onto an MCPServer and turns MCPError codes into JSON-RPC error codes.

A body that is not valid JSON gets a parse-error response and the session
keeps reading; a broken frame (no Content-Length, short body) ends it.
"""

import asyncio
import json
import logging
import sys
from typing import Any, Optional

from palisade.infrastructure.mcp_servers.palisade_server import MCPServer, MCPError

logger = logging.getLogger(__name__)

MCP_PROTOCOL_VERSION = "2024-11-05"
SERVER_VERSION = "0.1.0"
JSON_MIME = "application/json"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

_RPC_CODE_FOR = {
    "invalid_params": INVALID_PARAMS,
    "tool_not_found": METHOD_NOT_FOUND,
    "resource_not_found": INVALID_PARAMS,
}


class FramingError(ValueError):
    """The byte stream no longer lines up with Content-Length frames."""


class RpcError(Exception):
    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data

    @classmethod
    def from_mcp(cls, err: MCPError) -> "RpcError":
        return cls(_RPC_CODE_FOR.get(err.code, INTERNAL_ERROR), str(err), err.to_dict())

    def reply(self, msg_id: Any) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": str(self)}
        if self.data is not None:
            error["data"] = self.data
        return {"jsonrpc": "2.0", "id": msg_id, "error": error}


def encode_frame(message: dict[str, Any]) -> bytes:
    body = json.dumps(message).encode("utf-8")
    return b"Content-Length: %d\r\n\r\n" % len(body) + body


def content_length(header: bytes) -> int:
    """Pull Content-Length out of a header block; other headers are ignored."""
    for line in header.decode("ascii").splitlines():
        name, sep, value = line.partition(":")
        if sep and name.strip().lower() == "content-length":
            try:
                return int(value)
            except ValueError:
                raise FramingError(f"bad Content-Length {value.strip()!r}") from None
    raise FramingError("Missing Content-Length header")


async def read_frame(reader: asyncio.StreamReader) -> Optional[bytes]:
    """Return the next frame body, or None at a clean EOF."""
    header = b""
    while not header.endswith(b"\r\n\r\n"):
        line = await reader.readline()
        if not line:
            if header:
                raise FramingError("EOF inside header block")
            return None
        header += line
    try:
        return await reader.readexactly(content_length(header))
    except asyncio.IncompleteReadError as e:
        raise FramingError(f"body ended after {len(e.partial)} bytes") from e


class StdioSession:
    """One client conversation with an MCPServer."""

    def __init__(self, server: MCPServer):
        self.server = server
        self.closed = False
        self._methods = {
            "initialize": self._initialize,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/read": self._resources_read,
            "shutdown": self._shutdown,
        }

    async def handle(self, message: Any) -> Optional[dict[str, Any]]:
        """Answer one decoded message. Notifications get no answer."""
        if not isinstance(message, dict) or not isinstance(message.get("method"), str):
            return RpcError(INVALID_REQUEST, "Invalid request").reply(None)

        method, msg_id = message["method"], message.get("id")
        if msg_id is None:
            logger.debug("notification %s", method)
            return None

        params = message.get("params") or {}
        try:
            handler = self._methods.get(method)
            if handler is None:
                raise RpcError(METHOD_NOT_FOUND, f"Method not found: {method}")
            if not isinstance(params, dict):
                raise RpcError(INVALID_PARAMS, "params must be an object")
            result = await handler(params)
        except RpcError as e:
            return e.reply(msg_id)
        except MCPError as e:
            return RpcError.from_mcp(e).reply(msg_id)
        except Exception as e:
            logger.exception("%s failed", method)
            return RpcError(INTERNAL_ERROR, f"Internal error: {e}").reply(msg_id)
        return {"jsonrpc": "2.0", "id": msg_id, "result": result}

    async def serve(self, reader: asyncio.StreamReader, write) -> None:
        """Read frames until shutdown or EOF; `write` is awaited per response."""
        while not self.closed:
            try:
                body = await read_frame(reader)
            except FramingError as e:
                logger.warning("Unreadable frame, closing transport: %s", e)
                return
            if body is None:
                return

            try:
                message = json.loads(body)
            except ValueError:
                response = RpcError(PARSE_ERROR, "Parse error").reply(None)
            else:
                response = await self.handle(message)
            if response is not None:
                await write(encode_frame(response))

    async def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {
                "tools": {"listChanged": False},
                "resources": {"subscribe": False, "listChanged": False},
            },
            "serverInfo": {"name": self.server.name, "version": SERVER_VERSION},
        }

    async def _tools_list(self, params: dict[str, Any]) -> dict[str, Any]:
        tools = await self.server.list_tools()
        return {
            "tools": [
                {"name": t.name, "description": t.description, "inputSchema": t.input_schema}
                for t in tools
            ]
        }

    async def _tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise RpcError(INVALID_PARAMS, "tool arguments must be an object")
        result = await self.server.call_tool(params.get("name", ""), arguments)
        # a tool reporting partial failure still answers with a result
        return {
            "content": [{"type": "text", "text": json.dumps(result)}],
            "isError": "error" in result,
        }

    async def _resources_list(self, params: dict[str, Any]) -> dict[str, Any]:
        resources = await self.server.list_resources()
        return {
            "resources": [
                {"uri": r.uri, "description": r.description, "mimeType": JSON_MIME}
                for r in resources
            ]
        }

    async def _resources_read(self, params: dict[str, Any]) -> dict[str, Any]:
        uri = params.get("uri", "")
        text = await self.server.read_resource(uri)
        return {"contents": [{"uri": uri, "mimeType": JSON_MIME, "text": text}]}

    async def _shutdown(self, params: dict[str, Any]) -> dict[str, Any]:
        self.closed = True
        return {}


async def run_stdio(
    server: MCPServer,
    reader: Optional[asyncio.StreamReader] = None,
    writer: Optional[asyncio.StreamWriter] = None,
) -> None:
    """Serve `server` over stdin/stdout, or over the given stream pair."""
    if reader is None:
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        await asyncio.get_running_loop().connect_read_pipe(
            lambda: protocol, sys.stdin.buffer
        )

    async def write(data: bytes) -> None:
        if writer is None:
            sys.stdout.buffer.write(data)
            sys.stdout.buffer.flush()
        else:
            writer.write(data)
            await writer.drain()

    logger.info("MCP server %s listening on stdio", server.name)
    await StdioSession(server).serve(reader, write)
