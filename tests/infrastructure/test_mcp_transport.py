"""Tests for the MCP stdio transport (JSON-RPC framing and method routing)."""

import asyncio
import json
import pytest
from unittest.mock import AsyncMock, MagicMock

from palisade.domain.exceptions import ValidationError
from palisade.infrastructure.mcp_servers.palisade_server import MCPServer
from palisade.infrastructure.mcp_servers.stdio_transport import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    MCP_PROTOCOL_VERSION,
    PARSE_ERROR,
    INVALID_REQUEST,
    FramingError,
    StdioSession,
    content_length,
    encode_frame,
    read_frame,
    run_stdio,
)


def _make_request(method: str, params: dict = None, id: int = 1) -> dict:
    msg = {"jsonrpc": "2.0", "id": id, "method": method}
    if params is not None:
        msg["params"] = params
    return msg


def _make_notification(method: str) -> dict:
    return {"jsonrpc": "2.0", "method": method}


def _make_server_with_tools() -> MCPServer:
    server = MCPServer("test-server")

    @server.tool(
        name="echo",
        description="Echo input back",
        input_schema={"type": "object", "properties": {"text": {"type": "string"}}},
    )
    async def echo(text: str = "") -> dict:
        return {"echo": text}

    @server.tool(name="rejecting_tool", description="Always rejects its input")
    async def rejecting_tool() -> dict:
        raise ValidationError("protocol(SCTP) is not supported")

    @server.tool(name="broken_tool", description="Always breaks")
    async def broken_tool() -> dict:
        raise RuntimeError("boom")

    @server.tool(name="partial_tool", description="Reports a partial failure")
    async def partial_tool() -> dict:
        return {"error": "have some failed policies"}

    @server.resource(uri="test://data", description="Test data")
    async def test_data() -> str:
        return json.dumps({"key": "value"})

    return server


def _reader_for(*messages: dict) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    for message in messages:
        reader.feed_data(encode_frame(message))
    reader.feed_eof()
    return reader


def _decode_all(data: bytes) -> list[dict]:
    messages = []
    while data:
        header, _, rest = data.partition(b"\r\n\r\n")
        length = content_length(header + b"\r\n\r\n")
        messages.append(json.loads(rest[:length]))
        data = rest[length:]
    return messages


async def _answer(server: MCPServer, message) -> dict:
    return await StdioSession(server).handle(message)


class TestMessageFraming:
    def test_encode_frame(self):
        encoded = encode_frame({"jsonrpc": "2.0", "id": 1, "result": {}})
        header, body = encoded.split(b"\r\n\r\n", 1)
        assert header == f"Content-Length: {len(body)}".encode("ascii")
        assert json.loads(body)["id"] == 1

    def test_content_length_case_insensitive(self):
        assert content_length(b"content-length: 42\r\n\r\n") == 42

    def test_content_length_skips_other_headers(self):
        header = b"Content-Type: application/vscode-jsonrpc\r\nContent-Length: 7\r\n\r\n"
        assert content_length(header) == 7

    def test_content_length_missing(self):
        with pytest.raises(FramingError, match="Content-Length"):
            content_length(b"Content-Type: application/json\r\n\r\n")

    def test_content_length_not_a_number(self):
        with pytest.raises(FramingError, match="bad Content-Length"):
            content_length(b"Content-Length: lots\r\n\r\n")

    @pytest.mark.asyncio
    async def test_read_frame(self):
        reader = _reader_for(_make_request("tools/list"))
        assert json.loads(await read_frame(reader))["method"] == "tools/list"
        assert await read_frame(reader) is None

    @pytest.mark.asyncio
    async def test_read_frame_short_body(self):
        reader = asyncio.StreamReader()
        reader.feed_data(b"Content-Length: 10\r\n\r\n{}")
        reader.feed_eof()
        with pytest.raises(FramingError, match="after 2 bytes"):
            await read_frame(reader)


class TestRequestValidation:
    @pytest.mark.asyncio
    async def test_non_object_message(self):
        response = await _answer(MCPServer("test"), [1, 2])
        assert response["id"] is None
        assert response["error"]["code"] == INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_missing_method(self):
        response = await _answer(MCPServer("test"), {"jsonrpc": "2.0", "id": 3})
        assert response["error"]["code"] == INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_non_object_params(self):
        response = await _answer(MCPServer("test"), _make_request("tools/list", ["x"]))
        assert response["error"]["code"] == INVALID_PARAMS


class TestInitializeHandshake:
    @pytest.mark.asyncio
    async def test_initialize(self):
        server = MCPServer("palisade-service")
        response = await _answer(server, _make_request("initialize", {}))
        result = response["result"]
        assert result["protocolVersion"] == MCP_PROTOCOL_VERSION
        assert result["serverInfo"]["name"] == "palisade-service"
        assert "tools" in result["capabilities"]

    @pytest.mark.asyncio
    async def test_initialized_notification_has_no_response(self):
        server = MCPServer("test")
        assert await _answer(server, _make_notification("notifications/initialized")) is None

    @pytest.mark.asyncio
    async def test_unknown_method(self):
        response = await _answer(MCPServer("test"), _make_request("prompts/list"))
        assert response["error"]["code"] == METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_shutdown(self):
        response = await _answer(MCPServer("test"), _make_request("shutdown", id=9))
        assert response == {"jsonrpc": "2.0", "id": 9, "result": {}}


class TestToolsList:
    @pytest.mark.asyncio
    async def test_lists_tools_with_schema(self):
        response = await _answer(_make_server_with_tools(), _make_request("tools/list"))
        tools = {t["name"]: t for t in response["result"]["tools"]}
        assert set(tools) == {"echo", "rejecting_tool", "broken_tool", "partial_tool"}
        assert tools["echo"]["inputSchema"]["properties"]["text"]["type"] == "string"


class TestToolsCall:
    @pytest.mark.asyncio
    async def test_call_tool(self):
        response = await _answer(
            _make_server_with_tools(),
            _make_request("tools/call", {"name": "echo", "arguments": {"text": "hi"}}),
        )
        result = response["result"]
        assert json.loads(result["content"][0]["text"]) == {"echo": "hi"}
        assert result["isError"] is False

    @pytest.mark.asyncio
    async def test_partial_failure_flagged(self):
        response = await _answer(
            _make_server_with_tools(),
            _make_request("tools/call", {"name": "partial_tool"}),
        )
        assert response["result"]["isError"] is True

    @pytest.mark.asyncio
    async def test_validation_error_is_invalid_params(self):
        response = await _answer(
            _make_server_with_tools(),
            _make_request("tools/call", {"name": "rejecting_tool", "arguments": {}}),
        )
        assert response["error"]["code"] == INVALID_PARAMS
        assert "SCTP" in response["error"]["message"]

    @pytest.mark.asyncio
    async def test_unknown_tool_is_method_not_found(self):
        response = await _answer(
            _make_server_with_tools(),
            _make_request("tools/call", {"name": "missing"}),
        )
        assert response["error"]["code"] == METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_tool_failure_is_internal_error(self):
        response = await _answer(
            _make_server_with_tools(),
            _make_request("tools/call", {"name": "broken_tool"}),
        )
        assert response["error"]["code"] == INTERNAL_ERROR
        assert response["error"]["data"]["error"]["code"] == "internal_error"

    @pytest.mark.asyncio
    async def test_non_object_arguments_rejected(self):
        response = await _answer(
            _make_server_with_tools(),
            _make_request("tools/call", {"name": "echo", "arguments": ["hi"]}),
        )
        assert response["error"]["code"] == INVALID_PARAMS


class TestResources:
    @pytest.mark.asyncio
    async def test_list_resources(self):
        response = await _answer(_make_server_with_tools(), _make_request("resources/list"))
        resources = response["result"]["resources"]
        assert resources == [
            {"uri": "test://data", "description": "Test data", "mimeType": "application/json"}
        ]

    @pytest.mark.asyncio
    async def test_read_resource(self):
        response = await _answer(
            _make_server_with_tools(),
            _make_request("resources/read", {"uri": "test://data"}),
        )
        content = response["result"]["contents"][0]
        assert json.loads(content["text"]) == {"key": "value"}

    @pytest.mark.asyncio
    async def test_read_unknown_resource(self):
        response = await _answer(
            _make_server_with_tools(),
            _make_request("resources/read", {"uri": "test://missing"}),
        )
        assert response["error"]["code"] == INVALID_PARAMS


class TestRunStdio:
    @pytest.mark.asyncio
    async def test_serves_until_shutdown(self):
        reader = _reader_for(
            _make_request("initialize", {}, id=1),
            _make_notification("notifications/initialized"),
            _make_request("tools/call", {"name": "echo", "arguments": {"text": "x"}}, id=2),
            _make_request("shutdown", id=3),
            _make_request("tools/list", id=4),
        )
        writer = MagicMock()
        writer.drain = AsyncMock()

        await run_stdio(_make_server_with_tools(), reader=reader, writer=writer)

        written = b"".join(call.args[0] for call in writer.write.call_args_list)
        responses = _decode_all(written)
        assert [r["id"] for r in responses] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_stops_on_eof(self):
        writer = MagicMock()
        writer.drain = AsyncMock()

        await run_stdio(MCPServer("test"), reader=_reader_for(), writer=writer)

        writer.write.assert_not_called()

    @pytest.mark.asyncio
    async def test_stops_on_truncated_body(self):
        reader = asyncio.StreamReader()
        reader.feed_data(b"Content-Length: 100\r\n\r\n{}")
        reader.feed_eof()
        writer = MagicMock()
        writer.drain = AsyncMock()

        await run_stdio(MCPServer("test"), reader=reader, writer=writer)

        writer.write.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_json_gets_parse_error_and_session_continues(self):
        reader = asyncio.StreamReader()
        reader.feed_data(b"Content-Length: 5\r\n\r\n{nope")
        reader.feed_data(encode_frame(_make_request("shutdown", id=2)))
        reader.feed_eof()
        writer = MagicMock()
        writer.drain = AsyncMock()

        await run_stdio(MCPServer("test"), reader=reader, writer=writer)

        written = b"".join(call.args[0] for call in writer.write.call_args_list)
        first, second = _decode_all(written)
        assert first["id"] is None
        assert first["error"]["code"] == PARSE_ERROR
        assert second == {"jsonrpc": "2.0", "id": 2, "result": {}}
