"""
Tests for the send_requests tool and its MCP registration.
"""

import json

import aiohttp
import mcp.types as types
import pytest
from aioresponses import aioresponses

from reqprobe.probe.client import ProbeClient
from reqprobe.server.mcp_server import create_server
from reqprobe.server.tools import INPUT_SCHEMA, TOOL_NAME, SendRequestsTool, ToolParameterError, ToolParameters


@pytest.fixture
def tool(make_config):
    return SendRequestsTool(make_config())


@pytest.mark.unit
class TestToolParameters:

    def test_defaults_follow_config(self, make_config):
        config = make_config(http={"follow_redirect": False, "http2": True})
        params = ToolParameters.from_arguments({"requests": []}, config)
        assert params.follow_redirect is False
        assert params.http2 is True
        assert not params.needs_body

    def test_explicit_values(self, make_config):
        params = ToolParameters.from_arguments({
            "requests": [],
            "filter_status": [200, 404.0],
            "filter_regex": "ok",
            "include_req": True,
            "follow_redirect": False,
            "headers": ["X-A: 1", 5],
        }, make_config())
        assert params.filter_status == frozenset({200, 404})
        assert params.filter_regex.pattern == "ok"
        assert params.include_req is True
        assert params.follow_redirect is False
        assert params.headers == ("X-A: 1",)
        assert params.needs_body

    def test_non_array_values_fall_back_to_defaults(self, make_config):
        params = ToolParameters.from_arguments(
            {"requests": [], "filter_status": 200, "headers": "X-A: b"}, make_config()
        )
        assert params.filter_status == frozenset()
        assert params.headers == ()

    def test_only_whole_status_codes_are_kept(self, make_config):
        params = ToolParameters.from_arguments(
            {"requests": [], "filter_status": [200, 301.0, 200.7, -1, True, "404"]}, make_config()
        )
        assert params.filter_status == frozenset({200, 301})

    def test_invalid_regex(self, make_config):
        with pytest.raises(ToolParameterError, match="Invalid regex"):
            ToolParameters.from_arguments({"requests": [], "filter_regex": "(["}, make_config())


@pytest.mark.unit
class TestSendRequestsTool:

    @pytest.mark.asyncio
    async def test_requests_must_be_array(self, tool):
        with pytest.raises(ToolParameterError, match="must be an array"):
            await tool.invoke({"requests": "https://example.com"})

    @pytest.mark.asyncio
    async def test_missing_arguments(self, tool):
        with pytest.raises(ToolParameterError):
            await tool.invoke(None)

    @pytest.mark.asyncio
    async def test_invalid_regex_sends_nothing(self, tool):
        with aioresponses() as m:
            with pytest.raises(ToolParameterError):
                await tool.invoke({"requests": ["https://a.test/"], "filter_regex": "(["})
            assert not m.requests

    @pytest.mark.asyncio
    async def test_success_record(self, tool):
        with aioresponses() as m:
            m.get("https://a.test/x", status=200, headers={"Content-Length": "3"}, body="abc")
            results = await tool.invoke({"requests": ["a.test/x"]})

        assert len(results) == 1
        result = results[0]
        assert result["method"] == "GET"
        assert result["url"] == "https://a.test/x"
        assert result["status_code"] == 200
        assert result["content_length"] == 3
        assert isinstance(result["response_time_ms"], int)
        # No peer address without a real connection.
        assert "ip_address" not in result
        assert "raw_request" not in result
        assert "response_body" not in result

    @pytest.mark.asyncio
    async def test_scalar_filter_status_is_ignored(self, tool):
        with aioresponses() as m:
            m.get("https://a.test/", status=404)
            results = await tool.invoke({"requests": ["https://a.test/"], "filter_status": 200})

        assert [r["status_code"] for r in results] == [404]

    @pytest.mark.asyncio
    async def test_failure_becomes_error_object(self, tool):
        with aioresponses() as m:
            m.post("https://down.test/api", exception=aiohttp.ClientConnectionError("connection refused"))
            results = await tool.invoke({"requests": ["POST https://down.test/api x=1"]})

        assert results == [{"method": "POST", "url": "https://down.test/api", "error": "connection refused"}]

    @pytest.mark.asyncio
    async def test_single_attempt_only(self, make_config):
        tool = SendRequestsTool(make_config(network={"retry": 5}))
        with aioresponses() as m:
            m.get("https://down.test/", exception=aiohttp.ClientConnectionError("down"))
            m.get("https://down.test/", status=200)
            results = await tool.invoke({"requests": ["https://down.test/"]})

        assert "error" in results[0]

    @pytest.mark.asyncio
    async def test_filters_and_body(self, tool):
        with aioresponses() as m:
            m.get("https://a.test/", status=200, body="admin panel")
            m.get("https://b.test/", status=200, body="public")
            m.get("https://c.test/", status=404, body="admin missing")
            results = await tool.invoke({
                "requests": ["https://a.test/", "https://b.test/", "https://c.test/"],
                "filter_status": [200],
                "filter_string": "admin",
                "include_res": True,
                "include_req": True,
            })

        assert [r["url"] for r in results] == ["https://a.test/"]
        assert results[0]["response_body"] == "admin panel"
        assert results[0]["raw_request"].startswith("GET / HTTP/1.1\nHost: a.test\n")

    @pytest.mark.asyncio
    async def test_non_string_and_blank_entries_are_skipped(self, tool):
        with aioresponses() as m:
            m.get("https://a.test/", status=204)
            results = await tool.invoke({"requests": [42, "  ", None, "https://a.test/"]})

        assert [r["status_code"] for r in results] == [204]

    @pytest.mark.asyncio
    async def test_headers_are_merged_with_config(self, make_config):
        captured = {}

        def factory(config, **overrides):
            captured.update(overrides)
            return ProbeClient.from_config(config, **overrides)

        tool = SendRequestsTool(make_config(http={"headers": ("X-Base: 1",)}), client_factory=factory)
        with aioresponses():
            await tool.invoke({"requests": [], "headers": ["X-Call: 2"], "follow_redirect": False})

        assert captured["headers"] == ("X-Base: 1", "X-Call: 2")
        assert captured["follow_redirects"] is False

    @pytest.mark.asyncio
    async def test_call_joins_compact_json_lines(self, tool):
        with aioresponses() as m:
            m.get("https://a.test/", status=200)
            m.get("https://b.test/", status=301)
            text = await tool({"requests": ["https://a.test/", "https://b.test/"],
                               "follow_redirect": False})

        lines = text.split("\n")
        assert len(lines) == 2
        assert [json.loads(line)["status_code"] for line in lines] == [200, 301]
        assert ", " not in text

    @pytest.mark.asyncio
    async def test_empty_result_is_empty_text(self, tool):
        assert await tool({"requests": []}) == ""


@pytest.mark.unit
class TestMcpServer:

    @pytest.mark.asyncio
    async def test_lists_send_requests_tool(self, make_config):
        server = create_server(make_config())
        handler = server.request_handlers[types.ListToolsRequest]

        result = await handler(types.ListToolsRequest(method="tools/list"))

        tools = result.root.tools
        assert [t.name for t in tools] == [TOOL_NAME]
        assert tools[0].inputSchema == INPUT_SCHEMA
        assert tools[0].inputSchema["required"] == ["requests"]

    def test_http2_schema_states_transport_version(self):
        assert "sent as HTTP/1.1" in INPUT_SCHEMA["properties"]["http2"]["description"]

    def test_server_identity(self, make_config):
        server = create_server(make_config())
        assert server.name == "reqprobe"
