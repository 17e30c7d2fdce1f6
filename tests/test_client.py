"""
Tests for the shared HTTP client helpers.
"""

import logging

import pytest

from reqprobe.probe.client import ClientBuildError, ProbeClient, decode_body, parse_headers
from reqprobe.probe.request_line import RequestDescriptor


@pytest.mark.unit
class TestParseHeaders:

    def test_valid_headers(self):
        headers = parse_headers(["User-Agent: probe/1.0", "Accept: */*"])
        assert headers["user-agent"] == "probe/1.0"
        assert headers["Accept"] == "*/*"

    def test_later_header_overrides(self):
        headers = parse_headers(["X-Token: a", "x-token: b"])
        assert headers.getall("X-Token") == ["b"]

    @pytest.mark.parametrize("header, message", [
        ("NoSeparator", "Invalid header format"),
        ("Key:NoSpace", "Invalid header format"),
        ("Bad Name: x", "Invalid header name"),
        ("X-Bad: line\nbreak", "Invalid header value"),
    ])
    def test_malformed_headers_are_skipped(self, header, message, caplog):
        with caplog.at_level(logging.WARNING):
            headers = parse_headers([header, "X-Ok: 1"])
        assert list(headers.keys()) == ["X-Ok"]
        assert message in caplog.text


@pytest.mark.unit
class TestProbeClient:

    def test_from_config_with_overrides(self, make_config):
        config = make_config(network={"timeout": 3}, http={"headers": ("X-A: 1",)})
        client = ProbeClient.from_config(config, follow_redirects=False)
        assert client.timeout == 3
        assert client.follow_redirects is False
        assert client.default_headers["X-A"] == "1"

    @pytest.mark.parametrize("proxy", ["socks5://127.0.0.1:1080", "not a proxy", "http://"])
    def test_invalid_proxy(self, proxy):
        with pytest.raises(ClientBuildError):
            ProbeClient(proxy=proxy)

    def test_valid_proxy(self):
        assert ProbeClient(proxy="http://127.0.0.1:8080").proxy == "http://127.0.0.1:8080"

    def test_request_before_start(self):
        with pytest.raises(RuntimeError):
            ProbeClient().request(RequestDescriptor("GET", "https://example.com"))

    @pytest.mark.asyncio
    async def test_http2_warns_that_http11_is_sent(self, caplog):
        client = ProbeClient(http2=True)
        with caplog.at_level(logging.WARNING):
            async with client:
                pass
        assert "sending HTTP/1.1" in caplog.text

    @pytest.mark.asyncio
    async def test_session_lifecycle(self):
        client = ProbeClient()
        async with client:
            assert client.session is not None
        assert client.session is None


@pytest.mark.unit
class TestRenderRawRequest:

    def test_get_preview(self):
        client = ProbeClient(headers=["User-Agent: probe"])
        raw = client.render_raw_request(RequestDescriptor("GET", "https://example.com/a?b=1"))
        assert raw == "GET /a?b=1 HTTP/1.1\nHost: example.com\nUser-Agent: probe\n"

    def test_body_and_http2(self):
        client = ProbeClient(http2=True)
        raw = client.render_raw_request(RequestDescriptor("POST", "https://example.com/api", "a=1"))
        assert raw == "POST /api HTTP/2.0\nHost: example.com\n\na=1"

    def test_extra_headers_override_defaults(self):
        client = ProbeClient(headers=["X-Token: old"])
        raw = client.render_raw_request(
            RequestDescriptor("GET", "https://example.com/"), extra_headers=["X-Token: new"]
        )
        assert "X-Token: new\n" in raw
        assert "old" not in raw


@pytest.mark.unit
class TestDecodeBody:

    def test_declared_charset(self):
        assert decode_body("café".encode("latin-1"), "latin-1") == "café"

    def test_fallback_is_lossy_utf8(self):
        assert decode_body(b"ok \xff", None) == "ok �"
        assert decode_body(b"ok", "no-such-charset") == "ok"
