"""
Shared HTTP client: header parsing, session construction and raw request
previews.
"""

import logging
import re
from typing import Iterable, Optional

import aiohttp
from aiohttp import ClientSession, ClientTimeout
from multidict import CIMultiDict
from yarl import URL

from .request_line import RequestDescriptor
from ..utils.config import Config

DEFAULT_REDIRECT_LIMIT = 10
HTTP_VERSION_1_1 = "HTTP/1.1"
HTTP_VERSION_2 = "HTTP/2.0"

HEADER_NAME_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
INVALID_VALUE_CHARS = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")

logger = logging.getLogger(__name__)


class ClientBuildError(Exception):
    """Raised when the HTTP client cannot be constructed from its settings."""
    pass


def parse_headers(headers: Iterable[str]) -> CIMultiDict:
    """
    Parse ``"Key: Value"`` strings into a case-insensitive header map.

    Malformed entries are logged and skipped. A later entry replaces an
    earlier one with the same name.
    """
    header_map = CIMultiDict()
    for header_str in headers:
        key, separator, value = header_str.partition(": ")
        if not separator:
            logger.warning(f"Invalid header format. Expected 'Key: Value'. Got: {header_str}")
            continue
        if not HEADER_NAME_PATTERN.match(key):
            logger.warning(f"Invalid header name: {key}")
            continue
        value = value.strip()
        if INVALID_VALUE_CHARS.search(value):
            logger.warning(f"Invalid header value for key '{key}'")
            continue
        header_map[key] = value
    return header_map


def remote_ip(response: aiohttp.ClientResponse) -> str:
    """Peer address of the connection that served the response, or ""."""
    connection = response.connection
    if connection is None or connection.transport is None:
        return ""
    peer = connection.transport.get_extra_info('peername')
    if not peer:
        return ""
    return str(peer[0])


def decode_body(content_bytes: bytes, charset: Optional[str]) -> str:
    """Decode with the declared charset, falling back to lossy UTF-8."""
    if charset:
        try:
            return content_bytes.decode(charset)
        except (UnicodeDecodeError, LookupError):
            pass
    return content_bytes.decode('utf-8', errors='replace')


class ProbeClient:
    """
    Wraps one ``aiohttp.ClientSession`` configured once for the whole run.

    Timeout, redirect policy, default headers, proxy and TLS verification are
    properties of the client, not of individual requests.
    """

    def __init__(self, timeout: int = 10, follow_redirects: bool = True,
                 http2: bool = False, headers: Iterable[str] = (),
                 proxy: Optional[str] = None, verify_ssl: bool = False):
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.http2 = http2
        self.verify_ssl = verify_ssl
        self.proxy = self._validate_proxy(proxy)
        self.default_headers = parse_headers(headers)

        self.session: Optional[ClientSession] = None

    @classmethod
    def from_config(cls, config: Config, **overrides) -> 'ProbeClient':
        """Build a client from the configuration, with optional per-call overrides."""
        settings = dict(
            timeout=config.network.timeout,
            follow_redirects=config.http.follow_redirect,
            http2=config.http.http2,
            headers=config.http.headers,
            proxy=config.network.proxy,
            verify_ssl=config.network.verify_ssl,
        )
        settings.update(overrides)
        return cls(**settings)

    @staticmethod
    def _validate_proxy(proxy: Optional[str]) -> Optional[str]:
        if not proxy:
            return None
        try:
            url = URL(proxy)
        except (ValueError, TypeError) as e:
            raise ClientBuildError(f"Failed to create proxy: {e}") from e
        if url.scheme not in ('http', 'https') or not url.host:
            raise ClientBuildError(f"Failed to create proxy: unsupported proxy URL '{proxy}'")
        return str(url)

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Open the underlying session."""
        if self.session is None:
            if self.http2:
                logger.warning("HTTP/2 is not available with the aiohttp transport; sending HTTP/1.1")

            self.session = aiohttp.ClientSession(
                timeout=ClientTimeout(total=self.timeout),
                headers=self.default_headers,
                connector=aiohttp.TCPConnector(ssl=self.verify_ssl),
            )
            logger.debug("ProbeClient session started")

    async def close(self):
        """Close the underlying session."""
        if self.session:
            await self.session.close()
            self.session = None
            logger.debug("ProbeClient session closed")

    def request(self, descriptor: RequestDescriptor):
        """
        Start sending ``descriptor``.

        Returns aiohttp's request context manager; the body is only read if the
        caller asks for it.
        """
        if self.session is None:
            raise RuntimeError("ProbeClient not started")

        return self.session.request(
            descriptor.method,
            descriptor.url,
            data=descriptor.body,
            allow_redirects=self.follow_redirects,
            max_redirects=DEFAULT_REDIRECT_LIMIT,
            proxy=self.proxy,
        )

    async def read_text(self, response: aiohttp.ClientResponse) -> str:
        """Read and decode the full response body."""
        content_bytes = await response.read()
        return decode_body(content_bytes, response.charset)

    def render_raw_request(self, descriptor: RequestDescriptor,
                           extra_headers: Optional[Iterable[str]] = None) -> Optional[str]:
        """
        Render the request as it would appear on the wire, for display only.

        The version line reflects the requested protocol: ``HTTP/2.0`` when
        http2 was asked for, although aiohttp sends HTTP/1.1 either way.
        Client default headers come first and ``extra_headers`` override them.
        Returns None when the URL cannot be parsed.
        """
        try:
            url = URL(descriptor.url)
        except (ValueError, TypeError):
            return None

        version = HTTP_VERSION_2 if self.http2 else HTTP_VERSION_1_1
        display_headers = CIMultiDict(self.default_headers)
        if extra_headers:
            display_headers.update(parse_headers(extra_headers))

        raw_req = f"{descriptor.method} {url.raw_path_qs} {version}\n"
        raw_req += f"Host: {url.raw_host or ''}\n"
        for name, value in display_headers.items():
            raw_req += f"{name}: {value}\n"

        if descriptor.body:
            raw_req += f"\n{descriptor.body}"

        return raw_req
