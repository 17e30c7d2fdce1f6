"""
The ``send_requests`` tool: the probe pipeline as a callable operation that
returns records instead of streaming them.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Pattern, Tuple

from ..probe.client import ProbeClient
from ..probe.executor import RequestExecutor, describe_error
from ..probe.filters import should_filter_response
from ..probe.request_line import normalize_url_scheme, parse_request_line, RequestDescriptor
from ..utils.config import Config

TOOL_NAME = "send_requests"
TOOL_TITLE = "Send HTTP Requests"
TOOL_DESCRIPTION = (
    "Send HTTP requests and return response metadata. Accepts a list of requests with "
    "optional filters (filter_status, filter_string, filter_regex), HTTP options "
    "(follow_redirect, http2, headers), and output options (include_req, include_res) "
    "for LLM analysis."
)

INPUT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "requests": {
            "type": "array",
            "items": {"type": "string"},
            "description": (
                "List of HTTP requests. Each request can be a simple URL or a string with "
                "METHOD URL BODY format (e.g., 'POST https://example.com data=value')"
            ),
        },
        "filter_status": {
            "type": "array",
            "items": {"type": "number"},
            "description": (
                "Filter results by HTTP status codes (e.g., [200, 404]). "
                "Only responses with these status codes will be returned."
            ),
        },
        "filter_string": {
            "type": "string",
            "description": "Only responses whose body contains this string will be returned.",
        },
        "filter_regex": {
            "type": "string",
            "description": "Only responses whose body matches this regex will be returned.",
        },
        "include_req": {
            "type": "boolean",
            "description": "Include raw HTTP request details in the output.",
        },
        "include_res": {
            "type": "boolean",
            "description": "Include response body in the output.",
        },
        "follow_redirect": {
            "type": "boolean",
            "description": "Whether to follow HTTP redirects. Defaults to the server setting.",
        },
        "http2": {
            "type": "boolean",
            "description": (
                "Ask for HTTP/2. Requests are still sent as HTTP/1.1; only the raw "
                "request preview shows HTTP/2.0. Defaults to the server setting."
            ),
        },
        "headers": {
            "type": "array",
            "items": {"type": "string"},
            "description": (
                "Custom headers to add to the request "
                "(e.g., [\"User-Agent: my-app\", \"Authorization: Bearer token\"])"
            ),
        },
    },
    "required": ["requests"],
}

logger = logging.getLogger(__name__)


class ToolParameterError(ValueError):
    """Invalid arguments for a tool invocation."""
    pass


def _status_codes(value: Any) -> FrozenSet[int]:
    """Whole non-negative numbers from a JSON array; anything else means no filter."""
    if not isinstance(value, list):
        return frozenset()
    codes = set()
    for code in value:
        if isinstance(code, bool) or not isinstance(code, (int, float)):
            continue
        if isinstance(code, float) and not code.is_integer():
            continue
        if code >= 0:
            codes.add(int(code))
    return frozenset(codes)


def _string_list(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, str))


@dataclass(frozen=True)
class ToolParameters:
    """Per-invocation settings; unset values fall back to the server configuration."""
    filter_status: FrozenSet[int] = frozenset()
    filter_string: Optional[str] = None
    filter_regex: Optional[Pattern] = None
    include_req: bool = False
    include_res: bool = False
    follow_redirect: bool = True
    http2: bool = False
    headers: Tuple[str, ...] = ()

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any], config: Config) -> 'ToolParameters':
        filter_status = _status_codes(arguments.get("filter_status"))

        filter_string = arguments.get("filter_string")
        if not isinstance(filter_string, str):
            filter_string = None

        filter_regex = None
        regex_source = arguments.get("filter_regex")
        if isinstance(regex_source, str):
            try:
                filter_regex = re.compile(regex_source)
            except re.error as e:
                raise ToolParameterError(f"Invalid regex provided for filter_regex: {e}") from e

        follow_redirect = arguments.get("follow_redirect")
        http2 = arguments.get("http2")

        return cls(
            filter_status=filter_status,
            filter_string=filter_string,
            filter_regex=filter_regex,
            include_req=arguments.get("include_req") is True,
            include_res=arguments.get("include_res") is True,
            follow_redirect=(follow_redirect if isinstance(follow_redirect, bool)
                             else config.http.follow_redirect),
            http2=http2 if isinstance(http2, bool) else config.http.http2,
            headers=_string_list(arguments.get("headers")),
        )

    @property
    def needs_body(self) -> bool:
        return self.include_res or self.filter_string is not None or self.filter_regex is not None


class SendRequestsTool:
    """Runs a batch of request strings sequentially, single attempt each."""

    name = TOOL_NAME
    title = TOOL_TITLE
    description = TOOL_DESCRIPTION
    input_schema = INPUT_SCHEMA

    def __init__(self, config: Config, client_factory: Callable[..., ProbeClient] = ProbeClient.from_config):
        self.config = config
        self.client_factory = client_factory

    async def invoke(self, arguments: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """
        Validate ``arguments`` and process every request.

        Raises:
            ToolParameterError: when ``requests`` is missing or not an array, or
                ``filter_regex`` does not compile. Nothing is sent in that case.
        """
        if arguments is None:
            raise ToolParameterError("Missing arguments")

        requests = arguments.get("requests")
        if not isinstance(requests, list):
            raise ToolParameterError("requests parameter must be an array")

        params = ToolParameters.from_arguments(arguments, self.config)
        client = self.client_factory(
            self.config,
            follow_redirects=params.follow_redirect,
            http2=params.http2,
            headers=tuple(self.config.http.headers) + params.headers,
        )
        executor = RequestExecutor(
            client,
            retry=0,
            include_request=params.include_req,
            fetch_body=params.needs_body,
        )

        results: List[Dict[str, Any]] = []
        async with client:
            for request in requests:
                descriptor = self._descriptor_for(request)
                if descriptor is None:
                    continue
                result = await self._process(executor, descriptor, params)
                if result is not None:
                    results.append(result)

        logger.info(f"{TOOL_NAME}: {len(requests)} requests, {len(results)} results")
        return results

    async def __call__(self, arguments: Optional[Mapping[str, Any]]) -> str:
        """Invoke and join the results as newline-separated compact JSON."""
        results = await self.invoke(arguments)
        return "\n".join(json.dumps(r, ensure_ascii=False, separators=(",", ":")) for r in results)

    @staticmethod
    def _descriptor_for(request: Any) -> Optional[RequestDescriptor]:
        if not isinstance(request, str) or not request.strip():
            return None
        descriptor = parse_request_line(request.strip())
        if not descriptor.url:
            return None
        return RequestDescriptor(descriptor.method, normalize_url_scheme(descriptor.url), descriptor.body)

    @staticmethod
    async def _process(executor: RequestExecutor, descriptor: RequestDescriptor,
                       params: ToolParameters) -> Optional[Dict[str, Any]]:
        outcome = await executor.execute(descriptor)
        if outcome.record is None:
            return {
                "method": descriptor.method,
                "url": descriptor.url,
                "error": describe_error(outcome.error),
            }

        record = outcome.record
        if should_filter_response(record.status_code, record.body_text, params.filter_status,
                                  params.filter_string, params.filter_regex):
            return None

        result: Dict[str, Any] = {
            "method": record.method,
            "url": record.url,
            "status_code": record.status_code,
            "content_length": record.content_length,
            "response_time_ms": record.response_time_ms,
        }
        if record.remote_ip:
            result["ip_address"] = record.remote_ip
        if record.raw_request is not None:
            result["raw_request"] = record.raw_request
        if params.include_res and record.body_text is not None:
            result["response_body"] = record.body_text
        return result
