"""
Single-request execution with a fixed-delay retry loop.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import aiohttp

from .client import ProbeClient, remote_ip
from .parser import extract_title
from .request_line import RequestDescriptor
from .throttle import Throttle
from ..utils.monitoring import ProbeMetrics

SEND_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)

logger = logging.getLogger(__name__)


class AttemptState(Enum):
    """Retry loop states."""
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class ResponseRecord:
    """Everything known about one completed request."""
    method: str
    url: str
    remote_ip: str
    status_code: int
    content_length: int
    elapsed: float
    title: Optional[str] = None
    raw_request: Optional[str] = None
    body_text: Optional[str] = None

    @property
    def response_time_ms(self) -> int:
        return int(self.elapsed * 1000)


@dataclass
class ExecutionOutcome:
    """Final state of a request after the retry loop."""
    state: AttemptState
    attempts: int
    record: Optional[ResponseRecord] = None
    error: Optional[BaseException] = None


def describe_error(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


class RequestExecutor:
    """
    Sends a request through the shared client, retrying transport failures.

    ``retry`` extra attempts are made after the first, each preceded by a fixed
    ``delay_ms`` pause. HTTP error statuses are responses, not failures.
    """

    def __init__(self, client: ProbeClient, retry: int = 0, delay_ms: int = 0,
                 include_request: bool = False, include_title: bool = False,
                 fetch_body: bool = False, throttle: Optional[Throttle] = None,
                 metrics: Optional[ProbeMetrics] = None):
        self.client = client
        self.retry = retry
        self.delay_ms = delay_ms
        self.include_request = include_request
        self.include_title = include_title
        self.fetch_body = fetch_body or include_title
        self.throttle = throttle
        self.metrics = metrics

    async def execute(self, descriptor: RequestDescriptor) -> ExecutionOutcome:
        """Run the retry loop for one descriptor."""
        state = AttemptState.ATTEMPTING
        attempts = 0
        last_error: Optional[BaseException] = None
        record: Optional[ResponseRecord] = None

        while state in (AttemptState.ATTEMPTING, AttemptState.RETRYING):
            if attempts > 0 and self.delay_ms > 0:
                await asyncio.sleep(self.delay_ms / 1000)

            if self.throttle is not None:
                await self.throttle.wait_for_slot()

            try:
                record = await self._attempt(descriptor)
            except SEND_ERRORS as e:
                last_error = e
                attempts += 1
                if attempts <= self.retry:
                    state = AttemptState.RETRYING
                    if self.metrics:
                        self.metrics.record_retry()
                    logger.warning(
                        f"[{descriptor.url}] - Attempt {attempts} failed: {describe_error(e)}. Retrying...",
                        extra={'url': descriptor.url, 'attempt': attempts}
                    )
                else:
                    state = AttemptState.EXHAUSTED
            else:
                attempts += 1
                state = AttemptState.SUCCESS

        if state is AttemptState.EXHAUSTED:
            if self.metrics:
                self.metrics.record_failure()
            logger.error(
                f"[{descriptor.url}] - Error after {self.retry + 1} attempts: {describe_error(last_error)}",
                extra={'url': descriptor.url, 'attempt': attempts}
            )
            return ExecutionOutcome(state, attempts, error=last_error)

        return ExecutionOutcome(state, attempts, record=record)

    async def _attempt(self, descriptor: RequestDescriptor) -> ResponseRecord:
        raw_request = None
        if self.include_request:
            raw_request = self.client.render_raw_request(descriptor)

        start_time = time.perf_counter()
        async with self.client.request(descriptor) as response:
            elapsed = time.perf_counter() - start_time
            ip_address = remote_ip(response)

            body_text = None
            if self.fetch_body:
                try:
                    body_text = await self.client.read_text(response)
                except SEND_ERRORS as e:
                    logger.warning(f"[{descriptor.url}] - Failed to read response body: {describe_error(e)}")
                    body_text = ""

            title = extract_title(body_text) if self.include_title and body_text else None

            if self.metrics:
                self.metrics.record_response(response.status, elapsed)

            return ResponseRecord(
                method=descriptor.method,
                url=descriptor.url,
                remote_ip=ip_address,
                status_code=response.status,
                content_length=response.content_length or 0,
                elapsed=elapsed,
                title=title,
                raw_request=raw_request,
                body_text=body_text,
            )
