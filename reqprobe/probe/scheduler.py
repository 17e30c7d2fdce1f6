"""
Pipeline orchestrator: one task per input line, bounded concurrency, shared
throttle and output sink.
"""

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, replace
from typing import BinaryIO, Dict, List, Optional

from .client import ProbeClient
from .executor import RequestExecutor
from .filters import ResponseFilter
from .request_line import normalize_url_scheme, parse_request_line
from .throttle import Throttle
from ..output.formatter import build_formatter
from ..output.sink import OutputSink
from ..utils.config import Config
from ..utils.monitoring import ProbeMetrics


@dataclass
class ProbeStats:
    """Statistics for one run."""
    start_time: float
    units_spawned: int = 0
    active_units: int = 0
    peak_active_units: int = 0
    records_written: int = 0
    filtered: int = 0
    failed: int = 0
    undecodable_lines: int = 0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time


class ProbeScheduler:
    """
    Reads request lines and runs each through parse, normalize, throttle,
    execute, filter, format and write.
    """

    def __init__(self, config: Config, client: ProbeClient, sink: OutputSink,
                 metrics: Optional[ProbeMetrics] = None,
                 executor: Optional[RequestExecutor] = None,
                 throttle: Optional[Throttle] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.client = client
        self.sink = sink
        self.metrics = metrics or ProbeMetrics()

        self.throttle = throttle or Throttle(
            rate_limit=config.network.rate_limit,
            random_delay=config.network.random_delay,
        )
        self.response_filter = ResponseFilter.from_config(config.filter)
        self.executor = executor or RequestExecutor(
            client,
            retry=config.network.retry,
            delay_ms=config.network.delay,
            include_request=config.output.include_req,
            include_title=config.output.include_title,
            fetch_body=config.output.include_res or self.response_filter.needs_body,
            throttle=self.throttle,
            metrics=self.metrics,
        )
        colored = sink.is_terminal() and not config.output.no_color
        self.formatter = build_formatter(config.output, colored=colored)

        concurrency = config.network.concurrency
        self._semaphore = asyncio.Semaphore(concurrency) if concurrency > 0 else None
        self.stats = ProbeStats(start_time=time.time())

    async def run(self, stream: BinaryIO) -> ProbeStats:
        """
        Process every line of ``stream`` and wait for all units to finish.

        Lines that are not valid UTF-8 are dropped; blank lines are skipped.
        """
        self.stats = ProbeStats(start_time=time.time())
        tasks: List[asyncio.Task] = []

        while True:
            raw_line = await asyncio.to_thread(stream.readline)
            if not raw_line:
                break

            try:
                line = raw_line.decode('utf-8') if isinstance(raw_line, bytes) else raw_line
            except UnicodeDecodeError:
                self.stats.undecodable_lines += 1
                self.logger.debug("Dropping input line that is not valid UTF-8")
                continue

            line = line.strip()
            if not line:
                continue

            self.stats.units_spawned += 1
            tasks.append(asyncio.create_task(self._run_unit(line)))

        await asyncio.gather(*tasks)
        await self.sink.flush()
        self._log_final_stats()
        return self.stats

    async def _run_unit(self, line: str):
        """One unit of work; never lets an exception reach its siblings."""
        slot = self._semaphore if self._semaphore is not None else contextlib.nullcontext()
        async with slot:
            self.stats.active_units += 1
            self.stats.peak_active_units = max(self.stats.peak_active_units, self.stats.active_units)
            self.metrics.in_flight.inc()
            try:
                await self.process_line(line)
            except Exception:
                self.logger.exception(f"Unexpected error while processing line: {line!r}")
            finally:
                self.stats.active_units -= 1
                self.metrics.in_flight.dec()

    async def process_line(self, line: str):
        """Run the full pipeline for one trimmed input line."""
        descriptor = parse_request_line(line)
        if not descriptor.url:
            return

        descriptor = replace(descriptor, url=normalize_url_scheme(descriptor.url))

        await self.throttle.apply_jitter()
        outcome = await self.executor.execute(descriptor)
        if outcome.record is None:
            self.stats.failed += 1
            return

        record = outcome.record
        if self.response_filter.rejects(record.status_code, record.body_text):
            self.stats.filtered += 1
            self.metrics.record_filtered()
            return

        await self.sink.write_header_once(self.formatter.header())
        await self.sink.write(self.formatter.format(record))
        self.stats.records_written += 1
        self.metrics.record_written()

    def _log_final_stats(self):
        self.logger.info("=== PROBE COMPLETED ===")
        self.logger.info(f"Units of work: {self.stats.units_spawned}")
        self.logger.info(f"Records written: {self.stats.records_written}")
        self.logger.info(f"Filtered out: {self.stats.filtered}")
        self.logger.info(f"Failed: {self.stats.failed}")
        self.logger.info(f"Peak concurrent units: {self.stats.peak_active_units}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Metrics: {self.metrics.get_summary()}")

    def get_stats(self) -> Dict:
        """Get current run statistics."""
        return {
            'units_spawned': self.stats.units_spawned,
            'records_written': self.stats.records_written,
            'filtered': self.stats.filtered,
            'failed': self.stats.failed,
            'peak_active_units': self.stats.peak_active_units,
            'elapsed_time': self.stats.elapsed_time,
        }
