"""
Result rendering: plain text, JSON lines and CSV.
"""

from __future__ import annotations

import csv
import io
import json
import re
from http import HTTPStatus
from typing import TYPE_CHECKING, Optional

from colorama import Fore, Style

from ..utils.config import OutputConfig, OutputFormat

if TYPE_CHECKING:
    from ..probe.executor import ResponseRecord

CSV_COLUMNS = ["method", "url", "ip_address", "status_code", "content_length", "response_time_ms"]
TEMPLATE_TOKEN = re.compile(r"%(method|url|status|code|size|time|ip|title)")

_DURATION_UNITS = (
    (1_000_000_000, "s"),
    (1_000_000, "ms"),
    (1_000, "µs"),
    (1, "ns"),
)


def format_duration(seconds: float) -> str:
    """Compact duration text using the largest whole unit: ``1.5s``, ``12.345ms``, ``850µs``."""
    nanos = max(0, round(seconds * 1_000_000_000))
    for divisor, unit in _DURATION_UNITS:
        if nanos >= divisor or divisor == 1:
            whole, remainder = divmod(nanos, divisor)
            width = len(str(divisor)) - 1
            fraction = str(remainder).rjust(width, "0").rstrip("0") if width else ""
            return f"{whole}.{fraction}{unit}" if fraction else f"{whole}{unit}"


def format_status(status_code: int) -> str:
    """``200 OK`` style status text; bare code when the phrase is unknown."""
    try:
        return f"{status_code} {HTTPStatus(status_code).phrase}"
    except ValueError:
        return str(status_code)


class PlainFormatter:
    """Human-readable lines, optionally driven by a ``%token`` template."""

    def __init__(self, template: Optional[str] = None, colored: bool = False,
                 include_res: bool = False):
        self.template = template
        self.colored = colored
        self.include_res = include_res

    def header(self) -> Optional[str]:
        return None

    def format(self, record: ResponseRecord) -> str:
        if self.template is not None:
            output = self.render_template(record)
        else:
            output = self.render_line(record)

        if record.raw_request is not None:
            output += f"[Raw Request]\n{record.raw_request}\n"
        if self.include_res and record.body_text is not None:
            output += f"[Response Body]\n{record.body_text}\n"
        return output

    def render_template(self, record: ResponseRecord) -> str:
        values = {
            "method": record.method,
            "url": record.url,
            "status": format_status(record.status_code),
            "code": str(record.status_code),
            "size": str(record.content_length),
            "time": format_duration(record.elapsed),
            "ip": record.remote_ip,
            "title": record.title or "",
        }
        return TEMPLATE_TOKEN.sub(lambda match: values[match.group(1)], self.template) + "\n"

    def render_line(self, record: ResponseRecord) -> str:
        status = format_status(record.status_code)
        method, url, ip, size = record.method, record.url, record.remote_ip, str(record.content_length)
        title = record.title

        if self.colored:
            method = self._paint(method, Fore.YELLOW)
            url = self._paint(url, Fore.CYAN)
            ip = self._paint(ip, Fore.MAGENTA)
            size = self._paint(size, Fore.BLUE)
            status = self._paint(status, self._status_color(record.status_code))
            if title is not None:
                title = self._paint(title, Fore.BLUE)

        title_part = f" | Title: {title}" if title is not None else ""
        return (
            f"[{method}] [{url}] [{ip}] -> {status} | Size: {size} {title_part}"
            f"| Time: {format_duration(record.elapsed)}\n"
        )

    @staticmethod
    def _status_color(status_code: int) -> str:
        if 200 <= status_code < 300:
            return Fore.GREEN
        if 300 <= status_code < 400:
            return Fore.YELLOW
        return Fore.RED

    @staticmethod
    def _paint(text: str, color: str) -> str:
        return f"{color}{text}{Style.RESET_ALL}"


class JsonlFormatter:
    """One compact JSON object per record."""

    def __init__(self, include_res: bool = False):
        self.include_res = include_res

    def header(self) -> Optional[str]:
        return None

    def format(self, record: ResponseRecord) -> str:
        data = {
            "method": record.method,
            "url": record.url,
            "ip_address": record.remote_ip,
            "status_code": record.status_code,
            "content_length": record.content_length,
            "response_time_ms": record.response_time_ms,
        }
        if record.title is not None:
            data["title"] = record.title
        if record.raw_request is not None:
            data["raw_request"] = record.raw_request
        if self.include_res and record.body_text is not None:
            data["response_body"] = record.body_text
        return json.dumps(data, ensure_ascii=False, separators=(",", ":")) + "\n"


class CsvFormatter:
    """Fully quoted CSV rows; the header goes out once through the sink."""

    def __init__(self, include_title: bool = False):
        self.include_title = include_title

    def columns(self):
        return CSV_COLUMNS + ["title"] if self.include_title else list(CSV_COLUMNS)

    def header(self) -> Optional[str]:
        return ",".join(self.columns()) + "\n"

    def format(self, record: ResponseRecord) -> str:
        row = [
            record.method,
            record.url,
            record.remote_ip,
            record.status_code,
            record.content_length,
            format_duration(record.elapsed),
        ]
        if self.include_title:
            row.append(record.title or "")

        buffer = io.StringIO()
        csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n").writerow(row)
        return buffer.getvalue()


def build_formatter(config: OutputConfig, colored: bool = False):
    """Pick the formatter for the configured output format."""
    if config.format is OutputFormat.JSONL:
        return JsonlFormatter(include_res=config.include_res)
    if config.format is OutputFormat.CSV:
        return CsvFormatter(include_title=config.include_title)
    return PlainFormatter(template=config.strf, colored=colored, include_res=config.include_res)
