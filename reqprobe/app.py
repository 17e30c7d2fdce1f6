"""
Command-line entry point for the HTTP probing engine.
"""

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, Optional

from colorama import just_fix_windows_console

from . import __version__
from .output.sink import OutputSink
from .probe.client import ClientBuildError, ProbeClient
from .probe.scheduler import ProbeScheduler
from .utils.config import Config, load_config
from .utils.logger import setup_logging
from .utils.monitoring import ProbeMetrics


class ProbeApp:
    """Main application class for the prober."""

    def __init__(self, config: Config):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.metrics = ProbeMetrics()

    def start_monitoring(self):
        if self.config.monitoring.metrics_enabled:
            try:
                self.metrics.start_server(self.config.monitoring.prometheus_port)
            except OSError as e:
                self.logger.warning(f"Failed to start Prometheus server: {e}")

    async def run(self, stream) -> int:
        """Probe every request line read from ``stream``."""
        try:
            client = ProbeClient.from_config(self.config)
            sink = OutputSink(self.config.output.output)
        except (ClientBuildError, OSError) as e:
            self.logger.error(f"Fatal error: {e}")
            return 1

        self.start_monitoring()
        try:
            async with client:
                scheduler = ProbeScheduler(self.config, client, sink, metrics=self.metrics)
                await scheduler.run(stream)
        finally:
            await sink.close()
        return 0

    async def serve(self) -> int:
        """Run as an MCP server on stdio."""
        from .server.mcp_server import run_mcp_server

        # Fail before serving if the CLI-level client settings are unusable.
        try:
            ProbeClient.from_config(self.config)
        except ClientBuildError as e:
            self.logger.error(f"Fatal error: {e}")
            return 1

        self.start_monitoring()
        await run_mcp_server(self.config)
        return 0


def _status_codes(value: str):
    try:
        return [int(code) for code in value.split(',') if code.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid status code list: {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reqprobe",
        description="Send HTTP requests read from stdin, one per line.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cat urls.txt | reqprobe                              # GET every URL
  echo "POST https://example.com a=1" | reqprobe       # METHOD URL BODY
  cat urls.txt | reqprobe --concurrency 20 --rate-limit 50 -f jsonl
  cat urls.txt | reqprobe -S "%method %url -> %code" --filter-status 200,302
  reqprobe --mcp                                       # serve the send_requests tool
        """
    )

    network = parser.add_argument_group("NETWORK")
    network.add_argument('--timeout', type=int, help='Timeout for each request in seconds (default: 10)')
    network.add_argument('--retry', type=int, help='Number of retries for failed requests (default: 0)')
    network.add_argument('--delay', type=int, help='Delay between retries in milliseconds (default: 0)')
    network.add_argument('--concurrency', type=int,
                         help='Maximum number of concurrent requests, 0 for unlimited (default: 0)')
    network.add_argument('--proxy', help='Proxy for all requests, e.g. http://127.0.0.1:8080')
    network.add_argument('--verify-ssl', action='store_true', default=None,
                         help='Verify TLS certificates (default: off)')
    network.add_argument('--rate-limit', type=int, help='Maximum requests per second')
    network.add_argument('--random-delay', help='Random delay before each request, MIN:MAX milliseconds')

    http = parser.add_argument_group("HTTP")
    http.add_argument('--follow-redirect', action=argparse.BooleanOptionalAction, default=None,
                      help='Follow HTTP redirects (default: on)')
    http.add_argument('--http2', action='store_true', default=None,
                      help='Ask for HTTP/2. Requests are still sent as HTTP/1.1; '
                           'only the --include-req preview shows HTTP/2.0')
    http.add_argument('-H', '--headers', action='append', metavar='"Key: Value"',
                      help='Custom header, may be repeated')

    output = parser.add_argument_group("OUTPUT")
    output.add_argument('-o', '--output', help='Write results to this file instead of stdout')
    output.add_argument('-f', '--format', choices=['plain', 'jsonl', 'csv'], help='Output format (default: plain)')
    output.add_argument('-S', '--strf',
                        help='Template for plain output, e.g. "%%method %%url -> %%code". '
                             'Placeholders: %%method %%url %%status %%code %%size %%time %%ip %%title')
    output.add_argument('--include-req', action='store_true', default=None, help='Include the raw request')
    output.add_argument('--include-res', action='store_true', default=None, help='Include the response body')
    output.add_argument('--include-title', action='store_true', default=None, help='Include the HTML title')
    output.add_argument('--no-color', action='store_true', default=None, help='Disable colored output')

    filters = parser.add_argument_group("FILTER")
    filters.add_argument('--filter-status', type=_status_codes, help='Only show these status codes, e.g. 200,404')
    filters.add_argument('--filter-string', help='Only show responses whose body contains this string')
    filters.add_argument('--filter-regex', help='Only show responses whose body matches this regex')

    general = parser.add_argument_group("GENERAL")
    general.add_argument('--mcp', action='store_true', help='Run as an MCP server on stdio')
    general.add_argument('--config', help='YAML configuration file; command-line values take precedence')
    general.add_argument('--log-level', help='Diagnostic log level (default: WARNING)')
    general.add_argument('--log-file', help='Also write diagnostics to this rotating log file')
    general.add_argument('--metrics-port', type=int, help='Expose Prometheus metrics on this port')
    general.add_argument('--version', action='version', version=f'reqprobe {__version__}')

    return parser


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Dict[str, Any]]:
    """Map parsed arguments onto config sections, keeping only values that were given."""
    sections = {
        'network': {
            'timeout': args.timeout,
            'retry': args.retry,
            'delay': args.delay,
            'concurrency': args.concurrency,
            'proxy': args.proxy,
            'verify_ssl': args.verify_ssl,
            'rate_limit': args.rate_limit,
            'random_delay': args.random_delay,
        },
        'http': {
            'follow_redirect': args.follow_redirect,
            'http2': args.http2,
            'headers': args.headers,
        },
        'output': {
            'output': args.output,
            'format': args.format,
            'strf': args.strf,
            'include_req': args.include_req,
            'include_res': args.include_res,
            'include_title': args.include_title,
            'no_color': args.no_color,
        },
        'filter': {
            'filter_status': args.filter_status,
            'filter_string': args.filter_string,
            'filter_regex': args.filter_regex,
        },
        'logging': {
            'level': args.log_level,
            'file': args.log_file,
        },
        'monitoring': {
            'metrics_enabled': True if args.metrics_port is not None else None,
            'prometheus_port': args.metrics_port,
        },
    }
    return {
        name: {key: value for key, value in values.items() if value is not None}
        for name, values in sections.items()
    }


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config, overrides_from_args(args))
    except (OSError, ValueError, TypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging)
    just_fix_windows_console()
    app = ProbeApp(config)

    try:
        if args.mcp:
            return asyncio.run(app.serve())
        return asyncio.run(app.run(sys.stdin.buffer))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130


if __name__ == '__main__':
    sys.exit(main())
