"""
Logging utilities for the probing engine.

All diagnostics go to stderr (and optionally a rotating file); stdout is
reserved for results and, in MCP mode, for the protocol stream.
"""

import logging
import logging.handlers
import json
import sys
from pathlib import Path
from datetime import datetime, timezone

from .config import LoggingConfig


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        for key in ('url', 'attempt'):
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, ensure_ascii=False)


class NoiseFilter(logging.Filter):
    """Filter to suppress chatty third-party logs."""

    def __init__(self, suppress_modules=None):
        super().__init__()
        self.suppress_modules = suppress_modules or [
            'aiohttp.access',
            'aiohttp.client',
            'mcp.server.lowlevel',
        ]

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.WARNING:
            return True
        return not any(record.name.startswith(module) for module in self.suppress_modules)


def setup_logging(config: LoggingConfig) -> logging.Logger:
    """
    Setup logging for the probe.

    Args:
        config: Logging configuration section

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.WARNING))
    root_logger.handlers.clear()

    if config.json:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(config.format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(NoiseFilter())
    root_logger.addHandler(console_handler)

    if config.file:
        log_file = Path(config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=3,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            JSONFormatter() if config.json
            else logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
        root_logger.addHandler(file_handler)

    for logger_name in ('aiohttp', 'asyncio', 'mcp'):
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    root_logger.debug("Logging system initialized (level=%s, file=%s, json=%s)",
                      config.level, config.file, config.json)
    return root_logger
