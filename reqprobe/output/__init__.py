"""
Result rendering and the shared output sink.
"""

from .formatter import PlainFormatter, JsonlFormatter, CsvFormatter, build_formatter
from .sink import OutputSink

__all__ = ['PlainFormatter', 'JsonlFormatter', 'CsvFormatter', 'build_formatter', 'OutputSink']
