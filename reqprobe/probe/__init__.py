"""
Request pipeline components.
"""

from .request_line import RequestDescriptor, parse_request_line, normalize_url_scheme
from .client import ProbeClient, ClientBuildError, parse_headers
from .executor import RequestExecutor, ResponseRecord, ExecutionOutcome, AttemptState
from .filters import ResponseFilter, should_filter_response
from .throttle import Throttle
from .scheduler import ProbeScheduler, ProbeStats

__all__ = [
    'RequestDescriptor', 'parse_request_line', 'normalize_url_scheme',
    'ProbeClient', 'ClientBuildError', 'parse_headers',
    'RequestExecutor', 'ResponseRecord', 'ExecutionOutcome', 'AttemptState',
    'ResponseFilter', 'should_filter_response',
    'Throttle',
    'ProbeScheduler', 'ProbeStats',
]
