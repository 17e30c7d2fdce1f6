"""
Response filtering by status code and body content.
"""

import logging
import re
from dataclasses import dataclass
from typing import Collection, FrozenSet, Optional, Pattern

from ..utils.config import FilterConfig

logger = logging.getLogger(__name__)


def should_filter_response(status: int, body: Optional[str],
                           filter_status: Collection[int],
                           filter_string: Optional[str],
                           filter_regex: Optional[Pattern]) -> bool:
    """
    Return True when the response must be suppressed.

    A body filter with no body to inspect always rejects.
    """
    if filter_status and status not in filter_status:
        return True

    if filter_string is not None:
        if body is None or filter_string not in body:
            return True

    if filter_regex is not None:
        if body is None or not filter_regex.search(body):
            return True

    return False


@dataclass(frozen=True)
class ResponseFilter:
    """Compiled filter settings."""
    filter_status: FrozenSet[int] = frozenset()
    filter_string: Optional[str] = None
    filter_regex: Optional[Pattern] = None

    @classmethod
    def from_config(cls, config: FilterConfig) -> 'ResponseFilter':
        """Build from configuration; an invalid regex disables regex filtering."""
        compiled = None
        if config.filter_regex is not None:
            try:
                compiled = re.compile(config.filter_regex)
            except re.error as e:
                logger.warning(
                    f"Invalid regex provided for --filter-regex: {e}. Disabling regex filtering."
                )
        return cls(config.filter_status, config.filter_string, compiled)

    @property
    def needs_body(self) -> bool:
        return self.filter_string is not None or self.filter_regex is not None

    def rejects(self, status: int, body: Optional[str]) -> bool:
        return should_filter_response(
            status, body, self.filter_status, self.filter_string, self.filter_regex
        )
