"""
HTML helpers for response bodies.
"""

import re
import logging
from typing import Optional

from bs4 import BeautifulSoup


class ContentParser:
    """Extracts page metadata from HTML response bodies."""

    def __init__(self, features: str = 'lxml'):
        self.features = features
        self.logger = logging.getLogger(__name__)
        self.whitespace_pattern = re.compile(r'\s+')

    def extract_title(self, html_content: str) -> Optional[str]:
        """
        Return the text of the first ``<title>`` element.

        Args:
            html_content: Raw response body

        Returns:
            The whitespace-normalized title, or None when the document has none
        """
        if not html_content:
            return None

        soup = BeautifulSoup(html_content, self.features)
        title_tag = soup.find('title')
        if title_tag is None:
            return None

        return self._clean_text(title_tag.get_text())

    def _clean_text(self, text: str) -> str:
        """Collapse runs of whitespace."""
        if not text:
            return ""
        return self.whitespace_pattern.sub(' ', text.strip())


_default_parser = ContentParser()


def extract_title(html_content: str) -> Optional[str]:
    """Module-level shortcut using the shared lxml-backed parser."""
    return _default_parser.extract_title(html_content)
