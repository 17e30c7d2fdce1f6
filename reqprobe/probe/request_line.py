"""
Request-line parsing and URL scheme inference.
"""

from dataclasses import dataclass
from typing import Optional

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "HEAD", "PATCH", "OPTIONS")


@dataclass(frozen=True)
class RequestDescriptor:
    """One request to issue, as read from a single input line."""
    method: str
    url: str
    body: Optional[str] = None


def parse_request_line(line: str) -> RequestDescriptor:
    """
    Parse ``[METHOD] URL [BODY...]``.

    A line whose first token is not a known verb, or which has a single
    token, is taken whole as a GET URL. An empty line yields an empty URL,
    which callers skip.
    """
    parts = line.split()

    if not parts:
        return RequestDescriptor("GET", "")

    if len(parts) > 1 and parts[0].upper() in HTTP_METHODS:
        body = " ".join(parts[2:]) if len(parts) > 2 else None
        return RequestDescriptor(parts[0].upper(), parts[1], body)

    return RequestDescriptor("GET", line)


def normalize_url_scheme(url: str) -> str:
    """Prefix a scheme when missing: http for port 80, https otherwise."""
    url = url.strip()
    if url.startswith("http://") or url.startswith("https://"):
        return url

    _, colon, port = url.rpartition(":")
    # Digits after the last colon are read as a port, even inside a path.
    if colon and port.isdigit():
        if port == "80":
            return f"http://{url}"
        return f"https://{url}"

    return f"https://{url}"
