"""
reqprobe

A concurrent HTTP probing engine: reads request lines, sends them through one
shared client and streams filtered results as plain text, JSON lines or CSV.
"""

__version__ = "0.4.0"
__description__ = "Concurrent HTTP request prober with rate limiting, retries and filters"
