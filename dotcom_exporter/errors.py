#!/usr/bin/env python3
"""
Exporter errors

Every way a scrape can fail has its own exception class so callers can tell
an unreachable upstream from a rejected request or a bad payload.
"""


class DotcomExporterError(Exception):
    """Base class for all exporter errors"""


class ConfigError(DotcomExporterError):
    """Invalid exporter configuration"""


class ScrapeError(DotcomExporterError):
    """A scrape of the upstream API failed"""


class TransportError(ScrapeError):
    """Upstream could not be reached or did not answer in time"""


class HTTPStatusError(ScrapeError):
    """Upstream answered with a non-2xx status"""

    def __init__(self, status_code: int, reason: str = ''):
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"did not receive a HTTP 200 OK, received HTTP {status_code} {reason}".rstrip())


class ParseError(ScrapeError):
    """Upstream payload is not well-formed XML"""


class EmptyResultError(ScrapeError):
    """Upstream payload is well-formed but lists no devices"""

    def __init__(self, message: str = 'no device statuses received'):
        super().__init__(message)
