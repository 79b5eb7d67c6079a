"""Exceptions raised by the LinkGuard analysis pipeline."""


class LinkGuardError(Exception):
    """Base class for LinkGuard errors"""


class InvalidURLError(LinkGuardError, ValueError):
    """The input is missing or cannot be parsed as an http(s) URL"""


class BatchLimitError(LinkGuardError, ValueError):
    """A batch request is empty or exceeds the configured cap"""


class AnalysisTimeoutError(LinkGuardError):
    """The overall analysis deadline expired before a report was produced"""

    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout
        super().__init__(f"Analysis of {url} timed out after {timeout:g}s")


class ExpansionError(LinkGuardError):
    """A single expansion method could not discover a destination"""
