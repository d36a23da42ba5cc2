"""
Exception hierarchy for the stat fetcher.

Fatal errors (configuration, resolution) propagate to the CLI and end the run.
Page and write errors are caught where they happen and logged.
"""

from __future__ import annotations


class StatFetcherError(Exception):
    """Base exception for all stat fetcher errors."""


class ConfigurationError(StatFetcherError):
    """Raised when a required setting is missing or invalid."""


class ResolutionError(StatFetcherError):
    """Raised when an input URL cannot be turned into a list of projects."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class ValidationError(ResolutionError):
    """Raised when an input URL is malformed or points at a different host."""


class FetchPageError(StatFetcherError):
    """Raised when a single page (or unit) of a paginated resource fails."""

    def __init__(self, message: str, page: int | None = None, status_code: int | None = None):
        super().__init__(message)
        self.page = page
        self.status_code = status_code


class WriteError(StatFetcherError):
    """Raised when an output file cannot be written."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path
