"""Error taxonomy shared by the extraction, polling and store layers."""

from __future__ import annotations


class WatcherError(Exception):
    """Base class for all release-watcher errors."""


class ExtractionError(WatcherError):
    """Raised when a tracked value cannot be extracted from a response body."""


class ParseError(ExtractionError):
    """Response body is not parseable as the declared source type."""


class SelectorMissError(ExtractionError):
    """JSON path resolved to nothing, or the HTML selector matched no element."""


class AttributeMissingError(ExtractionError):
    """The selected HTML element does not carry the requested attribute."""


class RegexNoMatchError(ExtractionError):
    """The refinement regex did not match the extracted value."""


class InvalidRegexError(ExtractionError):
    """A stored refinement regex could not be compiled."""


class HeaderParseError(WatcherError):
    """Custom request-header text is malformed."""


class HttpError(WatcherError):
    """Non-2xx status, network failure or timeout while fetching a source."""


class NotFoundError(WatcherError, LookupError):
    """Unknown source identifier."""


class ValidationError(WatcherError, ValueError):
    """Source or settings input rejected by sanitization."""


class StoreLoadError(WatcherError):
    """A store loader strategy could not produce a store."""


__all__ = [
    "AttributeMissingError",
    "ExtractionError",
    "HeaderParseError",
    "HttpError",
    "InvalidRegexError",
    "NotFoundError",
    "ParseError",
    "RegexNoMatchError",
    "SelectorMissError",
    "StoreLoadError",
    "ValidationError",
    "WatcherError",
]
