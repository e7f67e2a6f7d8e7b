"""
Fetch failure taxonomy.

Every failure the Kraken client can report derives from FetchError, so the
aggregation layer can recover all of them with a single except clause while
letting genuine bugs propagate.
"""

from __future__ import annotations


class FetchError(Exception):
    """Base class for a failed market data fetch."""


class TransportError(FetchError):
    """Connection failure, timeout or non-success HTTP status."""

    def __init__(self, detail: object) -> None:
        super().__init__(f"HTTP request failed: {detail}")


class DecodeError(FetchError):
    """Response body is not valid JSON."""

    def __init__(self, detail: object) -> None:
        super().__init__(f"Failed to parse JSON: {detail}")


class MissingFieldError(FetchError):
    """Expected key absent from an otherwise valid response."""

    def __init__(self, field: str = "Price", detail: str | None = None) -> None:
        self.field = field
        message = f"{field} field missing in response"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class NumericParseError(FetchError):
    """Field present but not a finite number."""

    def __init__(self, literal: object) -> None:
        self.literal = literal
        super().__init__(f"Failed to parse price string: invalid float literal {literal!r}")
