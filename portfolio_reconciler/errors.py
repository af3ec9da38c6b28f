"""Exceptions raised by the portfolio reconciler."""

from typing import Any, Optional


class PortfolioError(Exception):
    """Base class for errors raised by this package."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.details = details or {}


class ParseError(PortfolioError, ValueError):
    """A file could not be read or its format could not be recognized."""


class PersistenceError(PortfolioError):
    """The storage backend failed to load or save records."""
