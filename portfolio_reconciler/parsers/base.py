"""Abstract base class for brokerage export parsers."""

from abc import ABC, abstractmethod

from ..models import ParseResult


class BaseParser(ABC):
    """Abstract base class for brokerage export parsers.

    The deterministic CSV parser and any model-assisted parser share this
    contract, so callers can swap one for the other.
    """

    @abstractmethod
    def parse(self, data: bytes, filename: str = "") -> ParseResult:
        """Turn an exported file into canonical records.

        Args:
            data: Raw file contents.
            filename: Original file name, used as a secondary format hint.

        Returns:
            ParseResult with the detected file type and the parsed records.

        Raises:
            ParseError: If the file cannot be read or its format is not recognized.
        """
        pass
