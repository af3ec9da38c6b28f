"""Parsers turning brokerage exports into canonical records."""

from .base import BaseParser
from .columns import detect_file_type, map_columns
from .csv_parser import CsvParser, parse_file

__all__ = [
    "BaseParser",
    "CsvParser",
    "parse_file",
    "detect_file_type",
    "map_columns",
]
