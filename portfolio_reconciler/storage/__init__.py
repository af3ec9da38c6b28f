"""Persistence backends for the portfolio store."""

from .base import Record, StorageBackend
from .json_file import JsonFileBackend
from .memory import MemoryBackend

__all__ = ["Record", "StorageBackend", "JsonFileBackend", "MemoryBackend"]
