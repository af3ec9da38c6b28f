"""In-memory backend, used by tests and throwaway sessions."""

import copy

from ..config import Entity
from .base import Record, StorageBackend


class MemoryBackend(StorageBackend):
    """Keeps records in a dict. Nothing survives the process."""

    def __init__(self) -> None:
        self.records: dict[Entity, list[Record]] = {}
        self.saves = 0

    async def load_all(self, entity: Entity) -> list[Record]:
        return copy.deepcopy(self.records.get(entity, []))

    async def save_all(self, entity: Entity, records: list[Record]) -> None:
        self.records[entity] = copy.deepcopy(records)
        self.saves += 1

    async def clear_all(self) -> None:
        self.records.clear()
