"""Abstract base class for persistence backends."""

from abc import ABC, abstractmethod
from typing import Any

from ..config import Entity

Record = dict[str, Any]


class StorageBackend(ABC):
    """Abstract base class for the store's persistence collaborator.

    A backend keeps one list of plain records per entity. It knows nothing
    about portfolios: the store converts records to and from models.
    """

    @abstractmethod
    async def load_all(self, entity: Entity) -> list[Record]:
        """Load every stored record of an entity.

        Args:
            entity: Which collection to read.

        Returns:
            The stored records, or an empty list if nothing was saved yet.

        Raises:
            PersistenceError: If the underlying storage cannot be read.
        """
        pass

    @abstractmethod
    async def save_all(self, entity: Entity, records: list[Record]) -> None:
        """Replace every stored record of an entity.

        The write is all or nothing: on failure the previous records remain.

        Raises:
            PersistenceError: If the underlying storage cannot be written.
        """
        pass

    @abstractmethod
    async def clear_all(self) -> None:
        """Remove every stored record of every entity."""
        pass
