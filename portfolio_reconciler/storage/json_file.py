"""Backend storing each entity as a JSON file under a data directory."""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from ..config import Entity, StorageConfig
from ..errors import PersistenceError
from .base import Record, StorageBackend

logger = logging.getLogger(__name__)


class JsonFileBackend(StorageBackend):
    """One ``<entity>.json`` file per entity, replaced atomically on save."""

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        config: Optional[StorageConfig] = None,
    ) -> None:
        self.config = config or StorageConfig()
        self.data_dir = Path(data_dir) if data_dir is not None else self.config.DATA_DIR

    def path_for(self, entity: Entity) -> Path:
        return self.data_dir / f"{entity.value}{self.config.FILE_SUFFIX}"

    async def load_all(self, entity: Entity) -> list[Record]:
        return await asyncio.to_thread(self._read, entity)

    async def save_all(self, entity: Entity, records: list[Record]) -> None:
        await asyncio.to_thread(self._write, entity, records)

    async def clear_all(self) -> None:
        await asyncio.to_thread(self._remove_all)

    def _read(self, entity: Entity) -> list[Record]:
        path = self.path_for(entity)
        if not path.exists():
            return []

        try:
            with path.open(encoding=self.config.ENCODING) as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(
                f"Could not read {entity.value} from {path}",
                details={"path": str(path)},
            ) from e

        if not isinstance(records, list):
            raise PersistenceError(
                f"Expected a list of records in {path}",
                details={"path": str(path), "found": type(records).__name__},
            )
        return records

    def _write(self, entity: Entity, records: list[Record]) -> None:
        path = self.path_for(entity)
        tmp_name = None
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.data_dir, prefix=f".{entity.value}-", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding=self.config.ENCODING) as f:
                json.dump(records, f, indent=2)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(
                f"Could not write {entity.value} to {path}",
                details={"path": str(path)},
            ) from e

        logger.debug("Wrote %d %s records to %s", len(records), entity.value, path)

    def _remove_all(self) -> None:
        for entity in Entity:
            path = self.path_for(entity)
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise PersistenceError(
                    f"Could not remove {path}", details={"path": str(path)}
                ) from e
