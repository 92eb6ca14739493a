"""
Keyed record repositories.

The canvas core never talks to storage directly. Agents, custom library
items, saved projects and execution runs are kept in repositories that are
passed in by whoever wires the application together:

- InMemoryRepository: process-local, used by tests and dry runs
- JsonFileRepository: one JSON array file per collection
"""
from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from shared.logger import get_logger

logger = get_logger("shared.repositories")

RecordT = TypeVar("RecordT", bound=BaseModel)


class RecordNotFoundError(KeyError):
    """Raised when a record id is not present in a repository."""


class Repository(Generic[RecordT]):
    """Protocol for a keyed collection of pydantic records with an ``id`` field."""

    def list(self) -> List[RecordT]:
        raise NotImplementedError

    def get(self, record_id: str) -> Optional[RecordT]:
        raise NotImplementedError

    def save(self, record: RecordT) -> RecordT:
        """Insert or replace a record by id."""
        raise NotImplementedError

    def delete(self, record_id: str) -> bool:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def require(self, record_id: str) -> RecordT:
        record = self.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record '{record_id}' not found")
        return record


class InMemoryRepository(Repository[RecordT]):
    """Stores records in an insertion-ordered dict."""

    def __init__(self, records: Optional[List[RecordT]] = None) -> None:
        self._records: Dict[str, RecordT] = {}
        for record in records or []:
            self._records[record.id] = record

    def list(self) -> List[RecordT]:
        return list(self._records.values())

    def get(self, record_id: str) -> Optional[RecordT]:
        return self._records.get(record_id)

    def save(self, record: RecordT) -> RecordT:
        self._records[record.id] = record
        return record

    def delete(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    def clear(self) -> None:
        self._records.clear()


class JsonFileRepository(Repository[RecordT]):
    """
    Writes a collection to ``<directory>/<name>.json`` as a JSON array.

    The file is rewritten on every change. Unreadable files are logged and
    treated as empty, matching how the browser storage it replaces behaved.
    """

    def __init__(self, directory: Path | str, name: str, model: Type[RecordT]) -> None:
        self.path = Path(directory) / f"{name}.json"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._adapter = TypeAdapter(List[model])
        self._lock = threading.Lock()
        self._records: Dict[str, RecordT] = {record.id: record for record in self._read()}

    def _read(self) -> List[RecordT]:
        if not self.path.exists():
            return []
        try:
            return self._adapter.validate_json(self.path.read_bytes())
        except (ValidationError, ValueError) as e:
            logger.error(f"Error reading {self.path}: {e}")
            return []

    def _write(self) -> None:
        payload = [record.model_dump(mode="json", by_alias=True) for record in self._records.values()]
        tmp_path = self.path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    def list(self) -> List[RecordT]:
        return list(self._records.values())

    def get(self, record_id: str) -> Optional[RecordT]:
        return self._records.get(record_id)

    def save(self, record: RecordT) -> RecordT:
        with self._lock:
            self._records[record.id] = record
            self._write()
        return record

    def delete(self, record_id: str) -> bool:
        with self._lock:
            removed = self._records.pop(record_id, None) is not None
            if removed:
                self._write()
        return removed

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._write()
