from __future__ import annotations

import json
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

ENTITY_TYPES = (
    "KnowledgeBase",
    "FAQ",
    "FAQCategory",
    "Order",
    "AISettings",
    "LegalEntity",
    "Video",
    "VideoCategory",
)


class EntityNotFound(KeyError):
    """Raised when an entity id does not exist in its collection."""


class EntityStore:
    """JSON-file entity storage with the uniform list/filter/create/update/delete verbs."""

    def __init__(self, path: Optional[Path] = None) -> None:
        """Purpose: Initialize the store and hydrate collections from disk if available.
        Inputs/Outputs: Input is an optional JSON file path (None keeps data in memory only).
        Side Effects / State: Loads all collections into memory.
        Dependencies: Calls _load; used by the session context loader, orders, and the API.
        Failure Modes: JSON decode errors leave empty collections.
        If Removed: Knowledge items, settings, and orders have nowhere to live.
        Testing Notes: Create a record, build a second store on the same path, and read it back.
        """
        # Keep configuration and preload persisted collections if present.
        self._path = path
        self._lock = threading.Lock()
        self._data: Dict[str, List[Dict[str, Any]]] = {name: [] for name in ENTITY_TYPES}
        self._load()

    def _load(self) -> None:
        if not self._path or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return
        if not isinstance(data, dict):
            return
        for name, records in data.items():
            if isinstance(records, list):
                self._data[name] = [record for record in records if isinstance(record, dict)]

    def _persist(self) -> None:
        if not self._path:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)

    def entity(self, name: str) -> "EntityCollection":
        """Return the collection handle for an entity type."""
        if name not in self._data:
            raise ValueError(f"Unknown entity type: {name}")
        return EntityCollection(self, name)


class EntityCollection:
    """Handle exposing the entity verbs for one collection of an EntityStore."""

    def __init__(self, store: EntityStore, name: str) -> None:
        self._store = store
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def list(self, sort: Optional[str] = None) -> List[Dict[str, Any]]:
        """Purpose: Return every record of the collection, optionally sorted.
        Inputs/Outputs: Input is a sort key such as "-created_date"; output is a list of copies.
        Side Effects / State: None.
        Dependencies: Uses _sorted.
        Failure Modes: None; an empty collection returns an empty list.
        If Removed: Admin listings and settings lookups break.
        Testing Notes: Verify "-created_date" returns newest first.
        """
        # Copy records so callers cannot mutate the cache.
        with self._store._lock:
            records = [dict(record) for record in self._store._data[self._name]]
        return _sorted(records, sort)

    def filter(self, query: Dict[str, Any], sort: Optional[str] = None) -> List[Dict[str, Any]]:
        """Purpose: Return records whose fields equal every value in the query map.
        Inputs/Outputs: Inputs are a field->value map and an optional sort key; output is a list.
        Side Effects / State: None.
        Dependencies: Uses list().
        Failure Modes: Records missing a queried field never match.
        If Removed: The chat session cannot load its AI-source knowledge items.
        Testing Notes: filter({"is_ai_source": True}) should skip items flagged False.
        """
        # Equality match on each queried field.
        return [
            record
            for record in self.list(sort)
            if all(field in record and record[field] == value for field, value in query.items())
        ]

    def get(self, entity_id: str) -> Dict[str, Any]:
        with self._store._lock:
            for record in self._store._data[self._name]:
                if record.get("id") == entity_id:
                    return dict(record)
        raise EntityNotFound(f"{self._name} {entity_id} not found")

    def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Purpose: Insert a new record with generated id and timestamps.
        Inputs/Outputs: Input is a field dict; output is the stored record copy.
        Side Effects / State: Mutates the collection and persists to disk.
        Dependencies: Uses uuid and _now_iso.
        Failure Modes: IO errors on persist propagate.
        If Removed: Knowledge items and orders cannot be created.
        Testing Notes: Created record has id, created_date, updated_date.
        """
        # Stamp identity and bookkeeping fields before storing.
        now = _now_iso()
        record = dict(obj)
        record["id"] = record.get("id") or uuid.uuid4().hex
        record["created_date"] = now
        record["updated_date"] = now
        with self._store._lock:
            self._store._data[self._name].append(record)
            self._store._persist()
        return dict(record)

    def update(self, entity_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        """Merge partial fields into an existing record and persist; raises EntityNotFound."""
        with self._store._lock:
            for record in self._store._data[self._name]:
                if record.get("id") == entity_id:
                    record.update({key: value for key, value in partial.items() if key != "id"})
                    record["updated_date"] = _now_iso()
                    self._store._persist()
                    return dict(record)
        raise EntityNotFound(f"{self._name} {entity_id} not found")

    def delete(self, entity_id: str) -> None:
        with self._store._lock:
            records = self._store._data[self._name]
            remaining = [record for record in records if record.get("id") != entity_id]
            if len(remaining) == len(records):
                raise EntityNotFound(f"{self._name} {entity_id} not found")
            self._store._data[self._name] = remaining
            self._store._persist()


def _sorted(records: List[Dict[str, Any]], sort: Optional[str]) -> List[Dict[str, Any]]:
    # A leading "-" means descending; records missing the key sort last.
    if not sort:
        return records
    descending = sort.startswith("-")
    key = sort.lstrip("-")
    present = [record for record in records if record.get(key) is not None]
    missing = [record for record in records if record.get(key) is None]
    present.sort(key=lambda record: record[key], reverse=descending)
    return present + missing


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
