"""Content storage used to create, find, save and delete content records."""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from src.schema.models import (
    BundleDefinition,
    ContentRecord,
    FieldDefinition,
    match_properties,
)

logger = logging.getLogger(__name__)

SAVED_NEW = 1
SAVED_UPDATED = 2


class StorageError(Exception):
    """Raised when the storage backend fails to load, save or delete."""


class ContentStorage(Protocol):
    """Storage of content records, organised by bundle."""

    def load_bundle(self, bundle_id: str) -> Optional[BundleDefinition]:
        """Return a bundle definition, None if it does not exist."""

    def field_definitions(self, bundle_id: str) -> Dict[str, FieldDefinition]:
        """Return {field name: definition} of a bundle."""

    def create(self, bundle_id: str, values: Dict[str, Any]) -> ContentRecord:
        """Build a new, unsaved record."""

    def load_by_properties(self, bundle_id: str, properties: Dict[str, Any]) -> List[ContentRecord]:
        """Return the records of a bundle matching every property."""

    def save(self, record: ContentRecord) -> int:
        """Persist a record; returns SAVED_NEW or SAVED_UPDATED."""

    def delete(self, record: ContentRecord) -> None:
        """Remove a record."""


class InMemoryContentStorage:
    """Content storage kept in process memory."""

    def __init__(self, bundles: Optional[List[BundleDefinition]] = None):
        """
        Initialize storage

        Args:
            bundles: Bundle definitions available for records
        """
        self.bundles: Dict[str, BundleDefinition] = {b.id: b for b in bundles or []}
        self.records: Dict[Any, ContentRecord] = {}
        self._next_id = 1

    def add_bundle(self, bundle: BundleDefinition) -> None:
        """Register a bundle."""
        self.bundles[bundle.id] = bundle

    def load_bundle(self, bundle_id: str) -> Optional[BundleDefinition]:
        return self.bundles.get(bundle_id)

    def field_definitions(self, bundle_id: str) -> Dict[str, FieldDefinition]:
        bundle = self.bundles.get(bundle_id)
        return dict(bundle.fields) if bundle else {}

    def create(self, bundle_id: str, values: Dict[str, Any]) -> ContentRecord:
        values = dict(values)
        title = values.pop("title", "")
        return ContentRecord(bundle=bundle_id, title=title, fields=values)

    def load(self, record_id: Any) -> Optional[ContentRecord]:
        """Return a copy of a record by id."""
        record = self.records.get(record_id)
        return record.copy() if record else None

    def load_by_properties(self, bundle_id: str, properties: Dict[str, Any]) -> List[ContentRecord]:
        return [
            record.copy()
            for record in self.records.values()
            if record.bundle == bundle_id and match_properties(record, properties)
        ]

    def save(self, record: ContentRecord) -> int:
        if record.bundle not in self.bundles:
            raise StorageError(f"Unknown bundle: {record.bundle}")

        if record.is_new():
            record.id = self._next_id
            self._next_id += 1
            status = SAVED_NEW
        else:
            status = SAVED_UPDATED

        self.records[record.id] = record.copy()
        return status

    def delete(self, record: ContentRecord) -> None:
        if record.id not in self.records:
            raise StorageError(f"Record {record.id} does not exist")
        del self.records[record.id]


class JsonContentStorage(InMemoryContentStorage):
    """Content storage persisted to a JSON file."""

    def __init__(self, path: str):
        """
        Initialize storage

        Args:
            path: JSON file with "bundles" and "records"
        """
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return

        with open(self.path, "r") as f:
            data = json.load(f)

        for bundle in data.get("bundles", []):
            self.add_bundle(BundleDefinition.from_dict(bundle))
        for record in data.get("records", []):
            record = ContentRecord.from_dict(record)
            self.records[record.id] = record
        numeric_ids = [r for r in self.records if isinstance(r, int)]
        self._next_id = max(numeric_ids, default=0) + 1

    def _dump(self) -> None:
        data = {
            "bundles": [bundle.to_dict() for bundle in self.bundles.values()],
            "records": [record.to_dict() for record in self.records.values()],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                json.dump(data, f, indent=2, default=str)
        except OSError as e:
            raise StorageError(f"Could not write {self.path}: {e}") from e

    def save(self, record: ContentRecord) -> int:
        records, next_id, record_id = dict(self.records), self._next_id, record.id
        status = super().save(record)
        try:
            self._dump()
        except StorageError:
            self.records, self._next_id, record.id = records, next_id, record_id
            raise
        return status

    def delete(self, record: ContentRecord) -> None:
        records = dict(self.records)
        super().delete(record)
        try:
            self._dump()
        except StorageError:
            self.records = records
            raise
