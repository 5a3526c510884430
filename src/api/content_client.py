"""Content API client used as content storage."""
import logging
from typing import Any, Dict, List, Optional

import requests

from config import ContentApiConfig
from src.api.storage import SAVED_NEW, SAVED_UPDATED, StorageError
from src.schema.models import BundleDefinition, ContentRecord, FieldDefinition

logger = logging.getLogger(__name__)


class HttpContentStorage:
    """Content storage backed by a remote content API."""

    def __init__(self, config: ContentApiConfig):
        """Initialize client."""
        self.config = config
        self.session = requests.Session()
        self._bundles: Dict[str, Optional[BundleDefinition]] = {}

        if config.api_key:
            self.session.headers.update({"Authorization": f"Bearer {config.api_key}"})

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}{path}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(
                method, self._url(path), timeout=self.config.timeout, **kwargs
            )
            response.raise_for_status()
            return response
        except requests.exceptions.RequestException as e:
            raise StorageError(f"{method} {path} failed: {e}") from e

    def load_bundle(self, bundle_id: str) -> Optional[BundleDefinition]:
        """Get bundle definition from API (found bundles are cached per client)."""
        if bundle_id in self._bundles:
            return self._bundles[bundle_id]

        try:
            response = self.session.get(
                self._url(f"/bundles/{bundle_id}"), timeout=self.config.timeout
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            bundle = BundleDefinition.from_dict(response.json())
        except (requests.exceptions.RequestException, ValueError, KeyError) as e:
            logger.error(f"Error fetching bundle {bundle_id}: {e}")
            return None

        self._bundles[bundle_id] = bundle
        return bundle

    def field_definitions(self, bundle_id: str) -> Dict[str, FieldDefinition]:
        """Get field definitions of a bundle."""
        bundle = self.load_bundle(bundle_id)
        return dict(bundle.fields) if bundle else {}

    def create(self, bundle_id: str, values: Dict[str, Any]) -> ContentRecord:
        """Build a new record; nothing is sent until save()."""
        values = dict(values)
        title = values.pop("title", "")
        return ContentRecord(bundle=bundle_id, title=title, fields=values)

    def load_by_properties(self, bundle_id: str, properties: Dict[str, Any]) -> List[ContentRecord]:
        """Query records of a bundle by field values."""
        response = self._request("GET", f"/content/{bundle_id}", params=properties)
        data = response.json()
        items = data.get("items", []) if isinstance(data, dict) else data
        return [ContentRecord.from_dict({"bundle": bundle_id, **item}) for item in items]

    def save(self, record: ContentRecord) -> int:
        """Create or update a record."""
        payload = {"title": record.title, "fields": record.fields}

        if record.is_new():
            response = self._request("POST", f"/content/{record.bundle}", json=payload)
            record.id = response.json().get("id")
            logger.info(f"Created {record.bundle} record {record.id}")
            return SAVED_NEW

        self._request("PATCH", f"/content/{record.bundle}/{record.id}", json=payload)
        logger.info(f"Updated {record.bundle} record {record.id}")
        return SAVED_UPDATED

    def delete(self, record: ContentRecord) -> None:
        """Delete a record."""
        self._request("DELETE", f"/content/{record.bundle}/{record.id}")
        logger.info(f"Deleted {record.bundle} record {record.id}")
