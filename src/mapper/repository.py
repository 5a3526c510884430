"""JSON persistence for mapping configurations."""
import json
import logging
import re
from pathlib import Path
from typing import List

from src.api.storage import SAVED_NEW, SAVED_UPDATED
from src.mapper.mapping import MappingConfiguration

logger = logging.getLogger(__name__)

MACHINE_NAME_PATTERN = re.compile(r"^[a-z0-9_]+$")


class ConfigRepository:
    """Stores one JSON file per mapping configuration."""

    def __init__(self, config_dir: str):
        """
        Initialize repository.

        Args:
            config_dir: Directory holding <id>.json files
        """
        self.config_dir = Path(config_dir)

    def _path(self, config_id: str) -> Path:
        if not MACHINE_NAME_PATTERN.match(config_id or ""):
            raise ValueError(
                f"Invalid machine name '{config_id}': use lowercase letters, numbers and underscores"
            )
        return self.config_dir / f"{config_id}.json"

    def exists(self, config_id: str) -> bool:
        """Check whether a configuration exists."""
        return self._path(config_id).exists()

    def load(self, config_id: str) -> MappingConfiguration:
        """Load a configuration by id."""
        path = self._path(config_id)
        if not path.exists():
            raise KeyError(f"Unknown configuration: {config_id}")

        with open(path, "r") as f:
            return MappingConfiguration.from_dict(json.load(f))

    def list(self) -> List[MappingConfiguration]:
        """Load all configurations, sorted by id."""
        if not self.config_dir.exists():
            return []

        configs = []
        for path in sorted(self.config_dir.glob("*.json")):
            try:
                with open(path, "r") as f:
                    configs.append(MappingConfiguration.from_dict(json.load(f)))
            except (json.JSONDecodeError, KeyError) as e:
                logger.warning(f"Skipping unreadable configuration {path.name}: {e}")
        return configs

    def for_form(self, form_id: str) -> List[MappingConfiguration]:
        """Return configurations reading from the given form."""
        return [config for config in self.list() if config.equals_form(form_id)]

    def save(self, config: MappingConfiguration) -> int:
        """
        Persist a configuration.

        Returns:
            SAVED_NEW or SAVED_UPDATED, 0 if the file could not be written
        """
        path = self._path(config.id)
        status = SAVED_UPDATED if path.exists() else SAVED_NEW

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                json.dump(config.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"The {config.title} entity was not saved: {e}")
            return 0

        logger.info(f"Saved the {config.title} entity.")
        return status

    def delete(self, config_id: str) -> None:
        """Remove a configuration."""
        path = self._path(config_id)
        if not path.exists():
            raise KeyError(f"Unknown configuration: {config_id}")
        path.unlink()
        logger.info(f"Deleted configuration {config_id}")
