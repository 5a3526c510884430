"""Form definitions registry."""
import json
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from src.schema.models import FormDefinition


class FormRegistry(Protocol):
    """Lookup of form definitions."""

    def load(self, form_id: str) -> Optional[FormDefinition]:
        """Return a form, None if it does not exist."""

    def all(self) -> List[FormDefinition]:
        """Return every form."""


class InMemoryFormRegistry:
    """Form definitions held in memory."""

    def __init__(self, forms: Optional[List[FormDefinition]] = None):
        self.forms: Dict[str, FormDefinition] = {f.id: f for f in forms or []}

    def add(self, form: FormDefinition) -> None:
        """Register a form."""
        self.forms[form.id] = form

    def load(self, form_id: str) -> Optional[FormDefinition]:
        return self.forms.get(form_id)

    def all(self) -> List[FormDefinition]:
        return list(self.forms.values())


class JsonFormRegistry(InMemoryFormRegistry):
    """Form definitions read from a JSON file ({"forms": [...]})."""

    def __init__(self, path: str):
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            with open(self.path, "r") as f:
                data = json.load(f)
            for form in data.get("forms", []):
                self.add(FormDefinition.from_dict(form))
