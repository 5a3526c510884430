"""Models for forms, submissions and content records."""
import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# Base properties available on every submission: {name: (title, type)}
SUBMISSION_PROPERTIES = {
    "serial": ("Serial number", "integer"),
    "sid": ("Submission ID", "integer"),
    "uuid": ("UUID", "uuid"),
    "token": ("Token", "string"),
    "uri": ("Submission URI", "string"),
    "created": ("Created", "created"),
    "completed": ("Completed", "timestamp"),
    "changed": ("Changed", "changed"),
    "in_draft": ("Is draft", "boolean"),
    "current_page": ("Current wizard page", "string"),
    "remote_addr": ("Remote IP address", "string"),
    "uid": ("Submitted by", "entity_reference"),
    "langcode": ("Language", "language"),
    "webform_id": ("Webform", "entity_reference"),
    "entity_type": ("Submitted to: Entity type", "string"),
    "entity_id": ("Submitted to: Entity ID", "string"),
    "locked": ("Locked", "boolean"),
    "sticky": ("Sticky", "boolean"),
    "notes": ("Notes", "string_long"),
}


@dataclass
class FieldDefinition:
    """A field on a content bundle."""

    name: str
    type: str  # string, text, integer, email, entity_reference, datetime, link, etc
    label: str = ""
    max_length: Optional[int] = None
    settings: Dict[str, Any] = field(default_factory=dict)

    @property
    def datetime_type(self) -> str:
        """Storage granularity of a datetime field ("date" or "datetime")."""
        return self.settings.get("datetime_type", "datetime")

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "FieldDefinition":
        """Build from dictionary."""
        return cls(
            name=name,
            type=data.get("type", "string"),
            label=data.get("label", name),
            max_length=data.get("max_length"),
            settings=dict(data.get("settings") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.type,
            "label": self.label,
            "max_length": self.max_length,
            "settings": self.settings,
        }


@dataclass
class BundleDefinition:
    """A content bundle (content type) and its fields."""

    id: str
    label: str = ""
    fields: Dict[str, FieldDefinition] = field(default_factory=dict)

    def get_field(self, name: str) -> Optional[FieldDefinition]:
        """Return field by name."""
        return self.fields.get(name)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BundleDefinition":
        """Build from dictionary."""
        return cls(
            id=data["id"],
            label=data.get("label", data["id"]),
            fields={
                name: FieldDefinition.from_dict(name, definition)
                for name, definition in (data.get("fields") or {}).items()
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "label": self.label,
            "fields": {name: f.to_dict() for name, f in self.fields.items()},
        }


@dataclass
class FormElement:
    """An element of a form definition."""

    key: str
    type: str
    title: str = ""
    markup: str = ""
    parent_key: str = ""


@dataclass
class FormDefinition:
    """A form whose submissions feed content records."""

    id: str
    label: str = ""
    elements: Dict[str, FormElement] = field(default_factory=dict)
    category: str = ""
    template: bool = False

    def get_element(self, key: str) -> Optional[FormElement]:
        """Return element by key."""
        return self.elements.get(key)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormDefinition":
        """Build from dictionary."""
        elements = {}
        for key, element in (data.get("elements") or {}).items():
            elements[key] = FormElement(
                key=key,
                type=element.get("type", "textfield"),
                title=element.get("title", ""),
                markup=element.get("markup", ""),
                parent_key=element.get("parent_key", ""),
            )
        return cls(
            id=data["id"],
            label=data.get("label", data["id"]),
            elements=elements,
            category=data.get("category", ""),
            template=bool(data.get("template", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "label": self.label,
            "category": self.category,
            "template": self.template,
            "elements": {
                key: {
                    "type": e.type,
                    "title": e.title,
                    "markup": e.markup,
                    "parent_key": e.parent_key,
                }
                for key, e in self.elements.items()
            },
        }


@dataclass(frozen=True)
class Submission:
    """A form submission, consumed read-only."""

    id: Any
    form_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    properties: Dict[str, Any] = field(default_factory=dict)

    def has_data(self) -> bool:
        """Check if the submission carries any element values."""
        return bool(self.data)

    def has_property(self, name: str) -> bool:
        """Check if a base property is set."""
        if name in ("sid", "id"):
            return True
        return name in self.properties

    def get_property(self, name: str) -> Any:
        """Return a base property; references resolve to their target id."""
        if name in ("sid", "id") and name not in self.properties:
            return self.id
        value = self.properties.get(name)
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, dict) and "target_id" in value:
            return value["target_id"]
        return value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Submission":
        """Build from dictionary."""
        return cls(
            id=data.get("sid", data.get("id")),
            form_id=data.get("webform_id", data.get("form_id", "")),
            data=dict(data.get("data") or {}),
            properties=dict(data.get("properties") or {}),
        )


@dataclass
class ContentRecord:
    """A content record created or updated from a submission."""

    bundle: str
    title: str = ""
    fields: Dict[str, Any] = field(default_factory=dict)
    id: Optional[Any] = None

    def is_new(self) -> bool:
        """Check if the record was never saved."""
        return self.id is None

    def get(self, name: str) -> Any:
        """Return field value."""
        return self.fields.get(name)

    def set(self, name: str, value: Any) -> None:
        """Set field value."""
        self.fields[name] = value

    def copy(self) -> "ContentRecord":
        """Return a detached copy of the record."""
        return ContentRecord(self.bundle, self.title, copy.deepcopy(self.fields), self.id)

    def clear(self, name: str) -> None:
        """Empty a field."""
        self.fields[name] = []

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentRecord":
        """Build from dictionary."""
        return cls(
            bundle=data["bundle"],
            title=data.get("title", ""),
            fields=dict(data.get("fields") or {}),
            id=data.get("id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "bundle": self.bundle,
            "title": self.title,
            "fields": self.fields,
        }


def match_properties(record: ContentRecord, properties: Dict[str, Any]) -> bool:
    """Check if every property matches the record (values compared as strings)."""
    for name, expected in properties.items():
        actual = record.title if name == "title" else record.get(name)
        if isinstance(actual, list):
            values: List[Any] = actual
        else:
            values = [actual]
        if str(expected) not in [str(v) for v in values if v is not None]:
            return False
    return True
