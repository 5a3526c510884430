"""Mapping configuration model."""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional


DEFAULT_MAPPING_PLUGIN = "default_mapping"


@dataclass(frozen=True)
class MappingRule:
    """Binds one target field (or sub-component) to a submission value or a template."""

    mapping_plugin: str = ""  # Empty selects the strategy by target field type
    is_property: bool = False
    source_field_or_property_id: str = ""
    is_custom: bool = False
    custom_template: str = ""
    components: Dict[str, "MappingRule"] = field(default_factory=dict)

    @property
    def is_composite(self) -> bool:
        """Check if the rule maps sub-components separately."""
        return bool(self.components)

    def active_source(self) -> Optional[str]:
        """Return "custom", "source" or None when the rule is inconsistent."""
        has_template = bool(self.custom_template)
        has_source = bool(self.source_field_or_property_id)
        if self.is_custom and not has_source:
            return "custom"
        if not self.is_custom and has_source and not has_template:
            return "source"
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = {
            "mapping_plugin": self.mapping_plugin,
            "is_property": self.is_property,
            "source_field_or_property_id": self.source_field_or_property_id,
            "is_custom": self.is_custom,
            "custom_template": self.custom_template,
        }
        if self.components:
            data["components"] = {
                name: component.to_dict() for name, component in self.components.items()
            }
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MappingRule":
        """Build from dictionary."""
        is_custom = bool(data.get("is_custom", False))
        return cls(
            mapping_plugin=data.get("mapping_plugin") or "",
            is_property=bool(data.get("is_property", False)),
            source_field_or_property_id="" if is_custom else data.get("source_field_or_property_id", ""),
            is_custom=is_custom,
            custom_template=data.get("custom_template", "") if is_custom else "",
            components={
                name: cls.from_dict(component)
                for name, component in (data.get("components") or {}).items()
            },
        )

    @classmethod
    def source(cls, source_id: str, is_property: bool = False, **kwargs) -> "MappingRule":
        """Rule reading a submission element or property."""
        return cls(source_field_or_property_id=source_id, is_property=is_property, **kwargs)

    @classmethod
    def custom(cls, template: str, **kwargs) -> "MappingRule":
        """Rule evaluating a token template."""
        return cls(is_custom=True, custom_template=template, **kwargs)


@dataclass(frozen=True)
class MappingConfiguration:
    """Snapshot of a submission-to-content mapping.

    Instances are never mutated; the ``with_*`` helpers return a new snapshot
    which is persisted explicitly through the repository.
    """

    id: str
    title: str
    source_form_id: str
    target_bundle: str
    target_title_template: str = ""
    use_encryption: bool = False
    encryption_profile: str = ""
    sync_on_edit: bool = False
    sync_on_delete: bool = False
    sync_id_field: str = ""
    field_mappings: Dict[str, MappingRule] = field(default_factory=dict)

    def equals_form(self, form_id: str) -> bool:
        """Check if the configuration reads from the given form."""
        return form_id == self.source_form_id

    def equals_bundle(self, bundle: str) -> bool:
        """Check if the configuration writes to the given bundle."""
        return bundle == self.target_bundle

    def with_target(self, source_form_id: str, target_bundle: str) -> "MappingConfiguration":
        """Point at another form/bundle; mappings are reset when either changes."""
        if self.equals_form(source_form_id) and self.equals_bundle(target_bundle):
            return self
        return replace(
            self,
            source_form_id=source_form_id,
            target_bundle=target_bundle,
            field_mappings={},
        )

    def with_mapping(self, field_id: str, rule: MappingRule) -> "MappingConfiguration":
        """Return a copy with one field mapping added or replaced."""
        mappings = dict(self.field_mappings)
        mappings[field_id] = rule
        return replace(self, field_mappings=mappings)

    def without_mapping(self, field_id: str) -> "MappingConfiguration":
        """Return a copy without the given field mapping."""
        mappings = {k: v for k, v in self.field_mappings.items() if k != field_id}
        return replace(self, field_mappings=mappings)

    def with_settings(self, **changes) -> "MappingConfiguration":
        """Return a copy with scalar settings changed."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "source_form_id": self.source_form_id,
            "target_bundle": self.target_bundle,
            "target_title_template": self.target_title_template,
            "use_encryption": self.use_encryption,
            "encryption_profile": self.encryption_profile,
            "sync_on_edit": self.sync_on_edit,
            "sync_on_delete": self.sync_on_delete,
            "sync_id_field": self.sync_id_field,
            "field_mappings": {
                field_id: rule.to_dict() for field_id, rule in self.field_mappings.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MappingConfiguration":
        """Build from dictionary."""
        return cls(
            id=data["id"],
            title=data.get("title", data["id"]),
            source_form_id=data.get("source_form_id", ""),
            target_bundle=data.get("target_bundle", ""),
            target_title_template=data.get("target_title_template") or "",
            use_encryption=bool(data.get("use_encryption", False)),
            encryption_profile=data.get("encryption_profile") or "",
            sync_on_edit=bool(data.get("sync_on_edit", False)),
            sync_on_delete=bool(data.get("sync_on_delete", False)),
            sync_id_field=data.get("sync_id_field") or "",
            field_mappings={
                field_id: MappingRule.from_dict(rule)
                for field_id, rule in (data.get("field_mappings") or {}).items()
            },
        )
