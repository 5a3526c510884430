"""Helpers listing the fields and form values a mapping can use."""
import html
from typing import Any, Dict, Iterable, List, Optional, Tuple

from src.schema.models import (
    SUBMISSION_PROPERTIES,
    BundleDefinition,
    FieldDefinition,
    FormDefinition,
)

ALLOWED_TYPES = (
    "boolean",
    "email",
    "decimal",
    "float",
    "integer",
    "text",
    "text_long",
    "text_with_summary",
    "string",
    "string_long",
    "entity_reference",
    "datetime",
    "link",
)

ELEMENTS_GROUP = "Webform elements"
PROPERTIES_GROUP = "Webform properties"

# Human labels of the element types most forms use
ELEMENT_TYPE_LABELS = {
    "textfield": "Text field",
    "textarea": "Textarea",
    "email": "Email",
    "number": "Number",
    "checkbox": "Checkbox",
    "checkboxes": "Checkboxes",
    "radios": "Radios",
    "select": "Select",
    "date": "Date",
    "datetime": "Date/time",
    "url": "URL",
    "tel": "Telephone",
    "hidden": "Hidden",
    "processed_text": "Advanced HTML/Text",
    "entity_autocomplete": "Entity autocomplete",
    "webform_section": "Section",
    "webform_wizard_page": "Wizard page",
}


def element_type_label(element_type: str) -> str:
    """Return the human label of an element type."""
    return ELEMENT_TYPE_LABELS.get(element_type, element_type.replace("_", " ").capitalize())


def filter_bundle_fields(fields: Dict[str, FieldDefinition]) -> Dict[str, FieldDefinition]:
    """Keep only the fields whose type can be mapped."""
    return {name: f for name, f in fields.items() if f.type in ALLOWED_TYPES}


def bundle_fields(bundle: Optional[BundleDefinition]) -> Dict[str, FieldDefinition]:
    """Return the mappable fields of a bundle."""
    if bundle is None:
        return {}
    return filter_bundle_fields(bundle.fields)


def content_field_ids(bundle: Optional[BundleDefinition]) -> List[str]:
    """Return mappable field ids, leaving out the bundle's base fields."""
    return [name for name in bundle_fields(bundle) if name.startswith("field_")]


def _option_label(form: FormDefinition, key: str) -> str:
    element = form.elements[key]
    title = element.title or element.markup
    return f"{html.unescape(title)} ({key}) - {element_type_label(element.type)}"


def build_source_options(form: FormDefinition) -> Dict[str, Any]:
    """
    Build the option tree of a form's elements and submission properties.

    Top level elements become "0,<key>" options. Nested elements are grouped
    under the title of the wizard page that precedes them, sections are left
    out. Submission properties go under a separate group as "1,<name>".

    Returns:
        {option_key: label} and {group: {option_key: label}} entries
    """
    result: Dict[str, Any] = {}
    page = ELEMENTS_GROUP
    pending: Dict[str, str] = {}

    for key, element in form.elements.items():
        if element.type == "webform_wizard_page":
            if pending:
                result.setdefault(page, {}).update(pending)
            page = html.unescape(element.title)
            pending = {}
        elif element.parent_key == "":
            result[f"0,{key}"] = _option_label(form, key)
        elif element.type == "webform_section":
            continue
        else:
            pending[f"0,{key}"] = _option_label(form, key)

    if pending:
        result.setdefault(page, {}).update(pending)

    result[PROPERTIES_GROUP] = {
        f"1,{name}": f"{title} ({name}) - {type_}"
        for name, (title, type_) in SUBMISSION_PROPERTIES.items()
    }
    return result


def parse_source_option(option: str) -> Tuple[bool, str]:
    """
    Split an option key into (is_property, source id).

    Example:
        "1,sid" -> (True, "sid"), "0,name" -> (False, "name")
    """
    kind, sep, source_id = (option or "").partition(",")
    if not sep or kind not in ("0", "1") or not source_id:
        raise ValueError(f"Invalid source option: {option!r}")
    return kind == "1", source_id


def form_element_types(form: Optional[FormDefinition]) -> Optional[Dict[str, str]]:
    """Return {source id: type} for submission properties and form elements."""
    if form is None:
        return None
    types = {name: type_ for name, (_, type_) in SUBMISSION_PROPERTIES.items()}
    for key, element in form.elements.items():
        if element.type:
            types[key] = element.type
    return types


def formatted_forms(forms: Iterable[FormDefinition]) -> Dict[str, Any]:
    """Return {id: label}, grouped as {category: {id: label}} when a form has a category."""
    result: Dict[str, Any] = {}
    for form in forms:
        if form.template:
            continue
        if form.category:
            result.setdefault(form.category, {})[form.id] = form.label
        else:
            result[form.id] = form.label
    return result


def formatted_bundles(bundles: Iterable[BundleDefinition]) -> Dict[str, str]:
    """Return {bundle id: label}."""
    return {bundle.id: bundle.label for bundle in bundles}


def formatted_encryption_profiles(encryption) -> Dict[str, str]:
    """Return {profile id: label} from an encryption service."""
    if encryption is None:
        return {}
    return dict(encryption.profiles())
