"""
Unit tests for the Builder Module

Tests:
- TokenTemplateEngine: token scanning and replacement
- Field mappings: default/link strategies and registry lookup
- MappingEngine: rule resolution, reference clearing, dates, truncation, decryption
"""

import pytest
from cryptography.fernet import Fernet

from src.api.forms import InMemoryFormRegistry
from src.api.storage import InMemoryContentStorage
from src.builder.field_builder import (
    DefaultFieldMapping,
    FieldMappingRegistry,
    LinkFieldMapping,
)
from src.builder.payload_builder import CLEAR, SET, SKIP, MappingEngine
from src.builder.template_engine import TokenTemplateEngine
from src.mapper.mapping import MappingConfiguration, MappingRule
from src.schema.models import (
    BundleDefinition,
    ContentRecord,
    FieldDefinition,
    FormDefinition,
    FormElement,
    Submission,
)
from src.security.encryption import FernetEncryptionService, decrypt_value
from src.sync.context import SyncContext


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def form():
    """Contact form definition"""
    return FormDefinition(
        id="contact",
        label="Contact &amp; Profile",
        elements={
            "name": FormElement("name", "textfield", "Name"),
            "age": FormElement("age", "number", "Age"),
            "email": FormElement("email", "email", "Email"),
            "company": FormElement("company", "entity_autocomplete", "Company"),
            "birth": FormElement("birth", "date", "Birth date"),
            "website": FormElement("website", "url", "Website"),
            "website_title": FormElement("website_title", "textfield", "Website title"),
        },
    )


@pytest.fixture
def fields():
    """Mappable fields of the profile bundle"""
    return {
        "field_name": FieldDefinition("field_name", "string", "Name", max_length=255),
        "field_age": FieldDefinition("field_age", "string", "Age", max_length=1),
        "field_email": FieldDefinition("field_email", "email", "Email"),
        "field_company": FieldDefinition("field_company", "entity_reference", "Company"),
        "field_birth": FieldDefinition(
            "field_birth", "datetime", "Birth", settings={"datetime_type": "date"}
        ),
        "field_created": FieldDefinition(
            "field_created", "datetime", "Created", settings={"datetime_type": "datetime"}
        ),
        "field_website": FieldDefinition("field_website", "link", "Website"),
        "field_notes": FieldDefinition("field_notes", "text_long", "Notes"),
    }


@pytest.fixture
def submission():
    """Sample submission"""
    return Submission(
        id=7,
        form_id="contact",
        data={
            "name": "Ann",
            "age": "17",
            "email": "ann@example.com",
            "company": "12",
            "birth": "2020-01-31",
            "website": "https://example.com",
            "website_title": "Example",
            "tags": ["a", "b"],
            "address": {"city": "Lisbon"},
        },
        properties={"uid": [{"target_id": 3}], "created": 1577836800},
    )


@pytest.fixture
def context(form, fields):
    """Services with in-memory storage and forms"""
    storage = InMemoryContentStorage([BundleDefinition("profile", "Profile", fields)])
    return SyncContext(storage=storage, forms=InMemoryFormRegistry([form]))


@pytest.fixture
def engine(context):
    return MappingEngine(context)


def make_config(**kwargs):
    values = {
        "id": "profiles",
        "title": "Profiles",
        "source_form_id": "contact",
        "target_bundle": "profile",
    }
    values.update(kwargs)
    return MappingConfiguration(**values)


# ============================================================================
# TEST: TokenTemplateEngine
# ============================================================================


class TestTokenTemplateEngine:
    """Tests for TokenTemplateEngine class"""

    def test_scan_groups_tokens_by_type(self):
        """Test scanning tokens out of a text"""
        engine = TokenTemplateEngine()
        tokens = engine.scan("[webform_submission:values:name] on [webform:title]")

        assert tokens == {
            "webform_submission": {"values:name": "[webform_submission:values:name]"},
            "webform": {"title": "[webform:title]"},
        }

    def test_value_substitution(self, submission, form):
        """Test replacing submission values"""
        engine = TokenTemplateEngine()
        result = engine.evaluate("Profile for [webform_submission:values:name]", submission, form)

        assert result == "Profile for Ann"

    def test_nested_and_list_values(self, submission):
        """Test nested keys and multiple values"""
        engine = TokenTemplateEngine()

        assert engine.evaluate("[webform_submission:values:address:city]", submission) == "Lisbon"
        assert engine.evaluate("[webform_submission:values:tags]", submission) == "a, b"

    def test_properties_and_form_tokens(self, submission, form):
        """Test submission properties and form label"""
        engine = TokenTemplateEngine()
        result = engine.evaluate("#[webform_submission:sid] of [webform:title]", submission, form)

        assert result == "#7 of Contact &amp; Profile"

    def test_missing_value_is_empty(self, submission):
        """Test a value the submission does not have"""
        engine = TokenTemplateEngine()

        assert engine.evaluate("x[webform_submission:values:missing]x", submission) == "xx"

    def test_unknown_tokens_are_kept(self, submission):
        """Test tokens of other types stay as they are"""
        engine = TokenTemplateEngine()

        assert engine.evaluate("[site:name] [node:title]", submission) == "[site:name] [node:title]"

    def test_text_without_tokens(self, submission):
        """Test plain text is returned unchanged"""
        assert TokenTemplateEngine().evaluate("Plain", submission) == "Plain"

    def test_empty_template(self, submission):
        """Test empty template and missing submission"""
        engine = TokenTemplateEngine()

        assert engine.evaluate("", submission) == ""
        assert engine.evaluate("[webform_submission:sid]", None) == ""

    def test_decrypt_applies_to_each_submission_token(self, submission, form):
        """Test decrypt callback sees every submission token value"""
        engine = TokenTemplateEngine()
        result = engine.evaluate(
            "[webform_submission:values:name] / [webform:id]",
            submission,
            form,
            decrypt=lambda value: value.upper(),
        )

        assert result == "ANN / contact"

    def test_substituted_values_are_not_expanded(self, form):
        """Test token text inside a submitted value stays literal"""
        submission = Submission(
            id=1,
            form_id="contact",
            data={"name": "[webform_submission:values:secret]", "secret": "s3cr3t"},
        )
        result = TokenTemplateEngine().evaluate(
            "Hi [webform_submission:values:name]", submission, form
        )

        assert result == "Hi [webform_submission:values:secret]"


# ============================================================================
# TEST: Field mappings
# ============================================================================


class TestFieldMappings:
    """Tests for field mapping strategies"""

    def test_default_sets_value(self, fields):
        """Test default strategy returns the field value"""
        mapping = DefaultFieldMapping()

        assert mapping.resolve(fields["field_name"], {"field_name": "Ann"}) == "Ann"
        assert mapping.component_fields(fields["field_name"]) == []

    def test_link_raw_value(self, fields):
        """Test link strategy sets raw data directly"""
        mapping = LinkFieldMapping()
        value = mapping.resolve(fields["field_website"], {"field_website": "https://example.com"})

        assert value == "https://example.com"

    def test_link_components_merge(self, fields):
        """Test link components merge into one value"""
        mapping = LinkFieldMapping()
        value = mapping.resolve(
            fields["field_website"], {"uri": "https://example.com", "title": "Example"}
        )

        assert value == {"uri": "https://example.com", "title": "Example"}

    def test_link_without_uri(self, fields):
        """Test a link without uri gives nothing"""
        assert LinkFieldMapping().resolve(fields["field_website"], {"title": "Example"}) is None

    def test_link_supported_source_fields(self, form):
        """Test link strategy only offers url elements"""
        assert list(LinkFieldMapping().supported_source_fields(form)) == ["website"]

    def test_registry_by_field_type(self):
        """Test registry picks the strategy declaring the field type"""
        registry = FieldMappingRegistry()

        assert registry.for_field_type("link").plugin_id == "link_mapping"
        assert registry.for_field_type("string").plugin_id == "default_mapping"

    def test_registry_unknown_id_falls_back(self):
        """Test unknown ids resolve to the default strategy"""
        registry = FieldMappingRegistry()

        assert registry.get("nope").plugin_id == "default_mapping"
        assert registry.has("link_mapping")
        assert not registry.has("nope")

    def test_registry_options(self):
        """Test options listed per field type, by weight"""
        registry = FieldMappingRegistry()

        assert list(registry.options("link")) == ["link_mapping", "default_mapping"]
        assert list(registry.options("string")) == ["default_mapping"]


# ============================================================================
# TEST: MappingEngine
# ============================================================================


class TestMappingEngine:
    """Tests for MappingEngine class"""

    def test_profile_example(self, engine, submission, form, fields):
        """Test title template and truncation of a mapped value"""
        config = make_config(
            target_title_template="Profile for [webform_submission:values:name]",
            field_mappings={"field_age": MappingRule.source("age")},
        )
        record = ContentRecord(bundle="profile")

        title = engine.resolve_title(config, submission, form)
        warnings = engine.apply(record, config, submission, fields, form)

        assert title == "Profile for Ann"
        assert record.get("field_age") == "1"
        assert len(warnings) == 1

    def test_title_falls_back_to_form_label(self, engine, submission, form):
        """Test the form label is used and HTML entities decoded"""
        assert engine.resolve_title(make_config(), submission, form) == "Contact & Profile"

    def test_title_without_template_or_form(self, engine, submission):
        """Test no title can be built"""
        assert engine.resolve_title(make_config(), submission, None) is None

    def test_absent_source_leaves_field(self, engine, submission, fields):
        """Test a missing source field is skipped"""
        config = make_config(field_mappings={"field_name": MappingRule.source("nickname")})
        record = ContentRecord(bundle="profile", fields={"field_name": "Existing"})

        engine.apply(record, config, submission, fields)

        assert record.get("field_name") == "Existing"

    def test_missing_target_field_is_skipped(self, engine, submission, fields):
        """Test a mapping to a field the bundle does not have"""
        resolution = engine.resolve_rule(
            make_config(), "field_gone", MappingRule.source("name"), submission, fields
        )

        assert resolution.action == SKIP

    @pytest.mark.parametrize("value", ["0", "", "abc", 0, None, "0.5"])
    def test_zero_reference_clears_field(self, engine, fields, value):
        """Test zero-like reference values clear the field"""
        submission = Submission(id=1, form_id="contact", data={"company": value})
        config = make_config(field_mappings={"field_company": MappingRule.source("company")})
        record = ContentRecord(bundle="profile", fields={"field_company": "5"})

        engine.apply(record, config, submission, fields)

        assert record.get("field_company") == []

    def test_reference_value_is_set(self, engine, submission, fields):
        """Test non-zero reference values are set"""
        resolution = engine.resolve_rule(
            make_config(), "field_company", MappingRule.source("company"), submission, fields
        )

        assert resolution.action == SET
        assert resolution.value == "12"

    def test_reference_list_is_not_cleared(self, engine, fields):
        """Test array values are never treated as the zero sentinel"""
        submission = Submission(id=1, form_id="contact", data={"company": ["0"]})
        resolution = engine.resolve_rule(
            make_config(), "field_company", MappingRule.source("company"), submission, fields
        )

        assert resolution.action == SET
        assert resolution.value == ["0"]

    def test_date_only_field(self, engine, submission, fields):
        """Test date fields get the date storage format"""
        resolution = engine.resolve_rule(
            make_config(), "field_birth", MappingRule.source("birth"), submission, fields
        )

        assert resolution.value == "2020-01-31"

    def test_datetime_field_normalized_to_utc(self, engine, fields):
        """Test datetime values are converted to UTC"""
        submission = Submission(id=1, form_id="contact", data={"birth": "2020-01-31T10:00:00+01:00"})
        resolution = engine.resolve_rule(
            make_config(), "field_created", MappingRule.source("birth"), submission, fields
        )

        assert resolution.value == "2020-01-31T09:00:00"

    def test_timestamp_property(self, engine, submission, fields):
        """Test a timestamp property mapped to a datetime field"""
        resolution = engine.resolve_rule(
            make_config(),
            "field_created",
            MappingRule.source("created", is_property=True),
            submission,
            fields,
        )

        assert resolution.value == "2020-01-01T00:00:00"

    def test_invalid_date_is_skipped(self, engine, fields):
        """Test unparseable dates leave the field untouched"""
        submission = Submission(id=1, form_id="contact", data={"birth": "someday"})
        resolution = engine.resolve_rule(
            make_config(), "field_birth", MappingRule.source("birth"), submission, fields
        )

        assert resolution.action == SKIP
        assert resolution.warnings

    @pytest.mark.parametrize("value", ["99999999999999999", 10**20, "-99999999999999999"])
    def test_out_of_range_timestamp_is_skipped(self, engine, fields, value):
        """Test timestamps beyond the supported range leave the field untouched"""
        submission = Submission(id=1, form_id="contact", data={"birth": value})
        resolution = engine.resolve_rule(
            make_config(), "field_birth", MappingRule.source("birth"), submission, fields
        )

        assert resolution.action == SKIP
        assert resolution.warnings

    def test_reference_property(self, engine, submission, fields):
        """Test reference properties resolve to their target id"""
        resolution = engine.resolve_rule(
            make_config(),
            "field_company",
            MappingRule.source("uid", is_property=True),
            submission,
            fields,
        )

        assert resolution.value == 3

    def test_custom_template(self, engine, submission, form, fields):
        """Test custom text with tokens"""
        rule = MappingRule.custom("[webform_submission:values:name] <[webform_submission:values:email]>")
        resolution = engine.resolve_rule(make_config(), "field_notes", rule, submission, fields, form)

        assert resolution.value == "Ann <ann@example.com>"

    def test_custom_value_is_truncated(self, engine, submission, fields):
        """Test max length also applies to custom text"""
        rule = MappingRule.custom("[webform_submission:values:name]")
        resolution = engine.resolve_rule(make_config(), "field_age", rule, submission, fields)

        assert resolution.value == "A"
        assert resolution.warnings

    def test_link_components(self, engine, submission, form, fields):
        """Test composite link mapping"""
        rule = MappingRule(
            components={
                "uri": MappingRule.source("website"),
                "title": MappingRule.source("website_title"),
            }
        )
        resolution = engine.resolve_rule(make_config(), "field_website", rule, submission, fields, form)

        assert resolution.action == SET
        assert resolution.value == {"uri": "https://example.com", "title": "Example"}

    def test_link_components_are_not_truncated(self, engine, form, fields):
        """Test component values pass through without length checks"""
        fields = dict(fields)
        fields["field_website"] = FieldDefinition("field_website", "link", "Website", max_length=10)
        uri = "https://example.com/a/long/path"
        submission = Submission(id=1, form_id="contact", data={"website": uri})
        rule = MappingRule(components={"uri": MappingRule.source("website")})
        resolution = engine.resolve_rule(make_config(), "field_website", rule, submission, fields, form)

        assert resolution.value == {"uri": uri, "title": ""}
        assert resolution.warnings == []

    def test_link_components_all_missing(self, engine, fields):
        """Test composite mapping without any value"""
        submission = Submission(id=1, form_id="contact", data={"name": "Ann"})
        rule = MappingRule(components={"uri": MappingRule.source("website")})
        resolution = engine.resolve_rule(make_config(), "field_website", rule, submission, fields)

        assert resolution.action == SKIP

    def test_max_field_size(self, fields):
        """Test max length check"""
        assert MappingEngine.check_max_field_size_exceeded(fields["field_age"], "17")
        assert not MappingEngine.check_max_field_size_exceeded(fields["field_age"], "1")
        assert not MappingEngine.check_max_field_size_exceeded(fields["field_notes"], "x" * 5000)

    def test_apply_clear_and_set(self, engine, fields):
        """Test apply sets and clears fields"""
        submission = Submission(id=1, form_id="contact", data={"company": "0", "name": "Bob"})
        config = make_config(
            field_mappings={
                "field_company": MappingRule.source("company"),
                "field_name": MappingRule.source("name"),
            }
        )
        record = ContentRecord(bundle="profile")

        warnings = engine.apply(record, config, submission, fields)

        assert record.fields == {"field_company": [], "field_name": "Bob"}
        assert warnings == []


# ============================================================================
# TEST: Decryption
# ============================================================================


class TestDecryption:
    """Tests for encrypted submission values"""

    @pytest.fixture
    def encryption(self):
        return FernetEncryptionService({"main": ("Main", Fernet.generate_key())})

    def test_decrypt_value_fallback(self, encryption):
        """Test values that are not encrypted come back unchanged"""
        assert decrypt_value("plain", "main", encryption) == "plain"
        assert decrypt_value("", "main", encryption) == ""
        assert decrypt_value("plain", "", encryption) == "plain"

    def test_unknown_profile(self, encryption):
        """Test unknown profile gives no decryption"""
        assert encryption.decrypt("anything", "other") is None
        assert encryption.profiles() == {"main": "Main"}

    def test_encrypted_source_value(self, context, fields, encryption):
        """Test mapped values are decrypted with the profile"""
        context.encryption = encryption
        engine = MappingEngine(context)
        submission = Submission(
            id=1, form_id="contact", data={"name": encryption.encrypt("Ann", "main")}
        )
        config = make_config(
            use_encryption=True,
            encryption_profile="main",
            field_mappings={"field_name": MappingRule.source("name")},
        )
        record = ContentRecord(bundle="profile")

        engine.apply(record, config, submission, fields)

        assert record.get("field_name") == "Ann"

    def test_encrypted_token_in_title(self, context, form, encryption):
        """Test token values are decrypted one by one"""
        context.encryption = encryption
        engine = MappingEngine(context)
        submission = Submission(
            id=1,
            form_id="contact",
            data={"name": encryption.encrypt("Ann", "main"), "age": "17"},
        )
        config = make_config(
            use_encryption=True,
            encryption_profile="main",
            target_title_template="[webform_submission:values:name] ([webform_submission:values:age])",
        )

        assert engine.resolve_title(config, submission, form) == "Ann (17)"

    def test_encryption_disabled(self, context, fields, encryption):
        """Test values are kept when encryption is off"""
        context.encryption = encryption
        engine = MappingEngine(context)
        token = encryption.encrypt("Ann", "main")
        submission = Submission(id=1, form_id="contact", data={"name": token})
        config = make_config(field_mappings={"field_name": MappingRule.source("name")})
        record = ContentRecord(bundle="profile")

        engine.apply(record, config, submission, fields)

        assert record.get("field_name") == token
