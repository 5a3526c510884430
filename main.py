#!/usr/bin/env python3
"""Webform Content Sync - Entry point."""
import json
import logging
from pathlib import Path

import click
from colorama import Fore, Style, init

from config import app_config
from src.api.content_client import HttpContentStorage
from src.api.forms import JsonFormRegistry
from src.api.storage import JsonContentStorage
from src.mapper.mapping import MappingConfiguration, MappingRule
from src.mapper.options import (
    PROPERTIES_GROUP,
    build_source_options,
    bundle_fields,
    parse_source_option,
)
from src.mapper.repository import ConfigRepository
from src.schema.models import Submission
from src.security.encryption import FernetEncryptionService
from src.sync import (
    FAILED,
    ContentSynchronizer,
    SubmissionEventDispatcher,
    SubmissionOperation,
    SubmissionEvent,
    SyncContext,
)
from src.validator.data_validator import MappingValidator

# Initialize colorama
init(autoreset=True)


def print_banner():
    """Print application banner."""
    print(f"{Fore.CYAN}{'=' * 44}")
    print(f"{Fore.CYAN}║   {Fore.WHITE}Webform Content Sync{Fore.CYAN}                 ║")
    print(f"{Fore.CYAN}║   {Fore.WHITE}Submission to content mappings{Fore.CYAN}       ║")
    print(f"{Fore.CYAN}{'=' * 44}{Style.RESET_ALL}")
    print()


def build_context() -> SyncContext:
    """Build services from the application config."""
    data_dir = Path(app_config.data_dir)

    if app_config.storage_backend == "http":
        storage = HttpContentStorage(app_config.content_api)
    else:
        storage = JsonContentStorage(str(data_dir / "content.json"))

    encryption = None
    if app_config.encryption_keys_file:
        encryption = FernetEncryptionService.from_file(app_config.encryption_keys_file)

    return SyncContext(
        storage=storage,
        forms=JsonFormRegistry(str(data_dir / "forms.json")),
        encryption=encryption,
    )


def get_repository() -> ConfigRepository:
    return ConfigRepository(app_config.config_dir)


def load_config(repository: ConfigRepository, config_id: str) -> MappingConfiguration:
    try:
        return repository.load(config_id)
    except (KeyError, ValueError) as e:
        raise click.ClickException(str(e).strip("'"))


def status_message(config: MappingConfiguration, status: int) -> None:
    """Report the result of saving a configuration."""
    if status:
        click.echo(f"{Fore.GREEN}✅ Saved the {config.title} entity.")
    else:
        click.echo(f"{Fore.RED}The {config.title} entity was not saved.")


def load_submission(path: str) -> Submission:
    with open(path, "r") as f:
        return Submission.from_dict(json.load(f))


@click.group()
@click.version_option(version="0.1.0")
def cli():
    """Webform Content Sync - Create content from form submissions."""
    logging.basicConfig(
        level=getattr(logging, app_config.log_level.upper(), logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command(name="list")
def list_configs():
    """List mapping configurations."""
    print_banner()

    context = build_context()
    configs = get_repository().list()
    if not configs:
        click.echo(f"{Fore.YELLOW}No configurations found in {app_config.config_dir}")
        return

    for config in configs:
        form = context.forms.load(config.source_form_id)
        bundle = context.storage.load_bundle(config.target_bundle)
        form_label = form.label if form else f"{Fore.RED}missing{Fore.RESET}"
        bundle_label = bundle.label if bundle else f"{Fore.RED}missing{Fore.RESET}"
        click.echo(
            f"{config.title} ({config.id})  "
            f"{form_label} ({config.source_form_id}) → {bundle_label} ({config.target_bundle})"
        )


@cli.command()
@click.argument("config_id")
def show(config_id):
    """Show a mapping configuration."""
    config = load_config(get_repository(), config_id)
    click.echo(json.dumps(config.to_dict(), indent=2))


@cli.command()
@click.argument("config_id")
@click.option("--title", required=True, help="Configuration title")
@click.option("--form", "form_id", required=True, help="Source form id")
@click.option("--bundle", required=True, help="Target bundle id")
def create(config_id, title, form_id, bundle):
    """Create a mapping configuration."""
    repository = get_repository()
    try:
        if repository.exists(config_id):
            raise click.ClickException(f"Configuration {config_id} already exists")
    except ValueError as e:
        raise click.ClickException(str(e))

    context = build_context()
    if context.forms.load(form_id) is None:
        raise click.ClickException(f"Form {form_id} does not exist")
    if context.storage.load_bundle(bundle) is None:
        raise click.ClickException(f"Bundle {bundle} does not exist")

    config = MappingConfiguration(
        id=config_id, title=title, source_form_id=form_id, target_bundle=bundle
    )
    status_message(config, repository.save(config))


@cli.command()
@click.argument("config_id")
@click.option("--title", help="Configuration title")
@click.option("--form", "form_id", help="Source form id (resets mappings)")
@click.option("--bundle", help="Target bundle id (resets mappings)")
@click.option("--title-template", help="Record title, tokens allowed (default: form title)")
@click.option("--encrypt/--no-encrypt", default=None, help="Decrypt submission values")
@click.option("--profile", help="Encryption profile")
@click.option("--sync-edit/--no-sync-edit", default=None, help="Update records when submissions are edited")
@click.option("--sync-delete/--no-sync-delete", default=None, help="Delete records when submissions are deleted")
@click.option("--sync-field", help="Field holding the submission id")
def configure(config_id, title, form_id, bundle, title_template, encrypt, profile,
              sync_edit, sync_delete, sync_field):
    """Change settings of a mapping configuration."""
    repository = get_repository()
    config = load_config(repository, config_id)

    updated = config.with_target(form_id or config.source_form_id, bundle or config.target_bundle)
    if updated.field_mappings != config.field_mappings:
        click.echo(f"{Fore.YELLOW}Form or bundle changed: field mappings were reset")

    changes = {
        "title": title,
        "target_title_template": title_template,
        "use_encryption": encrypt,
        "encryption_profile": profile,
        "sync_on_edit": sync_edit,
        "sync_on_delete": sync_delete,
        "sync_id_field": sync_field,
    }
    updated = updated.with_settings(**{k: v for k, v in changes.items() if v is not None})
    status_message(updated, repository.save(updated))


@cli.command(name="map")
@click.argument("config_id")
@click.argument("field_id")
@click.option("--source", help="Source option, e.g. 0,name (element) or 1,sid (property)")
@click.option("--custom", help="Custom text, tokens allowed")
@click.option("--plugin", default="", help="Field mapping (default: chosen by field type)")
@click.option("--component", "components", multiple=True, help="NAME=OPTION for composite fields")
def map_field(config_id, field_id, source, custom, plugin, components):
    """Map a content field to a submission value or custom text."""
    repository = get_repository()
    config = load_config(repository, config_id)

    try:
        if components:
            parts = {}
            for item in components:
                name, _, option = item.partition("=")
                is_property, source_id = parse_source_option(option)
                parts[name] = MappingRule.source(source_id, is_property=is_property)
            rule = MappingRule(mapping_plugin=plugin, components=parts)
        elif custom is not None and source is None:
            rule = MappingRule.custom(custom, mapping_plugin=plugin)
        elif source is not None and custom is None:
            is_property, source_id = parse_source_option(source)
            rule = MappingRule.source(source_id, is_property=is_property, mapping_plugin=plugin)
        else:
            raise click.ClickException("Use exactly one of --source, --custom or --component")
    except ValueError as e:
        raise click.ClickException(str(e))

    updated = config.with_mapping(field_id, rule)
    context = build_context()
    errors = MappingValidator(context).validate(updated)
    rule_errors = [e for e in errors if e.startswith(f"{field_id}")]
    if rule_errors:
        for error in rule_errors:
            click.echo(f"{Fore.RED}❌ {error}")
        raise SystemExit(1)

    status_message(updated, repository.save(updated))


@cli.command()
@click.argument("config_id")
@click.argument("field_id")
def unmap(config_id, field_id):
    """Remove the mapping of a content field."""
    repository = get_repository()
    config = load_config(repository, config_id)
    updated = config.without_mapping(field_id)
    status_message(updated, repository.save(updated))


@cli.command()
@click.argument("form_id")
def sources(form_id):
    """List the submission values a form offers."""
    form = build_context().forms.load(form_id)
    if form is None:
        raise click.ClickException(f"Form {form_id} does not exist")

    for key, value in build_source_options(form).items():
        if isinstance(value, dict):
            color = Fore.MAGENTA if key == PROPERTIES_GROUP else Fore.CYAN
            click.echo(f"\n{color}{key}")
            for option, label in value.items():
                click.echo(f"  {option:24s} {label}")
        else:
            click.echo(f"{key:26s} {value}")


@cli.command()
@click.argument("bundle_id")
def fields(bundle_id):
    """List the fields of a bundle that can be mapped."""
    context = build_context()
    bundle = context.storage.load_bundle(bundle_id)
    if bundle is None:
        raise click.ClickException(f"Bundle {bundle_id} does not exist")

    for name, definition in bundle_fields(bundle).items():
        mappings = ", ".join(context.field_mappings.options(definition.type))
        max_length = f" max {definition.max_length}" if definition.max_length else ""
        click.echo(f"{definition.label} ({name}) - {definition.type}{max_length}  [{mappings}]")


@cli.command()
@click.argument("config_id")
def validate(config_id):
    """Validate a mapping configuration."""
    config = load_config(get_repository(), config_id)
    errors = MappingValidator(build_context()).validate(config)

    if not errors:
        click.echo(f"{Fore.GREEN}✅ {config.title} is valid")
        return

    for error in errors:
        click.echo(f"{Fore.RED}❌ {error}")
    raise SystemExit(1)


@cli.command()
@click.argument("config_id")
@click.argument("submission_file", type=click.Path(exists=True))
@click.option("--op", type=click.Choice(["create", "edit", "delete"]), default="create")
def sync(config_id, submission_file, op):
    """Run one configuration for a submission JSON file."""
    config = load_config(get_repository(), config_id)
    submission = load_submission(submission_file)
    synchronizer = ContentSynchronizer(build_context())

    if op == "create":
        result = synchronizer.create_content(config, submission)
    else:
        result = synchronizer.update_content(config, submission, op=op)

    for warning in synchronizer.last_warnings:
        click.echo(f"{Fore.YELLOW}⚠ {warning}")

    if result == FAILED:
        click.echo(f"{Fore.YELLOW}Nothing was changed for submission {submission.id}")
    else:
        click.echo(f"{Fore.GREEN}✅ Submission {submission.id}: {op} done (status {result})")


@cli.command()
@click.argument("submission_file", type=click.Path(exists=True))
@click.option(
    "--op",
    type=click.Choice([o.value for o in SubmissionOperation]),
    default=SubmissionOperation.INSERT.value,
)
def dispatch(submission_file, op):
    """Run every configuration of the submission's form."""
    submission = load_submission(submission_file)
    dispatcher = SubmissionEventDispatcher(
        get_repository(), ContentSynchronizer(build_context())
    )
    results = dispatcher.dispatch(SubmissionEvent(SubmissionOperation(op), submission))

    if not results:
        click.echo(f"{Fore.YELLOW}No configuration uses form {submission.form_id}")
    for config_id, result in results.items():
        color = Fore.RED if result == FAILED else Fore.GREEN
        click.echo(f"{color}{config_id:30s} → {result}")


if __name__ == "__main__":
    cli()
