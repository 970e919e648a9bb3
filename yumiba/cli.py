"""``flask persons ...`` and ``flask seiseki ...`` maintenance commands."""

import json
import sys
from pathlib import Path

import click
from flask import current_app
from flask.cli import AppGroup

from . import importer
from . import persons as persons_module
from .datastore import save_period, validate_year_month

persons_cli = AppGroup("persons", help="Maintain the person registry.")


def _root() -> Path:
    return Path(current_app.config["DATA_DIR"])


@persons_cli.command("build")
def build_command():
    """Generate persons.json from the ids already in the results."""
    registry = persons_module.build_registry(_root())
    click.echo(f"Registered persons: {len(registry['persons'])}")
    click.echo(f"Next personId: {persons_module.format_person_id(registry['nextPersonId'])}")


@persons_cli.command("assign")
def assign_command():
    """Assign person ids to entries that lack one."""
    try:
        summary = persons_module.assign_person_ids(_root())
    except persons_module.RegistryNotFound as e:
        raise click.ClickException(str(e))
    click.echo(f"Files updated: {summary['files']}")
    click.echo(f"Entries updated: {summary['entries']}")
    click.echo(f"New persons: {len(summary['new_persons'])}")
    for person in summary["new_persons"]:
        key = f" ({person['personKey']})" if person.get("personKey") else ""
        click.echo(f"  {person['personId']}: {person['name']}{key}")


@persons_cli.command("report")
def report_command():
    """Write persons/persons.md from the registry."""
    try:
        path = persons_module.write_registry_report(_root())
    except persons_module.RegistryNotFound as e:
        raise click.ClickException(str(e))
    click.echo(f"Wrote {path}")


@persons_cli.command("validate")
def validate_command():
    """Check the registry against the results; exit 1 on errors."""
    try:
        issues = persons_module.validate_person_ids(_root())
    except persons_module.RegistryNotFound as e:
        raise click.ClickException(str(e))
    if not issues:
        click.echo("No problems found.")
        return
    errors = [i for i in issues if i["severity"] == "error"]
    warnings = [i for i in issues if i["severity"] == "warning"]
    click.echo(f"Errors: {len(errors)}")
    click.echo(f"Warnings: {len(warnings)}")
    for label, group in (("error", errors), ("warning", warnings)):
        for n, issue in enumerate(group, start=1):
            click.echo(f"{label} {n}. [{issue['type']}] {issue['message']}")
            if issue["details"]:
                click.echo("   " + json.dumps(issue["details"], ensure_ascii=False))
    if errors:
        sys.exit(1)


seiseki_cli = AppGroup("seiseki", help="Import monthly results.")


@seiseki_cli.command("import")
@click.option("--file", "html_file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Saved copy of the legacy results page.")
@click.option("--fetch", is_flag=True, help="Download the legacy results page.")
@click.option("--url", default=importer.SOURCE_URL, show_default=True)
@click.option("--year", type=int, required=True)
@click.option("--month", type=int, required=True)
def import_command(html_file, fetch, url, year, month):
    """Convert the legacy results page into the record for YEAR/MONTH."""
    try:
        validate_year_month(year, month)
    except ValueError as e:
        raise click.BadParameter(str(e))
    if fetch == bool(html_file):
        raise click.UsageError("Give exactly one of --file or --fetch")

    if fetch:
        try:
            html = importer.fetch_page(url)
        except importer.ImportFailed as e:
            raise click.ClickException(str(e))
    else:
        html = html_file.read_text(encoding="utf-8")

    entries = importer.parse_results_page(html, year, month)
    if not entries:
        raise click.ClickException("No entries found; the page layout may have changed")

    root = _root()
    save_period(root, year, month, entries)
    click.echo(f"Saved {len(entries)} entries for {year}/{month:02d}")

    try:
        summary = persons_module.assign_person_ids(root)
    except persons_module.RegistryNotFound:
        click.echo("No person registry yet; run 'flask persons build' then 'flask persons assign'")
        return
    click.echo(f"Assigned person ids to {summary['entries']} entries ({len(summary['new_persons'])} new persons)")
