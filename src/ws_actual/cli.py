"""Click CLI entry point for the ws-actual command.

Handles argument parsing, config loading, and error display. All business
logic is delegated to ``pipeline``, ``accounts``, ``config``, and
``summary`` modules.
"""

from __future__ import annotations

import json
import logging
import sys
from decimal import Decimal
from pathlib import Path

import click

from ws_actual import __version__
from ws_actual.ledger import HttpLedgerSink, LedgerError, NullLedgerSink
from ws_actual.models import AppConfig, PipelineResult
from ws_actual.parsers import PARSERS


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Set up logging based on verbosity flags."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def _load_config_or_exit(root: Path) -> AppConfig:
    from ws_actual.config import load_config

    try:
        return load_config(root)
    except FileNotFoundError as exc:
        click.echo(
            f"Error: {exc}. Run 'ws-actual init' to create the project structure.",
            err=True,
        )
        sys.exit(1)
    except Exception as exc:
        click.echo(f"Error loading configuration: {exc}", err=True)
        sys.exit(1)


def _ledger_sink(config: AppConfig) -> HttpLedgerSink:
    """Build the HTTP sink, exiting when the server section is incomplete."""
    if not config.server_url or not config.budget_sync_id:
        click.echo(
            "Error: [server] url and budget_sync_id must be set in config.toml.",
            err=True,
        )
        sys.exit(1)
    return HttpLedgerSink(
        base_url=config.server_url,
        budget_sync_id=config.budget_sync_id,
        api_key_env=config.api_key_env,
    )


def _finish(result: PipelineResult, dry_run: bool) -> None:
    """Print the run summary and exit non-zero on errors or failed imports."""
    from ws_actual.summary import calculate_statistics, print_summary

    stats = result.statistics or calculate_statistics(result.transactions)
    print_summary(stats, result, dry_run=dry_run)

    failed = result.import_result.failed if result.import_result is not None else []
    if result.errors or failed:
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="ws-actual")
def cli() -> None:
    """Import WealthSimple activity into an Actual Budget ledger."""


@cli.command()
@click.option(
    "--dir", "target_dir", default=".", type=click.Path(), help="Directory to initialize."
)
def init(target_dir: str) -> None:
    """Initialize a new project directory with a default config.toml."""
    from ws_actual.config import initialize

    target = Path(target_dir).resolve()

    try:
        initialize(target)
    except Exception as exc:
        click.echo(f"Error initializing project: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Initialized ws-actual project in {target}")


@cli.command("import")
@click.option(
    "--source",
    type=click.Choice(sorted(PARSERS)),
    default="scraped",
    show_default=True,
    help="Format of the activity file.",
)
@click.option(
    "--file",
    "file_path",
    required=True,
    type=click.Path(dir_okay=False),
    help="Scraped JSON or CSV export to import.",
)
@click.option("--dry-run", is_flag=True, default=False, help="Transform only; import nothing.")
@click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")
@click.option("--debug", is_flag=True, default=False, help="Developer-level diagnostics.")
def import_command(source: str, file_path: str, dry_run: bool, verbose: bool, debug: bool) -> None:
    """Parse an activity file and import it into the ledger."""
    _configure_logging(verbose, debug)
    root = Path.cwd()
    config = _load_config_or_exit(root)

    from ws_actual.parsers import get_parser
    from ws_actual.pipeline import run

    parse_result = get_parser(source)(Path(file_path))
    if parse_result.errors:
        for error in parse_result.errors:
            click.echo(f"Error: {error}", err=True)
        sys.exit(1)

    if verbose:
        click.echo(f"Parsed {len(parse_result.items)} record(s) from {file_path}")

    sink = NullLedgerSink() if dry_run else _ledger_sink(config)

    try:
        result = run(parse_result.items, config, sink, dry_run=dry_run)
    except LedgerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    result.warnings[:0] = parse_result.warnings
    _finish(result, dry_run)


@cli.command()
@click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")
def accounts(verbose: bool) -> None:
    """List the ledger's accounts and the mapping each one resolves from."""
    _configure_logging(verbose, debug=False)
    config = _load_config_or_exit(Path.cwd())
    sink = _ledger_sink(config)

    try:
        ledger_accounts = sink.list_accounts()
    except LedgerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    mapped = {m.actual_account_id: m.ws_account_name for m in config.accounts}

    click.echo()
    click.echo("== Ledger Accounts ==")
    for account in ledger_accounts:
        flags = []
        if account.get("closed"):
            flags.append("closed")
        if account.get("offbudget"):
            flags.append("off-budget")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        pattern = mapped.get(account["id"])
        source = f" <- {pattern}" if pattern else ""
        click.echo(f"  {account['name'] + ':':<30} {account['id']}{suffix}{source}")
    click.echo()


@cli.command("validate-mappings")
def validate_mappings() -> None:
    """Check configured account mappings against the ledger."""
    from ws_actual.accounts import validate_account_mappings

    _configure_logging(verbose=False, debug=False)
    config = _load_config_or_exit(Path.cwd())
    sink = _ledger_sink(config)

    try:
        ledger_accounts = sink.list_accounts()
    except LedgerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    result = validate_account_mappings(config.accounts, ledger_accounts)

    click.echo()
    click.echo("== Mapping Validation ==")
    click.echo(f"  Valid:    {len(result.valid)}")
    click.echo(f"  Invalid:  {len(result.invalid)}")
    for entry in result.invalid:
        click.echo(f"    - {entry['ws_account_name']} -> {entry['id']}: {entry['reason']}")
    click.echo(f"  Unmapped: {len(result.unmapped)}")
    for entry in result.unmapped:
        click.echo(f"    - {entry['name']} ({entry['id']})")
    click.echo()

    if result.invalid:
        sys.exit(1)


@cli.command("map-account")
@click.option("--name", required=True, help="Account name or regex as shown in WealthSimple.")
@click.option("--id", "account_id", required=True, help="Ledger account ID.")
def map_account(name: str, account_id: str) -> None:
    """Add or update an account mapping in config.toml."""
    from ws_actual.config import save_account_mappings
    from ws_actual.models import AccountMapping

    root = Path.cwd()
    config = _load_config_or_exit(root)

    mappings = list(config.accounts)
    for index, mapping in enumerate(mappings):
        if mapping.ws_account_name == name:
            mappings[index] = AccountMapping(ws_account_name=name, actual_account_id=account_id)
            action = "Updated"
            break
    else:
        mappings.append(AccountMapping(ws_account_name=name, actual_account_id=account_id))
        action = "Added"

    try:
        save_account_mappings(root, mappings)
    except Exception as exc:
        click.echo(f"Error saving account mappings: {exc}", err=True)
        sys.exit(1)

    click.echo(f'{action} mapping "{name}" -> {account_id}')


@cli.command("adjust-balances")
@click.option(
    "--file",
    "file_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help='JSON object of account name -> balance, e.g. {"Chequing": 1234.56}.',
)
@click.option("--dry-run", is_flag=True, default=False, help="Compute adjustments only.")
@click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")
@click.option("--debug", is_flag=True, default=False, help="Developer-level diagnostics.")
def adjust_balances(file_path: str, dry_run: bool, verbose: bool, debug: bool) -> None:
    """Post adjustments so ledger balances match reported balances."""
    _configure_logging(verbose, debug)
    config = _load_config_or_exit(Path.cwd())

    try:
        with open(file_path, encoding="utf-8") as f:
            balances = json.load(f, parse_float=Decimal)
    except (OSError, json.JSONDecodeError) as exc:
        click.echo(f"Error reading balances: {exc}", err=True)
        sys.exit(1)

    if not isinstance(balances, dict):
        click.echo("Error reading balances: expected a JSON object", err=True)
        sys.exit(1)

    from ws_actual.pipeline import reconcile_balances

    sink = _ledger_sink(config)
    try:
        result = reconcile_balances(balances, config, sink, dry_run=dry_run)
    except LedgerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    _finish(result, dry_run)
