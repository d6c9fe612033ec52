"""Command-line entry points for the Perfume ERP engine.

All orchestration in this module is limited to argparse wiring and translating
command-line arguments into the actions consumed by the session. Keeping the
CLI thin ensures the same parser configuration can be reused by tests, scripts,
or any alternative front-end that wants to expose the package capabilities.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import actions, core_logic, data_manager, inventory, ledger, log, session, workbook_export
from .errors import DomainError


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[session.Session, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="perfume-cli",
        description="Command-line tools for the Perfume ERP data document.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to the nearest config.ini).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as year archiving and restores."""
    specs = {
        "complete-maceration": _simple_command(
            "complete-maceration",
            "Release a macerating batch for sale.",
            run_complete_maceration,
            arguments=[("--batch-id", {"required": True})],
        ),
        "archive-year": _simple_command("archive-year", "Seal the current year and open the next.", run_archive_year),
        "archive-settlement": _simple_command(
            "archive-settlement",
            "Snapshot partner balances and zero them.",
            run_archive_settlement,
            arguments=[("--date", {"default": None, "help": "Settlement date (YYYY-MM-DD, defaults to today)."})],
        ),
        "restore": _simple_command(
            "restore",
            "Replace all data with the content of a backup file.",
            run_restore,
            arguments=[("--input", {"required": True, "type": Path, "dest": "input_path"})],
        ),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as reports and exports."""
    specs = {
        "stock": _simple_command("stock", "Display current stock levels.", run_stock_report),
        "balances": _simple_command("balances", "Display partner balances.", run_balances_report),
        "settlement-plan": _simple_command(
            "settlement-plan", "Display the transfers that would even out partners.", run_settlement_plan
        ),
        "macerating": _simple_command("macerating", "List batches still macerating.", run_macerating_report),
        "backup": _simple_command(
            "backup",
            "Write a backup document.",
            run_backup,
            arguments=[("--output", {"required": True, "type": Path})],
        ),
        "export-xlsx": _simple_command(
            "export-xlsx",
            "Export the current year to an Excel workbook.",
            run_export_xlsx,
            arguments=[("--output", {"required": True, "type": Path})],
        ),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _simple_command(
    name: str,
    help_text: str,
    execute: Callable[[session.Session, argparse.Namespace], int],
    *,
    arguments: Sequence[tuple] = (),
) -> CommandSpec:
    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        for flag, options in arguments:
            parser.add_argument(flag, **options)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=execute)


def load_session(config_path: Optional[Path] = None) -> session.Session:
    """Open the session for CLI operations."""
    return session.open_session(config_path)


def dispatch_command(
    current: session.Session,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(current, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def _commit(current: session.Session, action: actions.Action) -> int:
    result = current.dispatch(action)
    if not result.ok:
        raise result.error
    return 0


def run_complete_maceration(current: session.Session, args: argparse.Namespace) -> int:
    return _commit(current, actions.CompleteMaceration(batch_id=args.batch_id))


def run_archive_year(current: session.Session, args: argparse.Namespace) -> int:
    code = _commit(current, actions.ArchiveYear())
    print(f"Active year is now {current.state.current_year}")
    return code


def run_archive_settlement(current: session.Session, args: argparse.Namespace) -> int:
    settlement_date = args.date or date.today().isoformat()
    return _commit(current, actions.ArchivePartnerSettlement(date=settlement_date))


def run_restore(current: session.Session, args: argparse.Namespace) -> int:
    input_path = Path(args.input_path).expanduser().resolve()
    if not input_path.exists():
        raise FileNotFoundError(f"Backup file not found: {input_path}")
    result = current.restore_backup(input_path.read_text(encoding="utf-8"))
    if not result.ok:
        raise result.error
    return 0


def run_stock_report(current: session.Session, args: argparse.Namespace) -> int:
    """Print total and available quantities per variant."""
    for level in core_logic.stock_levels(current.state):
        print(f"{level.display_name}\t{level.available}\t{level.total}")
    return 0


def run_balances_report(current: session.Session, args: argparse.Namespace) -> int:
    summary = ledger.summarize(current.state)
    print(f"System total: {summary.system_total}  Target per partner: {summary.target_per_partner}")
    for position in summary.positions:
        print(f"{position.partner_name}\t{position.balance}\t{position.diff}\t{position.status.value}")
    return 0


def run_settlement_plan(current: session.Session, args: argparse.Namespace) -> int:
    names = {partner.id: partner.name for partner in current.state.partners}
    transfers = ledger.plan_for_state(current.state)
    if not transfers:
        print("Partners are already even.")
    for transfer in transfers:
        print(
            f"{names.get(transfer.from_partner_id, transfer.from_partner_id)} -> "
            f"{names.get(transfer.to_partner_id, transfer.to_partner_id)}: {transfer.amount}"
        )
    return 0


def run_macerating_report(current: session.Session, args: argparse.Namespace) -> int:
    year = current.state.year_data
    for batch in inventory.macerating_batches(year.inventory_batches):
        print(f"{batch.id}\t{year.variant_display_name(batch.variant_id)}\t{batch.maceration_end_date or ''}")
    return 0


def run_backup(current: session.Session, args: argparse.Namespace) -> int:
    output = Path(args.output).expanduser().resolve()
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(data_manager.dumps_document(current.state), encoding="utf-8")
    log.info("Wrote backup to '%s'", output)
    return 0


def run_export_xlsx(current: session.Session, args: argparse.Namespace) -> int:
    workbook_export.export_year(current.state, args.output)
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, DomainError):
        log.error("%s", error.message)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        current = load_session(getattr(args, "config", None))
        return dispatch_command(current, args, command_table)
    except Exception as error:  # centralised error handler, mapped to exit codes
        return handle_cli_error(error)


if __name__ == "__main__":
    raise SystemExit(main())
