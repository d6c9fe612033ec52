"""Unit tests describing the CLI presentation layer contract."""

from __future__ import annotations

import argparse
from pathlib import Path

import openpyxl
import pytest

from perfume_erp import cli, data_manager
from perfume_erp.errors import DomainError, NotFound


WRITE_COMMANDS = {
    "complete-maceration",
    "archive-year",
    "archive-settlement",
    "restore",
}

READ_COMMANDS = {
    "stock",
    "balances",
    "settlement-plan",
    "macerating",
    "backup",
    "export-xlsx",
}


def _registered_choices(parser: argparse.ArgumentParser) -> set[str]:
    """Return the set of registered sub-command names for assertion helpers."""

    actions = getattr(parser, "_subparsers", None)
    if not actions:
        return set()
    group_actions = actions._group_actions  # type: ignore[attr-defined]
    if not group_actions:
        return set()
    return set(group_actions[0].choices)  # type: ignore[index]


def _run(bundle, *argv: str) -> int:
    return cli.main(["--config", str(bundle.config_path), *argv])


# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------


def test_build_parser_sets_program_metadata():
    parser = cli.build_parser()

    assert parser.prog == "perfume-cli"
    assert parser.parse_args(["--config", "x.ini"]).config == Path("x.ini")


def test_configure_subcommands_registers_every_command():
    parser = cli.build_parser()

    command_table = cli.configure_subcommands(parser)

    assert set(command_table) == WRITE_COMMANDS | READ_COMMANDS
    assert _registered_choices(parser) == WRITE_COMMANDS | READ_COMMANDS


def test_register_write_and_read_commands_return_specs():
    subparsers = argparse.ArgumentParser(prog="cli").add_subparsers(dest="command")

    write_specs = cli.register_write_commands(subparsers)
    read_specs = cli.register_read_commands(subparsers)

    assert set(write_specs) == WRITE_COMMANDS
    assert set(read_specs) == READ_COMMANDS
    for spec in [*write_specs.values(), *read_specs.values()]:
        assert isinstance(spec, cli.CommandSpec)
        assert spec.help_text


def test_complete_maceration_requires_batch_id():
    parser = cli.build_parser()
    cli.configure_subcommands(parser)

    with pytest.raises(SystemExit):
        parser.parse_args(["complete-maceration"])
    assert parser.parse_args(["complete-maceration", "--batch-id", "B1"]).batch_id == "B1"


def test_build_command_table_detects_duplicate_commands():
    spec = cli.CommandSpec("alpha", "help", lambda subparsers: subparsers.add_parser("alpha"), lambda *_: 0)

    with pytest.raises(ValueError):
        cli.build_command_table([spec, spec])


def test_dispatch_command_handles_unknown_commands():
    with pytest.raises(KeyError):
        cli.dispatch_command(None, argparse.Namespace(command="missing"), {})


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "error, expected",
    [
        (NotFound("no such batch"), 2),
        (DomainError("invalid"), 2),
        (FileNotFoundError("missing"), 3),
        (ValueError("bad value"), 1),
    ],
)
def test_handle_cli_error_returns_exit_code(error: Exception, expected: int, caplog: pytest.LogCaptureFixture):
    caplog.set_level("ERROR")

    assert cli.handle_cli_error(error) == expected
    assert caplog.records


def test_main_reports_missing_configuration(tmp_path: Path):
    assert cli.main(["--config", str(tmp_path / "absent.ini"), "stock"]) == 3


# ---------------------------------------------------------------------------
# Commands against a real data document
# ---------------------------------------------------------------------------


def test_balances_and_plan_print_partner_positions(config_bundle, capsys):
    assert _run(config_bundle, "balances") == 0
    assert _run(config_bundle, "settlement-plan") == 0

    output = capsys.readouterr().out
    assert "Socio Test" in output
    assert "Partners are already even." in output


def test_archive_year_persists_the_new_active_year(config_bundle):
    assert _run(config_bundle, "archive-year") == 0

    state = data_manager.load_document(config_bundle.data_path)
    assert state.current_year == 2026
    assert sorted(state.years) == [2025, 2026]


def test_archive_settlement_records_a_snapshot(config_bundle):
    assert _run(config_bundle, "archive-settlement", "--date", "2025-06-30") == 0

    state = data_manager.load_document(config_bundle.data_path)
    assert [settlement.date for settlement in state.year_data.partner_settlements] == ["2025-06-30"]


def test_complete_maceration_of_unknown_batch_changes_nothing(config_bundle):
    before = config_bundle.data_path.read_text(encoding="utf-8")

    assert _run(config_bundle, "complete-maceration", "--batch-id", "missing") == 0
    assert config_bundle.data_path.read_text(encoding="utf-8") == before


def test_backup_then_restore(config_bundle, tmp_path: Path):
    backup_path = tmp_path / "backup.json"
    assert _run(config_bundle, "backup", "--output", str(backup_path)) == 0
    assert _run(config_bundle, "archive-year") == 0

    assert _run(config_bundle, "restore", "--input", str(backup_path)) == 0

    assert data_manager.load_document(config_bundle.data_path).current_year == 2025


def test_restore_rejects_malformed_backup(config_bundle, tmp_path: Path):
    broken = tmp_path / "broken.json"
    broken.write_text('{"state": {}}', encoding="utf-8")

    assert _run(config_bundle, "restore", "--input", str(broken)) == 2
    assert _run(config_bundle, "restore", "--input", str(tmp_path / "absent.json")) == 3


def test_export_xlsx_writes_one_sheet_per_collection(config_bundle, tmp_path: Path):
    output = tmp_path / "export" / "year.xlsx"

    assert _run(config_bundle, "export-xlsx", "--output", str(output)) == 0

    workbook = openpyxl.load_workbook(output)
    assert workbook.sheetnames == ["Products", "Variants", "Batches", "Sales", "Ledger", "Balances"]
    balances = workbook["Balances"]
    assert balances.cell(row=1, column=1).value == "PartnerID"
    assert balances.cell(row=2, column=2).value == "Socio Test"
