"""Utility for initializing the Perfume ERP data document.

The module doubles as a script (``python setup_data.py``) and as a library
used by tests or other tooling. It writes a fresh document with the seeded
categories, the configured default partner and the company name.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from perfume_erp import data_manager
from perfume_erp.session import ensure_schema_version


def create_data_document(
    config: data_manager.ConfigSettings,
    *,
    year: Optional[int] = None,
    overwrite: bool = False,
) -> Path:
    """Write an initial document to ``config.data_file``.

    When ``overwrite`` is ``False`` (the default) this function raises
    ``FileExistsError`` if the target already exists.
    """

    destination = Path(config.data_file).expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing data file: {destination}")

    state = data_manager.initial_document(config, year)
    data_manager.save_document(state, destination)
    return destination


def run_from_config(config_path: Path, *, year: Optional[int] = None, overwrite: bool = False) -> Path:
    config = data_manager.load_config_settings(config_path)
    ensure_schema_version(config)
    return create_data_document(config, year=year, overwrite=overwrite)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Initialize Perfume ERP data file")
    parser.add_argument(
        "--config",
        default=data_manager.CONFIG_FILE_NAME,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument("--year", type=int, default=None, help="Active year (default: current year).")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the target data file if it already exists.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the setup script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- Perfume ERP Setup Script ---")
    print(f"Using configuration: {config_path}")

    try:
        output_path = run_from_config(config_path, year=args.year, overwrite=args.force)
    except (FileNotFoundError, KeyError, RuntimeError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except OSError as exc:
        print(f"\n[ERROR] Unable to write data file: {exc}")
        return 1

    print(f"\n[SUCCESS] Created data document at '{output_path}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
