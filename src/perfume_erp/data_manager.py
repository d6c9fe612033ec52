"""Data access layer for Perfume ERP.

This module provides low-level helpers that read and write the JSON data
document. Business logic belongs elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Document lifecycle: loading, validating, and atomically persisting the
   ``{"state": ..., "settings": ...}`` document.
3. Backup handling: the same document shape doubles as the backup format.
"""

from __future__ import annotations

import configparser
import json
import os
import tempfile
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from . import log
from .constants import DEFAULT_PARTNER_ID
from .errors import FormatError
from .models import AppState, CompanyInfo, Partner, Settings


CONFIG_FILE_NAME = "config.ini"
STATE_KEY = "state"
SETTINGS_KEY = "settings"


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    company_name: str
    schema_version: str
    default_partner_name: str


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification, which allows the caller to deliberately target a
    non-standard location. When no explicit path is given the function walks up
    from the current working directory toward the filesystem root looking for a
    file named ``CONFIG_FILE_NAME``. The first match that exists on disk is
    considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search. May be relative to the current working directory.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Validation of required entries happens in :func:`parse_settings`.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    Relative ``DataFile`` entries are expanded against ``base_path`` when
    provided, or against the current working directory as a fallback.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory to use as the anchor for relative
            ``DataFile`` entries.

    Returns:
        ConfigSettings: Immutable settings container with resolved data file
            path, company name, schema version, and default partner name.

    Raises:
        KeyError: If one of the required sections or options is missing from the
            configuration.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        company_name = parser.get("System", "CompanyName")
        schema_version = parser.get("System", "SchemaVersion")
        default_partner = parser.get("Defaults", "DefaultPartner")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    data_file_path = Path(data_file_raw).expanduser()
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        company_name=company_name,
        schema_version=schema_version,
        default_partner_name=default_partner,
    )


def load_config_settings(config_path: Optional[Path] = None) -> ConfigSettings:
    """Find, read and parse ``config.ini`` in one step."""

    located = Path(find_config_file(config_path)).expanduser().resolve()
    return parse_settings(read_config(located), base_path=located.parent)


def initial_document(config: ConfigSettings, year: Optional[int] = None) -> AppState:
    """Fresh state seeded from configuration (company name, default partner)."""

    year = year or date.today().year
    state = AppState.initial(year)
    state.partners = [Partner(id=DEFAULT_PARTNER_ID, name=config.default_partner_name)]
    state.settings.company_info = CompanyInfo(name=config.company_name)
    return state


# ---------------------------------------------------------------------------
# Document (de)serialisation
# ---------------------------------------------------------------------------


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        as_float = float(value)
        if Decimal(repr(as_float)) == value:
            return as_float
        # beyond double precision; to_decimal reads the string back exactly
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def document_to_dict(state: AppState) -> Dict[str, Any]:
    """Build the ``{"state", "settings"}`` document for ``state``."""

    return {STATE_KEY: state.to_tree(), SETTINGS_KEY: state.settings.to_dict()}


def dumps_document(state: AppState) -> str:
    return json.dumps(document_to_dict(state), default=_json_default, ensure_ascii=False, indent=2)


def parse_document(raw: Any) -> AppState:
    """Validate a decoded document and build the state it describes.

    Both top-level keys must be present. Migration defaults are applied while
    loading (see :meth:`AppState.from_tree`).

    Raises:
        FormatError: If the document shape is invalid.
    """

    if not isinstance(raw, Mapping):
        raise FormatError("Backup document must be a JSON object")
    missing = [key for key in (STATE_KEY, SETTINGS_KEY) if key not in raw]
    if missing:
        raise FormatError(f"Backup document is missing required keys: {', '.join(missing)}")
    tree, settings = raw[STATE_KEY], raw[SETTINGS_KEY]
    if not isinstance(tree, Mapping) or not isinstance(settings, Mapping):
        raise FormatError("Backup 'state' and 'settings' must be JSON objects")

    try:
        return AppState.from_tree(tree, Settings.from_dict(settings))
    except (KeyError, TypeError, ValueError, AttributeError, InvalidOperation) as exc:
        raise FormatError(f"Malformed backup document: {exc}") from exc


def loads_document(text: str) -> AppState:
    try:
        raw = json.loads(text, parse_float=Decimal)
    except json.JSONDecodeError as exc:
        raise FormatError(f"Backup is not valid JSON: {exc}") from exc
    return parse_document(raw)


def load_document(data_file: Path) -> AppState:
    """Read the data document from disk.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist.
        FormatError: If its content is not a valid document.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Data file not found: {data_file}")
    state = loads_document(data_file.read_text(encoding="utf-8"))
    log.debug("Loaded data document '%s' (%d years)", data_file, len(state.years))
    return state


def save_document(state: AppState, destination: Path) -> None:
    """Persist ``state`` atomically at ``destination``.

    The document is written to a temporary sibling file which then replaces
    the destination, so readers never observe a half-written file. Parent
    directories are created on demand.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    payload = dumps_document(state)

    handle, temp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
    try:
        with os.fdopen(handle, "w", encoding="utf-8") as stream:
            stream.write(payload)
        os.replace(temp_name, dest)
    except OSError:
        Path(temp_name).unlink(missing_ok=True)
        raise
    log.debug("Saved data document '%s'", dest)


__all__ = [
    "CONFIG_FILE_NAME",
    "ConfigSettings",
    "find_config_file",
    "read_config",
    "parse_settings",
    "load_config_settings",
    "initial_document",
    "document_to_dict",
    "dumps_document",
    "parse_document",
    "loads_document",
    "load_document",
    "save_document",
]
