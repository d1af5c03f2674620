"""Data access layer for the cookie ledger.

This module provides low-level helpers that locate and read the exported
source files. Reconciliation logic belongs elsewhere.

The public API is designed around two responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Source file access: loading spreadsheet exports as header-keyed rows and
   JSON API snapshots as plain Python structures.
"""


from __future__ import annotations

import configparser
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import DEFAULT_COUNCIL_ID


CONFIG_FILE_NAME = "config.ini"
DEFAULT_DATA_DIRECTORY = "data"


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_dir: Path
    troop_number: Optional[str]
    troop_name: Optional[str]
    council_id: str


def find_config_file(explicit_path: Optional[Path] = None, *, start: Optional[Path] = None) -> Path:
    """Return the ``config.ini`` for this run.

    An explicit path wins and is returned as given; :func:`read_config`
    reports it if it does not exist. Otherwise the troop folder is searched
    from ``start`` (the working directory by default) up to the filesystem
    root, so a run started from ``data/sync`` still finds the config kept at
    the troop folder's top.

    Args:
        explicit_path (Path | None): Config path chosen by the caller.
        start (Path | None): Directory the upward search begins in.

    Returns:
        Path: ``explicit_path`` or the nearest ``config.ini`` found.

    Raises:
        FileNotFoundError: If no directory on the way up holds
            ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    origin = Path(start) if start is not None else Path.cwd()
    for directory in (origin, *origin.parents):
        candidate = directory / CONFIG_FILE_NAME
        if candidate.is_file():
            log.debug("Using configuration at %s", candidate)
            return candidate

    raise FileNotFoundError(f"No {CONFIG_FILE_NAME} found in {origin} or any parent directory")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Parse ``config_path`` without validating its contents.

    Required entries are checked by :func:`parse_settings`, so a config
    missing a section still loads here.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
    """

    config_path = Path(config_path).expanduser().resolve()
    if not config_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    with config_path.open(encoding="utf-8") as handle:
        parser.read_file(handle)
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[Troop] Number`` and ``[Data] Directory`` are required. The troop name
    and council id are optional; the council id defaults to
    ``DEFAULT_COUNCIL_ID``. A relative data directory is expanded against
    ``base_path`` when provided, or against the current working directory.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory to use as the anchor for a relative
            ``Directory`` entry, normally the folder holding ``config.ini``.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If one of the required sections or options is missing from the
            configuration.
    """

    try:
        troop_number = parser.get("Troop", "Number")
        data_dir_raw = parser.get("Data", "Directory")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    troop_name = parser.get("Troop", "Name", fallback="").strip() or None
    council_id = parser.get("Troop", "Council", fallback="").strip() or DEFAULT_COUNCIL_ID

    data_dir = Path(data_dir_raw or DEFAULT_DATA_DIRECTORY).expanduser()
    if not data_dir.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_dir = (base_path / data_dir).resolve()

    return ConfigSettings(
        data_dir=data_dir,
        troop_number=troop_number.strip() or None,
        troop_name=troop_name,
        council_id=council_id,
    )


def load_settings(explicit_path: Optional[Path] = None) -> ConfigSettings:
    """Find, read, and parse ``config.ini`` in one step."""

    config_path = find_config_file(explicit_path)
    parser = read_config(config_path)
    settings = parse_settings(parser, base_path=Path(config_path).expanduser().resolve().parent)
    log.info("Loaded settings from %s (troop %s)", config_path, settings.troop_number)
    return settings


def open_workbook(source_file: Path) -> Workbook:
    """Open a spreadsheet export read-only with cached cell values.

    Args:
        source_file (Path): Filesystem path to the ``.xlsx`` export.

    Returns:
        Workbook: ``openpyxl`` workbook instance backed by the provided file.

    Raises:
        FileNotFoundError: If ``source_file`` does not exist after expansion and
            resolution.
    """

    source_file = Path(source_file).expanduser().resolve()
    if not source_file.exists():
        raise FileNotFoundError(f"Workbook not found: {source_file}")

    return openpyxl.load_workbook(source_file, read_only=True, data_only=True)


def load_sheet_rows(source_file: Path, sheet_name: Optional[str] = None) -> List[Dict[str, Any]]:
    """Read one worksheet into dicts keyed by the header row.

    The first row supplies the keys; header cells that are blank are dropped
    along with their column. Rows whose cells are all ``None`` are skipped.

    Args:
        source_file (Path): Spreadsheet export to read.
        sheet_name (str | None): Worksheet to read; the active sheet when
            omitted.

    Returns:
        list[dict[str, Any]]: One dict per populated data row.

    Raises:
        FileNotFoundError: If the file does not exist.
        KeyError: If ``sheet_name`` is not in the workbook.
    """

    wb = open_workbook(source_file)
    try:
        sheet = wb[sheet_name] if sheet_name else wb.active
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        keys = [str(cell).strip() if cell is not None else None for cell in header]

        records: List[Dict[str, Any]] = []
        for raw in rows:
            # skip fully empty rows
            if not any(cell is not None for cell in raw):
                continue
            records.append({key: value for key, value in zip(keys, raw) if key})
    finally:
        wb.close()

    log.debug("Read %d row(s) from %s", len(records), source_file)
    return records


def load_json(source_file: Path) -> Any:
    """Load a JSON snapshot, returning ``None`` when the file does not exist.

    Raises:
        json.JSONDecodeError: If the file exists but is not valid JSON.
    """

    source_file = Path(source_file).expanduser()
    if not source_file.exists():
        return None
    with source_file.open(encoding="utf-8") as handle:
        return json.load(handle)


__all__ = [
    "CONFIG_FILE_NAME",
    "ConfigSettings",
    "find_config_file",
    "read_config",
    "parse_settings",
    "load_settings",
    "open_workbook",
    "load_sheet_rows",
    "load_json",
]
