"""Mini README: Spreadsheet readers feeding the import normalizer.

Structure:
    * read_rows - load the first sheet of an ``.xlsx`` workbook or a ``.csv``
      file as a list of header-keyed dictionaries.

The first row supplies the column names; columns without a header are
ignored and rows whose cells are all blank are dropped. Cell values are
returned untouched (numbers, dates and strings as the source stores them)
so the normalizer decides how to coerce them. Anything that prevents the
file from being opened or parsed at all surfaces as ``ImportSourceError``.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence
from zipfile import BadZipFile

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from ..exceptions import ImportSourceError
from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
CSV_SUFFIXES = {".csv"}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _header_names(cells: Sequence[Any]) -> List[Optional[str]]:
    names: List[Optional[str]] = []
    for cell in cells:
        names.append(None if _is_blank(cell) else str(cell).strip())
    return names


def _rows_from_table(table: Iterable[Sequence[Any]]) -> List[Dict[str, Any]]:
    iterator = iter(table)
    header = next(iterator, None)
    if header is None:
        return []
    names = _header_names(header)

    rows: List[Dict[str, Any]] = []
    for cells in iterator:
        record = {
            name: cells[index] if index < len(cells) else None
            for index, name in enumerate(names)
            if name is not None
        }
        if all(_is_blank(value) for value in record.values()):
            continue
        rows.append(record)
    return rows


def _read_workbook(path: Path) -> List[Dict[str, Any]]:
    try:
        workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError, ValueError) as error:
        raise ImportSourceError(f"Cannot open workbook {path.name}: {error}") from error
    try:
        if not workbook.worksheets:
            raise ImportSourceError(f"Workbook {path.name} has no worksheets")
        sheet = workbook.worksheets[0]
        LOGGER.debug("Reading sheet '%s' from %s", sheet.title, path)
        return _rows_from_table(sheet.iter_rows(values_only=True))
    finally:
        workbook.close()


def _read_csv(path: Path) -> List[Dict[str, Any]]:
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as handle:
            return _rows_from_table(csv.reader(handle))
    except (OSError, UnicodeDecodeError, csv.Error) as error:
        raise ImportSourceError(f"Cannot read CSV file {path.name}: {error}") from error


def read_rows(path: Path | str) -> List[Dict[str, Any]]:
    """Return the data rows of a spreadsheet keyed by header name."""

    source = Path(path)
    if not source.is_file():
        raise ImportSourceError(f"Import source {source} does not exist")
    suffix = source.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        rows = _read_workbook(source)
    elif suffix in CSV_SUFFIXES:
        rows = _read_csv(source)
    else:
        raise ImportSourceError(
            f"Unsupported spreadsheet format '{source.suffix}'; expected one of "
            f"{', '.join(sorted(EXCEL_SUFFIXES | CSV_SUFFIXES))}"
        )
    LOGGER.info("Read %s data rows from %s", len(rows), source)
    return rows


def available_columns(rows: Iterable[Dict[str, Any]]) -> List[str]:
    """Column names present in ``rows`` in first-seen order."""

    columns: List[str] = []
    for row in rows:
        for name in row:
            if name and name.strip() and name not in columns:
                columns.append(name)
    return columns
