# decoder.py
# Streaming reader for TSE delimited text files (latin-1, ';'-separated, header on line 1)

from __future__ import annotations
import csv
from typing import Iterator, Optional
from .errors import RowParseError
from .schemas import RecordFamily, SchemaVariant, NUMERIC_SENTINELS

SOURCE_ENCODING = "latin-1"
DELIMITER = ";"
NULL_TOKENS = ("#NULO", "#NE", "#NULO#")


def _reader(fh):
    # TSE files are not strict about quoting; keep quote chars inside cells as-is
    return csv.reader(fh, delimiter=DELIMITER, quotechar='"', strict=False)


def iter_rows(path: str) -> Iterator[tuple[int, list[str]]]:
    """
    Yield (line_number, cells) for every data row of the file.
    The header (line 1) and blank lines are skipped; line_number is the
    physical source line the row ended on.
    """
    with open(path, "r", encoding=SOURCE_ENCODING, newline="") as fh:
        reader = _reader(fh)
        for cells in reader:
            if reader.line_num <= 1:
                continue
            if not cells or (len(cells) == 1 and not cells[0].strip()):
                continue
            yield reader.line_num, cells


def read_first_row(path: str) -> Optional[list[str]]:
    for _, cells in iter_rows(path):
        return cells
    return None


def normalize_cell(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value or value in NULL_TOKENS:
        return None
    return value


def coerce_int(value: Optional[str], absent: Optional[int]) -> Optional[int]:
    if value is None:
        return absent
    try:
        number = int(value)
    except ValueError:
        try:
            number = int(float(value.replace(",", ".")))
        except (ValueError, OverflowError):
            # inf, nan and out-of-range exponents are not counts
            return absent
    if number in NUMERIC_SENTINELS:
        return absent
    return number


def raw_line(cells: list[str]) -> str:
    return DELIMITER.join(cells)


def decode_row(
    family: RecordFamily,
    variant: SchemaVariant,
    cells: list[str],
    expected_columns: int,
    row_number: Optional[int] = None,
) -> dict:
    if len(cells) != expected_columns:
        raise RowParseError(
            f"Expected {expected_columns} columns, found {len(cells)}", row_number
        )
    record = family.blank_record()
    for idx, column in enumerate(variant.columns):
        value = normalize_cell(cells[idx]) if idx < len(cells) else None
        if column in variant.numeric:
            record[column] = coerce_int(value, family.absent_numeric)
        else:
            record[column] = value

    missing = []
    for name in family.required:
        value = record.get(name)
        if value is None:
            missing.append(name)
        elif family.absent_numeric is not None and name in family.numeric and value == family.absent_numeric:
            missing.append(name)
    if missing:
        raise RowParseError(f"Missing required field(s): {', '.join(missing)}", row_number)
    return record


def cell_as_int(cells: list[str], index: Optional[int]) -> Optional[int]:
    """Read one numeric cell without decoding the whole row (role filter)."""
    if index is None or index >= len(cells):
        return None
    return coerce_int(normalize_cell(cells[index]), None)
