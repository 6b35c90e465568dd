"""Tabular parsing of spreadsheet exports into rectangular string grids."""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Tuple, Union

from bs4 import BeautifulSoup
from openpyxl import load_workbook

from curriculumflow.models import SourceFormat

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}


def parse_csv(text: str) -> List[List[str]]:
    """Parse comma-delimited text into rows of trimmed cells.

    Each line is parsed independently. Double quotes toggle a quoted region
    in which commas are literal, and a doubled quote inside that region is an
    escaped quote character. Malformed quoting is not an error: an
    unterminated quote simply runs to the end of the line.

    Args:
        text: Raw delimited text

    Returns:
        List of rows, each a list of cell strings
    """
    lines = text.strip().split("\n")
    return [_parse_csv_line(line) for line in lines]


def _parse_csv_line(line: str) -> List[str]:
    cells: List[str] = []
    current: List[str] = []
    inside_quotes = False
    i = 0

    while i < len(line):
        char = line[i]

        if char == '"':
            if inside_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                inside_quotes = not inside_quotes
        elif char == "," and not inside_quotes:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    cells.append("".join(current).strip())
    return cells


def detect_format(text: str) -> SourceFormat:
    """Detect whether decoded text is an HTML table export or CSV.

    Args:
        text: Decoded file contents

    Returns:
        SourceFormat.HTML if the text contains table markup, else SourceFormat.CSV
    """
    if "<table" in text or "<tr" in text:
        return SourceFormat.HTML
    return SourceFormat.CSV


def parse_html(html: str) -> List[List[str]]:
    """Parse the rows of an HTML table export.

    Args:
        html: HTML document containing one or more tables

    Returns:
        One row per <tr> that has at least one cell, cells trimmed
    """
    soup = BeautifulSoup(html, "html.parser")
    rows: List[List[str]] = []

    for tr in soup.find_all("tr"):
        cells = [
            " ".join(cell.get_text().split())
            for cell in tr.find_all(["td", "th"], recursive=False)
        ]
        if cells:
            rows.append(cells)

    return rows


def parse_table(text: str) -> Tuple[List[List[str]], SourceFormat]:
    """Parse decoded export text, dispatching on its detected format.

    Args:
        text: Decoded file contents (CSV or HTML)

    Returns:
        Tuple of (rows, detected format)
    """
    source_format = detect_format(text)
    if source_format == SourceFormat.HTML:
        rows = parse_html(text)
    else:
        rows = parse_csv(text)

    logger.debug(f"Parsed {len(rows)} rows as {source_format.value}")
    return rows, source_format


def _cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        if value.hour == value.minute == value.second == 0:
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def parse_workbook(file_path: Union[str, Path]) -> List[List[str]]:
    """Read the first worksheet of an Excel workbook as a string grid.

    Cells covered by a merged range take the value of the range's top-left
    cell, so category and module labels spanning several rows repeat on each.

    Args:
        file_path: Path to the .xlsx workbook

    Returns:
        List of rows, each a list of cell strings
    """
    workbook = load_workbook(str(file_path), data_only=True)
    try:
        sheet = workbook.worksheets[0]

        merged = {}
        for cell_range in sheet.merged_cells.ranges:
            min_col, min_row, max_col, max_row = cell_range.bounds
            top_value = sheet.cell(min_row, min_col).value
            for r in range(min_row, max_row + 1):
                for c in range(min_col, max_col + 1):
                    merged[(r, c)] = top_value

        rows: List[List[str]] = []
        for r in range(1, sheet.max_row + 1):
            row = []
            for c in range(1, sheet.max_column + 1):
                value = sheet.cell(r, c).value
                if value is None and (r, c) in merged:
                    value = merged[(r, c)]
                row.append(_cell_to_text(value))
            rows.append(row)
    finally:
        workbook.close()

    return rows


def load_rows_from_file(file_path: Union[str, Path]) -> Tuple[List[List[str]], SourceFormat]:
    """Load a CSV, HTML or Excel export from disk into a string grid.

    Args:
        file_path: Path to the export file

    Returns:
        Tuple of (rows, detected format)
    """
    path = Path(file_path)

    if path.suffix.lower() in EXCEL_SUFFIXES:
        rows = parse_workbook(path)
        logger.debug(f"Read {len(rows)} rows from workbook {path.name}")
        return rows, SourceFormat.XLSX

    text = path.read_text(encoding="utf-8-sig", errors="replace")
    return parse_table(text)
