"""Header detection and row mapping for curriculum spreadsheet exports."""

import logging
import re
from datetime import date
from typing import Dict, Iterator, List, Optional, Sequence, Union

from dateutil import parser as dtparser

from curriculumflow.models import Duration, HeaderMatch, ParsedRow
from curriculumflow.validation.error_handler import default_if_empty

logger = logging.getLogger(__name__)

# Column headers, matched exactly against the header row
CATEGORY_COLUMN = "Content Category"
MODULE_CODE_COLUMN = "S No."
MODULE_TITLE_COLUMN = "Modules"
TOPIC_COLUMN = "Topics Covered"
DURATION_COLUMN = "Duration of the videos (Including the translated videos)"
VIDEOS_COLUMN = "Videos"
WORKSHEETS_COLUMN = "Work Sheets"
PRACTICAL_COLUMN = "Practical Activity"
QUIZ_PPT_COLUMN = "QUIZ/CONTENT PPT"
FINAL_PPT_COLUMN = "Final Content PPT"
STATUS_COLUMN = "Session Status"
SESSION_BY_COLUMN = "Session By"
SESSION_ON_COLUMN = "Session on"
REVISION_STATUS_COLUMN = "Revision Session Status"

HEADER_SENTINELS = (CATEGORY_COLUMN, MODULE_CODE_COLUMN, MODULE_TITLE_COLUMN)
HEADER_SCAN_ROWS = 10
DEFAULT_STATUS = "pending"

TOPIC_CODE_RE = re.compile(r"^(\d+\.\d+)")
DURATION_RE = re.compile(r"(\d+)\s*to\s*(\d+)")


def find_header_row(
    rows: Sequence[Sequence[str]], max_scan_rows: int = HEADER_SCAN_ROWS
) -> HeaderMatch:
    """Locate the header row amid leading noise rows.

    A row qualifies when any of its cells exactly equals one of the sentinel
    column names.

    Args:
        rows: Parsed grid
        max_scan_rows: Number of leading rows to inspect (default: 10)

    Returns:
        HeaderMatch for the first qualifying row, or index -1 with no headers
    """
    for i, row in enumerate(rows[:max_scan_rows]):
        if any(sentinel in row for sentinel in HEADER_SENTINELS):
            logger.debug(f"Found header row at index {i}: {list(row)}")
            return HeaderMatch(index=i, headers=list(row))

    logger.warning(f"Header row not found in first {max_scan_rows} rows")
    return HeaderMatch(index=-1, headers=[])


class ColumnIndex:
    """Positions of every header name, in left-to-right order.

    Repeated header names (English and Hindi variants, main and revision
    sessions) are told apart by their 1-based occurrence.
    """

    def __init__(self, headers: Sequence[str]) -> None:
        self.headers = list(headers)
        self._positions: Dict[str, List[int]] = {}
        for i, name in enumerate(self.headers):
            self._positions.setdefault(name, []).append(i)

    def position(self, name: str, occurrence: int = 1) -> Optional[int]:
        """Return the column position of the Nth header named ``name``."""
        positions = self._positions.get(name, [])
        if occurrence < 1 or occurrence > len(positions):
            return None
        return positions[occurrence - 1]

    def get(self, row: Sequence[str], name: str, occurrence: int = 1) -> str:
        """Return the trimmed cell under the Nth header named ``name``.

        Missing headers and short rows both yield an empty string.
        """
        i = self.position(name, occurrence)
        if i is None or i >= len(row):
            return ""
        return (row[i] or "").strip()


def get_column(
    row: Sequence[str], headers: Sequence[str], name: str, occurrence: int = 1
) -> str:
    """Look up a cell by header name and 1-based occurrence.

    Args:
        row: Data row cells
        headers: Header row cells
        name: Exact header name
        occurrence: Which of several same-named columns to read (default: 1)

    Returns:
        Trimmed cell value, or "" if no such column exists
    """
    return ColumnIndex(headers).get(row, name, occurrence)


def extract_topic_code(title: str) -> str:
    """Extract a leading "N.N" code from a topic title.

    Args:
        title: Topic title, e.g. "1.1 Introduction of AI"

    Returns:
        The code ("1.1"), or "" if the title does not start with one
    """
    match = TOPIC_CODE_RE.match(title)
    return match.group(1) if match else ""


def parse_duration(text: str) -> Duration:
    """Parse a duration of the form "N to M" (e.g. "10 to 15 mins").

    Args:
        text: Free-text duration

    Returns:
        Duration bounds, or 0/0 when the pattern is absent
    """
    match = DURATION_RE.search(text or "")
    if match:
        return Duration(min=int(match.group(1)), max=int(match.group(2)))
    return Duration(min=0, max=0)


def parse_date(text: str) -> Optional[date]:
    """Parse a free-text date.

    Args:
        text: Date string in any format dateutil understands

    Returns:
        Parsed date, or None for empty or unparseable input
    """
    if not text or not text.strip():
        return None

    try:
        return dtparser.parse(text.strip()).date()
    except (ValueError, OverflowError) as e:
        logger.warning(f"Could not parse date '{text}': {e}")
        return None


def map_row(
    row: Sequence[str], headers: Union[Sequence[str], ColumnIndex]
) -> Optional[ParsedRow]:
    """Map one data row into a ParsedRow.

    Args:
        row: Data row cells
        headers: Header row cells, or a precomputed ColumnIndex

    Returns:
        ParsedRow, or None when the category or topic title is missing
    """
    columns = headers if isinstance(headers, ColumnIndex) else ColumnIndex(headers)

    content_category = columns.get(row, CATEGORY_COLUMN)
    topic_title = columns.get(row, TOPIC_COLUMN)

    # Blank and noise rows
    if not content_category or not topic_title:
        return None

    # First occurrence is the main session, second the revision session
    session_by = columns.get(row, SESSION_BY_COLUMN, 1)
    revision_session_by = columns.get(row, SESSION_BY_COLUMN, 2)

    return ParsedRow(
        content_category=content_category,
        module_code=columns.get(row, MODULE_CODE_COLUMN),
        module_title=columns.get(row, MODULE_TITLE_COLUMN),
        topic_code=extract_topic_code(topic_title),
        topic_title=topic_title,
        duration=columns.get(row, DURATION_COLUMN),
        videos_english=columns.get(row, VIDEOS_COLUMN, 1),
        videos_hindi=columns.get(row, VIDEOS_COLUMN, 2),
        worksheets_english=columns.get(row, WORKSHEETS_COLUMN, 1),
        worksheets_hindi=columns.get(row, WORKSHEETS_COLUMN, 2),
        practical_activity_english=columns.get(row, PRACTICAL_COLUMN, 1),
        practical_activity_hindi=columns.get(row, PRACTICAL_COLUMN, 2),
        quiz_content_ppt=columns.get(row, QUIZ_PPT_COLUMN),
        final_content_ppt=columns.get(row, FINAL_PPT_COLUMN),
        status=default_if_empty(columns.get(row, STATUS_COLUMN), DEFAULT_STATUS),
        mentor_name=session_by,
        mentor_email=session_by,
        session_date=columns.get(row, SESSION_ON_COLUMN, 1),
        revision_status=columns.get(row, REVISION_STATUS_COLUMN),
        revision_mentor_name=revision_session_by,
        revision_mentor_email=revision_session_by,
        revision_date=columns.get(row, SESSION_ON_COLUMN, 2),
    )


def map_rows(
    rows: Sequence[Sequence[str]], headers: Sequence[str]
) -> Iterator[Optional[ParsedRow]]:
    """Lazily map data rows, yielding None for rows that should be skipped.

    Args:
        rows: Data rows following the header row
        headers: Header row cells

    Yields:
        ParsedRow or None, one per input row, in order
    """
    columns = ColumnIndex(headers)
    for row in rows:
        yield map_row(row, columns)
