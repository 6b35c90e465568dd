"""Pytest configuration and fixtures for curriculumflow tests."""

from typing import Callable, Generator, List, Sequence

import pytest

from curriculumflow.ingestion.pipeline import CurriculumImporter
from curriculumflow.storage.curriculum_db import CurriculumDatabase

FULL_HEADERS = [
    "Content Category",
    "S No.",
    "Modules",
    "Topics Covered",
    "Duration of the videos (Including the translated videos)",
    "Videos",
    "Work Sheets",
    "Practical Activity",
    "Videos",
    "Work Sheets",
    "Practical Activity",
    "QUIZ/CONTENT PPT",
    "Final Content PPT",
    "Session Status",
    "Session By",
    "Session on",
    "Revision Session Status",
    "Session By",
    "Session on",
]


def _quote(cell: str) -> str:
    if any(ch in cell for ch in (",", '"')):
        return '"' + cell.replace('"', '""') + '"'
    return cell


@pytest.fixture
def csv_builder() -> Callable[[Sequence[Sequence[str]]], str]:
    """Return a function turning rows of cells into CSV text."""

    def build(rows: Sequence[Sequence[str]]) -> str:
        return "\n".join(",".join(_quote(cell) for cell in row) for row in rows)

    return build


@pytest.fixture
def full_headers() -> List[str]:
    """Return the complete curriculum tracker header row."""
    return list(FULL_HEADERS)


@pytest.fixture
def sample_csv(csv_builder) -> str:
    """Provide a small curriculum export with noise rows above the header."""
    rows = [
        ["AI Curriculum Tracker 2024", "", ""],
        ["", "", ""],
        FULL_HEADERS,
        [
            "AI", "M1", "Module One", "1.1 Introduction of AI", "10 to 15 mins",
            "https://v/en/1.1", "https://ws/en/1.1", "https://pa/en/1.1",
            "https://v/hi/1.1", "https://ws/hi/1.1", "https://pa/hi/1.1",
            "https://quiz/1.1", "https://final/1.1", "Completed",
            "Asha Rao", "2024-03-15", "Pending", "Ravi Kumar", "2024-04-01",
        ],
        [
            "AI", "M1", "Module One", "1.2 History of AI", "5 to 8 mins",
            "https://v/en/1.2", "", "", "", "", "", "", "", "",
            "", "", "", "", "",
        ],
        [
            "AI", "M2", "Module Two", "2.1 Data, Models and Bias", "12 to 20 mins",
            "https://v/en/2.1", "", "", "", "", "", "", "", "Available",
            "asha@example.org", "March 20, 2024", "", "", "",
        ],
        ["", "", "", "", "", "", "", "", "", "", "", "", "", "", "", "", "", "", ""],
    ]
    return csv_builder(rows)


@pytest.fixture
def tmp_db(tmp_path) -> Generator[CurriculumDatabase, None, None]:
    """Create a temporary curriculum database for testing."""
    db = CurriculumDatabase.from_path(str(tmp_path / "test_curriculum.db"))
    db.create_tables()
    yield db
    db.close()


@pytest.fixture
def importer(tmp_db) -> CurriculumImporter:
    """Create a CurriculumImporter writing to the temporary database."""
    return CurriculumImporter(store=tmp_db, run_log=tmp_db)
