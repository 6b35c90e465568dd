"""Pydantic models for curriculumflow data structures."""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SourceFormat(str, Enum):
    """Enumeration of supported export formats."""

    CSV = "csv"
    HTML = "html"
    XLSX = "xlsx"


class ImportStage(str, Enum):
    """Stages of the hierarchical upsert, used to label row errors."""

    CATEGORY = "Category"
    MODULE = "Module"
    TOPIC = "Topic"
    SESSION = "Session"


class HeaderMatch(BaseModel):
    """Location of the header row within a parsed grid."""

    index: int = Field(..., description="0-based row index, -1 when not found")
    headers: List[str] = Field(default_factory=list, description="Header cell values")

    @property
    def found(self) -> bool:
        return self.index >= 0


class Duration(BaseModel):
    """Lower and upper bound of a topic's video duration, in minutes."""

    min: int = 0
    max: int = 0


class ParsedRow(BaseModel):
    """One spreadsheet data row mapped into typed fields.

    All values are the trimmed cell text; dates and durations are parsed
    later by the upsert engine.
    """

    content_category: str
    module_code: str = ""
    module_title: str = ""
    topic_code: str = ""
    topic_title: str
    duration: str = ""
    videos_english: str = ""
    videos_hindi: str = ""
    worksheets_english: str = ""
    worksheets_hindi: str = ""
    practical_activity_english: str = ""
    practical_activity_hindi: str = ""
    quiz_content_ppt: str = ""
    final_content_ppt: str = ""
    status: str = "pending"
    mentor_name: str = ""
    mentor_email: str = ""
    session_date: str = ""
    revision_status: str = ""
    revision_mentor_name: str = ""
    revision_mentor_email: str = ""
    revision_date: str = ""


class TopicSessionCreate(BaseModel):
    """Fact row inserted into topic_sessions for one imported data row."""

    topic_id: int
    status: str
    mentor_name: str = ""
    mentor_email: str = ""
    session_date: Optional[date] = None
    session_time: str = "09:00"
    video_english: str = ""
    video_hindi: str = ""
    worksheet_english: str = ""
    worksheet_hindi: str = ""
    practical_activity_english: str = ""
    practical_activity_hindi: str = ""
    quiz_content_ppt: str = ""
    final_content_ppt: str = ""
    revision_status: Optional[str] = None
    revision_mentor_name: str = ""
    revision_mentor_email: str = ""
    revision_date: Optional[date] = None


class ImportResult(BaseModel):
    """Outcome of one import run.

    ``success`` counts inserted sessions, ``failed`` counts rows whose store
    calls raised, and ``skipped`` counts rows that produced no writes.
    """

    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = Field(default_factory=list)

    @classmethod
    def fatal(cls, message: str) -> "ImportResult":
        """Create a result for an import that aborted before any row.

        Args:
            message: Error message to surface to the caller

        Returns:
            ImportResult with zero counts and a single error
        """
        return cls(success=0, failed=0, skipped=0, errors=[message])
