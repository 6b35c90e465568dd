"""curriculumflow - Curriculum spreadsheet import into a normalized category/module/topic hierarchy."""

from curriculumflow.api import CurriculumFlowAPI, CurriculumFlowConfig
from curriculumflow.ingestion.pipeline import CurriculumImporter
from curriculumflow.models import ImportResult, ParsedRow

__all__ = [
    "CurriculumFlowAPI",
    "CurriculumFlowConfig",
    "CurriculumImporter",
    "ImportResult",
    "ParsedRow",
]
