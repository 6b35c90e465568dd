"""Public API facade for embedding the curriculum importer in other applications."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from curriculumflow.ingestion.pipeline import CurriculumImporter
from curriculumflow.models import ImportResult
from curriculumflow.storage.curriculum_db import CurriculumDatabase

logger = logging.getLogger(__name__)


def _default_database_url() -> str:
    url = os.getenv("CURRICULUM_DATABASE_URL")
    if url:
        return url
    return f"sqlite:///{os.getenv('CURRICULUM_DB_PATH', './curriculum.db')}"


@dataclass
class CurriculumFlowConfig:
    """Configuration for the curriculum importer."""

    database_url: str = field(default_factory=_default_database_url)
    header_scan_rows: int = field(
        default_factory=lambda: int(os.getenv("CURRICULUM_HEADER_SCAN_ROWS", "10"))
    )
    default_session_time: str = field(
        default_factory=lambda: os.getenv("CURRICULUM_SESSION_TIME", "09:00")
    )
    error_display_limit: int = field(
        default_factory=lambda: int(os.getenv("CURRICULUM_ERROR_LIMIT", "10"))
    )

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "CurriculumFlowConfig":
        """Create config from dictionary."""
        return cls(**{k: v for k, v in config.items() if k in cls.__dataclass_fields__})


class CurriculumFlowAPI:
    """Unified API facade for curriculum imports and statistics.

    Example:
        >>> api = CurriculumFlowAPI({"database_url": "sqlite:///curriculum.db"})
        >>> result = api.import_file("curriculum.csv")
        >>> stats = api.get_stats()
    """

    def __init__(
        self,
        config: Optional[Union[CurriculumFlowConfig, Dict[str, Any]]] = None,
        lazy_init: bool = False,
    ):
        """Initialize the API.

        Args:
            config: Configuration object or dictionary. Uses environment variables if None.
            lazy_init: If True, defer database initialization until first use.
        """
        if config is None:
            self.config = CurriculumFlowConfig()
        elif isinstance(config, dict):
            self.config = CurriculumFlowConfig.from_dict(config)
        else:
            self.config = config

        self._database: Optional[CurriculumDatabase] = None
        self._importer: Optional[CurriculumImporter] = None
        self._initialized = False

        if not lazy_init:
            self._initialize_clients()

    def _initialize_clients(self) -> None:
        """Initialize the database and importer."""
        if self._initialized:
            return

        logger.info("Initializing curriculum database...")

        self._database = CurriculumDatabase(self.config.database_url)
        self._database.create_tables()

        self._importer = CurriculumImporter(
            store=self._database,
            run_log=self._database,
            header_scan_rows=self.config.header_scan_rows,
            default_session_time=self.config.default_session_time,
        )

        self._initialized = True
        logger.info("Curriculum database initialized successfully")

    @property
    def database(self) -> CurriculumDatabase:
        """Get the curriculum database."""
        if not self._initialized:
            self._initialize_clients()
        return self._database

    @property
    def importer(self) -> CurriculumImporter:
        """Get the curriculum importer."""
        if not self._initialized:
            self._initialize_clients()
        return self._importer

    def import_text(self, text: str, source_name: str = "<text>") -> ImportResult:
        """Import decoded CSV or HTML export text."""
        return self.importer.import_text(text, source_name=source_name)

    def import_file(self, file_path: Union[str, Path]) -> ImportResult:
        """Import a CSV, HTML or Excel export file."""
        return self.importer.import_file(file_path)

    def get_stats(self) -> Dict:
        """Get counts of categories, modules, topics and sessions."""
        return self.database.get_curriculum_stats()

    def list_runs(self, limit: int = 20) -> List[Dict]:
        """List recent import runs, newest first."""
        return self.database.list_import_runs(limit=limit)

    def close(self) -> None:
        """Close all connections."""
        if self._database is not None:
            self._database.close()
        self._database = None
        self._importer = None
        self._initialized = False
        logger.info("Curriculum database connections closed")

    def __enter__(self) -> "CurriculumFlowAPI":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
