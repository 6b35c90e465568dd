"""Import pipeline turning curriculum exports into the category/module/topic hierarchy."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from curriculumflow.models import (
    ImportResult,
    ImportStage,
    ParsedRow,
    SourceFormat,
    TopicSessionCreate,
)
from curriculumflow.parsing.mapper import (
    HEADER_SCAN_ROWS,
    find_header_row,
    map_rows,
    parse_date,
    parse_duration,
)
from curriculumflow.parsing.tabular import load_rows_from_file, parse_table
from curriculumflow.storage.base import CurriculumStore
from curriculumflow.storage.curriculum_db import CurriculumDatabase
from curriculumflow.validation.error_handler import (
    HEADER_NOT_FOUND_MESSAGE,
    ImportStageError,
    error_message,
    format_row_error,
)

DEFAULT_SESSION_TIME = "09:00"


@dataclass
class RunCaches:
    """Natural key to id memo tables, scoped to a single import run."""

    categories: Dict[str, int] = field(default_factory=dict)
    modules: Dict[str, int] = field(default_factory=dict)
    topics: Dict[str, int] = field(default_factory=dict)


class CurriculumImporter:
    """Orchestrates parsing, mapping and hierarchical upserts of curriculum rows."""

    def __init__(
        self,
        store: CurriculumStore,
        run_log: Optional[CurriculumDatabase] = None,
        header_scan_rows: int = HEADER_SCAN_ROWS,
        default_session_time: str = DEFAULT_SESSION_TIME,
    ) -> None:
        """Initialize the importer.

        Args:
            store: Persistence backend for categories, modules, topics and sessions
            run_log: Optional database in which to record each import run
            header_scan_rows: Number of leading rows searched for the header (default: 10)
            default_session_time: Time stored on every imported session (default: 09:00)
        """
        self.store = store
        self.run_log = run_log
        self.header_scan_rows = header_scan_rows
        self.default_session_time = default_session_time

        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_database_url(cls, database_url: str, **kwargs: Any) -> "CurriculumImporter":
        """Create an importer backed by a CurriculumDatabase.

        Args:
            database_url: SQLAlchemy database URL
            **kwargs: Extra keyword arguments for the importer

        Returns:
            CurriculumImporter recording its runs in the same database
        """
        database = CurriculumDatabase(database_url)
        database.create_tables()
        return cls(store=database, run_log=database, **kwargs)

    def import_text(self, text: str, source_name: str = "<text>") -> ImportResult:
        """Import the decoded contents of a CSV or HTML export.

        Args:
            text: Decoded export contents
            source_name: Label recorded in the import run log

        Returns:
            ImportResult with success, failed and skipped counts and errors
        """
        start_time = datetime.now()
        source_format: Optional[SourceFormat] = None

        try:
            rows, source_format = parse_table(text)
            result = self.import_grid(rows)
        except Exception as e:
            self.logger.error(f"Import of {source_name} failed: {e}")
            result = ImportResult.fatal(error_message(e))

        self._record_run(result, source_name, source_format, start_time)
        return result

    def import_file(self, file_path: Union[str, Path]) -> ImportResult:
        """Import a CSV, HTML or Excel export from disk.

        Args:
            file_path: Path to the export file

        Returns:
            ImportResult with success, failed and skipped counts and errors
        """
        start_time = datetime.now()
        source_name = Path(file_path).name
        source_format: Optional[SourceFormat] = None

        try:
            rows, source_format = load_rows_from_file(file_path)
            result = self.import_grid(rows)
        except Exception as e:
            self.logger.error(f"Import of {file_path} failed: {e}")
            result = ImportResult.fatal(error_message(e))

        self._record_run(result, source_name, source_format, start_time)
        return result

    def import_grid(self, rows: Sequence[Sequence[str]]) -> ImportResult:
        """Import an already-parsed grid, locating its header row first.

        Args:
            rows: Parsed grid of cell strings

        Returns:
            ImportResult; a single fatal error if no header row is found
        """
        header = find_header_row(rows, self.header_scan_rows)
        if not header.found:
            return ImportResult.fatal(HEADER_NOT_FOUND_MESSAGE)

        data_rows = rows[header.index + 1 :]
        self.logger.info(
            f"Header found at row {header.index}, processing {len(data_rows)} data rows"
        )
        return self.import_rows(map_rows(data_rows, header.headers))

    def preview_grid(self, rows: Sequence[Sequence[str]]) -> Dict:
        """Map a grid without writing anything.

        Args:
            rows: Parsed grid of cell strings

        Returns:
            Dict with header_index, data_rows, mapped_rows and importable_rows
            (rows carrying both a module code and a topic code)
        """
        header = find_header_row(rows, self.header_scan_rows)
        if not header.found:
            return {"header_index": -1, "data_rows": 0, "mapped_rows": 0, "importable_rows": 0}

        data_rows = rows[header.index + 1 :]
        mapped = [parsed for parsed in map_rows(data_rows, header.headers) if parsed]
        importable = [p for p in mapped if p.module_code and p.topic_code]

        return {
            "header_index": header.index,
            "data_rows": len(data_rows),
            "mapped_rows": len(mapped),
            "importable_rows": len(importable),
        }

    def import_rows(self, parsed_rows: Iterable[Optional[ParsedRow]]) -> ImportResult:
        """Upsert mapped rows in order, one at a time.

        A None entry stands for a blank or noise row; it is skipped but still
        counts towards row numbering.

        Args:
            parsed_rows: Mapped data rows in file order

        Returns:
            ImportResult with per-row outcomes
        """
        caches = RunCaches()
        success = 0
        failed = 0
        skipped = 0
        errors: List[str] = []

        for row_number, parsed in enumerate(parsed_rows, start=1):
            if parsed is None:
                self.logger.debug(f"Row {row_number}: skipped, missing category or topic")
                skipped += 1
                continue

            try:
                if self._import_row(parsed, caches, row_number):
                    success += 1
                else:
                    skipped += 1
            except Exception as e:
                failed += 1
                message = format_row_error(row_number, e)
                errors.append(message)
                self.logger.error(message)

        self.logger.info(
            f"Import complete: {success} succeeded, {failed} failed, {skipped} skipped "
            f"({len(caches.categories)} categories, {len(caches.modules)} modules, "
            f"{len(caches.topics)} topics resolved)"
        )

        return ImportResult(success=success, failed=failed, skipped=skipped, errors=errors)

    def _import_row(self, parsed: ParsedRow, caches: RunCaches, row_number: int) -> bool:
        """Resolve the hierarchy for one row and insert its session.

        Returns:
            True if a session row was inserted, False if the row was skipped

        Raises:
            ImportStageError: If any store call fails
        """
        category_id = self._resolve_category(parsed, caches)

        module_id = None
        if parsed.module_code and category_id is not None:
            module_id = self._resolve_module(parsed, category_id, caches)

        if module_id is None or not parsed.topic_code:
            reason = "module code" if module_id is None else "topic code"
            self.logger.debug(f"Row {row_number}: skipped, missing {reason}")
            return False

        topic_id = self._resolve_topic(parsed, module_id, caches)

        try:
            self.store.insert_topic_session(self._build_session(parsed, topic_id))
        except Exception as e:
            raise ImportStageError(ImportStage.SESSION, error_message(e)) from e

        return True

    def _resolve_category(self, parsed: ParsedRow, caches: RunCaches) -> int:
        name = parsed.content_category
        category_id = caches.categories.get(name)
        if category_id is not None:
            return category_id

        try:
            category_id = self.store.upsert_category(name)
        except Exception as e:
            raise ImportStageError(ImportStage.CATEGORY, error_message(e)) from e

        self.logger.debug(f"Category '{name}' -> {category_id}")
        caches.categories[name] = category_id
        return category_id

    def _resolve_module(self, parsed: ParsedRow, category_id: int, caches: RunCaches) -> int:
        module_key = f"{parsed.content_category}:{parsed.module_code}"
        module_id = caches.modules.get(module_key)
        if module_id is not None:
            return module_id

        try:
            module_id = self.store.upsert_module(
                category_id, parsed.module_code, parsed.module_title
            )
        except Exception as e:
            raise ImportStageError(ImportStage.MODULE, error_message(e)) from e

        self.logger.debug(f"Module '{module_key}' -> {module_id}")
        caches.modules[module_key] = module_id
        return module_id

    def _resolve_topic(self, parsed: ParsedRow, module_id: int, caches: RunCaches) -> int:
        topic_key = f"{module_id}:{parsed.topic_code}"
        topic_id = caches.topics.get(topic_key)
        if topic_id is not None:
            return topic_id

        duration = parse_duration(parsed.duration)
        try:
            topic_id = self.store.upsert_topic(
                module_id,
                parsed.topic_code,
                parsed.topic_title,
                duration.min,
                duration.max,
            )
        except Exception as e:
            raise ImportStageError(ImportStage.TOPIC, error_message(e)) from e

        self.logger.debug(f"Topic '{topic_key}' -> {topic_id}")
        caches.topics[topic_key] = topic_id
        return topic_id

    def _build_session(self, parsed: ParsedRow, topic_id: int) -> TopicSessionCreate:
        return TopicSessionCreate(
            topic_id=topic_id,
            status=(parsed.status or "pending").lower(),
            mentor_name=parsed.mentor_name,
            mentor_email=parsed.mentor_email,
            session_date=parse_date(parsed.session_date),
            session_time=self.default_session_time,
            video_english=parsed.videos_english,
            video_hindi=parsed.videos_hindi,
            worksheet_english=parsed.worksheets_english,
            worksheet_hindi=parsed.worksheets_hindi,
            practical_activity_english=parsed.practical_activity_english,
            practical_activity_hindi=parsed.practical_activity_hindi,
            quiz_content_ppt=parsed.quiz_content_ppt,
            final_content_ppt=parsed.final_content_ppt,
            revision_status=parsed.revision_status.lower() if parsed.revision_status else None,
            revision_mentor_name=parsed.revision_mentor_name,
            revision_mentor_email=parsed.revision_mentor_email,
            revision_date=parse_date(parsed.revision_date),
        )

    def _record_run(
        self,
        result: ImportResult,
        source_name: str,
        source_format: Optional[SourceFormat],
        start_time: datetime,
    ) -> None:
        duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
        if self.run_log is None:
            return

        try:
            self.run_log.log_import_run(
                result,
                source_name=source_name,
                source_format=source_format.value if source_format else None,
                duration_ms=duration_ms,
            )
        except Exception as e:
            self.logger.warning(f"Failed to record import run for {source_name}: {e}")

    def close(self) -> None:
        """Close the storage connections."""
        close = getattr(self.store, "close", None)
        if close is not None:
            close()
        if self.run_log is not None and self.run_log is not self.store:
            self.run_log.close()
