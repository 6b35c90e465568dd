"""Curriculum database management for natural-key upserts and import logging."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import create_engine, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from curriculumflow.models import ImportResult, TopicSessionCreate
from curriculumflow.storage.models import (
    Base,
    ContentCategory,
    ImportRun,
    Module,
    Topic,
    TopicSession,
)
from curriculumflow.validation.error_handler import StoreError, error_message

logger = logging.getLogger(__name__)


class CurriculumDatabase:
    """SQLAlchemy implementation of the CurriculumStore interface."""

    def __init__(self, database_url: str):
        """Initialize the curriculum database.

        Args:
            database_url: SQLAlchemy database URL (e.g. sqlite:///curriculum.db)
        """
        self.database_url = database_url
        self.engine = create_engine(database_url)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    @classmethod
    def from_path(cls, database_path: str) -> "CurriculumDatabase":
        """Create a database backed by a SQLite file.

        Args:
            database_path: Path to SQLite database file

        Returns:
            CurriculumDatabase instance
        """
        return cls(f"sqlite:///{database_path}")

    def create_tables(self) -> None:
        """Create all database tables if they don't exist."""
        Base.metadata.create_all(self.engine)

    def _upsert(
        self, model: Type[Base], keys: Dict[str, Any], values: Dict[str, Any]
    ) -> int:
        """Insert a row or update the one holding the natural key.

        Args:
            model: ORM class of the target table
            keys: Natural-key columns and their values
            values: Non-key columns to write

        Returns:
            id of the inserted or updated row

        Raises:
            StoreError: If the database operation fails
        """
        session = self.session_factory()
        try:
            existing = session.query(model).filter_by(**keys).first()
            if existing:
                for column, value in values.items():
                    setattr(existing, column, value)
                session.commit()
                return existing.id

            row = model(**keys, **values)
            session.add(row)
            try:
                session.commit()
                return row.id
            except IntegrityError:
                # Another writer created the key between our select and insert
                session.rollback()
                existing = session.query(model).filter_by(**keys).first()
                if existing is None:
                    raise
                for column, value in values.items():
                    setattr(existing, column, value)
                session.commit()
                return existing.id
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(error_message(e)) from e
        finally:
            session.close()

    def upsert_category(self, name: str) -> int:
        """Upsert a content category keyed by name.

        Args:
            name: Category name

        Returns:
            Category id
        """
        return self._upsert(ContentCategory, {"name": name}, {})

    def upsert_module(self, category_id: int, module_code: str, title: str) -> int:
        """Upsert a module keyed by category and module code.

        Args:
            category_id: Owning category id
            module_code: Short module code (e.g. "M1")
            title: Module title, updated on conflict

        Returns:
            Module id
        """
        return self._upsert(
            Module,
            {"category_id": category_id, "module_code": module_code},
            {"title": title},
        )

    def upsert_topic(
        self,
        module_id: int,
        topic_code: str,
        title: str,
        duration_min: int,
        duration_max: int,
    ) -> int:
        """Upsert a topic keyed by module and topic code.

        Args:
            module_id: Owning module id
            topic_code: Decimal topic code (e.g. "1.1")
            title: Topic title, updated on conflict
            duration_min: Lower duration bound in minutes
            duration_max: Upper duration bound in minutes

        Returns:
            Topic id
        """
        return self._upsert(
            Topic,
            {"module_id": module_id, "topic_code": topic_code},
            {
                "title": title,
                "duration_min": duration_min,
                "duration_max": duration_max,
            },
        )

    def insert_topic_session(self, session_data: TopicSessionCreate) -> int:
        """Insert a topic session fact row.

        Args:
            session_data: Session fields to persist

        Returns:
            id of the new session row

        Raises:
            StoreError: If the insert fails
        """
        session = self.session_factory()
        try:
            row = TopicSession(**session_data.model_dump())
            session.add(row)
            session.commit()
            return row.id
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(error_message(e)) from e
        finally:
            session.close()

    def get_category_by_name(self, name: str) -> Optional[ContentCategory]:
        """Retrieve a content category by name.

        Args:
            name: Category name

        Returns:
            ContentCategory object if found, None otherwise
        """
        session = self.session_factory()
        try:
            result = session.query(ContentCategory).filter_by(name=name).first()
            if result:
                session.expunge(result)
            return result
        finally:
            session.close()

    def get_module(self, category_id: int, module_code: str) -> Optional[Module]:
        """Retrieve a module by its natural key.

        Args:
            category_id: Owning category id
            module_code: Module code

        Returns:
            Module object if found, None otherwise
        """
        session = self.session_factory()
        try:
            result = (
                session.query(Module)
                .filter_by(category_id=category_id, module_code=module_code)
                .first()
            )
            if result:
                session.expunge(result)
            return result
        finally:
            session.close()

    def get_topic(self, module_id: int, topic_code: str) -> Optional[Topic]:
        """Retrieve a topic by its natural key.

        Args:
            module_id: Owning module id
            topic_code: Topic code

        Returns:
            Topic object if found, None otherwise
        """
        session = self.session_factory()
        try:
            result = (
                session.query(Topic)
                .filter_by(module_id=module_id, topic_code=topic_code)
                .first()
            )
            if result:
                session.expunge(result)
            return result
        finally:
            session.close()

    def get_sessions_for_topic(self, topic_id: int) -> List[TopicSession]:
        """Retrieve all session fact rows for a topic, oldest first.

        Args:
            topic_id: Topic id

        Returns:
            List of TopicSession objects
        """
        session = self.session_factory()
        try:
            results = (
                session.query(TopicSession)
                .filter_by(topic_id=topic_id)
                .order_by(TopicSession.id)
                .all()
            )
            for result in results:
                session.expunge(result)
            return results
        finally:
            session.close()

    def get_curriculum_stats(self) -> Dict:
        """Compute aggregate statistics across the curriculum tables.

        Returns:
            Dictionary containing:
                - total_categories: Number of content categories
                - total_modules: Number of modules
                - total_topics: Number of topics
                - total_sessions: Number of topic session rows
                - sessions_by_status: Dict mapping status to count
        """
        session = self.session_factory()
        try:
            total_categories = session.query(func.count(ContentCategory.id)).scalar()
            total_modules = session.query(func.count(Module.id)).scalar()
            total_topics = session.query(func.count(Topic.id)).scalar()
            total_sessions = session.query(func.count(TopicSession.id)).scalar()

            status_counts = (
                session.query(TopicSession.status, func.count(TopicSession.id))
                .group_by(TopicSession.status)
                .all()
            )
            sessions_by_status = {status: count for status, count in status_counts}

            return {
                "total_categories": total_categories or 0,
                "total_modules": total_modules or 0,
                "total_topics": total_topics or 0,
                "total_sessions": total_sessions or 0,
                "sessions_by_status": sessions_by_status,
            }
        finally:
            session.close()

    def log_import_run(
        self,
        result: ImportResult,
        source_name: str,
        source_format: Optional[str],
        duration_ms: Optional[int] = None,
    ) -> int:
        """Log an import run.

        Args:
            result: Outcome of the run
            source_name: File name or label of the imported source
            source_format: Detected format (csv, html, xlsx)
            duration_ms: Optional run duration in milliseconds

        Returns:
            id of the new import_runs row
        """
        session = self.session_factory()
        try:
            run = ImportRun(
                timestamp=datetime.utcnow(),
                source_name=source_name,
                source_format=source_format,
                success_count=result.success,
                failed_count=result.failed,
                skipped_count=result.skipped,
                error_count=len(result.errors),
                first_error=result.errors[0] if result.errors else None,
                duration_ms=duration_ms,
            )
            session.add(run)
            session.commit()
            return run.id
        finally:
            session.close()

    def list_import_runs(self, limit: int = 20) -> List[Dict]:
        """List the most recent import runs.

        Args:
            limit: Maximum number of runs to return

        Returns:
            List of run dictionaries, newest first
        """
        session = self.session_factory()
        try:
            runs = (
                session.query(ImportRun)
                .order_by(ImportRun.id.desc())
                .limit(limit)
                .all()
            )
            return [
                {
                    "id": run.id,
                    "timestamp": run.timestamp,
                    "source_name": run.source_name,
                    "source_format": run.source_format,
                    "success": run.success_count,
                    "failed": run.failed_count,
                    "skipped": run.skipped_count,
                    "errors": run.error_count,
                    "first_error": run.first_error,
                    "duration_ms": run.duration_ms,
                }
                for run in runs
            ]
        finally:
            session.close()

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self.engine.dispose()
