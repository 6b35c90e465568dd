"""SQLAlchemy ORM models for curriculum storage."""

from datetime import datetime

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ContentCategory(Base):
    """Top-level curriculum grouping, keyed by name."""

    __tablename__ = "content_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Module(Base):
    """Unit within a category, keyed by (category_id, module_code)."""

    __tablename__ = "modules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("content_categories.id"), nullable=False)
    module_code = Column(String(50), nullable=False)
    title = Column(String(500), nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("category_id", "module_code", name="uq_category_module_code"),
    )


class Topic(Base):
    """Lesson within a module, keyed by (module_id, topic_code)."""

    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False)
    topic_code = Column(String(50), nullable=False)
    title = Column(String(500), nullable=False)
    duration_min = Column(Integer, default=0)
    duration_max = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("module_id", "topic_code", name="uq_module_topic_code"),
    )


class TopicSession(Base):
    """Append-only fact row describing one reported pass of a topic."""

    __tablename__ = "topic_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    status = Column(String(50), nullable=False, default="pending")
    mentor_name = Column(String(255))
    mentor_email = Column(String(255))
    session_date = Column(Date, nullable=True)
    session_time = Column(String(10))
    video_english = Column(Text)
    video_hindi = Column(Text)
    worksheet_english = Column(Text)
    worksheet_hindi = Column(Text)
    practical_activity_english = Column(Text)
    practical_activity_hindi = Column(Text)
    quiz_content_ppt = Column(Text)
    final_content_ppt = Column(Text)
    revision_status = Column(String(50), nullable=True)
    revision_mentor_name = Column(String(255))
    revision_mentor_email = Column(String(255))
    revision_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class ImportRun(Base):
    """Log of import runs for monitoring and debugging."""

    __tablename__ = "import_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime, default=datetime.utcnow)
    source_name = Column(String(500))
    source_format = Column(String(20))
    success_count = Column(Integer, default=0)
    failed_count = Column(Integer, default=0)
    skipped_count = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    first_error = Column(Text)
    duration_ms = Column(Integer)
