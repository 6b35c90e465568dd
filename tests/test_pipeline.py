"""Tests for the curriculum import pipeline."""

from datetime import date

import pytest

from curriculumflow.ingestion.pipeline import CurriculumImporter
from curriculumflow.models import ParsedRow, TopicSessionCreate
from curriculumflow.storage.curriculum_db import CurriculumDatabase
from curriculumflow.validation.error_handler import StoreError


class CountingDatabase(CurriculumDatabase):
    """CurriculumDatabase that counts upsert round trips."""

    def __init__(self, database_url: str):
        super().__init__(database_url)
        self.calls = {"category": 0, "module": 0, "topic": 0, "session": 0}

    def upsert_category(self, name):
        self.calls["category"] += 1
        return super().upsert_category(name)

    def upsert_module(self, category_id, module_code, title):
        self.calls["module"] += 1
        return super().upsert_module(category_id, module_code, title)

    def upsert_topic(self, module_id, topic_code, title, duration_min, duration_max):
        self.calls["topic"] += 1
        return super().upsert_topic(module_id, topic_code, title, duration_min, duration_max)

    def insert_topic_session(self, session_data):
        self.calls["session"] += 1
        return super().insert_topic_session(session_data)


class FailingDatabase(CurriculumDatabase):
    """CurriculumDatabase that fails chosen operations."""

    def __init__(self, database_url: str, fail_session_call=None, fail_topic_code=None,
                 fail_category=None):
        super().__init__(database_url)
        self.fail_session_call = fail_session_call
        self.fail_topic_code = fail_topic_code
        self.fail_category = fail_category
        self.session_calls = 0

    def upsert_category(self, name):
        if name == self.fail_category:
            raise StoreError("category store unavailable")
        return super().upsert_category(name)

    def upsert_topic(self, module_id, topic_code, title, duration_min, duration_max):
        if topic_code == self.fail_topic_code:
            raise StoreError("duplicate key value")
        return super().upsert_topic(module_id, topic_code, title, duration_min, duration_max)

    def insert_topic_session(self, session_data):
        self.session_calls += 1
        if self.session_calls == self.fail_session_call:
            raise StoreError("insert rejected")
        return super().insert_topic_session(session_data)


def _database(cls, tmp_path, **kwargs):
    database = cls(f"sqlite:///{tmp_path / 'pipeline.db'}", **kwargs)
    database.create_tables()
    return database


def _ten_topic_csv(csv_builder):
    rows = [["Content Category", "S No.", "Modules", "Topics Covered", "Session Status"]]
    for i in range(1, 11):
        rows.append(["AI", "M1", "Module One", f"1.{i} Topic {i}", "Completed"])
    return csv_builder(rows)


def test_end_to_end_single_row(importer, tmp_db):
    """Test importing one row creates the whole hierarchy and one session."""
    csv_text = (
        "Content Category, S No., Modules, Topics Covered, Videos, Videos, Session Status\n"
        "AI, M1, Module One, 1.1 Intro, en-link, hi-link, completed"
    )

    result = importer.import_text(csv_text)

    assert result.success == 1
    assert result.failed == 0
    assert result.errors == []

    category = tmp_db.get_category_by_name("AI")
    module = tmp_db.get_module(category.id, "M1")
    topic = tmp_db.get_topic(module.id, "1.1")
    assert module.title == "Module One"
    assert topic.title == "1.1 Intro"

    sessions = tmp_db.get_sessions_for_topic(topic.id)
    assert len(sessions) == 1
    assert sessions[0].status == "completed"
    assert sessions[0].video_english == "en-link"
    assert sessions[0].video_hindi == "hi-link"

    stats = tmp_db.get_curriculum_stats()
    assert stats["total_categories"] == 1
    assert stats["total_modules"] == 1
    assert stats["total_topics"] == 1
    assert stats["total_sessions"] == 1


def test_sample_export(importer, tmp_db, sample_csv):
    """Test a realistic export with noise rows, quoted titles and dates."""
    result = importer.import_text(sample_csv)

    assert result.success == 3
    assert result.failed == 0
    assert result.skipped == 1
    assert result.errors == []

    category = tmp_db.get_category_by_name("AI")
    module_one = tmp_db.get_module(category.id, "M1")
    module_two = tmp_db.get_module(category.id, "M2")

    intro = tmp_db.get_topic(module_one.id, "1.1")
    assert (intro.duration_min, intro.duration_max) == (10, 15)
    session = tmp_db.get_sessions_for_topic(intro.id)[0]
    assert session.status == "completed"
    assert session.session_date == date(2024, 3, 15)
    assert session.revision_status == "pending"
    assert session.revision_mentor_name == "Ravi Kumar"
    assert session.revision_date == date(2024, 4, 1)
    assert session.worksheet_hindi == "https://ws/hi/1.1"
    assert session.practical_activity_hindi == "https://pa/hi/1.1"

    history = tmp_db.get_topic(module_one.id, "1.2")
    session = tmp_db.get_sessions_for_topic(history.id)[0]
    assert session.status == "pending"
    assert session.session_date is None
    assert session.revision_status is None

    data_topic = tmp_db.get_topic(module_two.id, "2.1")
    assert data_topic.title == "2.1 Data, Models and Bias"
    session = tmp_db.get_sessions_for_topic(data_topic.id)[0]
    assert session.status == "available"
    assert session.mentor_email == "asha@example.org"
    assert session.session_date == date(2024, 3, 20)


def test_reimport_is_idempotent_for_dimensions(importer, tmp_db, sample_csv):
    """Test that re-importing reuses ids but appends new sessions."""
    importer.import_text(sample_csv)
    category_id = tmp_db.get_category_by_name("AI").id
    module_id = tmp_db.get_module(category_id, "M1").id
    topic_id = tmp_db.get_topic(module_id, "1.1").id

    importer.import_text(sample_csv)

    stats = tmp_db.get_curriculum_stats()
    assert stats["total_categories"] == 1
    assert stats["total_modules"] == 2
    assert stats["total_topics"] == 3
    assert stats["total_sessions"] == 6

    assert tmp_db.get_category_by_name("AI").id == category_id
    assert tmp_db.get_module(category_id, "M1").id == module_id
    assert tmp_db.get_topic(module_id, "1.1").id == topic_id
    assert len(tmp_db.get_sessions_for_topic(topic_id)) == 2


def test_memoization_within_run(tmp_path, csv_builder):
    """Test that shared keys hit the store once per run."""
    database = _database(CountingDatabase, tmp_path)
    importer = CurriculumImporter(store=database)
    csv_text = csv_builder([
        ["Content Category", "S No.", "Modules", "Topics Covered"],
        ["AI", "M1", "Module One", "1.1 Intro"],
        ["AI", "M1", "Module One", "1.1 Intro"],
        ["AI", "M1", "Module One", "1.2 More"],
        ["AI", "M2", "Module Two", "2.1 Other"],
    ])

    result = importer.import_text(csv_text)

    assert result.success == 4
    assert database.calls == {"category": 1, "module": 2, "topic": 3, "session": 4}

    # A new run starts with empty caches
    importer.import_text(csv_text)
    assert database.calls["category"] == 2
    database.close()


def test_partial_failure_isolation(tmp_path, csv_builder):
    """Test that a failed session insert only fails its own row."""
    database = _database(FailingDatabase, tmp_path, fail_session_call=5)
    importer = CurriculumImporter(store=database)

    result = importer.import_text(_ten_topic_csv(csv_builder))

    assert result.success == 9
    assert result.failed == 1
    assert result.errors == ["Row 5: Session error: insert rejected"]
    assert database.get_curriculum_stats()["total_sessions"] == 9
    database.close()


def test_topic_error_is_labelled(tmp_path, csv_builder):
    """Test that a topic upsert failure is reported with its stage."""
    database = _database(FailingDatabase, tmp_path, fail_topic_code="1.3")
    importer = CurriculumImporter(store=database)

    result = importer.import_text(_ten_topic_csv(csv_builder))

    assert result.success == 9
    assert result.failed == 1
    assert result.errors == ["Row 3: Topic error: duplicate key value"]
    database.close()


def test_category_error_fails_every_row_of_category(tmp_path, csv_builder):
    """Test that a failing category is retried and fails on each row."""
    database = _database(FailingDatabase, tmp_path, fail_category="Robotics")
    importer = CurriculumImporter(store=database)
    csv_text = csv_builder([
        ["Content Category", "S No.", "Topics Covered"],
        ["Robotics", "R1", "1.1 Motors"],
        ["AI", "M1", "1.1 Intro"],
        ["Robotics", "R1", "1.2 Sensors"],
    ])

    result = importer.import_text(csv_text)

    assert result.success == 1
    assert result.failed == 2
    assert result.errors == [
        "Row 1: Category error: category store unavailable",
        "Row 3: Category error: category store unavailable",
    ]
    database.close()


def test_header_not_found(importer, tmp_db, csv_builder):
    """Test that a missing header aborts the import with one error."""
    rows = [[f"note {i}", "AI", "1.1 Intro"] for i in range(11)]

    result = importer.import_text(csv_builder(rows))

    assert result.success == 0
    assert result.failed == 0
    assert result.errors == ["Could not find header row in CSV"]
    assert tmp_db.get_curriculum_stats()["total_categories"] == 0


def test_rows_without_module_or_topic_code_are_skipped(importer, tmp_db, csv_builder):
    """Test silent skips for missing module codes and topic codes."""
    csv_text = csv_builder([
        ["Content Category", "S No.", "Modules", "Topics Covered"],
        ["AI", "", "", "1.1 Intro"],
        ["AI", "M1", "Module One", "Introduction without code"],
        ["", "M1", "Module One", "1.2 No category"],
        ["AI", "M1", "Module One", "1.3 Valid"],
    ])

    result = importer.import_text(csv_text)

    assert result.success == 1
    assert result.failed == 0
    assert result.skipped == 3
    assert result.errors == []

    stats = tmp_db.get_curriculum_stats()
    # The category and module are still written for the rows that reach them
    assert stats["total_categories"] == 1
    assert stats["total_modules"] == 1
    assert stats["total_topics"] == 1
    assert stats["total_sessions"] == 1


def test_import_rows_with_parsed_rows(importer, tmp_db):
    """Test importing ParsedRow objects directly, None rows counting towards numbering."""
    rows = [
        ParsedRow(content_category="AI", module_code="M1", topic_code="1.1", topic_title="1.1 Intro",
                  status="COMPLETED", revision_status="Available", duration="3 to 4 mins"),
        None,
        ParsedRow(content_category="AI", module_code="M1", topic_code="1.2", topic_title="1.2 More"),
    ]

    result = importer.import_rows(rows)

    assert result.success == 2
    assert result.skipped == 1

    category_id = tmp_db.get_category_by_name("AI").id
    module_id = tmp_db.get_module(category_id, "M1").id
    topic = tmp_db.get_topic(module_id, "1.1")
    assert (topic.duration_min, topic.duration_max) == (3, 4)
    session = tmp_db.get_sessions_for_topic(topic.id)[0]
    assert session.status == "completed"
    assert session.revision_status == "available"


def test_unexpected_error_outside_rows(importer, monkeypatch):
    """Test that a parser crash returns a caller-level error."""

    def broken_parse(text):
        raise RuntimeError("parser exploded")

    monkeypatch.setattr("curriculumflow.ingestion.pipeline.parse_table", broken_parse)

    result = importer.import_text("anything")

    assert result.success == 0
    assert result.failed == 0
    assert result.errors == ["parser exploded"]


def test_import_html_export(importer, tmp_db):
    """Test importing an HTML table export."""
    html = """
    <table>
      <tr><td>Curriculum export</td></tr>
      <tr><td>Content Category</td><td>S No.</td><td>Modules</td><td>Topics Covered</td></tr>
      <tr><td>AI</td><td>M1</td><td>Module One</td><td>1.1 Intro</td></tr>
    </table>
    """

    result = importer.import_text(html, source_name="export.html")

    assert result.success == 1
    runs = tmp_db.list_import_runs()
    assert runs[0]["source_name"] == "export.html"
    assert runs[0]["source_format"] == "html"


def test_import_file_records_run(importer, tmp_db, tmp_path, sample_csv):
    """Test importing from disk and logging the run."""
    file_path = tmp_path / "tracker.csv"
    file_path.write_text(sample_csv, encoding="utf-8")

    result = importer.import_file(file_path)

    assert result.success == 3
    runs = tmp_db.list_import_runs()
    assert len(runs) == 1
    assert runs[0]["source_name"] == "tracker.csv"
    assert runs[0]["source_format"] == "csv"
    assert runs[0]["success"] == 3
    assert runs[0]["skipped"] == 1


def test_import_missing_file(importer, tmp_path):
    """Test that an unreadable file is a caller-level error."""
    result = importer.import_file(tmp_path / "missing.csv")

    assert result.success == 0
    assert result.failed == 0
    assert len(result.errors) == 1


def test_preview_grid_writes_nothing(importer, tmp_db, sample_csv):
    """Test the dry-run preview."""
    from curriculumflow.parsing.tabular import parse_csv

    preview = importer.preview_grid(parse_csv(sample_csv))

    assert preview == {"header_index": 2, "data_rows": 4, "mapped_rows": 3, "importable_rows": 3}
    assert tmp_db.get_curriculum_stats()["total_categories"] == 0


def test_custom_session_time(tmp_db):
    """Test the configurable session time."""
    importer = CurriculumImporter(store=tmp_db, default_session_time="14:30")

    importer.import_rows([
        ParsedRow(content_category="AI", module_code="M1", topic_code="1.1", topic_title="1.1 Intro"),
    ])

    category_id = tmp_db.get_category_by_name("AI").id
    topic = tmp_db.get_topic(tmp_db.get_module(category_id, "M1").id, "1.1")
    assert tmp_db.get_sessions_for_topic(topic.id)[0].session_time == "14:30"


@pytest.mark.parametrize("status,expected", [("Completed", "completed"), ("", "pending")])
def test_build_session_status(importer, status, expected):
    """Test status lower-casing and defaulting on the session record."""
    parsed = ParsedRow(content_category="AI", topic_title="1.1 Intro", status=status)

    session = importer._build_session(parsed, topic_id=1)

    assert isinstance(session, TopicSessionCreate)
    assert session.status == expected
