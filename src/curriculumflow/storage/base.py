"""Typed persistence interface consumed by the import pipeline."""

from typing import Protocol

from curriculumflow.models import TopicSessionCreate


class CurriculumStore(Protocol):
    """Natural-key upserts for the curriculum hierarchy plus session inserts.

    Every method is an independent round trip. Upserts return the id of the
    row holding the natural key, creating it when absent. Implementations
    raise StoreError on failure.
    """

    def upsert_category(self, name: str) -> int:
        """Upsert a content category keyed by ``name``."""
        ...

    def upsert_module(self, category_id: int, module_code: str, title: str) -> int:
        """Upsert a module keyed by ``(category_id, module_code)``."""
        ...

    def upsert_topic(
        self,
        module_id: int,
        topic_code: str,
        title: str,
        duration_min: int,
        duration_max: int,
    ) -> int:
        """Upsert a topic keyed by ``(module_id, topic_code)``."""
        ...

    def insert_topic_session(self, session: TopicSessionCreate) -> int:
        """Insert a new topic session fact row and return its id."""
        ...
