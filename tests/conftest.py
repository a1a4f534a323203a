"""Shared fixtures: a hand-built corpus, a fixed clock and in-memory storage."""

from datetime import datetime, timedelta, timezone

import pytest

from ethos_discovery.corpus import Corpus
from ethos_discovery.models import Article, Author, Category
from ethos_discovery.storage import MemoryStorage


def make_article(article_id: str, title: str, **overrides) -> Article:
    """Build an article with neutral defaults that match no test query."""
    fields = {
        "id": article_id,
        "title": title,
        "excerpt": "An article.",
        "content": "",
        "category": "tutorials",
        "tags": [],
        "author": Author(name="Test Author", role="Writer"),
        "difficulty": "Beginner",
        "date": "2024-01-01",
        "read_time": "5 min read",
        "has_code_examples": False,
        "has_downloads": False,
        "path": f"/blog/{article_id}",
    }
    fields.update(overrides)
    return Article(**fields)


class SteppingClock:
    """Returns a later UTC timestamp on every call."""

    def __init__(self, start: datetime = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(minutes=1)
        return self.current


@pytest.fixture
def example_corpus():
    return Corpus(
        [
            make_article("a", "Prompt Engineering Fundamentals", category="tutorials"),
            make_article("b", "Advanced Prompt Patterns", category="tutorials"),
            make_article("c", "Legal Contract Review", category="legal"),
        ],
        [
            Category(id="tutorials", name="Tutorials"),
            Category(id="legal", name="Legal"),
        ],
    )


@pytest.fixture
def fixed_now():
    return lambda: datetime(2024, 7, 1, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def memory_storage():
    return MemoryStorage()
