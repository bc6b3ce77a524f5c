"""
Shared fixtures. No test touches the network or a real database server:
the search provider is faked or served by httpx.MockTransport, and the
store runs on a throwaway SQLite file through aiosqlite.
"""
import os

os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_roadmaps.db")

import pytest

from app.schemas.roadmap import SearchResult
from app.services.gateway import ServiceConfig, ServiceGateway


class FakeSearchClient:
    """Stands in for GoogleSearchClient; records every query it receives."""

    def __init__(self, results=None, error=None):
        self.results = list(results or [])
        self.error = error
        self.calls = []

    async def search(self, query):
        self.calls.append(query)
        if self.error is not None:
            raise self.error
        return list(self.results)


class FakeStore:
    """Stands in for RoadmapStore."""

    def __init__(self, error=None):
        self.error = error
        self.saved = []

    async def save(self, record, user_id=None):
        if self.error is not None:
            raise self.error
        self.saved.append((record, user_id))
        return len(self.saved)


def make_result(title="Intro to Python", link="https://example.com/python", snippet="Learn Python basics."):
    return SearchResult(title=title, link=link, snippet=snippet)


@pytest.fixture()
def sample_results():
    return [
        make_result("Python Full Course", "https://www.youtube.com/watch?v=abc", "Video course."),
        make_result("What should I learn first?", "https://www.reddit.com/r/learnpython/x", "Thread."),
        make_result("Official tutorial", "https://docs.python.org/3/tutorial/", "x" * 250),
        make_result("Blog post", "https://example.com/blog", "Short read."),
    ]


@pytest.fixture()
def fast_gateway():
    """Gateway with tight timeouts so timeout paths run quickly."""
    return ServiceGateway(config={
        "google_search": ServiceConfig(timeout_seconds=0.2, circuit_failure_threshold=3),
        "database": ServiceConfig(timeout_seconds=0.2, circuit_failure_threshold=3),
    })
