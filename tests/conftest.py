"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

import pytest

from kerjait.logger import get_logger, reset_logger
from kerjait.normalize import normalize_posting
from kerjait.store import SqlPostingStore

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def quiet_logger():
    """Global logger without console or file output."""
    reset_logger()
    get_logger(enable_file=False, enable_console=False)
    yield
    reset_logger()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store(tmp_path):
    """Empty SQLite-backed store in a temporary directory."""
    s = SqlPostingStore(tmp_path / "jobs.db")
    yield s
    s.close()


def build_document(
    key: str,
    keywords: Iterable[str] = ("react", "kuala lumpur"),
    created_at: str = "2024-03-01T00:00:00.000Z",
    date_posted: Optional[str] = None,
    featured_until: Optional[str] = None,
    employment_type: Any = None,
    slug: Optional[str] = None,
    title: str = "Software Engineer",
    company: str = "Acme",
) -> Dict[str, Any]:
    """Normalized posting document, as ingestion would store it."""
    raw: Dict[str, Any] = {
        "identityKey": key,
        "link": f"https://jobs.example.com/{key}",
        "title": title,
        "company": company,
        "keywords": list(keywords),
        "schema": {"title": title, "hiringOrganization": {"name": company}},
    }
    if date_posted:
        raw["schema"]["datePosted"] = date_posted
    if employment_type is not None:
        raw["schema"]["employmentType"] = employment_type
    if featured_until:
        raw["featuredUntil"] = featured_until
    if slug:
        raw["slug"] = slug
    return normalize_posting(raw, created_at)


@pytest.fixture
def make_document():
    return build_document


@pytest.fixture
def raw_posting() -> Dict[str, Any]:
    """Raw scraped posting."""
    return {
        "link": "https://www.jobstreet.com.my/job/12345",
        "title": "Frontend Developer",
        "company": "Acme Sdn Bhd",
        "source": "jobstreet",
        "keywords": ["React", "TypeScript", "Kuala-Lumpur"],
        "schema": {
            "title": "Frontend Developer",
            "datePosted": "2024-03-05",
            "employmentType": "FULL_TIME",
            "hiringOrganization": {"name": "Acme Sdn Bhd"},
        },
    }
