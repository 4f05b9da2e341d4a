"""
Named queries served to the site.

Every view returns plain JSON-safe dicts; the store's record ids surface
only as an opaque string "_id".
"""

import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from .config import DEFAULT_HOME_LIMIT, SUPPORTED_LOCATIONS
from .criteria import QueryCriteria
from .normalize import parse_timestamp, utcnow
from .pipeline import FeaturedSince, Pipeline, PostedSince, Project, build_pipeline
from .store import PostingStore

WEEKLY_WINDOW = timedelta(days=7)

WEEKLY_FIELDS = (
    "slug",
    "title",
    "company",
    "source",
    "postedAt",
    "schema.title",
    "schema.hiringOrganization.name",
)


def to_json_safe(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Detach a document from the store: a deep, JSON-serializable copy."""
    if document is None:
        return None
    return json.loads(json.dumps(document, default=str))


def _run(store: PostingStore, pipeline: Pipeline) -> List[Dict[str, Any]]:
    return [to_json_safe(d) for d in store.query(pipeline)]


def _now(now: Optional[datetime]) -> datetime:
    return parse_timestamp(now or utcnow())


def query_postings(
    store: PostingStore,
    criteria: Optional[QueryCriteria] = None,
    locations: Sequence[str] = SUPPORTED_LOCATIONS,
) -> List[Dict[str, Any]]:
    """Filtered, sorted, paginated listing; featured postings never appear."""
    return _run(store, build_pipeline(criteria, locations=locations))


def latest_postings(
    store: PostingStore,
    limit: int = DEFAULT_HOME_LIMIT,
    locations: Sequence[str] = SUPPORTED_LOCATIONS,
) -> List[Dict[str, Any]]:
    return query_postings(store, QueryCriteria(limit=limit), locations=locations)


def remote_postings(store: PostingStore, limit: int = DEFAULT_HOME_LIMIT) -> List[Dict[str, Any]]:
    return query_postings(store, QueryCriteria(limit=limit), locations=["remote"])


def weekly_postings(
    store: PostingStore,
    now: Optional[datetime] = None,
    locations: Sequence[str] = SUPPORTED_LOCATIONS,
) -> List[Dict[str, Any]]:
    """Postings published in the last seven days, trimmed to digest fields."""
    pipeline = build_pipeline(
        locations=locations,
        extra_filters=[PostedSince(_now(now) - WEEKLY_WINDOW)],
        paginate=False,
        fields=WEEKLY_FIELDS,
    )
    return _run(store, pipeline)


def featured_postings(store: PostingStore, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Postings whose featuredUntil has not passed yet."""
    pipeline = build_pipeline(
        locations=None,
        extra_filters=[FeaturedSince(_now(now))],
        exclude_featured=False,
        paginate=False,
    )
    return _run(store, pipeline)


def get_by_slug(store: PostingStore, slug: str) -> Optional[Dict[str, Any]]:
    if not slug:
        return None
    return to_json_safe(store.find_one({"slug": slug}))


def get_all_slugs(store: PostingStore) -> List[str]:
    documents = store.query(Pipeline([Project(("slug",))]))
    return [d["slug"] for d in documents if d.get("slug")]
