"""
Document store for postings.

PostingStore is the collection interface the ingestion and view code
depends on. SqlPostingStore implements it on SQLAlchemy, compiling each
pipeline stage into the equivalent SQL clause.

Store failures (connectivity, locked database, ...) propagate unchanged;
no retries happen here.
"""

import copy
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from sqlalchemy import false, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from .database import EMPLOYMENT_TYPE, KEYWORD, PostingRecord, PostingTag, init_database
from .errors import IngestionError
from .logger import get_logger
from .normalize import employment_types, parse_timestamp
from .pipeline import (
    EmploymentTypeMatch,
    ExcludeFeatured,
    FeaturedSince,
    KeywordMatch,
    Pipeline,
    PostedSince,
)


class PostingStore(ABC):
    """Collection interface over stored posting documents."""

    @abstractmethod
    def find_by_keys(self, keys: Iterable[str]) -> List[Dict[str, Any]]:
        """Documents whose identityKey is one of `keys`."""

    @abstractmethod
    def insert_many(self, documents: Sequence[Dict[str, Any]]) -> int:
        """Insert all documents or none. Returns the number inserted."""

    @abstractmethod
    def query(self, pipeline: Pipeline) -> List[Dict[str, Any]]:
        """Run a pipeline and return the matching documents."""

    @abstractmethod
    def find_one(self, criteria: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """First document whose fields equal `criteria`, or None."""

    @abstractmethod
    def iter_documents(self) -> Iterator[Dict[str, Any]]:
        """Every stored document, in storage order."""

    @abstractmethod
    def update_posted_at(self, document_id: str, posted_at: str) -> None:
        """Overwrite postedAt of one document. Used by the backfill job only."""


def _escape_like(token: str) -> str:
    return token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _get_path(document: Dict[str, Any], dotted: str):
    value: Any = document
    for part in dotted.split("."):
        if not isinstance(value, dict) or part not in value:
            return None, False
        value = value[part]
    return value, True


def _set_path(target: Dict[str, Any], dotted: str, value: Any) -> None:
    parts = dotted.split(".")
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def project(document: Dict[str, Any], fields: Sequence[str]) -> Dict[str, Any]:
    """Keep only `fields` (dotted paths allowed) plus the opaque _id."""
    projected: Dict[str, Any] = {"_id": document["_id"]}
    for field in fields:
        value, found = _get_path(document, field)
        if found:
            _set_path(projected, field, copy.deepcopy(value))
    return projected


class SqlPostingStore(PostingStore):
    """PostingStore backed by a SQLite database through SQLAlchemy."""

    _FIND_ONE_COLUMNS = {
        "slug": PostingRecord.slug,
        "identityKey": PostingRecord.identity_key,
    }
    _SORT_COLUMNS = {
        "postedAt": PostingRecord.posted_at,
        "createdAt": PostingRecord.created_at,
    }

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.engine = init_database(self.db_path)
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)

    def close(self) -> None:
        self.engine.dispose()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Session scope: commit on success, roll back and re-raise on failure."""
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _to_document(record: PostingRecord) -> Dict[str, Any]:
        document = copy.deepcopy(record.document)
        document["_id"] = str(record.id)
        return document

    @staticmethod
    def _to_record(document: Dict[str, Any]) -> PostingRecord:
        created_at = parse_timestamp(document.get("createdAt"))
        if created_at is None:
            raise ValueError(f"Document {document.get('identityKey')!r} has no valid createdAt")
        # An unparseable source date still sorts, as its ingestion time
        posted_at = parse_timestamp(document.get("postedAt")) or created_at

        stored = {k: v for k, v in document.items() if k != "_id"}
        record = PostingRecord(
            identity_key=document["identityKey"],
            slug=document.get("slug"),
            posted_at=posted_at,
            created_at=created_at,
            featured_until=parse_timestamp(document.get("featuredUntil")),
            document=stored,
        )
        for keyword in dict.fromkeys(document.get("keywords") or []):
            record.tags.append(PostingTag(kind=KEYWORD, value=keyword))
        for value in dict.fromkeys(employment_types(document)):
            record.tags.append(PostingTag(kind=EMPLOYMENT_TYPE, value=value))
        return record

    def find_by_keys(self, keys: Iterable[str]) -> List[Dict[str, Any]]:
        keys = list(keys)
        if not keys:
            return []
        with self._session() as session:
            records = session.query(PostingRecord).filter(PostingRecord.identity_key.in_(keys)).all()
            return [self._to_document(r) for r in records]

    def insert_many(self, documents: Sequence[Dict[str, Any]]) -> int:
        if not documents:
            return 0
        records = [self._to_record(d) for d in documents]
        try:
            with self._session() as session:
                session.add_all(records)
        except IntegrityError as e:
            get_logger().error(
                "Batch insert rejected, nothing written",
                db=str(self.db_path),
                batch_size=len(records),
                error=str(e.orig),
            )
            raise IngestionError(f"Batch of {len(records)} postings rejected by the store: {e.orig}") from e
        get_logger().debug("Inserted postings", db=str(self.db_path), count=len(records))
        return len(records)

    def _tag_exists(self, kind: str, condition):
        return (
            select(PostingTag.id)
            .where(PostingTag.posting_id == PostingRecord.id, PostingTag.kind == kind, condition)
            .exists()
        )

    def _criterion(self, stage):
        if isinstance(stage, ExcludeFeatured):
            return PostingRecord.featured_until.is_(None)
        if isinstance(stage, FeaturedSince):
            return PostingRecord.featured_until >= stage.now
        if isinstance(stage, PostedSince):
            return PostingRecord.posted_at >= stage.cutoff
        if isinstance(stage, KeywordMatch):
            if not stage.tokens:
                return false()
            if stage.partial:
                condition = or_(
                    *[
                        func.lower(PostingTag.value).like(f"%{_escape_like(t.lower())}%", escape="\\")
                        for t in stage.tokens
                    ]
                )
            else:
                condition = PostingTag.value.in_(stage.tokens)
            return self._tag_exists(KEYWORD, condition)
        if isinstance(stage, EmploymentTypeMatch):
            if not stage.variants:
                return false()
            return self._tag_exists(EMPLOYMENT_TYPE, PostingTag.value.in_(stage.variants))
        raise ValueError(f"Unsupported filter stage: {stage!r}")

    def _select(self, session: Session, projection: Optional[Sequence[str]]):
        """Query rows for a pipeline; projections over indexed fields skip the document column."""
        if projection and all(f in self._FIND_ONE_COLUMNS for f in projection):
            columns = [self._FIND_ONE_COLUMNS[f].label(f) for f in projection]
            return session.query(PostingRecord.id, *columns), True
        return session.query(PostingRecord), False

    def query(self, pipeline: Pipeline) -> List[Dict[str, Any]]:
        with self._session() as session:
            q, columns_only = self._select(session, pipeline.projection)
            for stage in pipeline.filters:
                q = q.filter(self._criterion(stage))
            if pipeline.sort is not None:
                column = self._SORT_COLUMNS[pipeline.sort.field]
                # ties fall back to insertion order
                q = q.order_by(column.desc(), PostingRecord.id.asc())
            if pipeline.skip:
                q = q.offset(pipeline.skip)
            if pipeline.limit is not None:
                q = q.limit(pipeline.limit)
            rows = q.all()

        if columns_only:
            documents = []
            for row in rows:
                values = {f: getattr(row, f) for f in pipeline.projection}
                documents.append({"_id": str(row.id), **{f: v for f, v in values.items() if v is not None}})
            return documents
        documents = [self._to_document(r) for r in rows]
        if pipeline.projection:
            documents = [project(d, pipeline.projection) for d in documents]
        return documents

    def find_one(self, criteria: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._session() as session:
            q = session.query(PostingRecord)
            for field, value in criteria.items():
                if field == "_id":
                    try:
                        q = q.filter(PostingRecord.id == int(value))
                    except (TypeError, ValueError):
                        return None
                elif field in self._FIND_ONE_COLUMNS:
                    q = q.filter(self._FIND_ONE_COLUMNS[field] == value)
                else:
                    raise ValueError(f"Unsupported lookup field: {field}")
            record = q.order_by(PostingRecord.id.asc()).first()
            return self._to_document(record) if record is not None else None

    def iter_documents(self) -> Iterator[Dict[str, Any]]:
        with self._session() as session:
            for record in session.query(PostingRecord).order_by(PostingRecord.id.asc()).yield_per(500):
                yield self._to_document(record)

    def update_posted_at(self, document_id: str, posted_at: str) -> None:
        with self._session() as session:
            record = session.get(PostingRecord, int(document_id))
            if record is None:
                raise KeyError(document_id)
            record.document = {**record.document, "postedAt": posted_at}
            record.posted_at = parse_timestamp(posted_at) or record.created_at
