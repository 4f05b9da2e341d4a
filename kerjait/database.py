"""
Database schema and connection management.

Uses SQLite with SQLAlchemy. Each posting is kept as a JSON document, with
the fields that queries filter and sort on copied into indexed columns and
its keywords and employment types exploded into posting_tags.
"""

from pathlib import Path

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

Base = declarative_base()

KEYWORD = "keyword"
EMPLOYMENT_TYPE = "employment_type"


class PostingRecord(Base):
    """Stored job posting."""

    __tablename__ = "postings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    identity_key = Column(String, nullable=False, unique=True)  # canonical link
    slug = Column(String, nullable=True, index=True)
    posted_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    created_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    featured_until = Column(DateTime, nullable=True, index=True)
    document = Column(JSON, nullable=False)

    tags = relationship("PostingTag", back_populates="posting", cascade="all, delete-orphan")


class PostingTag(Base):
    """One keyword or raw employment-type value of a posting."""

    __tablename__ = "posting_tags"
    __table_args__ = (Index("ix_posting_tags_kind_value", "kind", "value"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    posting_id = Column(Integer, ForeignKey("postings.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String, nullable=False)  # keyword | employment_type
    value = Column(String, nullable=False)

    posting = relationship("PostingRecord", back_populates="tags")


def get_engine(db_path: Path) -> Engine:
    """
    Create an engine for a SQLite database file.

    Connections may be used from the ingestion lookup threads, so SQLite's
    same-thread check is turned off; each thread still uses its own session.
    """
    return create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})


def init_database(db_path: Path) -> Engine:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file

    Returns:
        Engine bound to the database
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(db_path)
    Base.metadata.create_all(engine)
    return engine


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    Session = sessionmaker(bind=get_engine(db_path))
    return Session()
