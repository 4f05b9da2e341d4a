"""
One-shot correction of postedAt for stored postings.

Recomputes postedAt from the source publish date (schema.datePosted), falling
back to createdAt, and rewrites only the postings whose value differs. This
is a migration for records ingested before postedAt existed or with a wrong
value; normal ingestion never calls it.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from .logger import get_logger
from .normalize import posted_at_for
from .store import PostingStore


@dataclass
class BackfillResult:
    scanned: int = 0
    updated: int = 0
    changes: List[Tuple[str, object, object]] = field(default_factory=list)  # (_id, old, new)

    @property
    def unchanged(self) -> int:
        return self.scanned - len(self.changes)


def backfill_posted_at(store: PostingStore, dry_run: bool = False) -> BackfillResult:
    """
    Recompute postedAt for every stored posting.

    Args:
        store: Document store
        dry_run: Report the changes without writing them

    Returns:
        BackfillResult; `updated` stays 0 on a dry run
    """
    logger = get_logger()
    result = BackfillResult()

    # Collect first: the store is not written while its cursor is open
    for document in store.iter_documents():
        result.scanned += 1
        current = document.get("postedAt")
        expected = posted_at_for(document, document.get("createdAt"))
        if expected != current:
            result.changes.append((document["_id"], current, expected))

    logger.info(
        "postedAt backfill scanned",
        scanned=result.scanned,
        to_update=len(result.changes),
        dry_run=dry_run,
    )
    if dry_run:
        return result

    for document_id, old, new in result.changes:
        store.update_posted_at(document_id, new)
        result.updated += 1
        logger.debug("postedAt corrected", id=document_id, old=old, new=new)

    logger.info("postedAt backfill complete", updated=result.updated, unchanged=result.unchanged)
    return result
