"""
Ingestion of scraped postings.

New postings are inserted; postings whose identity key is already stored are
left untouched, so re-running a batch is harmless. Existing keys are looked
up one key per call, fanned out over a thread pool and joined before the
batch is partitioned. The first failed lookup aborts the whole call.
"""

from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .normalize import identity_key, isoformat, normalize_batch, utcnow
from .schema import validate_raw_posting
from .store import PostingStore

DEFAULT_LOOKUP_WORKERS = 8


@dataclass
class IngestResult:
    received: int = 0
    inserted: int = 0
    duplicates: int = 0
    rejected: List[Tuple[int, List[str]]] = field(default_factory=list)
    created_at: Optional[str] = None

    @property
    def skipped(self) -> bool:
        """True when the batch had nothing new and the store was not written."""
        return self.inserted == 0


def find_existing_keys(
    store: PostingStore,
    keys: Iterable[str],
    max_workers: int = DEFAULT_LOOKUP_WORKERS,
) -> Set[str]:
    """
    Return the subset of `keys` already present in the store.

    One lookup per distinct key, run concurrently. If any lookup raises,
    lookups not yet started are cancelled and the exception propagates.
    """
    distinct = list(dict.fromkeys(keys))
    if not distinct:
        return set()

    existing: Set[str] = set()
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(distinct)))) as pool:
        futures = [pool.submit(store.find_by_keys, [key]) for key in distinct]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in pending:
            future.cancel()
        for future in done:
            error = future.exception()
            if error is not None:
                raise error
        for future in futures:
            for document in future.result():
                existing.add(document["identityKey"])
    return existing


def partition(
    raw_postings: Sequence[Dict[str, Any]],
    existing_keys: Set[str],
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Split postings into (new, already_present).

    A key repeated inside the batch counts as new once; later copies go to
    already_present so a batch never inserts the same key twice.
    """
    new: List[Dict[str, Any]] = []
    present: List[Dict[str, Any]] = []
    seen: Set[str] = set()
    for raw in raw_postings:
        key = identity_key(raw)
        if key in existing_keys or key in seen:
            present.append(raw)
        else:
            seen.add(key)
            new.append(raw)
    return new, present


def ingest(
    store: PostingStore,
    raw_postings: Sequence[Dict[str, Any]],
    now: Optional[datetime] = None,
    max_workers: int = DEFAULT_LOOKUP_WORKERS,
) -> IngestResult:
    """
    Insert the postings of a scraped batch that are not stored yet.

    Args:
        store: Document store
        raw_postings: Raw scraped postings
        now: Ingestion moment shared by the whole batch (default: current UTC time)
        max_workers: Concurrent existing-key lookups

    Returns:
        IngestResult with counts; rejected lists (index, errors) for postings
        that failed validation

    Raises:
        IngestionError: The store rejected the batch insert
        Any store error from the lookups or the insert, unchanged
    """
    result = IngestResult(received=len(raw_postings))

    valid: List[Dict[str, Any]] = []
    for index, raw in enumerate(raw_postings):
        errors = validate_raw_posting(raw)
        if errors:
            result.rejected.append((index, errors))
        else:
            valid.append(raw)

    existing = find_existing_keys(store, (identity_key(raw) for raw in valid), max_workers=max_workers)
    new, present = partition(valid, existing)
    result.duplicates = len(present)
    if not new:
        return result

    result.created_at = isoformat(now or utcnow())
    documents = normalize_batch(new, result.created_at)
    result.inserted = store.insert_many(documents)
    return result
