"""
Query criteria for listing postings.

Every option a caller can pass is enumerated here with its default.
Loose inputs (query-string values, comma-separated lists, unknown names)
are parsed by QueryCriteria.from_params, which degrades silently: unknown
job types and sort orders are dropped, non-positive page/limit are clamped.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import DEFAULT_PAGE_LIMIT
from .normalize import normalize_keyword, normalize_text


class SortBy(str, Enum):
    POSTED = "posted"
    CREATED = "created"


class JobType(str, Enum):
    FULL_TIME = "full-time"
    PART_TIME = "part-time"
    CONTRACT = "contract"
    INTERNSHIP = "internship"
    UNSPECIFIED = "unspecified"


# Raw employment-type strings, as sources write them, for each category
JOB_TYPE_VARIANTS: Dict[JobType, List[str]] = {
    JobType.FULL_TIME: ["full-time", "full time", "full_time", "FULL-TIME", "FULL TIME", "FULL_TIME"],
    JobType.PART_TIME: ["part-time", "part time", "part_time", "PART-TIME", "PART TIME", "PART_TIME"],
    JobType.CONTRACT: ["contract", "CONTRACT"],
    JobType.INTERNSHIP: ["internship", "INTERNSHIP", "intern", "INTERN"],
}

_JOB_TYPE_NAMES = {
    "full time": JobType.FULL_TIME,
    "fulltime": JobType.FULL_TIME,
    "part time": JobType.PART_TIME,
    "parttime": JobType.PART_TIME,
    "contract": JobType.CONTRACT,
    "contractor": JobType.CONTRACT,
    "internship": JobType.INTERNSHIP,
    "intern": JobType.INTERNSHIP,
}

# "all" in a tech/location slot means "no filter on this dimension"
_WILDCARD = "all"


def _job_type_name(value: str) -> str:
    return normalize_text(value.replace("_", " ").replace("-", " "))


def parse_job_type(value: Any) -> Optional[JobType]:
    """Map a caller-supplied category name to a filterable JobType, or None."""
    if isinstance(value, JobType):
        return value if value is not JobType.UNSPECIFIED else None
    if not isinstance(value, str):
        return None
    return _JOB_TYPE_NAMES.get(_job_type_name(value))


def classify_employment_type(raw: Any) -> JobType:
    """Coarse category of a stored employment type (string or list of strings)."""
    values = [raw] if isinstance(raw, str) else list(raw or [])
    for value in values:
        if isinstance(value, str):
            job_type = _JOB_TYPE_NAMES.get(_job_type_name(value))
            if job_type is not None:
                return job_type
    return JobType.UNSPECIFIED


def parse_sort(value: Any) -> SortBy:
    if isinstance(value, SortBy):
        return value
    if isinstance(value, str):
        try:
            return SortBy(value.strip().lower())
        except ValueError:
            pass
    return SortBy.POSTED


def _split(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split(",")
    if isinstance(value, Iterable):
        parts: List[str] = []
        for item in value:
            if isinstance(item, str):
                parts.extend(item.split(","))
        return parts
    return []


def parse_tokens(value: Any) -> Tuple[str, ...]:
    """Lower-case, de-hyphenate and de-duplicate filter tokens."""
    tokens: List[str] = []
    for part in _split(value):
        token = normalize_keyword(part)
        if token and token != _WILDCARD and token not in tokens:
            tokens.append(token)
    return tuple(tokens)


def _as_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number


def parse_job_types(value: Any) -> Tuple[JobType, ...]:
    """Known categories in first-seen order; unknown names and "unspecified" are dropped."""
    job_types: List[JobType] = []
    for name in _split(value):
        parsed = parse_job_type(name)
        if parsed is not None and parsed not in job_types:
            job_types.append(parsed)
    return tuple(job_types)


@dataclass(frozen=True)
class QueryCriteria:
    """
    Criteria for a standard listing query.

    technology: keyword tokens, partial match; () means no technology filter
    location: keyword tokens, partial match; () means the supported-location allow-list
    job_types: categories, any-of; () means no job-type filter
    sort_by: SortBy.POSTED (default) or SortBy.CREATED, always descending
    page: 1-based page number; values below 1 are clamped to 1
    limit: page size; values below 1 fall back to DEFAULT_PAGE_LIMIT

    Fields are normalized on construction, so direct construction accepts
    the same loose values as from_params.
    """

    technology: Tuple[str, ...] = ()
    location: Tuple[str, ...] = ()
    job_types: Tuple[JobType, ...] = ()
    sort_by: SortBy = SortBy.POSTED
    page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT

    def __post_init__(self):
        page = _as_int(self.page, 1)
        limit = _as_int(self.limit, DEFAULT_PAGE_LIMIT)
        object.__setattr__(self, "technology", parse_tokens(self.technology))
        object.__setattr__(self, "location", parse_tokens(self.location))
        object.__setattr__(self, "job_types", parse_job_types(self.job_types))
        object.__setattr__(self, "sort_by", parse_sort(self.sort_by))
        object.__setattr__(self, "page", page if page >= 1 else 1)
        object.__setattr__(self, "limit", limit if limit >= 1 else DEFAULT_PAGE_LIMIT)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(
        cls,
        technology: Any = None,
        location: Any = None,
        job_type: Any = None,
        sort_by: Any = None,
        page: Any = None,
        limit: Any = None,
        default_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> "QueryCriteria":
        """Criteria from query-string style input; a missing or invalid limit becomes `default_limit`."""
        page_size = _as_int(limit, default_limit)
        return cls(
            technology=technology,
            location=location,
            job_types=job_type,
            sort_by=sort_by,
            page=page,
            limit=page_size if page_size >= 1 else default_limit,
        )
