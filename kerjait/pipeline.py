"""
Query pipelines over stored postings.

A pipeline is an ordered tuple of stages executed by the store:
filters first, then one sort, then skip, then limit, then an optional
projection. Sorting after limiting, or filtering after skipping, returns a
different result set, so Pipeline refuses any other order.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Iterator, Optional, Sequence, Tuple

from .config import SUPPORTED_LOCATIONS
from .criteria import JOB_TYPE_VARIANTS, QueryCriteria, SortBy
from .errors import PipelineOrderError
from .normalize import normalize_keyword

FILTER, SORT, SKIP, LIMIT, PROJECT = range(5)

SORT_FIELDS = {
    SortBy.POSTED: "postedAt",
    SortBy.CREATED: "createdAt",
}


@dataclass(frozen=True)
class ExcludeFeatured:
    """Keep postings whose featuredUntil is null or absent."""

    phase = FILTER


@dataclass(frozen=True)
class FeaturedSince:
    """Keep postings featured until `now` or later."""

    now: datetime
    phase = FILTER


@dataclass(frozen=True)
class PostedSince:
    cutoff: datetime
    phase = FILTER


@dataclass(frozen=True)
class KeywordMatch:
    """
    Keep postings with at least one keyword matching one of `tokens`.

    partial=True matches when a token is a substring of a keyword
    ("machine" matches "machine learning"); partial=False needs equality.
    """

    tokens: Tuple[str, ...]
    partial: bool = True
    phase = FILTER


@dataclass(frozen=True)
class EmploymentTypeMatch:
    """Keep postings whose raw employment type equals one of `variants`."""

    variants: Tuple[str, ...]
    phase = FILTER


@dataclass(frozen=True)
class Sort:
    """Descending sort on postedAt or createdAt."""

    by: SortBy = SortBy.POSTED
    phase = SORT

    @property
    def field(self) -> str:
        return SORT_FIELDS[self.by]


@dataclass(frozen=True)
class Skip:
    count: int
    phase = SKIP


@dataclass(frozen=True)
class Limit:
    count: int
    phase = LIMIT


@dataclass(frozen=True)
class Project:
    """Return only these (dotted) document fields plus the opaque id."""

    fields: Tuple[str, ...]
    phase = PROJECT


class Pipeline:
    """An ordered, validated sequence of stages."""

    def __init__(self, stages: Iterable = ()):
        self.stages = tuple(stages)
        last_phase = FILTER
        for stage in self.stages:
            phase = getattr(stage, "phase", None)
            if phase is None:
                raise PipelineOrderError(f"Unknown pipeline stage: {stage!r}")
            if phase < last_phase or (phase == last_phase and phase != FILTER):
                raise PipelineOrderError(
                    f"{type(stage).__name__} cannot follow a {_PHASE_NAMES[last_phase]} stage"
                )
            last_phase = phase

    def __iter__(self) -> Iterator:
        return iter(self.stages)

    def __len__(self) -> int:
        return len(self.stages)

    def __eq__(self, other) -> bool:
        return isinstance(other, Pipeline) and self.stages == other.stages

    def __repr__(self) -> str:
        return f"Pipeline({list(self.stages)!r})"

    def _first(self, stage_type):
        return next((s for s in self.stages if isinstance(s, stage_type)), None)

    @property
    def filters(self) -> Tuple:
        return tuple(s for s in self.stages if s.phase == FILTER)

    @property
    def sort(self) -> Optional[Sort]:
        return self._first(Sort)

    @property
    def skip(self) -> int:
        stage = self._first(Skip)
        return stage.count if stage else 0

    @property
    def limit(self) -> Optional[int]:
        stage = self._first(Limit)
        return stage.count if stage else None

    @property
    def projection(self) -> Optional[Tuple[str, ...]]:
        stage = self._first(Project)
        return stage.fields if stage else None


_PHASE_NAMES = {FILTER: "filter", SORT: "sort", SKIP: "skip", LIMIT: "limit", PROJECT: "projection"}


def location_allow_list(locations: Sequence[str]) -> Tuple[str, ...]:
    """Stored-keyword form of the supported locations ("kuala-lumpur" -> "kuala lumpur")."""
    return tuple(dict.fromkeys(normalize_keyword(loc) for loc in locations if loc.strip()))


def job_type_variants(criteria: QueryCriteria) -> Tuple[str, ...]:
    variants = []
    for job_type in criteria.job_types:
        variants.extend(JOB_TYPE_VARIANTS.get(job_type, []))
    return tuple(dict.fromkeys(variants))


def build_pipeline(
    criteria: Optional[QueryCriteria] = None,
    locations: Optional[Sequence[str]] = SUPPORTED_LOCATIONS,
    extra_filters: Sequence = (),
    exclude_featured: bool = True,
    paginate: bool = True,
    fields: Optional[Sequence[str]] = None,
) -> Pipeline:
    """
    Build the filter -> sort -> skip -> limit pipeline for a listing.

    Args:
        criteria: Caller criteria; None means every default
        locations: Allow-list applied when criteria has no location;
            None disables the default location filter
        extra_filters: Filter stages a view adds ahead of the criteria filters
        exclude_featured: Drop postings with a featuredUntil value
        paginate: Apply criteria.page/limit; False returns every match
        fields: Optional projection

    Technology and location are two separate keyword matches over the same
    tag set, so a posting passes when some tag matches the technology and
    some (possibly different) tag matches the location.
    """
    criteria = criteria or QueryCriteria()
    stages = []

    if exclude_featured:
        stages.append(ExcludeFeatured())
    stages.extend(extra_filters)

    if criteria.technology:
        stages.append(KeywordMatch(criteria.technology, partial=True))

    if criteria.location:
        stages.append(KeywordMatch(criteria.location, partial=True))
    elif locations is not None:
        stages.append(KeywordMatch(location_allow_list(locations), partial=False))

    variants = job_type_variants(criteria)
    if variants:
        stages.append(EmploymentTypeMatch(variants))

    stages.append(Sort(criteria.sort_by))

    if paginate:
        if criteria.skip:
            stages.append(Skip(criteria.skip))
        stages.append(Limit(criteria.limit))

    if fields:
        stages.append(Project(tuple(fields)))

    return Pipeline(stages)
