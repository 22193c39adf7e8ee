"""Curation run models: criteria, pagination state and run results."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from models.video import QualifiedVideo, QUALITY_GRADES
from utils.errors import (
    Cancelled,
    InvalidCriteria,
    MetadataUnavailable,
    SearchUnavailable,
)

# YouTube Data API v3 limits and unit costs
MAX_PAGE_SIZE = 50
SEARCH_UNIT_COST = 100
DETAIL_UNIT_COST = 9


class SortBy(Enum):
    """Sort keys for qualified videos, always applied descending."""
    ENGAGEMENT = "engagement"
    VIEW_COUNT = "view_count"
    LIKE_COUNT = "like_count"
    PUBLISHED_AT = "published_at"


class StopReason(Enum):
    """Machine-readable reasons a curation run ended."""
    TARGET_ACHIEVED = "target_achieved"
    MAX_PAGES_REACHED = "max_pages_reached"
    NO_MORE_PAGES_AVAILABLE = "no_more_pages_available"
    CONSECUTIVE_EMPTY_RESULTS = "consecutive_empty_results"
    SEARCH_FAILED = "search_failed"
    METADATA_FAILED = "metadata_failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FilterCriteria:
    """Admission thresholds for a curation run."""

    min_view_count: int = 10000
    min_engagement_rate: float = 0.01
    min_duration_seconds: int = 10
    max_duration_seconds: int = 90
    require_embeddable: bool = True
    require_public: bool = True
    sort_by: SortBy = SortBy.ENGAGEMENT
    max_results: int = 50

    def __post_init__(self):
        if isinstance(self.sort_by, str):
            try:
                object.__setattr__(self, "sort_by", SortBy(self.sort_by))
            except ValueError:
                valid = ", ".join(s.value for s in SortBy)
                raise InvalidCriteria(f"sort_by must be one of: {valid}")

        errors = self.validate()
        if errors:
            raise InvalidCriteria("Invalid filter criteria: " + "; ".join(errors))

    def validate(self) -> List[str]:
        """Validate thresholds and return list of errors."""
        errors = []

        if self.min_view_count < 0:
            errors.append("min_view_count must not be negative")
        if self.min_engagement_rate < 0:
            errors.append("min_engagement_rate must not be negative")
        if self.min_duration_seconds < 0:
            errors.append("min_duration_seconds must not be negative")
        if self.min_duration_seconds > self.max_duration_seconds:
            errors.append(
                f"min_duration_seconds ({self.min_duration_seconds}) exceeds "
                f"max_duration_seconds ({self.max_duration_seconds})"
            )
        if self.max_results < 1:
            errors.append("max_results must be at least 1")
        if not isinstance(self.sort_by, SortBy):
            errors.append(f"Unsupported sort_by: {self.sort_by!r}")

        return errors


@dataclass(frozen=True)
class PaginationConfig:
    """Target yield and page budget for a curation run."""

    target_results: int = 40
    max_pages: int = 3
    page_size: int = MAX_PAGE_SIZE
    search_unit_cost: int = SEARCH_UNIT_COST
    detail_unit_cost: int = DETAIL_UNIT_COST
    page_delay_seconds: float = 1.0

    def __post_init__(self):
        errors = []
        if self.target_results < 1:
            errors.append("target_results must be at least 1")
        if self.max_pages < 1:
            errors.append("max_pages must be at least 1")
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            errors.append(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        if self.search_unit_cost < 0 or self.detail_unit_cost < 0:
            errors.append("unit costs must not be negative")
        if self.page_delay_seconds < 0:
            errors.append("page_delay_seconds must not be negative")
        if errors:
            raise InvalidCriteria("Invalid pagination config: " + "; ".join(errors))

    @property
    def units_per_page(self) -> int:
        return self.search_unit_cost + self.detail_unit_cost


@dataclass(frozen=True)
class PaginationState:
    """Counters the orchestrator hands to the pagination controller."""

    qualified_count: int = 0
    pages_searched: int = 0
    total_processed: int = 0
    has_next_page_token: bool = False


@dataclass(frozen=True)
class PaginationStats:
    """Derived efficiency figures for a pagination decision."""

    target_achievement: float
    success_rate: float
    efficiency: float
    api_units_used: int
    max_possible_units: int
    average_results_per_page: float
    recommended_action: str

    def to_dict(self) -> dict:
        return {
            'target_achievement': self.target_achievement,
            'success_rate': self.success_rate,
            'efficiency': self.efficiency,
            'api_units_used': self.api_units_used,
            'max_possible_units': self.max_possible_units,
            'average_results_per_page': self.average_results_per_page,
            'recommended_action': self.recommended_action,
        }


@dataclass(frozen=True)
class PaginationDecision:
    """Continue-or-stop verdict with its reason code."""

    should_continue: bool
    reason: str
    stats: PaginationStats
    stop_reason: Optional[StopReason] = None

    def to_dict(self) -> dict:
        return {
            'should_continue': self.should_continue,
            'reason': self.reason,
            'stats': self.stats.to_dict(),
        }


@dataclass(frozen=True)
class FilterStats:
    """Cumulative pass-through counts at each eligibility gate."""

    total: int = 0
    embeddable_pass: int = 0
    public_pass: int = 0
    duration_pass: int = 0
    view_count_pass: int = 0
    engagement_pass: int = 0

    def __add__(self, other: "FilterStats") -> "FilterStats":
        return FilterStats(
            total=self.total + other.total,
            embeddable_pass=self.embeddable_pass + other.embeddable_pass,
            public_pass=self.public_pass + other.public_pass,
            duration_pass=self.duration_pass + other.duration_pass,
            view_count_pass=self.view_count_pass + other.view_count_pass,
            engagement_pass=self.engagement_pass + other.engagement_pass,
        )

    def to_dict(self) -> dict:
        return {
            'total': self.total,
            'embeddable_pass': self.embeddable_pass,
            'public_pass': self.public_pass,
            'duration_pass': self.duration_pass,
            'view_count_pass': self.view_count_pass,
            'engagement_pass': self.engagement_pass,
        }


@dataclass(frozen=True)
class CostLedger:
    """API units spent on search calls and metadata batches."""

    search_calls: int = 0
    search_units: int = 0
    detail_batches: int = 0
    detail_units: int = 0

    @property
    def total_units(self) -> int:
        return self.search_units + self.detail_units

    def charge_search(self, units: int) -> "CostLedger":
        return replace(self, search_calls=self.search_calls + 1, search_units=self.search_units + units)

    def charge_detail(self, batches: int, units: int) -> "CostLedger":
        return replace(self, detail_batches=self.detail_batches + batches, detail_units=self.detail_units + units)

    def to_dict(self) -> dict:
        return {
            'search_calls': self.search_calls,
            'search_units': self.search_units,
            'detail_batches': self.detail_batches,
            'detail_units': self.detail_units,
            'total_units': self.total_units,
        }


def empty_grade_distribution() -> Dict[str, int]:
    return {grade: 0 for grade in QUALITY_GRADES}


@dataclass(frozen=True)
class CurationRun:
    """The result of one curation run, handed whole to the caller."""

    run_id: str
    keyword: str
    criteria: FilterCriteria
    pagination: PaginationConfig
    videos: Tuple[QualifiedVideo, ...]
    ledger: CostLedger
    pages_searched: int
    total_candidates: int
    duplicates_skipped: int
    filter_stats: FilterStats
    stop_reason: StopReason
    started_at: datetime
    duration_seconds: float
    quality_distribution: Dict[str, int] = field(default_factory=empty_grade_distribution)
    average_views: int = 0
    average_engagement: float = 0.0
    last_decision: Optional[PaginationDecision] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        """True when the run stopped for a reason other than a failure or cancellation."""
        return self.stop_reason not in (
            StopReason.SEARCH_FAILED,
            StopReason.METADATA_FAILED,
            StopReason.CANCELLED,
        )

    def raise_for_stop(self) -> None:
        """Raise the matching exception if the run ended on a failure or cancellation."""
        message = self.error_message or f"Curation run {self.run_id} stopped: {self.stop_reason.value}"
        if self.stop_reason == StopReason.SEARCH_FAILED:
            raise SearchUnavailable(message)
        if self.stop_reason == StopReason.METADATA_FAILED:
            raise MetadataUnavailable(message)
        if self.stop_reason == StopReason.CANCELLED:
            raise Cancelled(message)

    def to_dict(self) -> dict:
        """Convert run to dictionary for a storage collaborator."""
        return {
            'run_id': self.run_id,
            'keyword': self.keyword,
            'videos': [video.to_dict() for video in self.videos],
            'ledger': self.ledger.to_dict(),
            'pages_searched': self.pages_searched,
            'max_pages': self.pagination.max_pages,
            'target_results': self.pagination.target_results,
            'total_candidates': self.total_candidates,
            'duplicates_skipped': self.duplicates_skipped,
            'filter_stats': self.filter_stats.to_dict(),
            'quality_distribution': dict(self.quality_distribution),
            'average_views': self.average_views,
            'average_engagement': self.average_engagement,
            'stop_reason': self.stop_reason.value,
            'last_decision': self.last_decision.to_dict() if self.last_decision else None,
            'error_message': self.error_message,
            'started_at': self.started_at.isoformat(),
            'duration_seconds': self.duration_seconds,
        }
