"""Keyword curator: drives search, filter and pagination for one curation run."""

import asyncio
import logging
import time
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from models.curation import (
    CostLedger,
    CurationRun,
    FilterCriteria,
    FilterStats,
    PaginationConfig,
    PaginationDecision,
    PaginationState,
    StopReason,
    empty_grade_distribution,
)
from models.video import QualifiedVideo
from services.pagination import decide
from services.quality_filter import FilterResult, QualityFilter, sort_videos
from services.report import format_report
from services.youtube_service import SearchPage, YouTubeSearchService
from utils.config import (
    build_filter_criteria,
    build_pagination_config,
    load_config,
    validate_config,
)
from utils.errors import InvalidCriteria, MetadataUnavailable, SearchUnavailable

logger = logging.getLogger(__name__)

MAX_KEYWORD_LENGTH = 100
DEFAULT_MAX_CONCURRENT = 3


def normalize_keyword(keyword: str) -> str:
    """Strip a keyword and reject empty or overlong ones."""
    if not isinstance(keyword, str):
        raise InvalidCriteria("keyword must be a string")

    clean_keyword = keyword.strip()
    if not clean_keyword:
        raise InvalidCriteria("keyword must not be empty")
    if len(clean_keyword) > MAX_KEYWORD_LENGTH:
        raise InvalidCriteria(f"keyword is too long (max {MAX_KEYWORD_LENGTH} characters)")
    return clean_keyword


class _RunAccumulator:
    """Mutable state for a single run; never shared between runs."""

    def __init__(self, pagination: PaginationConfig):
        self.pagination = pagination
        self.videos: Dict[str, QualifiedVideo] = {}
        self.ledger = CostLedger()
        self.state = PaginationState()
        self.filter_stats = FilterStats()
        self.duplicates_skipped = 0
        self.last_decision: Optional[PaginationDecision] = None

    def record_search(self, page: SearchPage) -> None:
        self.ledger = self.ledger.charge_search(self.pagination.search_unit_cost)
        self.state = replace(
            self.state,
            pages_searched=self.state.pages_searched + 1,
            total_processed=self.state.total_processed + len(page.candidates),
            has_next_page_token=bool(page.next_page_token),
        )

    def record_filter(self, result: FilterResult) -> int:
        """Charge the metadata cost and merge admitted videos, keyed by video id."""
        self.ledger = self.ledger.charge_detail(
            result.batches, result.batches * self.pagination.detail_unit_cost
        )
        self.filter_stats = self.filter_stats + result.stats

        added = 0
        for video in result.qualified:
            if video.video_id in self.videos:
                self.duplicates_skipped += 1
                continue
            self.videos[video.video_id] = video
            added += 1

        self.state = replace(self.state, qualified_count=len(self.videos))
        return added


class KeywordCurator:
    """Central orchestrator for keyword curation runs.

    The curator only holds configured collaborators; all per-run state lives
    in a run-scoped accumulator, so independent keywords can be curated
    concurrently on one instance.
    """

    def __init__(
        self,
        search_service: YouTubeSearchService,
        quality_filter: QualityFilter,
        default_criteria: Optional[FilterCriteria] = None,
        default_pagination: Optional[PaginationConfig] = None,
        search_timeout_seconds: float = 10.0,
        detail_timeout_seconds: float = 10.0,
    ):
        self.search_service = search_service
        self.quality_filter = quality_filter
        self.default_criteria = default_criteria or FilterCriteria()
        self.default_pagination = default_pagination or PaginationConfig()
        self.search_timeout_seconds = search_timeout_seconds
        self.detail_timeout_seconds = detail_timeout_seconds

    @classmethod
    def from_config(cls, config: Optional[Dict] = None) -> "KeywordCurator":
        """Build a curator and its YouTube services from configuration."""
        config = config or load_config()

        config_errors = validate_config(config)
        if config_errors:
            error_msg = "Configuration errors: " + "; ".join(config_errors)
            logger.error(error_msg)
            raise ValueError(error_msg)

        api_key = config["youtube_api_key"]
        search_timeout = config.get("search_timeout_seconds", 10.0)
        detail_timeout = config.get("detail_timeout_seconds", 10.0)

        search_service = YouTubeSearchService(
            api_key,
            region_code=config.get("region_code", "KR"),
            relevance_language=config.get("relevance_language", "ko"),
            timeout_seconds=search_timeout,
        )
        quality_filter = QualityFilter(api_key, timeout_seconds=detail_timeout)

        logger.info("Keyword curator initialized")
        return cls(
            search_service,
            quality_filter,
            default_criteria=build_filter_criteria(config),
            default_pagination=build_pagination_config(config),
            search_timeout_seconds=search_timeout,
            detail_timeout_seconds=detail_timeout,
        )

    async def curate(
        self,
        keyword: str,
        criteria: Optional[FilterCriteria] = None,
        pagination: Optional[PaginationConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CurationRun:
        """Run one curation for keyword and return the frozen result.

        Dependency failures and cancellation end the loop early with a
        labelled stop reason and whatever was accumulated so far. Only
        InvalidCriteria is raised, before any network call.
        """
        keyword = normalize_keyword(keyword)
        criteria = criteria or self.default_criteria
        pagination = pagination or self.default_pagination

        run_id = uuid.uuid4().hex[:12]
        started_at = datetime.now()
        start_time = time.monotonic()
        run = _RunAccumulator(pagination)

        logger.info(
            f"[{run_id}] Curating '{keyword}': target {pagination.target_results}, "
            f"max {pagination.max_pages} pages, min views {criteria.min_view_count:,}, "
            f"min engagement {criteria.min_engagement_rate:.2%}"
        )

        stop_reason, error_message = await self._run_loop(keyword, criteria, pagination, run, cancel_event, run_id)

        videos = sort_videos(run.videos.values(), criteria.sort_by)[:criteria.max_results]
        distribution = empty_grade_distribution()
        for video in videos:
            distribution[video.quality_grade] += 1
        average_views, average_engagement = _averages(videos)

        result = CurationRun(
            run_id=run_id,
            keyword=keyword,
            criteria=criteria,
            pagination=pagination,
            videos=tuple(videos),
            ledger=run.ledger,
            pages_searched=run.state.pages_searched,
            total_candidates=run.state.total_processed,
            duplicates_skipped=run.duplicates_skipped,
            filter_stats=run.filter_stats,
            stop_reason=stop_reason,
            started_at=started_at,
            duration_seconds=time.monotonic() - start_time,
            quality_distribution=distribution,
            average_views=average_views,
            average_engagement=average_engagement,
            last_decision=run.last_decision,
            error_message=error_message,
        )

        logger.info(f"[{run_id}] Curation finished\n{format_report(result)}")
        return result

    async def curate_many(
        self,
        keywords: List[str],
        criteria: Optional[FilterCriteria] = None,
        pagination: Optional[PaginationConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    ) -> List[CurationRun]:
        """Curate several keywords as independent runs, at most max_concurrent at a time.

        Results come back in keyword order.
        """
        normalized = [normalize_keyword(keyword) for keyword in keywords]
        semaphore = asyncio.Semaphore(max(1, max_concurrent))

        async def _bounded(keyword: str) -> CurationRun:
            async with semaphore:
                return await self.curate(keyword, criteria, pagination, cancel_event)

        return list(await asyncio.gather(*(_bounded(keyword) for keyword in normalized)))

    async def _run_loop(
        self,
        keyword: str,
        criteria: FilterCriteria,
        pagination: PaginationConfig,
        run: _RunAccumulator,
        cancel_event: Optional[asyncio.Event],
        run_id: str,
    ):
        """Page through search results until a stop condition; returns (reason, error)."""
        loop = asyncio.get_running_loop()
        page_token = None

        while run.state.pages_searched < pagination.max_pages:
            page_number = run.state.pages_searched + 1

            if _is_cancelled(cancel_event):
                return self._cancelled(run_id, page_number)

            try:
                page = await asyncio.wait_for(
                    loop.run_in_executor(
                        None, self.search_service.search, keyword, page_token, pagination.page_size
                    ),
                    timeout=self.search_timeout_seconds,
                )
            except asyncio.TimeoutError:
                message = f"search.list timed out after {self.search_timeout_seconds}s"
                logger.warning(f"[{run_id}] Page {page_number}: {message}, stopping")
                return StopReason.SEARCH_FAILED, message
            except SearchUnavailable as e:
                logger.warning(f"[{run_id}] Page {page_number}: search unavailable ({e}), stopping")
                return StopReason.SEARCH_FAILED, str(e)

            run.record_search(page)
            logger.info(f"[{run_id}] Page {page_number}: {len(page.candidates)} candidates")

            if _is_cancelled(cancel_event):
                return self._cancelled(run_id, page_number)

            try:
                result = await asyncio.wait_for(
                    loop.run_in_executor(None, self.quality_filter.filter, page.candidates, criteria),
                    timeout=self.detail_timeout_seconds,
                )
            except asyncio.TimeoutError:
                message = f"videos.list timed out after {self.detail_timeout_seconds}s"
                logger.warning(f"[{run_id}] Page {page_number}: {message}, stopping")
                return StopReason.METADATA_FAILED, message
            except MetadataUnavailable as e:
                logger.warning(f"[{run_id}] Page {page_number}: metadata unavailable ({e}), stopping")
                return StopReason.METADATA_FAILED, str(e)

            added = run.record_filter(result)
            logger.info(
                f"[{run_id}] Page {page_number}: {added} new qualified videos "
                f"(total {run.state.qualified_count})"
            )

            decision = decide(run.state, pagination)
            run.last_decision = decision
            if not decision.should_continue:
                logger.info(f"[{run_id}] Stopping: {decision.reason}")
                return decision.stop_reason, None

            logger.info(f"[{run_id}] Continuing: {decision.reason}")

            if _is_cancelled(cancel_event):
                return self._cancelled(run_id, page_number)
            if await _wait_between_pages(pagination.page_delay_seconds, cancel_event):
                return self._cancelled(run_id, page_number)

            page_token = page.next_page_token

        return StopReason.MAX_PAGES_REACHED, None

    @staticmethod
    def _cancelled(run_id: str, page_number: int):
        logger.info(f"[{run_id}] Cancelled at page {page_number}")
        return StopReason.CANCELLED, None


def _is_cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


async def _wait_between_pages(delay: float, cancel_event: Optional[asyncio.Event]) -> bool:
    """Sleep between pages; returns True if cancelled while waiting."""
    if cancel_event is None:
        await asyncio.sleep(delay)
        return False

    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return False
    return True


def _averages(videos: List[QualifiedVideo]):
    """Mean view count (rounded) and mean engagement rate over the final set."""
    if not videos:
        return 0, 0.0
    average_views = round(sum(video.view_count for video in videos) / len(videos))
    average_engagement = sum(video.engagement_rate for video in videos) / len(videos)
    return average_views, average_engagement
