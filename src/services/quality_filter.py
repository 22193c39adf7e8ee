"""Quality filter: videos.list enrichment, eligibility gates and quality grading."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import httplib2
from googleapiclient.errors import HttpError

from models.curation import DETAIL_UNIT_COST, FilterCriteria, FilterStats, SortBy
from models.video import CandidateReference, QualifiedVideo
from services.youtube_service import ThreadLocalClient, build_youtube_client
from utils.errors import MetadataUnavailable

logger = logging.getLogger(__name__)

DETAIL_BATCH_SIZE = 50
DETAIL_PARTS = "snippet,contentDetails,status,statistics"

_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)

# (min engagement rate, min view count, grade), best first
GRADE_BANDS = (
    (0.05, 100000, "A+"),
    (0.03, 50000, "A"),
    (0.02, 20000, "B+"),
    (0.01, 10000, "B"),
)


def parse_iso8601_duration(duration: Optional[str]) -> int:
    """Parse an ISO 8601 duration such as 'PT1M30S' into whole seconds.

    Unparsable or missing values count as 0 seconds.
    """
    if not duration or not isinstance(duration, str):
        return 0

    match = _DURATION_RE.match(duration.strip())
    if not match:
        return 0

    parts = match.groupdict()
    days = int(parts["days"] or 0)
    hours = int(parts["hours"] or 0)
    minutes = int(parts["minutes"] or 0)
    seconds = float(parts["seconds"] or 0)
    return int(days * 86400 + hours * 3600 + minutes * 60 + seconds)


def calculate_engagement_rate(view_count: int, like_count: int, comment_count: int) -> float:
    """Engagement rate: (likes + comments) / views, with views floored at 1."""
    return (like_count + comment_count) / max(view_count, 1)


def calculate_quality_grade(engagement_rate: float, view_count: int) -> str:
    """Map engagement rate and view count to a grade band (A+ down to C)."""
    for min_engagement, min_views, grade in GRADE_BANDS:
        if engagement_rate >= min_engagement and view_count >= min_views:
            return grade
    return "C"


def _published_timestamp(video: QualifiedVideo) -> float:
    if not video.published_at:
        return 0.0
    try:
        published = datetime.fromisoformat(video.published_at.replace("Z", "+00:00"))
    except ValueError:
        return 0.0
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return published.timestamp()


SORT_KEYS: Dict[SortBy, Callable[[QualifiedVideo], Any]] = {
    SortBy.ENGAGEMENT: lambda video: video.engagement_rate,
    SortBy.VIEW_COUNT: lambda video: video.view_count,
    SortBy.LIKE_COUNT: lambda video: video.like_count,
    SortBy.PUBLISHED_AT: _published_timestamp,
}


def sort_videos(videos: Iterable[QualifiedVideo], sort_by: SortBy) -> List[QualifiedVideo]:
    """Sort videos descending by sort_by; ties keep their incoming order."""
    return sorted(videos, key=SORT_KEYS[sort_by], reverse=True)


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class FilterResult:
    """Admitted videos plus gate counters and the metadata cost spent."""

    qualified: List[QualifiedVideo] = field(default_factory=list)
    stats: FilterStats = field(default_factory=FilterStats)
    batches: int = 0
    unit_cost: int = 0


class QualityFilter:
    """Fetches full video metadata and admits candidates that meet the criteria."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
        client: Any = None,
        batch_size: int = DETAIL_BATCH_SIZE,
    ):
        if client is None and not api_key:
            raise ValueError("YouTube API key is required")

        self.timeout_seconds = timeout_seconds
        self.batch_size = max(1, min(batch_size, DETAIL_BATCH_SIZE))
        if client is not None:
            self._clients = ThreadLocalClient(lambda: client)
        else:
            self._clients = ThreadLocalClient(lambda: build_youtube_client(api_key, timeout_seconds))

    def filter(self, candidates: List[CandidateReference], criteria: FilterCriteria) -> FilterResult:
        """Enrich candidates with videos.list data and apply the eligibility gates.

        Args:
            candidates: Candidates from one search page, with their search snippets
            criteria: Admission thresholds, sort key and result cap

        Returns:
            FilterResult with the admitted videos sorted and truncated

        Raises:
            MetadataUnavailable: if any videos.list batch fails
        """
        if not candidates:
            return FilterResult()

        by_id: Dict[str, CandidateReference] = {}
        for candidate in candidates:
            by_id.setdefault(candidate.video_id, candidate)

        logger.info(f"Filtering {len(by_id)} candidates")
        details, batches = self._fetch_details(list(by_id))

        qualified: List[QualifiedVideo] = []
        counts = dict.fromkeys(
            ("embeddable_pass", "public_pass", "duration_pass", "view_count_pass", "engagement_pass"),
            0,
        )

        for item in details:
            video = self._evaluate(item, by_id, criteria, counts)
            if video is not None:
                qualified.append(video)

        stats = FilterStats(total=len(details), **counts)
        final = sort_videos(qualified, criteria.sort_by)[:criteria.max_results]

        pass_rate = (stats.engagement_pass / stats.total * 100) if stats.total else 0.0
        logger.info(
            f"Filter passed {stats.engagement_pass}/{stats.total} videos ({pass_rate:.1f}%), "
            f"keeping {len(final)}"
        )
        return FilterResult(
            qualified=final,
            stats=stats,
            batches=batches,
            unit_cost=batches * DETAIL_UNIT_COST,
        )

    def _fetch_details(self, video_ids: List[str]) -> Tuple[List[Dict], int]:
        """Call videos.list in batches; any failed batch fails the whole fetch."""
        items: List[Dict] = []
        batches = 0
        client = self._clients.get()

        for start in range(0, len(video_ids), self.batch_size):
            batch = video_ids[start:start + self.batch_size]
            batch_number = start // self.batch_size + 1
            try:
                response = client.videos().list(part=DETAIL_PARTS, id=",".join(batch)).execute()
            except HttpError as e:
                logger.error(f"videos.list batch {batch_number} failed: HTTP {e.resp.status}")
                raise MetadataUnavailable(f"videos.list returned HTTP {e.resp.status}") from e
            except (httplib2.HttpLib2Error, TimeoutError, OSError) as e:
                logger.error(f"videos.list batch {batch_number} failed: {e}")
                raise MetadataUnavailable(f"videos.list transport error: {e}") from e

            batches += 1
            items.extend((response or {}).get("items") or [])

        return items, batches

    def _evaluate(
        self,
        item: Any,
        by_id: Dict[str, CandidateReference],
        criteria: FilterCriteria,
        counts: Dict[str, int],
    ) -> Optional[QualifiedVideo]:
        """Run one detail item through the gates in order, updating counts."""
        if not self._is_well_formed(item, by_id):
            return None

        status = item["status"]
        content = item["contentDetails"]
        statistics = item["statistics"]

        # 1. Embeddable
        embeddable = status.get("embeddable") is True
        if criteria.require_embeddable and not embeddable:
            return None
        counts["embeddable_pass"] += 1

        # 2. Public
        is_public = status.get("privacyStatus") == "public"
        if criteria.require_public and not is_public:
            return None
        counts["public_pass"] += 1

        # 3. Duration
        duration = parse_iso8601_duration(content.get("duration"))
        if not criteria.min_duration_seconds <= duration <= criteria.max_duration_seconds:
            return None
        counts["duration_pass"] += 1

        # 4. Views
        view_count = _to_int(statistics.get("viewCount"))
        if view_count < criteria.min_view_count:
            return None
        counts["view_count_pass"] += 1

        # 5. Engagement
        like_count = _to_int(statistics.get("likeCount"))
        comment_count = _to_int(statistics.get("commentCount"))
        engagement_rate = calculate_engagement_rate(view_count, like_count, comment_count)
        if engagement_rate < criteria.min_engagement_rate:
            return None
        counts["engagement_pass"] += 1

        return self._build_video(
            item,
            by_id[item["id"]],
            duration=duration,
            view_count=view_count,
            like_count=like_count,
            comment_count=comment_count,
            engagement_rate=engagement_rate,
            embeddable=embeddable,
            is_public=is_public,
        )

    @staticmethod
    def _is_well_formed(item: Any, by_id: Dict[str, CandidateReference]) -> bool:
        if not isinstance(item, dict) or item.get("id") not in by_id:
            return False
        return all(isinstance(item.get(part), dict) for part in ("status", "contentDetails", "statistics"))

    @staticmethod
    def _build_video(item: Dict, candidate: CandidateReference, **measures) -> QualifiedVideo:
        """Merge the detail record with the search snippet.

        The detail call wins on overlapping fields, except the description,
        where the search snippet's text is kept.
        """
        snippet = item.get("snippet") if isinstance(item.get("snippet"), dict) else {}
        content = item["contentDetails"]
        region_restriction = content.get("regionRestriction")

        return QualifiedVideo(
            video_id=item["id"],
            title=snippet.get("title") or candidate.title or "No Title",
            description=candidate.description or snippet.get("description") or "",
            channel_id=snippet.get("channelId") or candidate.channel_id,
            channel_title=snippet.get("channelTitle") or candidate.channel_title or "Unknown Channel",
            published_at=snippet.get("publishedAt") or candidate.published_at,
            thumbnails=dict(snippet.get("thumbnails") or candidate.thumbnails or {}),
            duration_seconds=measures["duration"],
            view_count=measures["view_count"],
            like_count=measures["like_count"],
            comment_count=measures["comment_count"],
            engagement_rate=measures["engagement_rate"],
            quality_grade=calculate_quality_grade(measures["engagement_rate"], measures["view_count"]),
            embeddable=measures["embeddable"],
            is_public=measures["is_public"],
            processed=item["status"].get("uploadStatus") == "processed",
            tags=tuple(snippet.get("tags") or ()),
            category_id=snippet.get("categoryId") or "",
            default_language=snippet.get("defaultLanguage") or "",
            definition=content.get("definition") or "sd",
            has_captions=str(content.get("caption", "")).lower() == "true",
            region_restriction=dict(region_restriction) if isinstance(region_restriction, dict) else {},
        )
