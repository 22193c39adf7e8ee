"""YouTube search service using the YouTube Data API v3 search.list endpoint."""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from models.curation import MAX_PAGE_SIZE, SEARCH_UNIT_COST
from models.video import CandidateReference
from utils.errors import SearchUnavailable

logger = logging.getLogger(__name__)

# Fixed search.list parameters tuned for short, embeddable, HD videos
DEFAULT_SEARCH_PARAMS = {
    "part": "snippet",
    "type": "video",
    "videoDuration": "short",
    "videoEmbeddable": "true",
    "videoSyndicated": "true",
    "videoDefinition": "high",
    "videoLicense": "any",
    "safeSearch": "moderate",
    "order": "relevance",
}


def build_youtube_client(api_key: str, timeout_seconds: float) -> Any:
    """Build a YouTube Data API client whose HTTP calls time out."""
    http = httplib2.Http(timeout=timeout_seconds)
    return build("youtube", "v3", developerKey=api_key, http=http, cache_discovery=False)


class ThreadLocalClient:
    """Lazily builds one API client per thread; httplib2 clients are not thread-safe."""

    def __init__(self, factory: Callable[[], Any]):
        self._factory = factory
        self._local = threading.local()

    def get(self) -> Any:
        client = getattr(self._local, "client", None)
        if client is None:
            client = self._factory()
            self._local.client = client
        return client


@dataclass(frozen=True)
class SearchPage:
    """One page of search results."""

    candidates: List[CandidateReference] = field(default_factory=list)
    next_page_token: Optional[str] = None
    total_results: int = 0
    unit_cost: int = SEARCH_UNIT_COST
    response_time: float = 0.0


class YouTubeSearchService:
    """Service for paginated keyword searches against search.list."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        region_code: str = "KR",
        relevance_language: str = "ko",
        timeout_seconds: float = 10.0,
        client: Any = None,
    ):
        """Initialize YouTube search service.

        Args:
            api_key: YouTube Data API key (unused when client is given)
            region_code: regionCode sent with every search
            relevance_language: relevanceLanguage sent with every search
            timeout_seconds: socket timeout for each search call
            client: pre-built API client, mainly for tests
        """
        if client is None and not api_key:
            raise ValueError("YouTube API key is required")

        self.region_code = region_code
        self.relevance_language = relevance_language
        self.timeout_seconds = timeout_seconds
        if client is not None:
            self._clients = ThreadLocalClient(lambda: client)
        else:
            self._clients = ThreadLocalClient(lambda: build_youtube_client(api_key, timeout_seconds))

        self._stats_lock = threading.Lock()
        self.stats = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
        }

    def search(
        self,
        keyword: str,
        page_token: Optional[str] = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> SearchPage:
        """Search one page of videos for keyword.

        Args:
            keyword: Search keyword, used as-is after stripping
            page_token: Continuation token from the previous page, or None
            page_size: Requested results, clamped to the API maximum

        Returns:
            SearchPage with candidates, the next token and the unit cost

        Raises:
            SearchUnavailable: on HTTP, quota, transport or timeout errors
        """
        query = (keyword or "").strip()
        if not query:
            raise ValueError("Search keyword must not be empty")

        params = dict(DEFAULT_SEARCH_PARAMS)
        params.update(
            q=query,
            maxResults=max(1, min(page_size, MAX_PAGE_SIZE)),
            regionCode=self.region_code,
            relevanceLanguage=self.relevance_language,
        )
        if page_token:
            params["pageToken"] = page_token

        logger.info(f"Searching YouTube for: '{query}'" + (" (next page)" if page_token else ""))
        self._count("total_requests")
        start_time = time.time()

        try:
            response = self._clients.get().search().list(**params).execute()
        except HttpError as e:
            self._count("failed_requests")
            logger.error(f"YouTube search failed for '{query}': HTTP {e.resp.status}")
            raise SearchUnavailable(f"search.list returned HTTP {e.resp.status}") from e
        except (httplib2.HttpLib2Error, TimeoutError, OSError) as e:
            self._count("failed_requests")
            logger.error(f"YouTube search failed for '{query}': {e}")
            raise SearchUnavailable(f"search.list transport error: {e}") from e

        self._count("successful_requests")
        page = self._parse_response(response or {}, time.time() - start_time)
        logger.info(
            f"Search returned {len(page.candidates)} candidates "
            f"({page.response_time * 1000:.0f}ms, {page.unit_cost} units)"
        )
        return page

    def get_stats(self) -> Dict:
        """Return request counters and success rate."""
        with self._stats_lock:
            stats = dict(self.stats)
        total = stats["total_requests"]
        stats["success_rate"] = stats["successful_requests"] / total if total else 0.0
        return stats

    def _parse_response(self, response: Dict, response_time: float) -> SearchPage:
        candidates = []
        for item in response.get("items") or []:
            candidate = CandidateReference.from_search_item(item)
            if candidate is None:
                logger.debug(f"Skipping search item without video id: {item.get('id')}")
                continue
            candidates.append(candidate)

        page_info = response.get("pageInfo") or {}
        try:
            total_results = int(page_info.get("totalResults") or 0)
        except (TypeError, ValueError):
            total_results = 0

        return SearchPage(
            candidates=candidates,
            next_page_token=response.get("nextPageToken") or None,
            total_results=total_results,
            unit_cost=SEARCH_UNIT_COST,
            response_time=response_time,
        )

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self.stats[key] += 1
