from __future__ import annotations

from typing import Any

from models.curation import FilterStats
from models.video import CandidateReference, QualifiedVideo
from services.quality_filter import FilterResult, calculate_engagement_rate, calculate_quality_grade
from services.youtube_service import SearchPage


class _Request:
    def __init__(self, fn):
        self._fn = fn

    def execute(self) -> Any:
        return self._fn()


class _Resource:
    def __init__(self, handler):
        self._handler = handler

    def list(self, **params) -> _Request:
        return _Request(lambda: self._handler(params))


class FakeYouTubeClient:
    """Stands in for a googleapiclient YouTube resource.

    search_responses is consumed one per search.list call; an Exception entry
    is raised instead of returned. details maps video id to a videos.list item.
    """

    def __init__(
        self,
        search_responses: list[Any] | None = None,
        details: dict[str, dict] | None = None,
        videos_error: Exception | None = None,
    ) -> None:
        self.search_responses = list(search_responses or [])
        self.details = details or {}
        self.videos_error = videos_error
        self.search_calls: list[dict] = []
        self.videos_calls: list[dict] = []

    def search(self) -> _Resource:
        return _Resource(self._search)

    def videos(self) -> _Resource:
        return _Resource(self._videos)

    def _search(self, params: dict) -> dict:
        self.search_calls.append(params)
        response = self.search_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def _videos(self, params: dict) -> dict:
        self.videos_calls.append(params)
        if self.videos_error is not None:
            raise self.videos_error
        ids = params["id"].split(",")
        return {"items": [self.details[video_id] for video_id in ids if video_id in self.details]}


def search_item(video_id: str, **snippet: Any) -> dict:
    base = {
        "title": f"search title {video_id}",
        "description": f"search description {video_id}",
        "channelId": "UC-search",
        "channelTitle": "Search Channel",
        "publishedAt": "2024-05-01T12:00:00Z",
        "thumbnails": {"medium": {"url": f"https://i.ytimg.com/vi/{video_id}/mqdefault.jpg"}},
    }
    base.update(snippet)
    return {"kind": "youtube#searchResult", "id": {"kind": "youtube#video", "videoId": video_id}, "snippet": base}


def search_response(video_ids: list[str], next_page_token: str | None = None) -> dict:
    response = {
        "items": [search_item(video_id) for video_id in video_ids],
        "pageInfo": {"totalResults": 1000000, "resultsPerPage": len(video_ids)},
    }
    if next_page_token:
        response["nextPageToken"] = next_page_token
    return response


def detail_item(
    video_id: str,
    views: int = 100000,
    likes: int = 4000,
    comments: int = 1000,
    duration: str = "PT45S",
    embeddable: bool = True,
    privacy: str = "public",
    **snippet: Any,
) -> dict:
    base = {
        "title": f"detail title {video_id}",
        "description": f"detail description {video_id}",
        "channelId": "UC-detail",
        "channelTitle": "Detail Channel",
        "publishedAt": "2024-05-01T12:00:00Z",
        "tags": ["food", "shorts"],
        "categoryId": "22",
    }
    base.update(snippet)
    return {
        "id": video_id,
        "snippet": base,
        "contentDetails": {"duration": duration, "definition": "hd", "caption": "false"},
        "status": {"embeddable": embeddable, "privacyStatus": privacy, "uploadStatus": "processed"},
        "statistics": {"viewCount": str(views), "likeCount": str(likes), "commentCount": str(comments)},
    }


def make_candidate(video_id: str) -> CandidateReference:
    return CandidateReference(video_id=video_id, title=f"title {video_id}", description=f"desc {video_id}")


def make_video(
    video_id: str,
    views: int = 100000,
    likes: int = 4000,
    comments: int = 1000,
    duration: int = 45,
    published_at: str = "2024-05-01T12:00:00Z",
) -> QualifiedVideo:
    engagement = calculate_engagement_rate(views, likes, comments)
    return QualifiedVideo(
        video_id=video_id,
        title=f"title {video_id}",
        description=f"desc {video_id}",
        channel_id="UC1",
        channel_title="Channel",
        published_at=published_at,
        duration_seconds=duration,
        view_count=views,
        like_count=likes,
        comment_count=comments,
        engagement_rate=engagement,
        quality_grade=calculate_quality_grade(engagement, views),
        embeddable=True,
        is_public=True,
        processed=True,
    )


class FakeSearchService:
    """Returns scripted SearchPages; Exception entries are raised."""

    def __init__(self, pages: list[Any]) -> None:
        self.pages = list(pages)
        self.calls: list[tuple[str, str | None, int]] = []

    def search(self, keyword: str, page_token: str | None = None, page_size: int = 50) -> SearchPage:
        self.calls.append((keyword, page_token, page_size))
        page = self.pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page


class FakeQualityFilter:
    """Returns scripted qualified lists per call; Exception entries are raised."""

    def __init__(self, results: list[Any], on_call=None) -> None:
        self.results = list(results)
        self.calls = 0
        self.on_call = on_call

    def filter(self, candidates, criteria) -> FilterResult:
        self.calls += 1
        if self.on_call is not None:
            self.on_call(self.calls)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return FilterResult(
            qualified=list(result),
            stats=FilterStats(total=len(candidates), engagement_pass=len(result)),
            batches=1 if candidates else 0,
            unit_cost=9 if candidates else 0,
        )


def page_of(count: int, token: str | None = "next", prefix: str = "c") -> SearchPage:
    return SearchPage(
        candidates=[make_candidate(f"{prefix}{i}") for i in range(count)],
        next_page_token=token,
        total_results=1000,
    )

