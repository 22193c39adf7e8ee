from __future__ import annotations

import httplib2
import pytest
from googleapiclient.errors import HttpError

from conftest import FakeYouTubeClient, detail_item, make_video
from models.curation import FilterCriteria, SortBy
from models.video import CandidateReference
from services.quality_filter import (
    QualityFilter,
    calculate_engagement_rate,
    calculate_quality_grade,
    parse_iso8601_duration,
    sort_videos,
)
from utils.errors import MetadataUnavailable


def _candidates(*video_ids: str) -> list[CandidateReference]:
    return [
        CandidateReference(
            video_id=video_id,
            title=f"search title {video_id}",
            description=f"search description {video_id}",
            channel_id="UC-search",
            thumbnails={"default": {"url": f"https://search/{video_id}.jpg"}},
        )
        for video_id in video_ids
    ]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("PT45S", 45),
        ("PT1M30S", 90),
        ("PT2H", 7200),
        ("PT1H2M3S", 3723),
        ("P1DT1S", 86401),
        ("P0D", 0),
        ("garbage", 0),
        ("", 0),
        (None, 0),
    ],
)
def test_parse_iso8601_duration(raw: str | None, expected: int) -> None:
    assert parse_iso8601_duration(raw) == expected


def test_engagement_rate_floors_views_at_one() -> None:
    assert calculate_engagement_rate(0, 3, 2) == pytest.approx(5.0)
    assert calculate_engagement_rate(1000, 30, 20) == pytest.approx(0.05)


@pytest.mark.parametrize(
    ("engagement", "views", "grade"),
    [
        (0.05, 100000, "A+"),
        (0.05, 99999, "A"),
        (0.03, 50000, "A"),
        (0.02, 20000, "B+"),
        (0.01, 10000, "B"),
        (0.2, 9999, "C"),
        (0.009, 5000000, "C"),
    ],
)
def test_quality_grade_bands(engagement: float, views: int, grade: str) -> None:
    assert calculate_quality_grade(engagement, views) == grade


def test_filter_applies_gates_in_order_with_cumulative_counts() -> None:
    client = FakeYouTubeClient(
        details={
            "ok": detail_item("ok"),
            "not_embeddable": detail_item("not_embeddable", embeddable=False),
            "private": detail_item("private", privacy="unlisted"),
            "too_long": detail_item("too_long", duration="PT5M"),
            "too_short": detail_item("too_short", duration="PT5S"),
            "few_views": detail_item("few_views", views=500, likes=100),
            "low_engagement": detail_item("low_engagement", views=100000, likes=50, comments=10),
            "malformed": {"id": "malformed", "snippet": {}},
        }
    )
    quality_filter = QualityFilter(client=client)

    result = quality_filter.filter(
        _candidates(
            "ok", "not_embeddable", "private", "too_long", "too_short", "few_views", "low_engagement", "malformed"
        ),
        FilterCriteria(),
    )

    assert [video.video_id for video in result.qualified] == ["ok"]
    assert result.stats.total == 8
    assert result.stats.embeddable_pass == 6
    assert result.stats.public_pass == 5
    assert result.stats.duration_pass == 3
    assert result.stats.view_count_pass == 2
    assert result.stats.engagement_pass == 1
    assert result.batches == 1
    assert result.unit_cost == 9


def test_filter_admits_only_videos_meeting_every_threshold() -> None:
    criteria = FilterCriteria(min_view_count=20000, min_engagement_rate=0.02, min_duration_seconds=15, max_duration_seconds=60)
    details = {
        f"v{i}": detail_item(f"v{i}", views=views, likes=likes, duration=duration)
        for i, (views, likes, duration) in enumerate(
            [
                (20000, 400, "PT15S"),
                (19999, 5000, "PT30S"),
                (50000, 900, "PT1M"),
                (50000, 2000, "PT1M1S"),
                (80000, 5000, "PT40S"),
            ]
        )
    }
    quality_filter = QualityFilter(client=FakeYouTubeClient(details=details))

    result = quality_filter.filter(_candidates(*details), criteria)

    assert result.qualified
    for video in result.qualified:
        assert video.engagement_rate >= criteria.min_engagement_rate
        assert criteria.min_duration_seconds <= video.duration_seconds <= criteria.max_duration_seconds
        assert video.view_count >= criteria.min_view_count


def test_filter_skips_embeddable_and_public_gates_when_not_required() -> None:
    client = FakeYouTubeClient(details={"v1": detail_item("v1", embeddable=False, privacy="unlisted")})
    criteria = FilterCriteria(require_embeddable=False, require_public=False)

    result = QualityFilter(client=client).filter(_candidates("v1"), criteria)

    assert len(result.qualified) == 1
    assert result.qualified[0].embeddable is False
    assert result.qualified[0].is_public is False


def test_merge_prefers_detail_fields_but_search_description() -> None:
    client = FakeYouTubeClient(details={"v1": detail_item("v1", thumbnails={"high": {"url": "https://detail/v1.jpg"}})})

    video = QualityFilter(client=client).filter(_candidates("v1"), FilterCriteria()).qualified[0]

    assert video.title == "detail title v1"
    assert video.channel_id == "UC-detail"
    assert video.description == "search description v1"
    assert video.thumbnail_url == "https://detail/v1.jpg"


def test_missing_optional_fields_default_to_empty_values() -> None:
    item = detail_item("v1")
    item["snippet"].pop("tags")
    item["snippet"].pop("categoryId")
    item["contentDetails"] = {"duration": "PT30S"}

    video = QualityFilter(client=FakeYouTubeClient(details={"v1": item})).filter(_candidates("v1"), FilterCriteria()).qualified[0]

    assert video.tags == ()
    assert video.category_id == ""
    assert video.has_captions is False
    assert video.region_restriction == {}
    assert video.definition == "sd"


def test_metadata_is_fetched_in_batches_of_fifty() -> None:
    ids = [f"v{i}" for i in range(120)]
    client = FakeYouTubeClient(details={video_id: detail_item(video_id) for video_id in ids})

    result = QualityFilter(client=client).filter(_candidates(*ids), FilterCriteria(max_results=200))

    assert [len(call["id"].split(",")) for call in client.videos_calls] == [50, 50, 20]
    assert result.batches == 3
    assert result.unit_cost == 27
    assert len(result.qualified) == 120


def test_results_sorted_and_truncated_to_max_results() -> None:
    details = {
        "low": detail_item("low", views=100000, likes=1500, comments=0),
        "high": detail_item("high", views=100000, likes=9000, comments=0),
        "mid": detail_item("mid", views=100000, likes=4000, comments=0),
    }
    criteria = FilterCriteria(max_results=2, sort_by=SortBy.ENGAGEMENT)

    result = QualityFilter(client=FakeYouTubeClient(details=details)).filter(_candidates(*details), criteria)

    assert [video.video_id for video in result.qualified] == ["high", "mid"]


def test_batch_failure_raises_metadata_unavailable() -> None:
    error = HttpError(httplib2.Response({"status": 500}), b'{"error": {"message": "backend error"}}')
    quality_filter = QualityFilter(client=FakeYouTubeClient(videos_error=error))

    with pytest.raises(MetadataUnavailable):
        quality_filter.filter(_candidates("v1"), FilterCriteria())


def test_timeout_raises_metadata_unavailable() -> None:
    quality_filter = QualityFilter(client=FakeYouTubeClient(videos_error=TimeoutError("timed out")))

    with pytest.raises(MetadataUnavailable):
        quality_filter.filter(_candidates("v1"), FilterCriteria())


def test_empty_candidates_make_no_api_call() -> None:
    client = FakeYouTubeClient()

    result = QualityFilter(client=client).filter([], FilterCriteria())

    assert result.qualified == []
    assert result.unit_cost == 0
    assert client.videos_calls == []


@pytest.mark.parametrize("sort_by", list(SortBy))
def test_sorting_an_already_sorted_list_is_a_no_op(sort_by: SortBy) -> None:
    videos = [
        make_video("a", views=50000, likes=2500, published_at="2024-01-01T00:00:00Z"),
        make_video("b", views=50000, likes=2500, published_at="2024-01-01T00:00:00Z"),
        make_video("c", views=200000, likes=3000, published_at="2024-06-01T00:00:00Z"),
        make_video("d", views=12000, likes=900, published_at=""),
    ]

    once = sort_videos(videos, sort_by)
    twice = sort_videos(once, sort_by)

    assert [video.video_id for video in twice] == [video.video_id for video in once]


def test_sort_ties_keep_incoming_order() -> None:
    videos = [make_video("first"), make_video("second"), make_video("third")]

    assert [video.video_id for video in sort_videos(videos, SortBy.VIEW_COUNT)] == ["first", "second", "third"]


def test_requires_api_key_without_client() -> None:
    with pytest.raises(ValueError):
        QualityFilter()
