"""Video-related data models."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

# Best to worst
QUALITY_GRADES = ("A+", "A", "B+", "B", "C")


@dataclass(frozen=True)
class CandidateReference:
    """Represents a YouTube search hit not yet checked against any rules."""

    video_id: str
    title: str = ""
    description: str = ""
    channel_id: str = ""
    channel_title: str = ""
    thumbnails: Dict[str, Any] = field(default_factory=dict)
    published_at: str = ""

    @classmethod
    def from_search_item(cls, item: Dict) -> Optional["CandidateReference"]:
        """Build a candidate from a search.list item, or None if it has no video id."""
        item_id = item.get("id")
        video_id = item_id.get("videoId") if isinstance(item_id, dict) else None
        if not video_id:
            return None

        snippet = item.get("snippet") or {}
        return cls(
            video_id=video_id,
            title=snippet.get("title") or "",
            description=snippet.get("description") or "",
            channel_id=snippet.get("channelId") or "",
            channel_title=snippet.get("channelTitle") or "",
            thumbnails=dict(snippet.get("thumbnails") or {}),
            published_at=snippet.get("publishedAt") or "",
        )


@dataclass(frozen=True)
class QualifiedVideo:
    """A candidate that passed every eligibility gate, with merged metadata."""

    video_id: str
    title: str
    description: str
    channel_id: str
    channel_title: str
    published_at: str
    duration_seconds: int
    view_count: int
    like_count: int
    comment_count: int
    engagement_rate: float
    quality_grade: str
    embeddable: bool
    is_public: bool
    processed: bool
    thumbnails: Dict[str, Any] = field(default_factory=dict)
    tags: Tuple[str, ...] = ()
    category_id: str = ""
    default_language: str = ""
    definition: str = "sd"
    has_captions: bool = False
    region_restriction: Dict[str, Any] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"

    @property
    def short_url(self) -> str:
        return f"https://youtu.be/{self.video_id}"

    @property
    def embed_url(self) -> str:
        return f"https://www.youtube.com/embed/{self.video_id}"

    @property
    def thumbnail_url(self) -> str:
        """Medium thumbnail, falling back to high and then default."""
        for size in ("medium", "high", "default"):
            thumb = self.thumbnails.get(size)
            if isinstance(thumb, dict) and thumb.get("url"):
                return thumb["url"]
        return ""

    @property
    def duration_formatted(self) -> str:
        """Format duration as '59s' or '1m 30s'."""
        if self.duration_seconds < 60:
            return f"{self.duration_seconds}s"
        minutes, seconds = divmod(self.duration_seconds, 60)
        return f"{minutes}m {seconds}s" if seconds else f"{minutes}m"

    @property
    def engagement_formatted(self) -> str:
        return f"{self.engagement_rate * 100:.2f}%"

    def to_dict(self) -> dict:
        """Convert video to a plain dictionary for downstream consumers."""
        return {
            'video_id': self.video_id,
            'title': self.title,
            'description': self.description,
            'channel_id': self.channel_id,
            'channel_title': self.channel_title,
            'published_at': self.published_at,
            'duration_seconds': self.duration_seconds,
            'view_count': self.view_count,
            'like_count': self.like_count,
            'comment_count': self.comment_count,
            'engagement_rate': self.engagement_rate,
            'quality_grade': self.quality_grade,
            'embeddable': self.embeddable,
            'is_public': self.is_public,
            'processed': self.processed,
            'thumbnails': dict(self.thumbnails),
            'thumbnail_url': self.thumbnail_url,
            'tags': list(self.tags),
            'category_id': self.category_id,
            'default_language': self.default_language,
            'definition': self.definition,
            'has_captions': self.has_captions,
            'region_restriction': dict(self.region_restriction),
            'url': self.url,
        }
