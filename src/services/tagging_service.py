"""Video tagging service using Google GenAI, applied to curated results by the caller."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from google.genai import Client
from google.genai import errors as genai_errors
from google.genai import types

from models.video import QualifiedVideo
from utils.retry import (
    APIRateLimitError,
    NetworkError,
    RetryableError,
    RetryPolicy,
    TemporaryServiceError,
    api_retry_policy,
)

logger = logging.getLogger(__name__)

MAX_TAGS_PER_VIDEO = 8


def strip_markdown_code_blocks(text: str) -> str:
    """Strip markdown code blocks from AI response text.

    Args:
        text: Raw text that may contain markdown code blocks

    Returns:
        Cleaned text with markdown code blocks removed
    """
    text = text.strip()
    if text.startswith('```json'):
        text = text[7:]
    elif text.startswith('```'):
        text = text[3:]
    if text.endswith('```'):
        text = text[:-3]
    return text.strip()


@dataclass(frozen=True)
class TaggingRequest:
    """One video to classify."""

    video_id: str
    title: str
    description: str
    keyword: str
    category: str = ""

    @classmethod
    def from_video(cls, video: QualifiedVideo, keyword: str, category: str = "") -> "TaggingRequest":
        return cls(
            video_id=video.video_id,
            title=video.title,
            description=video.description,
            keyword=keyword,
            category=category,
        )


@dataclass(frozen=True)
class TagResult:
    """Tags for one video, or a typed failure with fallback tags."""

    video_id: str
    success: bool
    tags: Tuple[str, ...] = ()
    error: Optional[str] = None
    fallback_tags: Tuple[str, ...] = field(default_factory=tuple)


def fallback_tags(request: TaggingRequest) -> Tuple[str, ...]:
    """Tags derived from the search keyword and category alone."""
    tags = []
    for value in (request.keyword, request.category):
        value = (value or "").strip().lower()
        if value and value not in tags:
            tags.append(value)
    return tuple(tags)


class VideoTagger:
    """Classifies curated videos into short topical tags with Gemini."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = "gemini-2.0-flash-001",
        retry_policy: Optional[RetryPolicy] = None,
        client: Any = None,
    ):
        """Initialize Google GenAI client.

        Args:
            api_key: Google GenAI API key (unused when client is given)
            model_name: Gemini model to use
            retry_policy: Bounded retry applied to each batch request
            client: pre-built GenAI client, mainly for tests
        """
        if client is None and not api_key:
            raise ValueError("Gemini API key is required for tagging")

        self.model_name = model_name
        self.retry_policy = retry_policy or api_retry_policy(max_retries=3, base_delay=2.0)
        self.client = client or Client(api_key=api_key)

        logger.info(f"Initialized tagging service with model: {model_name}")

    def tag_videos(self, requests: List[TaggingRequest], batch_size: int = 10) -> List[TagResult]:
        """Tag videos in batches; every request gets exactly one result, in order."""
        results: List[TagResult] = []
        batch_size = max(1, batch_size)

        for start in range(0, len(requests), batch_size):
            batch = requests[start:start + batch_size]
            batch_number = start // batch_size + 1

            try:
                tags_by_id = self.retry_policy.call(self._classify_batch, batch)
            except (RetryableError, genai_errors.APIError, ValueError) as e:
                logger.error(f"Tagging batch {batch_number} failed: {e}")
                results.extend(
                    TagResult(
                        video_id=request.video_id,
                        success=False,
                        error=str(e),
                        fallback_tags=fallback_tags(request),
                    )
                    for request in batch
                )
                continue

            for request in batch:
                tags = tags_by_id.get(request.video_id)
                if tags:
                    results.append(TagResult(video_id=request.video_id, success=True, tags=tuple(tags)))
                else:
                    results.append(
                        TagResult(
                            video_id=request.video_id,
                            success=False,
                            error="No tags returned for video",
                            fallback_tags=fallback_tags(request),
                        )
                    )

        succeeded = sum(1 for result in results if result.success)
        logger.info(f"Tagged {succeeded}/{len(results)} videos")
        return results

    def _classify_batch(self, batch: List[TaggingRequest]) -> Dict[str, List[str]]:
        """Send one batch to Gemini and parse {video_id: tags}.

        Raises:
            APIRateLimitError, TemporaryServiceError, NetworkError: retryable failures
            ValueError: if the response is not the expected JSON
        """
        videos_text = "\n".join(
            f"ID: {request.video_id}\n"
            f"Title: {request.title}\n"
            f"Description: {request.description[:200] if request.description else 'N/A'}\n"
            f"Search keyword: {request.keyword}\n"
            f"Category: {request.category or 'N/A'}\n"
            "---"
            for request in batch
        )

        prompt = f"""You are a short-form video classifier.

For each video below, return 3 to {MAX_TAGS_PER_VIDEO} short lowercase topical tags
(1-3 words each) describing what a viewer will see. Use the search keyword and
category as context, not as tags to copy.

VIDEOS:
---
{videos_text}

OUTPUT:
Return a JSON array of objects with video_id and tags, one per video.
Format: [{{"video_id": "abc123", "tags": ["street food", "night market"]}}]
Return only the JSON array, nothing else."""

        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=0.2,
                )
            )
        except genai_errors.ClientError as e:
            if e.code == 429:
                raise APIRateLimitError(f"Rate limit hit: {e}") from e
            raise
        except genai_errors.ServerError as e:
            # 5xx, including overloaded responses
            raise TemporaryServiceError(f"Gemini unavailable: {e}") from e
        except Exception as e:
            if "network" in str(e).lower() or "connection" in str(e).lower():
                raise NetworkError(f"Network error: {e}") from e
            raise

        if not response.text:
            raise ValueError("AI response is empty")

        try:
            parsed = json.loads(strip_markdown_code_blocks(response.text))
        except json.JSONDecodeError as e:
            logger.debug(f"Raw tagging response: {response.text}")
            raise ValueError(f"Failed to parse tagging response as JSON: {e}") from e

        if not isinstance(parsed, list):
            raise ValueError("AI tagging response is not a list")

        known_ids = {request.video_id for request in batch}
        tags_by_id: Dict[str, List[str]] = {}
        for item in parsed:
            if not isinstance(item, dict) or item.get("video_id") not in known_ids:
                logger.warning(f"Ignoring invalid tagging item: {item}")
                continue

            cleaned = []
            for tag in item.get("tags") or []:
                if isinstance(tag, str) and tag.strip():
                    clean_tag = tag.strip().lower()
                    if clean_tag not in cleaned:
                        cleaned.append(clean_tag)
            tags_by_id[item["video_id"]] = cleaned[:MAX_TAGS_PER_VIDEO]

        return tags_by_id
