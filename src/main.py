"""Command line entry point for shortsift."""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import List, Optional

from rich.console import Console

from curator import KeywordCurator
from models.curation import CurationRun, FilterCriteria, PaginationConfig, SortBy
from services.report import render_report
from services.tagging_service import TaggingRequest, VideoTagger
from utils.config import build_filter_criteria, build_pagination_config, load_config, setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="shortsift",
        description="Curate high-engagement short videos for one or more keywords.",
    )
    parser.add_argument("keywords", nargs="+", help="Search keywords, one run per keyword")
    parser.add_argument("--target", type=int, help="Stop once this many videos qualify")
    parser.add_argument("--max-pages", type=int, help="Hard cap on search pages per run")
    parser.add_argument("--min-views", type=int, help="Minimum view count")
    parser.add_argument("--min-engagement", type=float, help="Minimum engagement rate, e.g. 0.015")
    parser.add_argument("--min-duration", type=int, help="Minimum duration in seconds")
    parser.add_argument("--max-duration", type=int, help="Maximum duration in seconds")
    parser.add_argument("--sort-by", choices=[s.value for s in SortBy], help="Result ordering")
    parser.add_argument("--max-results", type=int, help="Maximum videos returned per run")
    parser.add_argument("--category", default="", help="Category hint passed to the tagger")
    parser.add_argument("--tag", action="store_true", help="Tag results with Gemini after curation")
    parser.add_argument("--json", action="store_true", help="Print runs as JSON instead of tables")
    return parser.parse_args(argv)


def build_run_settings(args: argparse.Namespace, config: dict):
    """Apply command line overrides on top of the configured defaults."""
    overrides = {
        'target_results': args.target,
        'max_pages': args.max_pages,
        'min_view_count': args.min_views,
        'min_engagement_rate': args.min_engagement,
        'min_duration_seconds': args.min_duration,
        'max_duration_seconds': args.max_duration,
        'sort_by': args.sort_by,
        'max_results': args.max_results,
    }
    merged = dict(config)
    merged.update({key: value for key, value in overrides.items() if value is not None})

    criteria: FilterCriteria = build_filter_criteria(merged)
    pagination: PaginationConfig = build_pagination_config(merged)
    return criteria, pagination


def tag_runs(runs: List[CurationRun], config: dict, category: str) -> dict:
    """Tag every run's videos; returns {video_id: tags}."""
    tagger = VideoTagger(config.get('gemini_api_key'), config.get('gemini_model', 'gemini-2.0-flash-001'))
    tags = {}
    for curation in runs:
        requests = [TaggingRequest.from_video(video, curation.keyword, category) for video in curation.videos]
        for result in tagger.tag_videos(requests):
            tags[result.video_id] = list(result.tags if result.success else result.fallback_tags)
    return tags


async def run(args: argparse.Namespace, config: dict) -> List[CurationRun]:
    criteria, pagination = build_run_settings(args, config)
    curator = KeywordCurator.from_config(config)

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _signal_handler(signum, _):
        logger.info(f"Received signal {signum}, finishing current page and stopping...")
        loop.call_soon_threadsafe(cancel_event.set)

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    return await curator.curate_many(
        args.keywords,
        criteria,
        pagination,
        cancel_event,
        max_concurrent=config.get('max_concurrent_keywords', 3),
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = load_config()
    setup_logging(config.get('log_level', 'INFO'), config.get('log_file'))

    if args.tag and not config.get('gemini_api_key'):
        logger.error("GEMINI_API_KEY is required for --tag")
        return 2

    try:
        runs = asyncio.run(run(args, config))
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    tags = tag_runs(runs, config, args.category) if args.tag else {}

    if args.json:
        payload = []
        for curation in runs:
            data = curation.to_dict()
            for video in data['videos']:
                video['ai_tags'] = tags.get(video['video_id'], [])
            payload.append(data)
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        console = Console()
        for curation in runs:
            render_report(curation, console)

    return 0


if __name__ == "__main__":
    sys.exit(main())
