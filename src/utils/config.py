"""Configuration loading and validation for shortsift."""

import os
import logging
from typing import Dict, List
from pathlib import Path
from dotenv import load_dotenv
from rich.logging import RichHandler

from models.curation import FilterCriteria, PaginationConfig, SortBy

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / '.env')


def load_config() -> Dict:
    """Load configuration from environment variables."""
    config = {
        # Required API keys
        'youtube_api_key': os.getenv('YOUTUBE_API_KEY'),

        # Optional tagging (Gemini)
        'gemini_api_key': os.getenv('GEMINI_API_KEY'),
        'gemini_model': os.getenv('GEMINI_MODEL', 'gemini-2.0-flash-001'),

        # Search request settings
        'region_code': os.getenv('REGION_CODE', 'KR'),
        'relevance_language': os.getenv('RELEVANCE_LANGUAGE', 'ko'),

        # Filter criteria
        'min_view_count': int(os.getenv('MIN_VIEW_COUNT', '10000')),
        'min_engagement_rate': float(os.getenv('MIN_ENGAGEMENT_RATE', '0.01')),
        'min_duration_seconds': int(os.getenv('MIN_DURATION_SECONDS', '10')),
        'max_duration_seconds': int(os.getenv('MAX_DURATION_SECONDS', '90')),
        'max_results': int(os.getenv('MAX_RESULTS', '50')),
        'sort_by': os.getenv('SORT_BY', 'engagement'),

        # Pagination
        'target_results': int(os.getenv('TARGET_RESULTS', '40')),
        'max_pages': int(os.getenv('MAX_PAGES', '3')),
        'page_delay_seconds': float(os.getenv('PAGE_DELAY_SECONDS', '1.0')),
        'max_concurrent_keywords': int(os.getenv('MAX_CONCURRENT_KEYWORDS', '3')),

        # Network timeouts
        'search_timeout_seconds': float(os.getenv('SEARCH_TIMEOUT_SECONDS', '10')),
        'detail_timeout_seconds': float(os.getenv('DETAIL_TIMEOUT_SECONDS', '10')),

        # Log file (always in src directory)
        'log_file': str(PROJECT_ROOT / 'src' / os.getenv('LOG_FILE', 'shortsift.log')),
        'log_level': os.getenv('LOG_LEVEL', 'INFO'),
    }

    return config


def validate_config(config: Dict) -> List[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if not config.get('youtube_api_key'):
        errors.append("YOUTUBE_API_KEY is required")

    if config.get('min_duration_seconds', 0) > config.get('max_duration_seconds', 0):
        errors.append("MIN_DURATION_SECONDS must not exceed MAX_DURATION_SECONDS")

    if config.get('target_results', 0) < 1:
        errors.append("TARGET_RESULTS must be at least 1")

    if config.get('max_pages', 0) < 1:
        errors.append("MAX_PAGES must be at least 1")

    if config.get('max_concurrent_keywords', 1) < 1:
        errors.append("MAX_CONCURRENT_KEYWORDS must be at least 1")

    valid_sorts = {s.value for s in SortBy}
    if config.get('sort_by') not in valid_sorts:
        errors.append(f"SORT_BY must be one of: {', '.join(sorted(valid_sorts))}")

    for key in ('search_timeout_seconds', 'detail_timeout_seconds'):
        if config.get(key, 0) <= 0:
            errors.append(f"{key.upper()} must be positive")

    return errors


def build_filter_criteria(config: Dict) -> FilterCriteria:
    """Build filter criteria from a loaded config dict."""
    return FilterCriteria(
        min_view_count=config.get('min_view_count', 10000),
        min_engagement_rate=config.get('min_engagement_rate', 0.01),
        min_duration_seconds=config.get('min_duration_seconds', 10),
        max_duration_seconds=config.get('max_duration_seconds', 90),
        max_results=config.get('max_results', 50),
        sort_by=config.get('sort_by', 'engagement'),
    )


def build_pagination_config(config: Dict) -> PaginationConfig:
    """Build pagination bounds from a loaded config dict."""
    return PaginationConfig(
        target_results=config.get('target_results', 40),
        max_pages=config.get('max_pages', 3),
        page_delay_seconds=config.get('page_delay_seconds', 1.0),
    )


def setup_logging(log_level: str = "INFO", log_file: str = None) -> None:
    """Set up logging with Rich console output and an optional plain log file."""
    # Clear any existing handlers
    logging.root.handlers.clear()

    rich_handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False  # Video titles may contain square brackets
    )
    handlers = [rich_handler]

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=handlers,
        format="%(message)s"
    )

    # Suppress noisy third-party loggers
    noisy_loggers = [
        'httpx',
        'google_genai',
        'google_genai.models',
        'googleapiclient.discovery',
        'googleapiclient.discovery_cache',
        'urllib3.connectionpool',
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
