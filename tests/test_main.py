import pytest

from main import build_run_settings, main, parse_args
from models.curation import SortBy


def _config(**overrides) -> dict:
    config = {
        "youtube_api_key": "yt-key",
        "min_view_count": 10000,
        "min_engagement_rate": 0.01,
        "min_duration_seconds": 10,
        "max_duration_seconds": 90,
        "max_results": 50,
        "sort_by": "engagement",
        "target_results": 40,
        "max_pages": 3,
        "page_delay_seconds": 1.0,
    }
    config.update(overrides)
    return config


def test_command_line_overrides_configured_defaults() -> None:
    args = parse_args(["cats", "dogs", "--target", "10", "--max-pages", "5", "--sort-by", "view_count", "--min-views", "500"])

    criteria, pagination = build_run_settings(args, _config())

    assert args.keywords == ["cats", "dogs"]
    assert pagination.target_results == 10
    assert pagination.max_pages == 5
    assert criteria.sort_by is SortBy.VIEW_COUNT
    assert criteria.min_view_count == 500
    assert criteria.min_engagement_rate == 0.01


def test_unset_flags_keep_configured_values() -> None:
    criteria, pagination = build_run_settings(parse_args(["cats"]), _config(max_results=20))

    assert criteria.max_results == 20
    assert pagination.target_results == 40


def test_keywords_are_required() -> None:
    with pytest.raises(SystemExit):
        parse_args([])


def test_tag_without_gemini_key_exits_with_config_error(monkeypatch) -> None:
    monkeypatch.setattr("main.load_config", lambda: _config(gemini_api_key=None, log_file=None))
    monkeypatch.setattr("main.setup_logging", lambda *args, **kwargs: None)

    assert main(["cats", "--tag"]) == 2


def test_missing_youtube_key_exits_with_config_error(monkeypatch) -> None:
    monkeypatch.setattr("main.load_config", lambda: _config(youtube_api_key=None, log_file=None))
    monkeypatch.setattr("main.setup_logging", lambda *args, **kwargs: None)

    assert main(["cats"]) == 2
