"""Human-readable summaries of curation runs."""

from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from models.curation import CurationRun


def format_duration(seconds: float) -> str:
    """Format processing time in human-readable format."""
    if seconds < 60:
        return f"{seconds:.1f} seconds"
    elif seconds < 3600:
        return f"{seconds/60:.1f} minutes"
    else:
        return f"{seconds/3600:.1f} hours"


def _summary_rows(run: CurationRun):
    target = run.pagination.target_results
    units = run.ledger.total_units
    yield_rate = len(run.videos) / run.total_candidates if run.total_candidates else 0.0
    per_100_units = len(run.videos) / units * 100 if units else 0.0
    grades = ", ".join(f"{grade}: {count}" for grade, count in run.quality_distribution.items())

    rows = [
        ("Keyword", run.keyword),
        ("Run ID", run.run_id),
        ("Stop reason", run.stop_reason.value),
        ("Pages searched", f"{run.pages_searched}/{run.pagination.max_pages}"),
        ("Candidates processed", str(run.total_candidates)),
        ("Qualified videos", f"{len(run.videos)} (target {target})"),
        ("Duplicates skipped", str(run.duplicates_skipped)),
        ("Yield", f"{yield_rate:.1%}"),
        (
            "API units",
            f"{units} (search {run.ledger.search_units}, detail {run.ledger.detail_units})",
        ),
        ("Efficiency", f"{per_100_units:.2f} videos/100 units"),
        ("Quality grades", grades),
        ("Average views", f"{run.average_views:,}"),
        ("Average engagement", f"{run.average_engagement:.2%}"),
        ("Duration", format_duration(run.duration_seconds)),
    ]
    if run.error_message:
        rows.append(("Error", run.error_message))
    return rows


def format_report(run: CurationRun) -> str:
    """Plain-text summary of a run, suitable for logs."""
    rows = _summary_rows(run)
    width = max(len(label) for label, _ in rows)
    return "\n".join(f"{label.ljust(width)} : {value}" for label, value in rows)


def render_report(run: CurationRun, console: Optional[Console] = None, show_videos: int = 10) -> None:
    """Print a run summary and its top videos as rich tables."""
    console = console or Console()

    summary = Table(title=Text(f"Curation: {run.keyword}"), show_header=False)
    summary.add_column("Field", style="bold")
    summary.add_column("Value")
    for label, value in _summary_rows(run):
        summary.add_row(label, Text(value))
    console.print(summary)

    if not run.videos or show_videos <= 0:
        return

    videos = Table(title=f"Top {min(show_videos, len(run.videos))} videos")
    videos.add_column("#", justify="right")
    videos.add_column("Grade")
    videos.add_column("Title", overflow="fold")
    videos.add_column("Views", justify="right")
    videos.add_column("Engagement", justify="right")
    videos.add_column("Length", justify="right")
    videos.add_column("URL")
    for rank, video in enumerate(run.videos[:show_videos], start=1):
        videos.add_row(
            str(rank),
            video.quality_grade,
            Text(video.title),
            f"{video.view_count:,}",
            video.engagement_formatted,
            video.duration_formatted,
            video.short_url,
        )
    console.print(videos)
