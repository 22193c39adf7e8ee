"""Pagination controller: decides whether another search page is worth its cost."""

from models.curation import (
    PaginationConfig,
    PaginationDecision,
    PaginationState,
    PaginationStats,
    StopReason,
)


def decide(state: PaginationState, config: PaginationConfig) -> PaginationDecision:
    """Return continue-or-stop for the current run state.

    Stop conditions are checked in precedence order, first match wins:
    target achieved, page budget exhausted, no continuation token, and two or
    more pages searched without a single qualified video.

    Pure function: it reads state and config and mutates neither.
    """
    stats = calculate_stats(state, config)

    stop_reason = _check_stop_conditions(state, config)
    if stop_reason is not None:
        return PaginationDecision(
            should_continue=False,
            reason=stop_reason.value,
            stats=stats,
            stop_reason=stop_reason,
        )

    remaining = config.target_results - state.qualified_count
    return PaginationDecision(
        should_continue=True,
        reason=f"continue_search_need_{remaining}_more",
        stats=stats,
    )


def _check_stop_conditions(state: PaginationState, config: PaginationConfig):
    if state.qualified_count >= config.target_results:
        return StopReason.TARGET_ACHIEVED

    if state.pages_searched >= config.max_pages:
        return StopReason.MAX_PAGES_REACHED

    if not state.has_next_page_token:
        return StopReason.NO_MORE_PAGES_AVAILABLE

    if state.pages_searched >= 2 and state.qualified_count == 0:
        return StopReason.CONSECUTIVE_EMPTY_RESULTS

    return None


def calculate_stats(state: PaginationState, config: PaginationConfig) -> PaginationStats:
    """Derive efficiency figures operators use to tune target and page budget."""
    api_units_used = state.pages_searched * config.units_per_page
    qualified = state.qualified_count

    return PaginationStats(
        target_achievement=qualified / config.target_results,
        success_rate=qualified / state.total_processed if state.total_processed else 0.0,
        efficiency=qualified / api_units_used if api_units_used else 0.0,
        api_units_used=api_units_used,
        max_possible_units=config.max_pages * config.units_per_page,
        average_results_per_page=qualified / max(state.pages_searched, 1),
        recommended_action=recommend_action(state, config),
    )


def recommend_action(state: PaginationState, config: PaginationConfig) -> str:
    achievement = state.qualified_count / config.target_results

    if achievement >= 1.0:
        return "target_achieved"
    if achievement >= 0.8:
        return "nearly_complete"
    if state.pages_searched >= config.max_pages:
        return "max_pages_completed"
    if not state.has_next_page_token:
        return "no_more_pages"
    return "continue_to_max_pages"
