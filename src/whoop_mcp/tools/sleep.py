"""Sleep tools for the WHOOP MCP server."""

from typing import Annotated, Any

from fastmcp import Context

from ..client import WhoopClient
from ..metrics import hours_from_milliseconds, sleep_duration_hours
from ..models import DEFAULT_ACCOUNT_KEY, Sleep
from ..pagination import build_pagination_info, validate_limit
from ..response_builder import ResponseBuilder


def format_sleep(sleep: Sleep) -> dict[str, Any]:
    """Flatten a sleep record into hours and percentages."""
    formatted: dict[str, Any] = {
        "id": sleep.id,
        "cycle_id": sleep.cycle_id,
        "start": sleep.start,
        "end": sleep.end,
        "timezone_offset": sleep.timezone_offset,
        "nap": sleep.nap,
        "score_state": sleep.score_state,
        "duration_hours": sleep_duration_hours(sleep),
    }

    if score := sleep.score:
        stages = score.stage_summary
        formatted["score"] = {
            "performance_percentage": score.sleep_performance_percentage,
            "consistency_percentage": score.sleep_consistency_percentage,
            "efficiency_percentage": score.sleep_efficiency_percentage,
            "respiratory_rate": score.respiratory_rate,
        }
        formatted["stages"] = {
            "in_bed_hours": hours_from_milliseconds(stages.total_in_bed_time_milli),
            "awake_hours": hours_from_milliseconds(stages.total_awake_time_milli),
            "light_hours": hours_from_milliseconds(stages.total_light_sleep_time_milli),
            "deep_hours": hours_from_milliseconds(stages.total_slow_wave_sleep_time_milli),
            "rem_hours": hours_from_milliseconds(stages.total_rem_sleep_time_milli),
            "sleep_cycle_count": stages.sleep_cycle_count,
            "disturbance_count": stages.disturbance_count,
        }

    return formatted


async def whoop_sleep_recent(
    limit: Annotated[int | None, "Number of sleep sessions to fetch (1-25, default 10)"] = None,
    start: Annotated[str | None, "Only sessions after this ISO 8601 time"] = None,
    end: Annotated[str | None, "Only sessions before this ISO 8601 time"] = None,
    next_token: Annotated[str | None, "Pagination token from a previous response"] = None,
    key: Annotated[str, "Account key whose WHOOP credentials to use"] = DEFAULT_ACCOUNT_KEY,
    ctx: Context | None = None,
) -> str:
    """Fetch recent sleep sessions with WHOOP metrics.

    Returns: JSON string with structure:
    {
        "data": {
            "sleeps": [{"id", "start", "end", "duration_hours", "score", "stages"}, ...]
        },
        "analysis": {"average_performance_percentage", "average_duration_hours"},
        "metadata": {"account_key", "pagination": {...}, "fetched_at"}
    }

    Examples:
        - Last week of sleep: whoop_sleep_recent(limit=7)
        - Next page: whoop_sleep_recent(next_token="...")
    """
    assert ctx is not None
    client: WhoopClient = ctx.get_state("client")

    try:
        page_size = validate_limit(limit)
    except ValueError as e:
        return ResponseBuilder.build_error_response(str(e), error_type="validation_error")

    try:
        page = await client.list_sleep(
            limit=page_size, start=start, end=end, next_token=next_token, key=key
        )
    except Exception as e:
        return ResponseBuilder.from_exception(e, "fetch sleep data")

    sleeps = [format_sleep(sleep) for sleep in page.records]

    analysis: dict[str, Any] = {}
    scores = [
        s.score.sleep_performance_percentage
        for s in page.records
        if s.score and s.score.sleep_performance_percentage is not None
    ]
    if scores:
        analysis["average_performance_percentage"] = round(sum(scores) / len(scores), 1)
    durations = [d for d in (sleep["duration_hours"] for sleep in sleeps) if d is not None]
    if durations:
        analysis["average_duration_hours"] = round(sum(durations) / len(durations), 2)

    return ResponseBuilder.build_response(
        data={"sleeps": sleeps},
        analysis=analysis or None,
        metadata={
            "account_key": key,
            "pagination": build_pagination_info(
                returned_count=len(sleeps), limit=page_size, next_token=page.next_token
            ),
        },
        query_type="sleep_recent",
    )
