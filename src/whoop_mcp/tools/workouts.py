"""Workout tools for the WHOOP MCP server."""

from typing import Annotated, Any

from fastmcp import Context

from ..client import WhoopClient
from ..metrics import KILOJOULE_TO_KILOCALORIE, hours_from_milliseconds
from ..models import DEFAULT_ACCOUNT_KEY, Workout
from ..pagination import build_pagination_info, validate_limit
from ..response_builder import ResponseBuilder

_ZONE_NAMES = ("zero", "one", "two", "three", "four", "five")


def format_workout(workout: Workout) -> dict[str, Any]:
    formatted: dict[str, Any] = {
        "id": workout.id,
        "sport_name": workout.sport_name,
        "start": workout.start,
        "end": workout.end,
        "timezone_offset": workout.timezone_offset,
        "score_state": workout.score_state,
    }

    if score := workout.score:
        formatted["strain"] = score.strain
        formatted["heart_rate"] = {
            "avg_bpm": score.average_heart_rate,
            "max_bpm": score.max_heart_rate,
        }
        formatted["energy"] = {
            "kilojoule": score.kilojoule,
            "calories": round(score.kilojoule * KILOJOULE_TO_KILOCALORIE, 2),
        }
        if score.distance_meter is not None:
            formatted["distance_meters"] = score.distance_meter
        if score.altitude_gain_meter is not None:
            formatted["altitude_gain_meters"] = score.altitude_gain_meter
        if zones := score.zone_durations:
            formatted["zone_hours"] = {
                name: hours_from_milliseconds(getattr(zones, f"zone_{name}_milli"))
                for name in _ZONE_NAMES
            }

    return formatted


async def whoop_workouts_recent(
    limit: Annotated[int | None, "Number of workouts to fetch (1-25, default 10)"] = None,
    start: Annotated[str | None, "Only workouts after this ISO 8601 time"] = None,
    end: Annotated[str | None, "Only workouts before this ISO 8601 time"] = None,
    next_token: Annotated[str | None, "Pagination token from a previous response"] = None,
    key: Annotated[str, "Account key whose WHOOP credentials to use"] = DEFAULT_ACCOUNT_KEY,
    ctx: Context | None = None,
) -> str:
    """Fetch recent workouts with strain, heart rate and heart rate zones."""
    assert ctx is not None
    client: WhoopClient = ctx.get_state("client")

    try:
        page_size = validate_limit(limit)
    except ValueError as e:
        return ResponseBuilder.build_error_response(str(e), error_type="validation_error")

    try:
        page = await client.list_workouts(
            limit=page_size, start=start, end=end, next_token=next_token, key=key
        )
    except Exception as e:
        return ResponseBuilder.from_exception(e, "fetch workout data")

    workouts = [format_workout(workout) for workout in page.records]

    analysis: dict[str, Any] = {}
    if page.records:
        by_sport: dict[str, int] = {}
        for workout in page.records:
            sport = workout.sport_name or "unknown"
            by_sport[sport] = by_sport.get(sport, 0) + 1
        analysis["by_sport"] = by_sport
        strains = [w.score.strain for w in page.records if w.score]
        if strains:
            analysis["total_strain"] = round(sum(strains), 1)

    return ResponseBuilder.build_response(
        data={"workouts": workouts},
        analysis=analysis or None,
        metadata={
            "account_key": key,
            "pagination": build_pagination_info(
                returned_count=len(workouts), limit=page_size, next_token=page.next_token
            ),
        },
        query_type="workouts_recent",
    )
