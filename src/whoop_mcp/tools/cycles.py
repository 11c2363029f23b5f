"""Cycle strain and recovery tools for the WHOOP MCP server."""

from typing import Annotated, Any

from fastmcp import Context

from ..client import WhoopClient
from ..metrics import KILOJOULE_TO_KILOCALORIE
from ..models import DEFAULT_ACCOUNT_KEY, Cycle, Recovery
from ..pagination import build_pagination_info, validate_limit
from ..response_builder import ResponseBuilder


def format_cycle(cycle: Cycle) -> dict[str, Any]:
    formatted: dict[str, Any] = {
        "id": cycle.id,
        "start": cycle.start,
        "end": cycle.end,
        "ongoing": cycle.end is None,
        "timezone_offset": cycle.timezone_offset,
        "score_state": cycle.score_state,
    }
    if score := cycle.score:
        formatted["strain"] = score.strain
        formatted["energy"] = {
            "kilojoule": score.kilojoule,
            "calories": round(score.kilojoule * KILOJOULE_TO_KILOCALORIE, 2),
        }
        formatted["heart_rate"] = {
            "avg_bpm": score.average_heart_rate,
            "max_bpm": score.max_heart_rate,
        }
    return formatted


def format_recovery(recovery: Recovery) -> dict[str, Any]:
    formatted: dict[str, Any] = {
        "cycle_id": recovery.cycle_id,
        "sleep_id": recovery.sleep_id,
        "created_at": recovery.created_at,
        "score_state": recovery.score_state,
    }
    if score := recovery.score:
        formatted["recovery_score"] = score.recovery_score
        formatted["resting_heart_rate"] = score.resting_heart_rate
        formatted["hrv_rmssd_milli"] = score.hrv_rmssd_milli
        formatted["user_calibrating"] = score.user_calibrating
        if score.spo2_percentage is not None:
            formatted["spo2_percentage"] = score.spo2_percentage
        if score.skin_temp_celsius is not None:
            formatted["skin_temp_celsius"] = score.skin_temp_celsius
    return formatted


async def whoop_cycle_strain(
    limit: Annotated[int | None, "Number of cycles to fetch (1-25, default 10)"] = None,
    start: Annotated[str | None, "Only cycles after this ISO 8601 time"] = None,
    end: Annotated[str | None, "Only cycles before this ISO 8601 time"] = None,
    next_token: Annotated[str | None, "Pagination token from a previous response"] = None,
    key: Annotated[str, "Account key whose WHOOP credentials to use"] = DEFAULT_ACCOUNT_KEY,
    ctx: Context | None = None,
) -> str:
    """Fetch recent WHOOP cycles including strain (stress) metrics.

    A cycle is one physiological day. The newest cycle is usually still
    ongoing and its strain keeps rising until it ends.

    Returns: JSON string with "data.cycles", "analysis" (average and peak
    strain) and "metadata.pagination".
    """
    assert ctx is not None
    client: WhoopClient = ctx.get_state("client")

    try:
        page_size = validate_limit(limit)
    except ValueError as e:
        return ResponseBuilder.build_error_response(str(e), error_type="validation_error")

    try:
        page = await client.list_cycles(
            limit=page_size, start=start, end=end, next_token=next_token, key=key
        )
    except Exception as e:
        return ResponseBuilder.from_exception(e, "fetch cycle data")

    cycles = [format_cycle(cycle) for cycle in page.records]

    analysis: dict[str, Any] = {}
    strains = [c.score.strain for c in page.records if c.score]
    if strains:
        analysis["average_strain"] = round(sum(strains) / len(strains), 1)
        analysis["max_strain"] = max(strains)

    return ResponseBuilder.build_response(
        data={"cycles": cycles},
        analysis=analysis or None,
        metadata={
            "account_key": key,
            "pagination": build_pagination_info(
                returned_count=len(cycles), limit=page_size, next_token=page.next_token
            ),
        },
        query_type="cycle_strain",
    )


async def whoop_recovery_recent(
    limit: Annotated[int | None, "Number of recoveries to fetch (1-25, default 10)"] = None,
    start: Annotated[str | None, "Only recoveries after this ISO 8601 time"] = None,
    end: Annotated[str | None, "Only recoveries before this ISO 8601 time"] = None,
    next_token: Annotated[str | None, "Pagination token from a previous response"] = None,
    key: Annotated[str, "Account key whose WHOOP credentials to use"] = DEFAULT_ACCOUNT_KEY,
    ctx: Context | None = None,
) -> str:
    """Fetch recent recovery scores (HRV, resting heart rate, SpO2)."""
    assert ctx is not None
    client: WhoopClient = ctx.get_state("client")

    try:
        page_size = validate_limit(limit)
    except ValueError as e:
        return ResponseBuilder.build_error_response(str(e), error_type="validation_error")

    try:
        page = await client.list_recoveries(
            limit=page_size, start=start, end=end, next_token=next_token, key=key
        )
    except Exception as e:
        return ResponseBuilder.from_exception(e, "fetch recovery data")

    recoveries = [format_recovery(recovery) for recovery in page.records]

    analysis: dict[str, Any] = {}
    scored = [r.score for r in page.records if r.score]
    if scored:
        analysis["average_recovery_score"] = round(
            sum(s.recovery_score for s in scored) / len(scored), 1
        )
        analysis["average_hrv_rmssd_milli"] = round(
            sum(s.hrv_rmssd_milli for s in scored) / len(scored), 1
        )

    return ResponseBuilder.build_response(
        data={"recoveries": recoveries},
        analysis=analysis or None,
        metadata={
            "account_key": key,
            "pagination": build_pagination_info(
                returned_count=len(recoveries), limit=page_size, next_token=page.next_token
            ),
        },
        query_type="recovery_recent",
    )
