"""Member profile and daily summary tools for the WHOOP MCP server."""

from typing import Annotated, Any

from fastmcp import Context

from ..client import WhoopClient
from ..metrics import get_today_metrics
from ..models import DEFAULT_ACCOUNT_KEY
from ..response_builder import ResponseBuilder


async def whoop_profile(
    include_body: Annotated[bool, "Include height, weight and max heart rate"] = True,
    key: Annotated[str, "Account key whose WHOOP credentials to use"] = DEFAULT_ACCOUNT_KEY,
    ctx: Context | None = None,
) -> str:
    """Get the WHOOP member's profile with optional body measurements.

    Returns: JSON string with structure:
    {
        "data": {
            "profile": {"user_id", "name", "email"},
            "body": {"height_meters", "weight_kg", "max_heart_rate"}
        },
        "metadata": {"includes": [...], "account_key", "fetched_at"}
    }
    """
    assert ctx is not None
    client: WhoopClient = ctx.get_state("client")

    try:
        profile = await client.get_basic_profile(key)

        data: dict[str, Any] = {
            "profile": {
                "user_id": profile.user_id,
                "name": f"{profile.first_name} {profile.last_name}",
                "email": profile.email,
            }
        }
        includes: list[str] = []

        if include_body:
            body = await client.get_body_measurements(key)
            data["body"] = {
                "height_meters": body.height_meter,
                "weight_kg": body.weight_kilogram,
                "max_heart_rate": body.max_heart_rate,
            }
            includes.append("body")

        return ResponseBuilder.build_response(
            data,
            metadata={"includes": includes, "account_key": key},
            query_type="profile",
        )
    except Exception as e:
        return ResponseBuilder.from_exception(e, "fetch WHOOP profile")


async def whoop_today(
    key: Annotated[str, "Account key whose WHOOP credentials to use"] = DEFAULT_ACCOUNT_KEY,
    ctx: Context | None = None,
) -> str:
    """Summarize today's sleep and strain.

    Picks the sleep and cycle whose local date is today, falling back to the
    most recent ones. Calories are converted from WHOOP kilojoules.
    """
    assert ctx is not None
    client: WhoopClient = ctx.get_state("client")

    try:
        metrics = await get_today_metrics(client, key)
    except Exception as e:
        return ResponseBuilder.from_exception(e, "compute today's WHOOP metrics")

    return ResponseBuilder.build_response(
        metrics.model_dump(),
        metadata={"account_key": key},
        query_type="today",
    )
