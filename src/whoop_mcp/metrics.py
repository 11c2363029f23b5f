"""Daily sleep and strain summary derived from recent WHOOP records."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import TypeVar

from pydantic import BaseModel

from .client import WhoopClient
from .models import DEFAULT_ACCOUNT_KEY, Cycle, Sleep

MILLISECONDS_PER_HOUR = 3_600_000
KILOJOULE_TO_KILOCALORIE = 0.239005736

_OFFSET_PATTERN = re.compile(r"^([+-])(\d{2}):(\d{2})$")


T = TypeVar("T", Cycle, Sleep)


class TodayMetrics(BaseModel):
    """Today's sleep and strain numbers; ``None`` where WHOOP has no data."""

    sleep_hours: float | None = None
    sleep_score: float | None = None
    light_sleep_hours: float | None = None
    deep_sleep_hours: float | None = None
    rem_sleep_hours: float | None = None
    strain: float | None = None
    calories: float | None = None
    cycle_id: int | None = None
    sleep_id: str | None = None


def parse_offset(offset: str | None) -> timedelta | None:
    """Parse a WHOOP ``timezone_offset`` such as ``-05:00``."""
    if not offset:
        return None
    match = _OFFSET_PATTERN.match(offset)
    if not match:
        return None
    sign, hours, minutes = match.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes))
    return -delta if sign == "-" else delta


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_same_local_date(record: Cycle | Sleep, reference: datetime) -> bool:
    """True if the record ends (or started) on the reference's local calendar day."""
    offset = parse_offset(record.timezone_offset)
    if offset is None:
        return False
    try:
        moment = _parse_timestamp(record.end or record.start)
    except ValueError:
        return False
    local_zone = timezone(offset)
    return moment.astimezone(local_zone).date() == reference.astimezone(local_zone).date()


def pick_record_for_today(records: Sequence[T], reference: datetime) -> T | None:
    """Prefer the record dated today; fall back to the most recent one."""
    for record in records:
        if is_same_local_date(record, reference):
            return record
    return records[0] if records else None


def hours_from_milliseconds(value: int | float | None) -> float | None:
    if value is None:
        return None
    return round(value / MILLISECONDS_PER_HOUR, 2)


def sleep_duration_hours(record: Sleep | None) -> float | None:
    if record is None:
        return None
    try:
        elapsed = _parse_timestamp(record.end) - _parse_timestamp(record.start)
    except ValueError:
        return None
    return round(elapsed.total_seconds() / 3600, 2)


def summarize_today(
    sleeps: Sequence[Sleep],
    cycles: Sequence[Cycle],
    reference: datetime | None = None,
) -> TodayMetrics:
    """Build the daily summary from already-fetched records."""
    now = reference or datetime.now(timezone.utc)
    sleep = pick_record_for_today(sleeps, now)
    cycle = pick_record_for_today(cycles, now)

    sleep_score = sleep.score if sleep else None
    stages = sleep_score.stage_summary if sleep_score else None
    cycle_score = cycle.score if cycle else None

    calories = None
    if cycle_score is not None:
        calories = round(cycle_score.kilojoule * KILOJOULE_TO_KILOCALORIE, 2)

    return TodayMetrics(
        sleep_hours=sleep_duration_hours(sleep),
        sleep_score=sleep_score.sleep_performance_percentage if sleep_score else None,
        light_sleep_hours=hours_from_milliseconds(
            stages.total_light_sleep_time_milli if stages else None
        ),
        deep_sleep_hours=hours_from_milliseconds(
            stages.total_slow_wave_sleep_time_milli if stages else None
        ),
        rem_sleep_hours=hours_from_milliseconds(
            stages.total_rem_sleep_time_milli if stages else None
        ),
        strain=cycle_score.strain if cycle_score else None,
        calories=calories,
        cycle_id=cycle.id if cycle else None,
        sleep_id=sleep.id if sleep else None,
    )


async def get_today_metrics(
    client: WhoopClient,
    key: str = DEFAULT_ACCOUNT_KEY,
    reference: datetime | None = None,
) -> TodayMetrics:
    """Fetch the ten most recent sleeps and cycles and summarize today."""
    sleep_page, cycle_page = await asyncio.gather(
        client.list_sleep(limit=10, key=key),
        client.list_cycles(limit=10, key=key),
    )
    return summarize_today(sleep_page.records, cycle_page.records, reference)
