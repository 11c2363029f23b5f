"""Tests for the daily sleep and strain summary."""

from datetime import datetime, timedelta, timezone

from tests.fixtures.whoop_fixtures import CYCLE, OLDER_CYCLE, OLDER_SLEEP, SLEEP
from whoop_mcp.metrics import (
    hours_from_milliseconds,
    is_same_local_date,
    parse_offset,
    pick_record_for_today,
    summarize_today,
)
from whoop_mcp.models import Cycle, Sleep

# 07:00 local time (-05:00) on the morning SLEEP ended.
MORNING_AFTER = datetime(2024, 5, 2, 12, 0, tzinfo=timezone.utc)


class TestParseOffset:
    def test_parses_signed_offsets(self):
        assert parse_offset("-05:00") == timedelta(hours=-5)
        assert parse_offset("+05:30") == timedelta(hours=5, minutes=30)

    def test_rejects_missing_or_malformed(self):
        assert parse_offset(None) is None
        assert parse_offset("") is None
        assert parse_offset("EST") is None
        assert parse_offset("-5:00") is None


class TestPickRecordForToday:
    def test_prefers_record_from_today(self):
        records = [Sleep(**OLDER_SLEEP), Sleep(**SLEEP)]

        picked = pick_record_for_today(records, MORNING_AFTER)

        assert picked.id == SLEEP["id"]

    def test_falls_back_to_first_record(self):
        records = [Sleep(**SLEEP), Sleep(**OLDER_SLEEP)]

        picked = pick_record_for_today(records, MORNING_AFTER + timedelta(days=30))

        assert picked.id == SLEEP["id"]

    def test_empty_list(self):
        assert pick_record_for_today([], MORNING_AFTER) is None

    def test_local_date_uses_record_offset(self):
        # 03:00 UTC on 2 May is still 1 May at -05:00.
        sleep = Sleep(**{**SLEEP, "end": "2024-05-02T03:00:00.000Z"})

        assert not is_same_local_date(sleep, MORNING_AFTER)
        assert is_same_local_date(sleep, datetime(2024, 5, 1, 20, 0, tzinfo=timezone.utc))

    def test_ongoing_cycle_uses_start(self):
        cycle = Cycle(**CYCLE)

        assert cycle.end is None
        assert is_same_local_date(cycle, MORNING_AFTER)


class TestSummarizeToday:
    def test_full_summary(self):
        metrics = summarize_today(
            [Sleep(**SLEEP), Sleep(**OLDER_SLEEP)],
            [Cycle(**CYCLE), Cycle(**OLDER_CYCLE)],
            MORNING_AFTER,
        )

        assert metrics.sleep_hours == 8.5
        assert metrics.sleep_score == 98
        assert metrics.light_sleep_hours == 4.0
        assert metrics.deep_sleep_hours == 1.5
        assert metrics.rem_sleep_hours == 2.0
        assert metrics.strain == 5.2951527
        assert metrics.calories == 239.01
        assert metrics.cycle_id == 93845
        assert metrics.sleep_id == SLEEP["id"]

    def test_calories_rounded_to_two_places(self):
        metrics = summarize_today([], [Cycle(**OLDER_CYCLE)], MORNING_AFTER)

        assert metrics.calories == round(8288.297 * 0.239005736, 2)

    def test_no_records(self):
        metrics = summarize_today([], [], MORNING_AFTER)

        assert metrics.model_dump() == {
            "sleep_hours": None,
            "sleep_score": None,
            "light_sleep_hours": None,
            "deep_sleep_hours": None,
            "rem_sleep_hours": None,
            "strain": None,
            "calories": None,
            "cycle_id": None,
            "sleep_id": None,
        }

    def test_unscored_records_have_no_scores(self):
        sleep = Sleep(**{**SLEEP, "score_state": "PENDING_SCORE", "score": None})
        cycle = Cycle(**{**CYCLE, "score_state": "PENDING_SCORE", "score": None})

        metrics = summarize_today([sleep], [cycle], MORNING_AFTER)

        assert metrics.sleep_hours == 8.5
        assert metrics.sleep_score is None
        assert metrics.strain is None
        assert metrics.calories is None
        assert metrics.cycle_id == 93845


def test_hours_from_milliseconds():
    assert hours_from_milliseconds(None) is None
    assert hours_from_milliseconds(5_400_000) == 1.5
    assert hours_from_milliseconds(1_000_000) == 0.28
