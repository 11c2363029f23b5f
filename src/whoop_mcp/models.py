"""Pydantic models for stored credentials and WHOOP API responses."""

from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DEFAULT_ACCOUNT_KEY = "default"

# Type aliases for common enums
ScoreState = Literal["SCORED", "PENDING_SCORE", "UNSCORABLE"]


# Credential models
class TokenRecord(BaseModel):
    """One stored OAuth credential set.

    ``expires_at`` is an epoch-millisecond timestamp that already has the
    expiry buffer subtracted. Serialized with camelCase keys.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    refresh_token: str
    expires_at: int
    scope: str = ""
    token_type: str = "Bearer"

    def is_valid(self, now_ms: int) -> bool:
        """Return True while the buffered expiry is still in the future."""
        return self.expires_at > now_ms


class ProviderTokenResponse(BaseModel):
    """OAuth token endpoint response."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int
    scope: str = ""
    token_type: str = "Bearer"


# Cycle models
class CycleScore(BaseModel):
    """Strain and heart rate summary for a physiological cycle."""

    strain: float
    kilojoule: float
    average_heart_rate: int
    max_heart_rate: int


class Cycle(BaseModel):
    """Physiological cycle (one day of strain)."""

    id: int
    user_id: int
    created_at: str
    updated_at: str
    start: str
    end: str | None = None
    timezone_offset: str
    score_state: ScoreState
    score: CycleScore | None = None


class PaginatedCycleResponse(BaseModel):
    records: list[Cycle]
    next_token: str | None = None


# Sleep models
class SleepStageSummary(BaseModel):
    """Time spent in each sleep stage, in milliseconds."""

    total_in_bed_time_milli: int
    total_awake_time_milli: int
    total_no_data_time_milli: int
    total_light_sleep_time_milli: int
    total_slow_wave_sleep_time_milli: int
    total_rem_sleep_time_milli: int
    sleep_cycle_count: int
    disturbance_count: int


class SleepNeeded(BaseModel):
    """Breakdown of sleep need, in milliseconds."""

    baseline_milli: int
    need_from_sleep_debt_milli: int
    need_from_recent_strain_milli: int
    need_from_recent_nap_milli: int


class SleepScore(BaseModel):
    stage_summary: SleepStageSummary
    sleep_needed: SleepNeeded
    respiratory_rate: float | None = None
    sleep_performance_percentage: float | None = None
    sleep_consistency_percentage: float | None = None
    sleep_efficiency_percentage: float | None = None


class Sleep(BaseModel):
    """Sleep or nap session."""

    id: str
    cycle_id: int | None = None
    user_id: int
    created_at: str
    updated_at: str
    start: str
    end: str
    timezone_offset: str
    nap: bool
    score_state: ScoreState
    score: SleepScore | None = None


class PaginatedSleepResponse(BaseModel):
    records: list[Sleep]
    next_token: str | None = None


# Recovery models
class RecoveryScore(BaseModel):
    user_calibrating: bool
    recovery_score: float
    resting_heart_rate: float
    hrv_rmssd_milli: float
    spo2_percentage: float | None = None
    skin_temp_celsius: float | None = None


class Recovery(BaseModel):
    """Recovery score attached to a cycle."""

    cycle_id: int
    sleep_id: str
    user_id: int
    created_at: str
    updated_at: str
    score_state: ScoreState
    score: RecoveryScore | None = None


class RecoveryCollection(BaseModel):
    records: list[Recovery]
    next_token: str | None = None


# Workout models
class ZoneDurations(BaseModel):
    """Time spent in each heart rate zone, in milliseconds."""

    zone_zero_milli: int | None = None
    zone_one_milli: int | None = None
    zone_two_milli: int | None = None
    zone_three_milli: int | None = None
    zone_four_milli: int | None = None
    zone_five_milli: int | None = None


class WorkoutScore(BaseModel):
    strain: float
    average_heart_rate: int
    max_heart_rate: int
    kilojoule: float
    percent_recorded: float
    distance_meter: float | None = None
    altitude_gain_meter: float | None = None
    altitude_change_meter: float | None = None
    zone_durations: ZoneDurations | None = None


class Workout(BaseModel):
    """Recorded workout."""

    id: str
    user_id: int
    created_at: str
    updated_at: str
    start: str
    end: str
    timezone_offset: str
    sport_name: str | None = None
    score_state: ScoreState
    score: WorkoutScore | None = None


class WorkoutCollection(BaseModel):
    records: list[Workout]
    next_token: str | None = None


# User models
class UserBasicProfile(BaseModel):
    """Basic profile of the authorized member."""

    user_id: int
    email: str
    first_name: str
    last_name: str


class UserBodyMeasurement(BaseModel):
    """Body measurements of the authorized member."""

    height_meter: float
    weight_kilogram: float
    max_heart_rate: int
