"""Domain models for the convention schedule browser."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ConventionDay(StrEnum):
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"


class AppPhase(StrEnum):
    DAY_SELECTION = "day-selection"
    EVENT_BROWSING = "event-browsing"
    SUMMARY = "summary"


class ConflictType(StrEnum):
    OVERLAP = "overlap"
    EXACT = "exact"


class Language(StrEnum):
    ES = "es"
    EN = "en"


class Difficulty(StrEnum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    ALL_LEVELS = "All Levels"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys, accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class ConventionEvent(CamelModel):
    id: str
    title: str
    description: str = ""
    start_time: AwareDatetime
    end_time: AwareDatetime
    location: str
    room: str | None = None
    track: str | None = None
    difficulty: Difficulty | None = None
    capacity: int | None = None
    current_attendees: int | None = None
    image_url: str | None = None
    panelist: str | None = None
    tags: list[str] = Field(default_factory=list)
    day: ConventionDay
    time_slot: str
    is_selected: bool = False

    @model_validator(mode="after")
    def _end_after_start(self) -> ConventionEvent:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class EventConflict(CamelModel):
    event: ConventionEvent
    conflict_type: ConflictType
    overlap_minutes: int = 0


class ScheduleState(CamelModel):
    selected_days: list[ConventionDay] = Field(default_factory=list)
    selected_events: list[ConventionEvent] = Field(default_factory=list)
    rejected_events: list[str] = Field(default_factory=list)
    unseen_events: list[str] = Field(default_factory=list)
    current_state: AppPhase = AppPhase.DAY_SELECTION
    last_updated: AwareDatetime = Field(default_factory=_utcnow)


class ProgressSummary(CamelModel):
    days: int
    selected: int
    rejected: int


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class ConflictReport(CamelModel):
    event_id: str
    conflicts: list[EventConflict] = Field(default_factory=list)
    has_conflicts: bool = False
    summary: str = ""


class ProgressResponse(CamelModel):
    has_progress: bool
    summary: ProgressSummary


class CalendarExport(CamelModel):
    events: list[ConventionEvent]
    filename: str
    ical_content: str


class ExportValidation(CamelModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class SelectDaysRequest(CamelModel):
    days: list[ConventionDay]


class SetPhaseRequest(CamelModel):
    phase: AppPhase


class EventIdsRequest(CamelModel):
    event_ids: list[str]
