"""FastAPI application — entry point for the convention schedule browser."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response
from pydantic import AwareDatetime

from pawsistente.config import Settings, configure_logging
from pawsistente.domain.models import (
    ConflictReport,
    ConventionDay,
    ConventionEvent,
    Difficulty,
    EventIdsRequest,
    Language,
    ProgressResponse,
    ScheduleState,
    SelectDaysRequest,
    SetPhaseRequest,
)
from pawsistente.repos.memory import EventRepository
from pawsistente.repos.storage import JsonFileStorage, KeyValueStorage
from pawsistente.services.calendar_export import create_calendar_export, validate_events
from pawsistente.services.conflicts import get_conflict_summary, get_conflicting_events
from pawsistente.services.csv_loader import load_events
from pawsistente.services.schedule_state import ScheduleStateManager

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Dependencies ──────────────────────────────────────────────────────


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_catalog(request: Request, language: Language | None = None) -> EventRepository:
    """Pick the catalog for the requested language, or the configured default."""
    catalogs = request.app.state.catalogs
    return catalogs[language or request.app.state.settings.language]


def get_schedule(request: Request) -> ScheduleStateManager:
    return request.app.state.schedule


def _require_event(catalog: EventRepository, event_id: str) -> ConventionEvent:
    event = catalog.get(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


# ── Catalog routes ────────────────────────────────────────────────────


@router.get("/events", response_model=list[ConventionEvent])
def list_events(
    days: list[ConventionDay] = Query(default=[]),
    catalog: EventRepository = Depends(get_catalog),
) -> list[ConventionEvent]:
    """Return all events, optionally restricted to the given days."""
    if days:
        return catalog.list_for_days(days)
    return catalog.list_all()


@router.get("/events/days", response_model=list[ConventionDay])
def list_days(catalog: EventRepository = Depends(get_catalog)) -> list[ConventionDay]:
    return catalog.available_days()


@router.get("/events/search", response_model=list[ConventionEvent])
def search_events(
    q: str = "",
    days: list[ConventionDay] = Query(default=[]),
    catalog: EventRepository = Depends(get_catalog),
) -> list[ConventionEvent]:
    return catalog.search(q, days)


@router.get("/events/filter", response_model=list[ConventionEvent])
def filter_events(
    days: list[ConventionDay] = Query(default=[]),
    tracks: list[str] = Query(default=[]),
    difficulty: list[Difficulty] = Query(default=[]),
    start_from: AwareDatetime | None = None,
    start_until: AwareDatetime | None = None,
    catalog: EventRepository = Depends(get_catalog),
) -> list[ConventionEvent]:
    """Narrow the catalog by day, track, difficulty and start-time window."""
    return catalog.filter(
        days=days,
        tracks=tracks,
        difficulties=difficulty,
        start_from=start_from,
        start_until=start_until,
    )


@router.get("/events/slots/{day}", response_model=dict[str, list[ConventionEvent]])
def events_by_time_slot(
    day: ConventionDay, catalog: EventRepository = Depends(get_catalog)
) -> dict[str, list[ConventionEvent]]:
    return catalog.group_by_time_slot(day)


@router.get("/events/{event_id}", response_model=ConventionEvent)
def get_event(
    event_id: str, catalog: EventRepository = Depends(get_catalog)
) -> ConventionEvent:
    return _require_event(catalog, event_id)


@router.get("/events/{event_id}/conflicts", response_model=ConflictReport)
def check_conflicts(
    event_id: str,
    language: Language = Language.ES,
    catalog: EventRepository = Depends(get_catalog),
    schedule: ScheduleStateManager = Depends(get_schedule),
) -> ConflictReport:
    """Check a candidate event against the events already selected."""
    candidate = _require_event(catalog, event_id)
    conflicts = get_conflicting_events(candidate, schedule.selected_events)
    return ConflictReport(
        event_id=event_id,
        conflicts=conflicts,
        has_conflicts=bool(conflicts),
        summary=get_conflict_summary(conflicts, language),
    )


# ── Schedule state routes ─────────────────────────────────────────────


@router.get("/schedule", response_model=ScheduleState)
def get_schedule_state(
    schedule: ScheduleStateManager = Depends(get_schedule),
) -> ScheduleState:
    return schedule.snapshot()


@router.get("/schedule/progress", response_model=ProgressResponse)
def get_progress(
    schedule: ScheduleStateManager = Depends(get_schedule),
) -> ProgressResponse:
    return ProgressResponse(
        has_progress=schedule.has_progress(),
        summary=schedule.get_progress_summary(),
    )


@router.put("/schedule/days", response_model=ScheduleState)
def select_days(
    body: SelectDaysRequest, schedule: ScheduleStateManager = Depends(get_schedule)
) -> ScheduleState:
    schedule.set_selected_days(body.days)
    return schedule.snapshot()


@router.post("/schedule/events/{event_id}", response_model=ScheduleState)
def select_event(
    event_id: str,
    catalog: EventRepository = Depends(get_catalog),
    schedule: ScheduleStateManager = Depends(get_schedule),
) -> ScheduleState:
    """Add a catalog event to the personal schedule (swipe right)."""
    schedule.add_selected_event(_require_event(catalog, event_id))
    return schedule.snapshot()


@router.delete("/schedule/events/{event_id}", response_model=ScheduleState)
def deselect_event(
    event_id: str, schedule: ScheduleStateManager = Depends(get_schedule)
) -> ScheduleState:
    schedule.remove_selected_event(event_id)
    return schedule.snapshot()


@router.post("/schedule/rejected/{event_id}", response_model=ScheduleState)
def reject_event(
    event_id: str, schedule: ScheduleStateManager = Depends(get_schedule)
) -> ScheduleState:
    """Skip an event (swipe left)."""
    schedule.add_rejected_event(event_id)
    return schedule.snapshot()


@router.put("/schedule/unseen", response_model=ScheduleState)
def set_unseen(
    body: EventIdsRequest, schedule: ScheduleStateManager = Depends(get_schedule)
) -> ScheduleState:
    schedule.set_unseen_events(body.event_ids)
    return schedule.snapshot()


@router.post("/schedule/unseen/{event_id}", response_model=ScheduleState)
def add_unseen(
    event_id: str, schedule: ScheduleStateManager = Depends(get_schedule)
) -> ScheduleState:
    schedule.add_unseen_event(event_id)
    return schedule.snapshot()


@router.delete("/schedule/unseen/{event_id}", response_model=ScheduleState)
def remove_unseen(
    event_id: str, schedule: ScheduleStateManager = Depends(get_schedule)
) -> ScheduleState:
    schedule.remove_unseen_event(event_id)
    return schedule.snapshot()


@router.post("/schedule/review-rejected", response_model=ScheduleState)
def review_rejected(
    schedule: ScheduleStateManager = Depends(get_schedule),
) -> ScheduleState:
    """Put every skipped event back into the feed."""
    schedule.move_rejected_to_unseen()
    return schedule.snapshot()


@router.put("/schedule/phase", response_model=ScheduleState)
def set_phase(
    body: SetPhaseRequest, schedule: ScheduleStateManager = Depends(get_schedule)
) -> ScheduleState:
    schedule.set_current_state(body.phase)
    return schedule.snapshot()


@router.post("/schedule/reset-navigation", response_model=ScheduleState)
def reset_navigation(
    schedule: ScheduleStateManager = Depends(get_schedule),
) -> ScheduleState:
    schedule.reset_navigation()
    return schedule.snapshot()


@router.delete("/schedule", response_model=ScheduleState)
def clear_schedule(
    schedule: ScheduleStateManager = Depends(get_schedule),
) -> ScheduleState:
    schedule.clear_state()
    return schedule.snapshot()


@router.get("/schedule/export")
def export_schedule(
    schedule: ScheduleStateManager = Depends(get_schedule),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Download the selected events as an iCalendar file."""
    events = schedule.selected_events
    validation = validate_events(events)
    if not validation.valid:
        raise HTTPException(status_code=400, detail=validation.errors)

    export = create_calendar_export(
        events,
        calendar_name=settings.calendar_name,
        domain=settings.calendar_domain,
        timezone_name=settings.timezone,
    )
    return Response(
        content=export.ical_content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


# ── Application factory ───────────────────────────────────────────────


def create_app(
    settings: Settings | None = None,
    *,
    storage: KeyValueStorage | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Build the app; the catalog and state manager live for the app's lifespan."""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.catalogs = {
            language: EventRepository(
                load_events(settings.schedule_csv, settings.timezone, language)
            )
            for language in Language
        }
        app.state.schedule = ScheduleStateManager.create(
            storage or JsonFileStorage(settings.state_file),
            storage_key=settings.storage_key,
            max_age=settings.max_state_age,
            clock=clock,
        )
        yield
        app.state.schedule.dispose()
        logger.info("Schedule state manager disposed")

    app = FastAPI(title="Pawsistente", lifespan=lifespan)
    app.state.settings = settings
    app.include_router(router)
    return app


app = create_app()
