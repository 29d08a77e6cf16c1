"""In-memory repository for the convention event catalog."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from pawsistente.domain.models import ConventionDay, ConventionEvent, Difficulty

_DAY_ORDER = {day: index for index, day in enumerate(ConventionDay)}


class EventRepository:
    """Dict-backed store for ConventionEvent instances, keyed by id."""

    def __init__(self, events: Iterable[ConventionEvent] = ()) -> None:
        self._store: dict[str, ConventionEvent] = {}
        for event in events:
            self.add(event)

    def add(self, event: ConventionEvent) -> None:
        self._store[event.id] = event

    def get(self, event_id: str) -> ConventionEvent | None:
        return self._store.get(event_id)

    def list_all(self) -> list[ConventionEvent]:
        return list(self._store.values())

    def list_for_days(self, days: Iterable[ConventionDay | str]) -> list[ConventionEvent]:
        wanted = {ConventionDay(d) for d in days}
        return [e for e in self._store.values() if e.day in wanted]

    def available_days(self) -> list[ConventionDay]:
        """Return the days that have at least one event, in convention order."""
        return sorted({e.day for e in self._store.values()}, key=_DAY_ORDER.__getitem__)

    def search(
        self, query: str, days: Iterable[ConventionDay | str] | None = None
    ) -> list[ConventionEvent]:
        """Case-insensitive search over title, description, host, place and slot."""
        days = list(days or [])
        events = self.list_for_days(days) if days else self.list_all()
        if not query:
            return events

        needle = query.lower()
        return [
            e
            for e in events
            if needle in e.title.lower()
            or needle in e.description.lower()
            or needle in (e.panelist or "").lower()
            or needle in e.location.lower()
            or needle in e.time_slot.lower()
        ]

    def filter(
        self,
        *,
        days: Iterable[ConventionDay | str] | None = None,
        tracks: Iterable[str] | None = None,
        difficulties: Iterable[Difficulty | str] | None = None,
        start_from: datetime | None = None,
        start_until: datetime | None = None,
    ) -> list[ConventionEvent]:
        """Return events matching every given criterion.

        Empty criteria are ignored. Events without a track or difficulty never
        match a track or difficulty filter. The start-time bounds are inclusive.
        """
        days = {ConventionDay(d) for d in days or []}
        tracks = set(tracks or [])
        difficulties = {Difficulty(d) for d in difficulties or []}

        events = self.list_all()
        if days:
            events = [e for e in events if e.day in days]
        if tracks:
            events = [e for e in events if e.track in tracks]
        if difficulties:
            events = [e for e in events if e.difficulty in difficulties]
        if start_from is not None:
            events = [e for e in events if e.start_time >= start_from]
        if start_until is not None:
            events = [e for e in events if e.start_time <= start_until]
        return events

    def group_by_time_slot(
        self, day: ConventionDay | str
    ) -> dict[str, list[ConventionEvent]]:
        """Group one day's events by their time slot, in catalog order."""
        grouped: dict[str, list[ConventionEvent]] = {}
        for event in self.list_for_days([day]):
            grouped.setdefault(event.time_slot, []).append(event)
        return grouped

    def clear(self) -> None:
        self._store.clear()
