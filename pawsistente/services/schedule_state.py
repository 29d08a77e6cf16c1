"""Session-scoped store of the user's schedule progress.

The manager is the only writer of its storage key. Every mutator updates
``last_updated``, writes the full snapshot back to storage and then notifies
subscribers, all before returning. Persistence is advisory: a failed write is
logged and the in-memory state stays authoritative for the session.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from pydantic import ValidationError

from pawsistente.config import DEFAULT_STALE_DAYS, DEFAULT_STORAGE_KEY
from pawsistente.domain.bus import EventBus
from pawsistente.domain.events import StateChanged
from pawsistente.domain.models import (
    AppPhase,
    ConventionDay,
    ConventionEvent,
    ProgressSummary,
    ScheduleState,
)
from pawsistente.repos.storage import KeyValueStorage, StorageError

logger = logging.getLogger(__name__)

MAX_STATE_AGE = timedelta(days=DEFAULT_STALE_DAYS)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _unique(items: Iterable) -> list:
    return list(dict.fromkeys(items))


class ScheduleStateManager:
    """Holds day selections, selected/rejected/unseen events and the UI phase.

    Build instances with :meth:`create`, which also loads any fresh state left
    in *storage*; call :meth:`dispose` when the session ends.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        storage_key: str = DEFAULT_STORAGE_KEY,
        max_age: timedelta = MAX_STATE_AGE,
        clock: Callable[[], datetime] | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.storage = storage
        self.storage_key = storage_key
        self.max_age = max_age
        self._clock = clock or _utcnow
        self._bus = bus or EventBus()
        self._unsubscribers: list[Callable[[], None]] = []
        self._disposed = False
        self._state = ScheduleState(last_updated=self._clock())

    @classmethod
    def create(cls, storage: KeyValueStorage, **kwargs) -> ScheduleStateManager:
        manager = cls(storage, **kwargs)
        manager._load_state()
        return manager

    def dispose(self) -> None:
        """Drop all subscribers; the manager rejects mutations afterwards."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._disposed = True

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load_state(self) -> None:
        try:
            raw = self.storage.get_item(self.storage_key)
        except StorageError as exc:
            logger.warning("Failed to load schedule state: %s", exc)
            return
        if raw is None:
            return

        try:
            stored = ScheduleState.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Discarding unreadable schedule state: %s", exc)
            self.clear_state()
            return

        age = self._clock() - stored.last_updated
        if age >= self.max_age:
            logger.info(
                "Discarding schedule state last updated %s (older than %s)",
                stored.last_updated.isoformat(),
                self.max_age,
            )
            self.clear_state()
            return

        self._state = stored
        logger.debug(
            "Loaded schedule state with %d selected events",
            len(stored.selected_events),
        )

    def _save_state(self) -> None:
        try:
            self.storage.set_item(
                self.storage_key, self._state.model_dump_json(by_alias=True)
            )
        except StorageError as exc:
            logger.warning("Failed to save schedule state: %s", exc)

    def _commit(self, operation: str) -> None:
        self._state.last_updated = self._clock()
        self._save_state()
        self._bus.publish(StateChanged(operation=operation, state=self.snapshot()))

    def _ensure_active(self) -> None:
        if self._disposed:
            raise RuntimeError("schedule state manager has been disposed")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[StateChanged], None]) -> Callable[[], None]:
        """Call *callback* after every mutation; returns an unsubscribe handle."""
        self._ensure_active()
        unsubscribe = self._bus.subscribe(StateChanged, callback)
        self._unsubscribers.append(unsubscribe)
        return unsubscribe

    def unsubscribe(self, callback: Callable[[StateChanged], None]) -> None:
        self._bus.unsubscribe(StateChanged, callback)

    # ------------------------------------------------------------------
    # Getters
    # ------------------------------------------------------------------

    @property
    def selected_days(self) -> list[ConventionDay]:
        return list(self._state.selected_days)

    @property
    def selected_events(self) -> list[ConventionEvent]:
        return list(self._state.selected_events)

    @property
    def rejected_events(self) -> list[str]:
        return list(self._state.rejected_events)

    @property
    def unseen_events(self) -> list[str]:
        return list(self._state.unseen_events)

    @property
    def current_state(self) -> AppPhase:
        return self._state.current_state

    @property
    def last_updated(self) -> datetime:
        return self._state.last_updated

    def snapshot(self) -> ScheduleState:
        return self._state.model_copy(deep=True)

    def _selected_ids(self) -> set[str]:
        return {e.id for e in self._state.selected_events}

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def set_selected_days(self, days: Iterable[ConventionDay | str]) -> None:
        self._ensure_active()
        self._state.selected_days = _unique(ConventionDay(d) for d in days)
        self._commit("set_selected_days")

    def set_selected_events(self, events: Iterable[ConventionEvent]) -> None:
        """Replace the selected list wholesale, keeping the first of each id."""
        self._ensure_active()
        by_id: dict[str, ConventionEvent] = {}
        for event in events:
            by_id.setdefault(event.id, event)
        self._state.selected_events = list(by_id.values())
        self._state.rejected_events = [
            i for i in self._state.rejected_events if i not in by_id
        ]
        self._state.unseen_events = [
            i for i in self._state.unseen_events if i not in by_id
        ]
        self._commit("set_selected_events")

    def add_selected_event(self, event: ConventionEvent) -> None:
        self._ensure_active()
        if event.id in self._selected_ids():
            return
        self._state.selected_events = [*self._state.selected_events, event]
        self._state.rejected_events = [
            i for i in self._state.rejected_events if i != event.id
        ]
        # A selected event is no longer eligible to resurface.
        self._state.unseen_events = [
            i for i in self._state.unseen_events if i != event.id
        ]
        self._commit("add_selected_event")

    def remove_selected_event(self, event_id: str) -> None:
        self._ensure_active()
        self._state.selected_events = [
            e for e in self._state.selected_events if e.id != event_id
        ]
        self._add_rejected(event_id, operation="remove_selected_event")

    def add_rejected_event(self, event_id: str) -> None:
        self._ensure_active()
        self._add_rejected(event_id, operation="add_rejected_event")

    def _add_rejected(self, event_id: str, *, operation: str) -> None:
        if event_id in self._state.rejected_events:
            return
        self._state.rejected_events = [*self._state.rejected_events, event_id]
        self._state.selected_events = [
            e for e in self._state.selected_events if e.id != event_id
        ]
        self._commit(operation)

    def set_unseen_events(self, event_ids: Iterable[str]) -> None:
        self._ensure_active()
        selected = self._selected_ids()
        self._state.unseen_events = [
            i for i in _unique(event_ids) if i not in selected
        ]
        self._commit("set_unseen_events")

    def add_unseen_event(self, event_id: str) -> None:
        self._ensure_active()
        if event_id in self._state.unseen_events or event_id in self._selected_ids():
            return
        self._state.unseen_events = [*self._state.unseen_events, event_id]
        self._commit("add_unseen_event")

    def remove_unseen_event(self, event_id: str) -> None:
        self._ensure_active()
        if event_id not in self._state.unseen_events:
            return
        self._state.unseen_events = [
            i for i in self._state.unseen_events if i != event_id
        ]
        self._commit("remove_unseen_event")

    def move_rejected_to_unseen(self) -> None:
        """Offer every rejected event again; the rejected list is kept."""
        self._ensure_active()
        selected = self._selected_ids()
        self._state.unseen_events = [
            i
            for i in _unique([*self._state.unseen_events, *self._state.rejected_events])
            if i not in selected
        ]
        self._commit("move_rejected_to_unseen")

    def set_current_state(self, phase: AppPhase | str) -> None:
        self._ensure_active()
        self._state.current_state = AppPhase(phase)
        self._commit("set_current_state")

    def reset_navigation(self) -> None:
        """Return to day selection without touching any selections."""
        self._ensure_active()
        self._state.current_state = AppPhase.DAY_SELECTION
        self._commit("reset_navigation")

    def clear_state(self) -> None:
        self._ensure_active()
        self._state = ScheduleState(last_updated=self._clock())
        self._commit("clear_state")

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def has_progress(self) -> bool:
        return bool(
            self._state.selected_days
            or self._state.selected_events
            or self._state.rejected_events
        )

    def get_progress_summary(self) -> ProgressSummary:
        return ProgressSummary(
            days=len(self._state.selected_days),
            selected=len(self._state.selected_events),
            rejected=len(self._state.rejected_events),
        )
