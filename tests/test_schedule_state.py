"""Tests for the schedule state manager — mutators, persistence, notifications."""

from __future__ import annotations

import json
import logging
from datetime import timedelta

import pytest

from pawsistente.config import DEFAULT_STORAGE_KEY
from pawsistente.domain.events import StateChanged
from pawsistente.domain.models import AppPhase, ConventionDay, ScheduleState
from pawsistente.repos.storage import InMemoryStorage, JsonFileStorage
from pawsistente.services.schedule_state import ScheduleStateManager
from tests.factories import make_event


@pytest.fixture()
def manager(storage, clock):
    """Fresh manager over an empty in-memory store."""
    m = ScheduleStateManager.create(storage, clock=clock)
    yield m
    m.dispose()


def _stored(storage: InMemoryStorage) -> dict:
    return json.loads(storage.get_item(DEFAULT_STORAGE_KEY))


# ---------------------------------------------------------------------------
# Initial state
# ---------------------------------------------------------------------------


def test_initial_state_is_empty(manager):
    assert manager.selected_days == []
    assert manager.selected_events == []
    assert manager.rejected_events == []
    assert manager.unseen_events == []
    assert manager.current_state == AppPhase.DAY_SELECTION
    assert not manager.has_progress()


def test_create_without_stored_state_does_not_write(storage, clock):
    ScheduleStateManager.create(storage, clock=clock)
    assert storage.get_item(DEFAULT_STORAGE_KEY) is None


# ---------------------------------------------------------------------------
# Selected / rejected bookkeeping
# ---------------------------------------------------------------------------


def test_add_selected_event_is_idempotent(manager):
    event = make_event("1")

    manager.add_selected_event(event)
    once = manager.selected_events
    manager.add_selected_event(make_event("1", title="Same id, new title"))

    assert manager.selected_events == once
    assert [e.id for e in manager.selected_events] == ["1"]


def test_select_then_remove_leaves_event_rejected(manager):
    manager.add_selected_event(make_event("5"))
    manager.remove_selected_event("5")

    assert manager.selected_events == []
    assert manager.rejected_events == ["5"]


def test_remove_unknown_event_still_records_rejection(manager):
    manager.remove_selected_event("42")
    assert manager.rejected_events == ["42"]


def test_selecting_a_rejected_event_clears_rejection(manager):
    manager.add_rejected_event("3")
    manager.add_selected_event(make_event("3"))

    assert manager.rejected_events == []
    assert [e.id for e in manager.selected_events] == ["3"]


def test_rejecting_a_selected_event_deselects_it(manager):
    manager.add_selected_event(make_event("3"))
    manager.add_rejected_event("3")

    assert manager.selected_events == []
    assert manager.rejected_events == ["3"]


def test_add_rejected_event_is_idempotent(manager):
    manager.add_rejected_event("9")
    manager.add_rejected_event("9")
    assert manager.rejected_events == ["9"]


def test_selected_and_rejected_stay_disjoint(manager):
    ops = [
        ("add", "1"),
        ("add", "2"),
        ("remove", "1"),
        ("add", "1"),
        ("remove", "2"),
        ("remove", "3"),
        ("add", "3"),
        ("add", "2"),
        ("remove", "1"),
    ]
    for op, event_id in ops:
        if op == "add":
            manager.add_selected_event(make_event(event_id))
        else:
            manager.remove_selected_event(event_id)
        selected = {e.id for e in manager.selected_events}
        assert selected.isdisjoint(manager.rejected_events)

    assert {e.id for e in manager.selected_events} == {"2", "3"}
    assert manager.rejected_events == ["1"]


def test_set_selected_events_deduplicates_and_clears_other_sets(manager):
    manager.add_rejected_event("2")
    manager.add_unseen_event("3")

    manager.set_selected_events(
        [make_event("2"), make_event("3"), make_event("2", title="dup")]
    )

    assert [e.id for e in manager.selected_events] == ["2", "3"]
    assert manager.selected_events[0].title == "Event 2"
    assert manager.rejected_events == []
    assert manager.unseen_events == []


def test_set_selected_days_replaces_wholesale(manager):
    manager.set_selected_days([ConventionDay.FRIDAY, "Thursday"])
    manager.set_selected_days(["Sunday", "Sunday"])
    assert manager.selected_days == [ConventionDay.SUNDAY]


def test_set_selected_days_rejects_unknown_day(manager):
    with pytest.raises(ValueError):
        manager.set_selected_days(["Monday"])


# ---------------------------------------------------------------------------
# Unseen pool
# ---------------------------------------------------------------------------


def test_adding_selected_event_removes_it_from_unseen(manager):
    manager.set_unseen_events(["1", "2"])
    manager.add_selected_event(make_event("1"))
    assert manager.unseen_events == ["2"]


def test_unseen_insert_is_idempotent_and_skips_selected(manager):
    manager.add_selected_event(make_event("1"))
    manager.add_unseen_event("2")
    manager.add_unseen_event("2")
    manager.add_unseen_event("1")
    assert manager.unseen_events == ["2"]


def test_set_unseen_events_excludes_selected(manager):
    manager.add_selected_event(make_event("1"))
    manager.set_unseen_events(["1", "2", "2", "4"])
    assert manager.unseen_events == ["2", "4"]


def test_remove_unseen_event(manager):
    manager.set_unseen_events(["1", "2"])
    manager.remove_unseen_event("1")
    manager.remove_unseen_event("missing")
    assert manager.unseen_events == ["2"]


def test_move_rejected_to_unseen_keeps_rejected(manager):
    manager.add_rejected_event("2")
    manager.add_rejected_event("7")

    manager.move_rejected_to_unseen()

    assert manager.unseen_events == ["2", "7"]
    assert manager.rejected_events == ["2", "7"]


def test_move_rejected_to_unseen_merges_with_existing_pool(manager):
    manager.set_unseen_events(["7", "10"])
    manager.add_rejected_event("2")
    manager.add_rejected_event("7")

    manager.move_rejected_to_unseen()

    assert manager.unseen_events == ["7", "10", "2"]


# ---------------------------------------------------------------------------
# Phase transitions and reset
# ---------------------------------------------------------------------------


def test_any_phase_reachable_from_any_phase(manager):
    manager.set_current_state(AppPhase.SUMMARY)
    assert manager.current_state == AppPhase.SUMMARY
    manager.set_current_state("event-browsing")
    assert manager.current_state == AppPhase.EVENT_BROWSING
    manager.set_current_state(AppPhase.DAY_SELECTION)
    assert manager.current_state == AppPhase.DAY_SELECTION


def test_reset_navigation_keeps_selections(manager):
    manager.set_selected_days(["Friday"])
    manager.add_selected_event(make_event("1"))
    manager.set_current_state(AppPhase.SUMMARY)

    manager.reset_navigation()

    assert manager.current_state == AppPhase.DAY_SELECTION
    assert manager.selected_days == [ConventionDay.FRIDAY]
    assert [e.id for e in manager.selected_events] == ["1"]


def test_clear_state_resets_everything_and_persists(manager, storage):
    manager.set_selected_days(["Friday"])
    manager.add_selected_event(make_event("1"))
    manager.add_rejected_event("2")
    manager.set_current_state(AppPhase.SUMMARY)

    manager.clear_state()

    assert not manager.has_progress()
    assert manager.current_state == AppPhase.DAY_SELECTION
    stored = _stored(storage)
    assert stored["selectedEvents"] == []
    assert stored["currentState"] == "day-selection"


def test_progress_summary(manager):
    manager.set_selected_days(["Thursday", "Friday"])
    manager.add_selected_event(make_event("1"))
    manager.add_rejected_event("2")
    manager.add_rejected_event("3")

    summary = manager.get_progress_summary()

    assert manager.has_progress()
    assert (summary.days, summary.selected, summary.rejected) == (2, 1, 2)


def test_unseen_alone_is_not_progress(manager):
    manager.add_unseen_event("1")
    assert not manager.has_progress()


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def test_every_mutation_persists_with_fresh_timestamp(manager, storage, clock):
    clock.advance(minutes=5)
    manager.add_rejected_event("1")

    stored = _stored(storage)
    assert stored["rejectedEvents"] == ["1"]
    assert ScheduleState.model_validate(stored).last_updated == clock.now
    assert manager.last_updated == clock.now


def test_round_trip_restores_identical_snapshot(manager, storage, clock):
    manager.set_selected_days(["Saturday"])
    manager.add_selected_event(make_event("1"))
    manager.add_selected_event(make_event("2", 12, 13))
    manager.add_rejected_event("3")
    manager.add_unseen_event("4")
    manager.set_current_state(AppPhase.EVENT_BROWSING)
    before = manager.snapshot()

    clock.advance(days=6)
    restored = ScheduleStateManager.create(storage, clock=clock)

    assert restored.snapshot() == before


def test_stale_state_is_discarded(storage, clock):
    first = ScheduleStateManager.create(storage, clock=clock)
    first.set_selected_days(["Friday"])
    first.add_selected_event(make_event("1"))
    first.set_current_state(AppPhase.SUMMARY)

    clock.advance(days=8)
    reloaded = ScheduleStateManager.create(storage, clock=clock)

    assert reloaded.selected_days == []
    assert reloaded.selected_events == []
    assert reloaded.current_state == AppPhase.DAY_SELECTION
    assert _stored(storage)["selectedDays"] == []


def test_state_exactly_at_window_is_discarded(storage, clock):
    ScheduleStateManager.create(storage, clock=clock).add_rejected_event("1")
    clock.advance(days=7)
    assert ScheduleStateManager.create(storage, clock=clock).rejected_events == []


def test_custom_staleness_window(storage, clock):
    ScheduleStateManager.create(storage, clock=clock).add_rejected_event("1")
    clock.advance(days=2)
    reloaded = ScheduleStateManager.create(
        storage, clock=clock, max_age=timedelta(days=1)
    )
    assert reloaded.rejected_events == []


def test_unreadable_state_is_replaced(storage, clock, caplog):
    storage.set_item(DEFAULT_STORAGE_KEY, "{not json")

    with caplog.at_level(logging.WARNING):
        manager = ScheduleStateManager.create(storage, clock=clock)

    assert not manager.has_progress()
    assert "unreadable" in caplog.text
    assert _stored(storage)["rejectedEvents"] == []


def test_state_with_naive_timestamp_is_replaced(storage, clock, caplog):
    payload = ScheduleState(selected_days=[ConventionDay.FRIDAY]).model_dump(
        mode="json", by_alias=True
    )
    payload["lastUpdated"] = "2025-10-19T12:00:00"
    storage.set_item(DEFAULT_STORAGE_KEY, json.dumps(payload))

    with caplog.at_level(logging.WARNING):
        manager = ScheduleStateManager.create(storage, clock=clock)

    assert manager.selected_days == []
    assert "unreadable" in caplog.text
    assert _stored(storage)["selectedDays"] == []


def test_write_failure_is_logged_and_memory_stays_authoritative(clock, caplog):
    tiny = InMemoryStorage(quota_bytes=10)
    manager = ScheduleStateManager.create(tiny, clock=clock)

    with caplog.at_level(logging.WARNING):
        manager.add_selected_event(make_event("1"))

    assert [e.id for e in manager.selected_events] == ["1"]
    assert tiny.get_item(DEFAULT_STORAGE_KEY) is None
    assert "Failed to save schedule state" in caplog.text


def test_json_file_storage_round_trip(tmp_path, clock):
    path = tmp_path / "state" / "schedule.json"
    manager = ScheduleStateManager.create(JsonFileStorage(path), clock=clock)
    manager.add_selected_event(make_event("1"))
    manager.remove_selected_event("1")

    reloaded = ScheduleStateManager.create(JsonFileStorage(path), clock=clock)

    assert reloaded.rejected_events == ["1"]
    assert reloaded.selected_events == []


def test_separate_storage_keys_do_not_collide(storage, clock):
    alice = ScheduleStateManager.create(storage, storage_key="alice", clock=clock)
    bob = ScheduleStateManager.create(storage, storage_key="bob", clock=clock)

    alice.add_rejected_event("1")

    assert ScheduleStateManager.create(
        storage, storage_key="bob", clock=clock
    ).rejected_events == []
    assert bob.rejected_events == []


# ---------------------------------------------------------------------------
# Notifications and lifecycle
# ---------------------------------------------------------------------------


def test_subscribers_notified_synchronously_after_mutation(manager):
    received: list[StateChanged] = []
    manager.subscribe(received.append)

    manager.add_selected_event(make_event("1"))
    assert len(received) == 1
    assert received[0].operation == "add_selected_event"
    assert [e.id for e in received[0].state.selected_events] == ["1"]

    manager.remove_selected_event("1")
    assert received[-1].operation == "remove_selected_event"
    assert received[-1].state.rejected_events == ["1"]


def test_no_op_mutations_do_not_notify(manager):
    manager.add_selected_event(make_event("1"))
    received: list[StateChanged] = []
    manager.subscribe(received.append)

    manager.add_selected_event(make_event("1"))
    manager.add_unseen_event("1")
    manager.remove_unseen_event("2")

    assert received == []


def test_unsubscribe_handle_stops_notifications(manager):
    received: list[StateChanged] = []
    unsubscribe = manager.subscribe(received.append)

    manager.add_rejected_event("1")
    unsubscribe()
    manager.add_rejected_event("2")

    assert [r.state.rejected_events for r in received] == [["1"]]


def test_unsubscribe_by_callback(manager):
    received: list[StateChanged] = []
    manager.subscribe(received.append)
    manager.unsubscribe(received.append)

    manager.add_rejected_event("1")

    assert received == []


def test_subscribers_notified_when_persistence_fails(clock):
    manager = ScheduleStateManager.create(InMemoryStorage(quota_bytes=1), clock=clock)
    received: list[StateChanged] = []
    manager.subscribe(received.append)

    manager.add_rejected_event("1")

    assert len(received) == 1


def test_snapshot_is_a_copy(manager):
    manager.add_rejected_event("1")
    snapshot = manager.snapshot()
    snapshot.rejected_events.append("2")
    assert manager.rejected_events == ["1"]


def test_dispose_drops_subscribers_and_blocks_mutation(storage, clock):
    manager = ScheduleStateManager.create(storage, clock=clock)
    received: list[StateChanged] = []
    manager.subscribe(received.append)

    manager.dispose()

    assert manager.disposed
    with pytest.raises(RuntimeError, match="disposed"):
        manager.add_rejected_event("1")
    assert received == []
