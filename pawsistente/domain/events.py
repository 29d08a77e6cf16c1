"""Domain events emitted by the schedule state manager."""

from __future__ import annotations

from pydantic import BaseModel

from pawsistente.domain.models import ScheduleState


class StateChanged(BaseModel):
    """Fired after every successful schedule state mutation.

    ``operation`` names the mutator that ran (e.g. ``"add_selected_event"``);
    ``state`` is a snapshot taken after the mutation.
    """

    operation: str
    state: ScheduleState
