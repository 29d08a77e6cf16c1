"""Service for detecting scheduling conflicts between convention events."""

from __future__ import annotations

from pawsistente.domain.models import (
    ConflictType,
    ConventionEvent,
    EventConflict,
    Language,
)

_SUMMARY_TEMPLATES = {
    Language.ES: {
        ConflictType.EXACT: "Conflicto exacto con {count} evento(s)",
        ConflictType.OVERLAP: "Se superpone con {count} evento(s)",
    },
    Language.EN: {
        ConflictType.EXACT: "Exact conflict with {count} event(s)",
        ConflictType.OVERLAP: "Overlaps with {count} event(s)",
    },
}


def has_time_conflict(first: ConventionEvent, second: ConventionEvent) -> bool:
    """Return True if the two events' half-open intervals overlap.

    Overlap rule: first.start < second.end AND second.start < first.end.
    Exact boundary touches (end == start) are NOT considered conflicts.
    """
    return (
        first.start_time < second.end_time and second.start_time < first.end_time
    )


def _conflict_type(first: ConventionEvent, second: ConventionEvent) -> ConflictType:
    if (
        first.start_time == second.start_time
        and first.end_time == second.end_time
    ):
        return ConflictType.EXACT
    return ConflictType.OVERLAP


def _overlap_minutes(first: ConventionEvent, second: ConventionEvent) -> int:
    overlap_start = max(first.start_time, second.start_time)
    overlap_end = min(first.end_time, second.end_time)
    if overlap_start >= overlap_end:
        return 0
    return round((overlap_end - overlap_start).total_seconds() / 60)


def get_conflicting_events(
    candidate: ConventionEvent,
    selected_events: list[ConventionEvent],
) -> list[EventConflict]:
    """Return a conflict entry for every selected event overlapping *candidate*.

    Selected events sharing the candidate's id are skipped. Exact conflicts
    still report the full shared duration in ``overlap_minutes``.
    """
    conflicts: list[EventConflict] = []
    for selected in selected_events:
        if selected.id == candidate.id:
            continue
        if has_time_conflict(candidate, selected):
            conflicts.append(
                EventConflict(
                    event=selected,
                    conflict_type=_conflict_type(candidate, selected),
                    overlap_minutes=_overlap_minutes(candidate, selected),
                )
            )
    return conflicts


def has_any_conflicts(
    candidate: ConventionEvent, selected_events: list[ConventionEvent]
) -> bool:
    return any(
        selected.id != candidate.id and has_time_conflict(candidate, selected)
        for selected in selected_events
    )


def get_conflict_summary(
    conflicts: list[EventConflict], language: Language = Language.ES
) -> str:
    """Build a one-line, localized description of *conflicts*.

    Exact conflicts take precedence: when any exist only those are counted.
    Returns an empty string when there are no conflicts. Unknown language
    codes fall back to English.
    """
    if not conflicts:
        return ""

    # Anything other than Spanish is summarised in English.
    templates = _SUMMARY_TEMPLATES.get(language, _SUMMARY_TEMPLATES[Language.EN])
    exact = [c for c in conflicts if c.conflict_type == ConflictType.EXACT]
    if exact:
        return templates[ConflictType.EXACT].format(count=len(exact))

    overlapping = [c for c in conflicts if c.conflict_type == ConflictType.OVERLAP]
    if overlapping:
        return templates[ConflictType.OVERLAP].format(count=len(overlapping))
    return ""
