"""Service for loading the convention schedule from a CSV export."""

from __future__ import annotations

import csv
import io
import logging
import re
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

from pawsistente.domain.models import ConventionDay, ConventionEvent, Language

logger = logging.getLogger(__name__)

# Confuror 2025 runs Thursday 23 to Sunday 26 October.
CONVENTION_DATES = {
    ConventionDay.THURSDAY: date(2025, 10, 23),
    ConventionDay.FRIDAY: date(2025, 10, 24),
    ConventionDay.SATURDAY: date(2025, 10, 25),
    ConventionDay.SUNDAY: date(2025, 10, 26),
}

DEFAULT_TIMEZONE = "America/Mexico_City"

_TIME_RE = re.compile(r"^\d{1,2}(:\d{2}){0,2}\s*([AaPp][Mm])?$")

_DAY_MAP = {day.value.lower(): day for day in ConventionDay}


def parse_time(raw: str, day: ConventionDay, tz: ZoneInfo) -> datetime:
    """Place a wall-clock time such as ``"03:00:00 PM"`` or ``"15:00"`` on *day*.

    Raises ``ValueError`` when *raw* is not a recognisable time of day.
    """
    text = raw.strip()
    if not _TIME_RE.match(text):
        raise ValueError(f"Unrecognised time format: {raw!r}")
    if ":" not in text and text[-2:].lower() not in ("am", "pm"):
        text = f"{text}:00"

    day_date = CONVENTION_DATES[day]
    default = datetime(day_date.year, day_date.month, day_date.day)
    parsed = date_parser.parse(text, default=default)
    return parsed.replace(tzinfo=tz)


def _row_to_event(
    row: dict[str, str], row_number: int, tz: ZoneInfo
) -> ConventionEvent | None:
    title = row.get("title", "").strip()
    if not title:
        return None

    day = _DAY_MAP.get(row.get("day", "").strip().lower())
    if day is None:
        logger.warning("Row %d: unknown day %r", row_number, row.get("day"))
        return None

    try:
        start_time = parse_time(row.get("start_time", ""), day, tz)
        end_time = parse_time(row.get("end_time", ""), day, tz)
        category = row.get("category", "").strip()
        hosted_by = row.get("hosted_by", "").strip()
        return ConventionEvent(
            id=f"event_{row_number}",
            title=title,
            description=row.get("description", "").strip(),
            start_time=start_time,
            end_time=end_time,
            location=row.get("location", "").strip(),
            panelist=hosted_by or None,
            track=category or None,
            tags=[category] if category else [],
            day=day,
            time_slot=f"{start_time:%H:%M}-{end_time:%H:%M}",
        )
    except ValueError as exc:
        logger.warning("Row %d (%s) skipped: %s", row_number, title, exc)
        return None


def parse_schedule_csv(
    text: str, timezone_name: str = DEFAULT_TIMEZONE
) -> list[ConventionEvent]:
    """Parse schedule CSV text into events, skipping rows that cannot be used."""
    tz = ZoneInfo(timezone_name)
    reader = csv.reader(io.StringIO(text.strip()))
    try:
        headers = [h.strip() for h in next(reader)]
    except StopIteration:
        return []

    events: list[ConventionEvent] = []
    for row_number, values in enumerate(reader, start=1):
        if not any(v.strip() for v in values):
            continue
        if len(values) != len(headers):
            logger.warning(
                "Row %d has %d columns, expected %d",
                row_number,
                len(values),
                len(headers),
            )
            continue
        event = _row_to_event(dict(zip(headers, values)), row_number, tz)
        if event is not None:
            events.append(event)
    return events


def schedule_path_for_language(path: str | Path, language: Language) -> Path:
    """Non-Spanish schedules sit beside the Spanish one as ``<stem>_english.csv``."""
    base = Path(path)
    if Language(language) == Language.ES:
        return base
    return base.with_name(f"{base.stem}_english{base.suffix}")


def load_events(
    path: str | Path,
    timezone_name: str = DEFAULT_TIMEZONE,
    language: Language = Language.ES,
) -> list[ConventionEvent]:
    """Read the schedule CSV for *language*, falling back to the Spanish file.

    A missing file yields no events.
    """
    base_path = Path(path)
    csv_path = schedule_path_for_language(base_path, language)
    if csv_path != base_path and not csv_path.exists():
        logger.warning(
            "No %s schedule at %s; falling back to %s", language, csv_path, base_path
        )
        csv_path = base_path
    if not csv_path.exists():
        logger.warning("Schedule file %s not found; catalog is empty", csv_path)
        return []
    events = parse_schedule_csv(csv_path.read_text(encoding="utf-8"), timezone_name)
    logger.info("Loaded %d events from %s", len(events), csv_path)
    return events
