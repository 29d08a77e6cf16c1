"""Service for exporting selected events as an iCalendar (.ics) file."""

from __future__ import annotations

from datetime import datetime, timezone

from pawsistente.domain.models import CalendarExport, ConventionEvent, ExportValidation

PRODID = "-//Pawsistente//Event Calendar//EN"
CRLF = "\r\n"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_ical_datetime(value: datetime) -> str:
    """Render an aware datetime as ``YYYYMMDDTHHMMSSZ`` in UTC."""
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def escape_text(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
        .replace("\r", "")
    )


def _vevent(event: ConventionEvent, stamp: str, domain: str) -> list[str]:
    location = event.location
    if event.room:
        location = f"{location} - {event.room}"
    return [
        "BEGIN:VEVENT",
        f"UID:pawsistente-{event.id}@{domain}",
        f"DTSTAMP:{stamp}",
        f"DTSTART:{format_ical_datetime(event.start_time)}",
        f"DTEND:{format_ical_datetime(event.end_time)}",
        f"SUMMARY:{escape_text(event.title)}",
        f"DESCRIPTION:{escape_text(event.description)}",
        f"LOCATION:{escape_text(location)}",
        "STATUS:CONFIRMED",
        "TRANSP:OPAQUE",
        f"CATEGORIES:{escape_text(event.track or 'General')}",
        "X-MICROSOFT-CDO-BUSYSTATUS:BUSY",
        "END:VEVENT",
    ]


def generate_ical_content(
    events: list[ConventionEvent],
    *,
    now: datetime | None = None,
    calendar_name: str = "Confuror 2025",
    domain: str = "confuror.mx",
    timezone_name: str = "America/Mexico_City",
) -> str:
    stamp = format_ical_datetime(now or _utcnow())
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{escape_text(calendar_name)} - Selected Events",
        f"X-WR-CALDESC:Events selected for {escape_text(calendar_name)}",
        f"X-WR-TIMEZONE:{timezone_name}",
    ]
    for event in events:
        lines.extend(_vevent(event, stamp, domain))
    lines.append("END:VCALENDAR")
    return CRLF.join(lines) + CRLF


def validate_events(events: list[ConventionEvent]) -> ExportValidation:
    errors: list[str] = []
    if not events:
        errors.append("No events selected for export")
    for index, event in enumerate(events, start=1):
        if not event.title.strip():
            errors.append(f"Event {index}: Missing title")
    return ExportValidation(valid=not errors, errors=errors)


def create_calendar_export(
    events: list[ConventionEvent],
    *,
    now: datetime | None = None,
    **ical_options,
) -> CalendarExport:
    """De-duplicate *events* by id, order them chronologically and render them."""
    now = now or _utcnow()
    unique: dict[str, ConventionEvent] = {}
    for event in events:
        unique.setdefault(event.id, event)
    ordered = sorted(unique.values(), key=lambda e: (e.start_time, e.end_time))
    return CalendarExport(
        events=ordered,
        filename=f"pawsistente-events-{now:%Y-%m-%d}.ics",
        ical_content=generate_ical_content(ordered, now=now, **ical_options),
    )
