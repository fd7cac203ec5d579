"""
Google Calendar fetcher — one day's events across every calendar.

The calendar list is read first, then each calendar's events are fetched
concurrently and merged.  A calendar whose fetch fails contributes an
empty list instead of failing the whole day.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Dict, List

from integrations.google_api import execute

logger = logging.getLogger(__name__)

_PROVIDER = "google-calendar"


def day_bounds(day: date, tz: tzinfo = timezone.utc) -> tuple[str, str]:
    """RFC 3339 ``timeMin`` / ``timeMax`` covering ``day`` in ``tz``."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = start + timedelta(days=1)
    return start.isoformat(), end.isoformat()


def shape_event(event: Dict[str, Any], calendar: Dict[str, Any]) -> Dict[str, Any]:
    start = event.get("start") or {}
    end = event.get("end") or {}
    is_all_day = "dateTime" not in start and "date" in start
    return {
        "id": event.get("id"),
        "title": event.get("summary") or "(No title)",
        "start": start.get("dateTime") or start.get("date"),
        "end": end.get("dateTime") or end.get("date"),
        "isAllDay": is_all_day,
        "description": event.get("description"),
        "location": event.get("location"),
        "color": calendar.get("backgroundColor"),
        "calendarId": calendar.get("id"),
    }


def _sort_key(event: Dict[str, Any]) -> datetime:
    value = event.get("start") or ""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.max.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def list_calendars(service: Any) -> List[Dict[str, Any]]:
    """Calendars on the user's list, hidden ones excluded."""
    data = await execute(_PROVIDER, lambda: service.calendarList().list())
    return [c for c in data.get("items", []) if not c.get("hidden")]


async def _calendar_events(
    service: Any, calendar: Dict[str, Any], time_min: str, time_max: str
) -> List[Dict[str, Any]]:
    data = await execute(
        _PROVIDER,
        lambda: service.events().list(
            calendarId=calendar["id"],
            timeMin=time_min,
            timeMax=time_max,
            singleEvents=True,
            orderBy="startTime",
            maxResults=250,
        ),
    )
    return [
        shape_event(e, calendar)
        for e in data.get("items", [])
        if e.get("status") != "cancelled"
    ]


async def list_events_for_day(
    service: Any,
    day: date,
    tz: tzinfo = timezone.utc,
) -> List[Dict[str, Any]]:
    """
    Events of ``day`` from every calendar, sorted by start time.

    Errors reading the calendar list propagate; errors on a single calendar
    are logged and isolated.
    """
    calendars = await list_calendars(service)
    time_min, time_max = day_bounds(day, tz)

    results = await asyncio.gather(
        *[_calendar_events(service, cal, time_min, time_max) for cal in calendars],
        return_exceptions=True,
    )

    events: List[Dict[str, Any]] = []
    for calendar, result in zip(calendars, results):
        if isinstance(result, Exception):
            logger.warning("Calendar %s failed: %s", calendar.get("id"), result)
            continue
        events.extend(result)

    events.sort(key=_sort_key)
    logger.info("list_events_for_day %s → %d events from %d calendars", day, len(events), len(calendars))
    return events
