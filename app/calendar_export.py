# app/calendar_export.py

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import List

from icalendar import Calendar, Event

logger = logging.getLogger(__name__)

DEFAULT_EVENT_MINUTES = 60
ICS_PRODUCT_ID = "-//Daily Planner//Calendar Export//EN"


def _combine(date: str, time: str, add_minutes: int = 0) -> datetime:
    hours, minutes = (int(part) for part in time.split(":"))
    start = datetime.fromisoformat(date).replace(hour=hours, minute=minutes, tzinfo=timezone.utc)
    return start + timedelta(minutes=add_minutes)


def convert_to_calendar_events(sections: List[dict]) -> List[dict]:
    """
    Turns the events of daily_schedule sections into calendar events.
    Times are taken as UTC and every event lasts an hour.
    """
    events = []
    for section in sections:
        for event in (section.get("content") or {}).get("events", []):
            if not event.get("time"):
                continue
            events.append({
                "summary": event.get("title", ""),
                "description": event.get("description") or "",
                "start": {
                    "dateTime": _combine(section["date"], event["time"]).isoformat(),
                    "timeZone": "UTC",
                },
                "end": {
                    "dateTime": _combine(section["date"], event["time"], DEFAULT_EVENT_MINUTES).isoformat(),
                    "timeZone": "UTC",
                },
            })
    return events


def generate_ics(events: List[dict]) -> dict:
    """Builds an iCalendar document. Returns {icsContent, filename}."""
    now = datetime.now(timezone.utc)

    calendar = Calendar()
    calendar.add("prodid", ICS_PRODUCT_ID)
    calendar.add("version", "2.0")
    calendar.add("calscale", "GREGORIAN")

    for item in events:
        event = Event()
        event.add("uid", f"{uuid.uuid4()}@daily-planner")
        event.add("dtstamp", now)
        event.add("dtstart", datetime.fromisoformat(item["start"]["dateTime"]))
        event.add("dtend", datetime.fromisoformat(item["end"]["dateTime"]))
        event.add("summary", item["summary"])
        if item.get("description"):
            event.add("description", item["description"])
        calendar.add_component(event)

    logger.info("Generated ICS with %s events", len(events))
    return {
        "icsContent": calendar.to_ical().decode("utf-8"),
        "filename": f"planner-export-{now.strftime('%Y%m%dT%H%M%SZ')}.ics",
    }
