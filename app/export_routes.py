# app/export_routes.py

import logging
import re
from typing import List, Optional

from app import storage, workflows
from app.activity_routes import log_activity
from app.calendar_export import convert_to_calendar_events, generate_ics
from app.database import planners, records
from app.errors import NotFoundError, ValidationError
from app.models import ExportRecord, ExportStatus, SectionType
from app.permissions import require_view
from app.utils import clean_document, new_id

logger = logging.getLogger(__name__)


def _slug(title: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-") or "planner"


def _check_range(start: str, end: str) -> None:
    if start > end:
        raise ValidationError("Invalid date range", details=[{"field": "startDate", "message": "startDate must not be after endDate"}])


def _sections_between(planner_id: str, start: str, end: str) -> list:
    return planners().query(
        "section",
        where=[("date", ">=", start), ("date", "<=", end)],
        order_by=[("date", "ASC"), ("order", "ASC")],
        partition_key=planner_id,
    )


def _submit_pdf(actor_id: str, planner: dict, sections: list, view_type: str, label: str, **dates) -> dict:
    """Hands the job to the PDF workflow and records it under the returned job id."""
    job = workflows.generate_pdf(actor_id, clean_document(planner), [clean_document(s) for s in sections],
                                 view_type, **dates)
    job_id = str(job.get("id") or new_id()) if isinstance(job, dict) else new_id()

    record = ExportRecord(
        id=job_id,
        userId=actor_id,
        plannerId=planner["id"],
        filePath=f"exports/{actor_id}/{job_id}.pdf",
        filename=f"{_slug(planner.get('title', ''))}-{label}.pdf",
        jobId=job_id,
        viewType=view_type,
    )
    records().upsert(record.model_dump(mode="json", exclude_none=True))
    return {"exportId": job_id, "status": "processing"}


def export_planner_pdf(planner_id: str, actor_id: str, date: str, view_type: str,
                       include_sections: Optional[List[str]] = None) -> dict:
    """
    Starts a PDF export of one planner day, optionally limited to some section types.
    """
    planner = require_view(planner_id, actor_id)

    sections = planners().query(
        "section",
        where=[("date", "=", date)],
        order_by=[("order", "ASC")],
        partition_key=planner_id,
    )
    if include_sections:
        sections = [s for s in sections if s["type"] in include_sections]

    result = _submit_pdf(actor_id, planner, sections, view_type, date, date=date)
    log_activity(planner_id, actor_id, "pdf_exported", f"Exported {view_type} view as PDF",
                 {"exportId": result["exportId"]})
    logger.info("PDF export '%s' started for planner '%s'", result["exportId"], planner_id)
    return result


def export_date_range_pdf(planner_id: str, actor_id: str, start: str, end: str, view_type: str) -> dict:
    _check_range(start, end)
    planner = require_view(planner_id, actor_id)

    sections = _sections_between(planner_id, start, end)
    result = _submit_pdf(actor_id, planner, sections, view_type, f"{start}-to-{end}", startDate=start, endDate=end)
    log_activity(planner_id, actor_id, "pdf_exported", "Exported date range as PDF",
                 {"exportId": result["exportId"], "startDate": start, "endDate": end})
    logger.info("PDF range export '%s' started for planner '%s'", result["exportId"], planner_id)
    return result


def _get_export(export_id: str, actor_id: str) -> dict:
    record = records().get(export_id, actor_id)
    if (
        record is None
        or record.get("docType") != "export"
        or record.get("userId") != actor_id
        or not all(record.get(field) for field in ("status", "filePath", "filename"))
    ):
        raise NotFoundError("Export not found")
    return record


def get_export_status(export_id: str, actor_id: str) -> dict:
    record = _get_export(export_id, actor_id)
    return {"status": record["status"]}


def get_export_download(export_id: str, actor_id: str) -> dict:
    record = _get_export(export_id, actor_id)
    if record["status"] != ExportStatus.completed.value:
        raise ValidationError("Export not ready yet")
    return {
        "downloadUrl": storage.download_url(record["filePath"]),
        "filename": record["filename"],
    }


def export_to_calendar(planner_id: str, actor_id: str, start: str, end: str, calendar_type: str = "ics") -> dict:
    """
    Exports the daily_schedule events dated start..end.
    'google' syncs them through the calendar workflow; anything else returns an ICS document.
    """
    _check_range(start, end)
    require_view(planner_id, actor_id)

    schedules = [s for s in _sections_between(planner_id, start, end) if s["type"] == SectionType.daily_schedule.value]
    events = convert_to_calendar_events(schedules)

    if calendar_type == "google":
        result = workflows.sync_to_google_calendar(actor_id, events)
    else:
        result = generate_ics(events)

    log_activity(planner_id, actor_id, "calendar_exported", f"Exported to {calendar_type} calendar",
                 {"events": len(events)})
    return result
