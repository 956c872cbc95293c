# app/workflows.py

import logging
from typing import Any, Dict, List, Optional

import requests

from app.config import N8N_API_KEY, N8N_BASE_URL, WEBHOOKS
from app.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)


def call_webhook(name: str, payload: Dict[str, Any], unavailable_message: str) -> Any:
    """
    POSTs `payload` to an n8n webhook and returns the decoded JSON reply.
    Every webhook has its own timeout; there is no retry.
    Raises ServiceUnavailableError with `unavailable_message` on any failure.
    """
    path, timeout = WEBHOOKS[name]
    url = f"{N8N_BASE_URL.rstrip('/')}{path}"
    headers = {"Content-Type": "application/json"}
    if N8N_API_KEY:
        headers["X-N8N-API-KEY"] = N8N_API_KEY

    try:
        response = requests.post(url, json=payload, headers=headers, timeout=timeout)
        response.raise_for_status()
        if not response.content:
            return {}
        return response.json()
    except (requests.RequestException, ValueError) as e:
        logger.exception("Webhook '%s' failed: %s", name, str(e))
        raise ServiceUnavailableError(unavailable_message)


def send_chat_message(user_id: str, planner_id: str, message: str, planner_context: dict) -> dict:
    return call_webhook("ai_chat", {
        "userId": user_id,
        "plannerId": planner_id,
        "message": message,
        "plannerContext": planner_context,
    }, "AI chat service temporarily unavailable")


def generate_meal_plan(user_id: str, date: str, preferences: Optional[dict] = None) -> Any:
    return call_webhook("meal_plan", {
        "userId": user_id,
        "date": date,
        "preferences": preferences or {},
    }, "Meal planning service temporarily unavailable")


def generate_schedule(user_id: str, date: str, tasks: List[Any], preferences: Optional[dict] = None) -> Any:
    return call_webhook("schedule", {
        "userId": user_id,
        "date": date,
        "tasks": tasks,
        "preferences": preferences or {},
    }, "Schedule generation service temporarily unavailable")


def analyze_habits(user_id: str, habit_data: List[dict]) -> Any:
    return call_webhook("habit_analysis", {
        "userId": user_id,
        "habitData": habit_data,
    }, "Habit analysis service temporarily unavailable")


def suggest_tasks(user_id: str, context: dict) -> Any:
    return call_webhook("task_suggestions", {
        "userId": user_id,
        "context": context,
    }, "Task suggestion service temporarily unavailable")


def generate_goals(user_id: str, timeframe: str, category: Optional[str] = None) -> Any:
    return call_webhook("goal_generation", {
        "userId": user_id,
        "timeframe": timeframe,
        "category": category,
    }, "Goal generation service temporarily unavailable")


def provide_feedback(user_id: str, sections: List[dict]) -> Any:
    return call_webhook("feedback", {
        "userId": user_id,
        "sections": sections,
    }, "Feedback service temporarily unavailable")


def generate_pdf(user_id: str, planner: dict, sections: List[dict], view_type: str, **dates) -> dict:
    """
    Submits a PDF export job. `dates` is either date=... or startDate=/endDate=.
    The engine answers with {id, status}.
    """
    payload = {
        "userId": user_id,
        "planner": planner,
        "sections": sections,
        "viewType": view_type,
    }
    payload.update(dates)
    return call_webhook("pdf_export", payload, "PDF export service temporarily unavailable")


def process_handwriting(user_id: str, image_data: str, image_format: str) -> dict:
    """Returns {text, confidence} for a base64 encoded drawing."""
    return call_webhook("handwriting_ocr", {
        "userId": user_id,
        "imageData": image_data,
        "format": image_format,
    }, "Handwriting recognition service temporarily unavailable")


def sync_to_google_calendar(user_id: str, events: List[dict]) -> Any:
    return call_webhook("calendar_sync", {
        "userId": user_id,
        "events": events,
    }, "Calendar sync service temporarily unavailable")


def send_share_notification(share_id: str, planner_title: str, recipient_email: str, permission: str) -> None:
    call_webhook("share_notification", {
        "shareId": share_id,
        "plannerTitle": planner_title,
        "recipientEmail": recipient_email,
        "permission": permission,
    }, "Share notification service temporarily unavailable")
