# app/ai_routes.py

import logging
from typing import Optional

from app import workflows
from app.activity_routes import log_activity
from app.config import DEFAULT_PAGE_LIMIT, MAX_BATCH_OPERATIONS
from app.database import planners
from app.errors import ValidationError
from app.models import ChatMessage, SectionType
from app.permissions import require_edit, require_owner, require_view
from app.utils import chunked, clamp_limit, clean_document, today

logger = logging.getLogger(__name__)


def _sections_on(planner_id: str, date: str) -> list:
    return planners().query(
        "section",
        where=[("date", "=", date)],
        order_by=[("order", "ASC")],
        partition_key=planner_id,
    )


def send_chat_message(planner_id: str, actor_id: str, message: str, date: Optional[str] = None) -> dict:
    """
    send_chat_message:
    Forwards a message to the assistant along with the planner title and the
    sections of `date` (today by default), then stores the exchange.
    """
    planner = require_view(planner_id, actor_id)
    date = date or today().isoformat()

    sections = _sections_on(planner_id, date)
    reply = workflows.send_chat_message(actor_id, planner_id, message, {
        "title": planner.get("title"),
        "date": date,
        "sections": [{"type": s["type"], "content": s.get("content", {})} for s in sections],
    })
    answer = reply.get("message", "") if isinstance(reply, dict) else str(reply)

    chat = ChatMessage(plannerId=planner_id, userId=actor_id, message=message, response=answer)
    planners().create(chat.model_dump(mode="json"))
    log_activity(planner_id, actor_id, "ai_chat", "Used AI assistant")

    logger.info("AI chat message sent by user '%s' on planner '%s'", actor_id, planner_id)
    return {
        "message": answer,
        "suggestions": reply.get("suggestions", []) if isinstance(reply, dict) else [],
    }


def get_chat_history(planner_id: str, actor_id: str, limit=DEFAULT_PAGE_LIMIT) -> list:
    """Newest exchanges first."""
    require_view(planner_id, actor_id)
    history = planners().query(
        "chat",
        order_by=[("timestamp", "DESC")],
        limit=clamp_limit(limit),
        partition_key=planner_id,
    )
    return [clean_document(item) for item in history]


def clear_chat_history(planner_id: str, actor_id: str) -> int:
    require_owner(planner_id, actor_id, "Only the owner can clear chat history")

    history = planners().query("chat", partition_key=planner_id)
    for batch in chunked([item["id"] for item in history], MAX_BATCH_OPERATIONS):
        planners().execute_batch(planner_id, [("delete", item_id) for item_id in batch])

    logger.info("Cleared %s chat messages from planner '%s'", len(history), planner_id)
    return len(history)


def suggest_meals(planner_id: str, actor_id: str, date: str, preferences: Optional[dict] = None):
    require_edit(planner_id, actor_id)
    meals = workflows.generate_meal_plan(actor_id, date, preferences)
    log_activity(planner_id, actor_id, "ai_meal_suggestions", "Generated meal suggestions", {"date": date})
    return meals


def generate_schedule(planner_id: str, actor_id: str, date: str, tasks: list, preferences: Optional[dict] = None):
    require_edit(planner_id, actor_id)
    schedule = workflows.generate_schedule(actor_id, date, tasks, preferences)
    log_activity(planner_id, actor_id, "ai_schedule_generated", "Generated daily schedule", {"date": date})
    return schedule


def generate_goals(planner_id: str, actor_id: str, timeframe: str, category: Optional[str] = None):
    require_edit(planner_id, actor_id)
    goals = workflows.generate_goals(actor_id, timeframe, category)
    log_activity(planner_id, actor_id, "ai_goals_generated", f"Generated {timeframe} goals")
    return goals


def analyze_habits(planner_id: str, actor_id: str, start: str, end: str):
    """Sends the habit_tracker sections dated start..end to the habit analysis workflow."""
    if start > end:
        raise ValidationError("Invalid date range", details=[{"field": "dateRange", "message": "start must not be after end"}])

    require_view(planner_id, actor_id)
    sections = planners().query(
        "section",
        where=[
            ("type", "=", SectionType.habit_tracker.value),
            ("date", ">=", start),
            ("date", "<=", end),
        ],
        order_by=[("date", "ASC")],
        partition_key=planner_id,
    )
    habit_data = [{"date": s["date"], "habits": s.get("content", {}).get("habits", [])} for s in sections]
    return workflows.analyze_habits(actor_id, habit_data)


def suggest_tasks(planner_id: str, actor_id: str, date: Optional[str] = None):
    require_view(planner_id, actor_id)
    sections = _sections_on(planner_id, date or today().isoformat())
    return workflows.suggest_tasks(actor_id, {
        "sections": [{"type": s["type"], "title": s.get("title"), "content": s.get("content", {})} for s in sections],
    })


def provide_feedback(planner_id: str, actor_id: str, date: str):
    require_view(planner_id, actor_id)
    sections = _sections_on(planner_id, date)
    return workflows.provide_feedback(actor_id, [clean_document(s) for s in sections])
