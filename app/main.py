import json
import logging
from functools import wraps
from typing import List, Optional, Type

from azure.cosmos.exceptions import CosmosHttpResponseError
from azure.functions import HttpRequest, HttpResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from app import (
    activity_routes,
    ai_routes,
    export_routes,
    handwriting_routes,
    planner_routes,
    section_routes,
    sharing_routes,
    user_routes,
)
from app.auth import Actor, token_required
from app.errors import AppError, ValidationError
from app.models import (
    BulkUpdateRequest,
    CalendarExportRequest,
    ChangePasswordRequest,
    ChatRequest,
    DuplicatePlannerRequest,
    DuplicateSectionRequest,
    ExportPdfRequest,
    ExportRangeRequest,
    FeedbackRequest,
    GoalsRequest,
    GoogleAuthRequest,
    HabitAnalysisRequest,
    HandwritingRequest,
    LoginRequest,
    MealSuggestionRequest,
    PermissionUpdate,
    PlannerCreate,
    PlannerUpdate,
    RefreshRequest,
    RegisterRequest,
    ReorderRequest,
    ScheduleRequest,
    SectionCreate,
    SectionUpdate,
    ShareRequest,
    TaskSuggestionRequest,
    UpdateProfileRequest,
)

logger = logging.getLogger(__name__)


# -----------------------
# Envelope and error boundary
# -----------------------
def respond(data=None, message: Optional[str] = None, status_code: int = 200) -> HttpResponse:
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return HttpResponse(json.dumps(body), status_code=status_code, mimetype="application/json")


def error_response(message: str, status_code: int, details: Optional[List[dict]] = None) -> HttpResponse:
    body = {"status": "error", "message": message}
    if details:
        body["details"] = details
    return HttpResponse(json.dumps(body), status_code=status_code, mimetype="application/json")


def validation_details(error: PydanticValidationError) -> List[dict]:
    return [
        {"field": ".".join(str(part) for part in err["loc"]) or "body", "message": err["msg"]}
        for err in error.errors()
    ]


def api_handler(func):
    """
    The single error boundary of the API: turns every exception raised by a
    handler into the JSON error envelope. Unexpected errors are logged and
    answered with a generic message.
    """
    @wraps(func)
    def wrapper(req: HttpRequest, *args, **kwargs) -> HttpResponse:
        try:
            return func(req, *args, **kwargs)
        except AppError as e:
            if e.status_code >= 500:
                logger.exception("Error in %s endpoint: %s", func.__name__, e.message)
            else:
                logger.warning("%s failed with %s: %s", func.__name__, e.status_code, e.message)
            return error_response(e.message, e.status_code, e.details)
        except PydanticValidationError as e:
            logger.warning("Validation error in %s endpoint: %s", func.__name__, str(e))
            return error_response("Validation error", 400, validation_details(e))
        except CosmosHttpResponseError as e:
            logger.exception("Cosmos error in %s endpoint: %s", func.__name__, str(e))
            return error_response("Internal server error", 500)
        except Exception as e:
            logger.exception("Error in %s endpoint: %s", func.__name__, str(e))
            return error_response("Internal server error", 500)
    return wrapper


def parse_body(req: HttpRequest, model: Type[BaseModel], optional: bool = False):
    """Validates the JSON body against `model`. An empty body is allowed when `optional`."""
    if optional and not req.get_body():
        return model()
    try:
        body = req.get_json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON", details=[{"field": "body", "message": "Invalid JSON"}])
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object", details=[{"field": "body", "message": "Expected an object"}])
    return model.model_validate(body)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _flag(req: HttpRequest, name: str) -> bool:
    return (req.params.get(name) or "").lower() in ("1", "true", "yes")


# -----------------------
# Health
# -----------------------
def health_handler(req: HttpRequest) -> HttpResponse:
    return respond({"status": "ok"})


# -----------------------
# Auth
# -----------------------
@api_handler
def register_handler(req: HttpRequest) -> HttpResponse:
    body = parse_body(req, RegisterRequest)
    result = user_routes.register_user(body.email, body.password, body.displayName)
    return respond(result, "User registered successfully", 201)


@api_handler
def login_handler(req: HttpRequest) -> HttpResponse:
    body = parse_body(req, LoginRequest)
    return respond(user_routes.login_user(body.email, body.password), "Login successful")


@api_handler
def google_login_handler(req: HttpRequest) -> HttpResponse:
    body = parse_body(req, GoogleAuthRequest)
    return respond(user_routes.google_login(body.idToken), "Login successful")


@api_handler
def refresh_handler(req: HttpRequest) -> HttpResponse:
    body = parse_body(req, RefreshRequest)
    return respond(user_routes.refresh_tokens(body.refreshToken))


@api_handler
@token_required
def me_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    return respond({"user": user_routes.get_current_user(actor.uid)})


@api_handler
@token_required
def logout_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    user_routes.logout(actor.uid)
    return respond(message="Logged out successfully")


@api_handler
@token_required
def update_profile_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, UpdateProfileRequest)
    return respond({"user": user_routes.update_profile(actor.uid, body)}, "Profile updated")


@api_handler
@token_required
def change_password_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, ChangePasswordRequest)
    tokens = user_routes.change_password(actor.uid, body.currentPassword, body.newPassword)
    return respond(tokens, "Password changed successfully")


@api_handler
@token_required
def delete_account_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    user_routes.delete_account(actor.uid)
    return respond(message="Account deleted successfully")


# -----------------------
# Planners
# -----------------------
@api_handler
@token_required
def list_planners_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    planners = planner_routes.list_planners(actor.uid, include_archived=_flag(req, "includeArchived"))
    return respond({"planners": planners})


@api_handler
@token_required
def create_planner_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, PlannerCreate)
    planner = planner_routes.create_planner(actor.uid, body)
    return respond({"planner": planner}, "Planner created successfully", 201)


@api_handler
@token_required
def get_planner_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    planner = planner_routes.get_planner(req.route_params.get("plannerId"), actor.uid)
    return respond({"planner": planner})


@api_handler
@token_required
def update_planner_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, PlannerUpdate)
    planner = planner_routes.update_planner(req.route_params.get("plannerId"), actor.uid, body)
    return respond({"planner": planner}, "Planner updated successfully")


@api_handler
@token_required
def delete_planner_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    planner_routes.delete_planner(req.route_params.get("plannerId"), actor.uid)
    return respond(message="Planner deleted successfully")


@api_handler
@token_required
def duplicate_planner_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, DuplicatePlannerRequest, optional=True)
    planner = planner_routes.duplicate_planner(req.route_params.get("plannerId"), actor.uid, body.title)
    return respond({"planner": planner}, "Planner duplicated successfully", 201)


@api_handler
@token_required
def set_default_planner_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    planner = planner_routes.set_default_planner(req.route_params.get("plannerId"), actor.uid)
    return respond({"planner": planner}, "Default planner updated")


@api_handler
@token_required
def archive_planner_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    planner = planner_routes.archive_planner(req.route_params.get("plannerId"), actor.uid)
    return respond({"planner": planner}, "Planner archived successfully")


@api_handler
@token_required
def restore_planner_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    planner = planner_routes.restore_planner(req.route_params.get("plannerId"), actor.uid)
    return respond({"planner": planner}, "Planner restored successfully")


@api_handler
@token_required
def planners_for_date_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    planners = planner_routes.list_planners_for_date(actor.uid, req.route_params.get("date"))
    return respond({"planners": planners})


# -----------------------
# Sections
# -----------------------
@api_handler
@token_required
def list_sections_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    sections = section_routes.list_sections(
        req.route_params.get("plannerId"), actor.uid, req.route_params.get("date")
    )
    return respond({"sections": sections})


@api_handler
@token_required
def create_section_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, SectionCreate)
    section = section_routes.create_section(req.route_params.get("plannerId"), actor.uid, body)
    return respond({"section": section}, "Section created successfully", 201)


@api_handler
@token_required
def sections_in_range_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    start, end = req.params.get("start"), req.params.get("end")
    if not start or not end:
        raise ValidationError("start and end query parameters are required",
                              details=[{"field": "start" if not start else "end", "message": "Required"}])
    sections = section_routes.list_sections_in_range(req.route_params.get("plannerId"), actor.uid, start, end)
    return respond({"sections": sections})


@api_handler
@token_required
def sections_by_type_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    sections = section_routes.list_sections_by_type(
        req.route_params.get("plannerId"), actor.uid, req.route_params.get("sectionType")
    )
    return respond({"sections": sections})


@api_handler
@token_required
def get_section_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    return respond({"section": section_routes.get_section(req.route_params.get("sectionId"), actor.uid)})


@api_handler
@token_required
def update_section_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, SectionUpdate)
    section = section_routes.update_section(req.route_params.get("sectionId"), actor.uid, body)
    return respond({"section": section}, "Section updated successfully")


@api_handler
@token_required
def delete_section_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    section_routes.delete_section(req.route_params.get("sectionId"), actor.uid)
    return respond(message="Section deleted successfully")


@api_handler
@token_required
def toggle_collapse_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    section = section_routes.toggle_collapse(req.route_params.get("sectionId"), actor.uid)
    return respond({"section": section})


@api_handler
@token_required
def reorder_sections_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, ReorderRequest)
    section_routes.reorder_sections(body.plannerId, actor.uid, body.sectionOrders)
    return respond(message="Sections reordered successfully")


@api_handler
@token_required
def bulk_update_sections_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, BulkUpdateRequest)
    updated = section_routes.bulk_update_sections(body.plannerId, actor.uid, body.sections)
    return respond({"updated": updated}, "Sections updated successfully")


@api_handler
@token_required
def duplicate_section_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, DuplicateSectionRequest, optional=True)
    section = section_routes.duplicate_section(req.route_params.get("sectionId"), actor.uid, _iso(body.targetDate))
    return respond({"section": section}, "Section duplicated successfully", 201)


# -----------------------
# Sharing
# -----------------------
@api_handler
@token_required
def share_planner_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, ShareRequest)
    share = sharing_routes.share_planner(req.route_params.get("plannerId"), actor.uid, body.email, body.permission)
    return respond({"share": share}, "Planner shared successfully", 201)


@api_handler
@token_required
def list_shares_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    shares = sharing_routes.list_planner_shares(req.route_params.get("plannerId"), actor.uid)
    return respond({"shares": shares})


@api_handler
@token_required
def update_permission_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, PermissionUpdate)
    share = sharing_routes.update_share_permission(req.route_params.get("shareId"), actor.uid, body.permission)
    return respond({"share": share}, "Permission updated successfully")


@api_handler
@token_required
def remove_share_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    sharing_routes.remove_share(req.route_params.get("shareId"), actor.uid)
    return respond(message="Share removed successfully")


@api_handler
@token_required
def accept_invitation_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    share = sharing_routes.accept_invitation(req.route_params.get("shareId"), actor.uid)
    return respond({"share": share}, "Invitation accepted")


@api_handler
@token_required
def reject_invitation_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    sharing_routes.reject_invitation(req.route_params.get("shareId"), actor.uid)
    return respond(message="Invitation rejected")


@api_handler
@token_required
def leave_planner_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    sharing_routes.leave_planner(req.route_params.get("plannerId"), actor.uid)
    return respond(message="Left planner successfully")


@api_handler
@token_required
def invitations_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    return respond({"invitations": sharing_routes.list_pending_invitations(actor.uid)})


@api_handler
@token_required
def shared_with_me_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    return respond({"planners": sharing_routes.list_shared_with_me(actor.uid)})


# -----------------------
# Activity
# -----------------------
@api_handler
@token_required
def planner_activity_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    page = activity_routes.get_planner_activity(
        req.route_params.get("plannerId"), actor.uid,
        limit=req.params.get("limit"), start_after=req.params.get("startAfter"),
    )
    return respond(page)


@api_handler
@token_required
def clear_activity_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    cleared = activity_routes.clear_activity(req.route_params.get("plannerId"), actor.uid)
    return respond({"cleared": cleared}, "Activity cleared")


@api_handler
@token_required
def user_activity_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    page = activity_routes.get_user_activity(
        actor.uid, limit=req.params.get("limit"), start_after=req.params.get("startAfter")
    )
    return respond(page)


@api_handler
@token_required
def get_activity_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    return respond({"activity": activity_routes.get_activity(req.route_params.get("activityId"), actor.uid)})


# -----------------------
# AI
# -----------------------
@api_handler
@token_required
def chat_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, ChatRequest)
    date = _iso(body.context.date) if body.context else None
    return respond(ai_routes.send_chat_message(body.plannerId, actor.uid, body.message, date))


@api_handler
@token_required
def chat_history_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    history = ai_routes.get_chat_history(req.route_params.get("plannerId"), actor.uid, req.params.get("limit"))
    return respond({"history": history})


@api_handler
@token_required
def clear_chat_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    ai_routes.clear_chat_history(req.route_params.get("plannerId"), actor.uid)
    return respond(message="Chat history cleared")


@api_handler
@token_required
def suggest_meals_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, MealSuggestionRequest)
    meals = ai_routes.suggest_meals(body.plannerId, actor.uid, _iso(body.date), body.preferences)
    return respond({"meals": meals})


@api_handler
@token_required
def generate_schedule_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, ScheduleRequest)
    schedule = ai_routes.generate_schedule(body.plannerId, actor.uid, _iso(body.date), body.tasks, body.preferences)
    return respond({"schedule": schedule})


@api_handler
@token_required
def analyze_habits_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, HabitAnalysisRequest)
    analysis = ai_routes.analyze_habits(
        body.plannerId, actor.uid, _iso(body.dateRange.start), _iso(body.dateRange.end)
    )
    return respond({"analysis": analysis})


@api_handler
@token_required
def suggest_tasks_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, TaskSuggestionRequest)
    date = _iso(body.context.date) if body.context else None
    return respond({"tasks": ai_routes.suggest_tasks(body.plannerId, actor.uid, date)})


@api_handler
@token_required
def generate_goals_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, GoalsRequest)
    return respond({"goals": ai_routes.generate_goals(body.plannerId, actor.uid, body.timeframe, body.category)})


@api_handler
@token_required
def provide_feedback_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, FeedbackRequest)
    return respond({"feedback": ai_routes.provide_feedback(body.plannerId, actor.uid, _iso(body.date))})


# -----------------------
# Export
# -----------------------
@api_handler
@token_required
def export_pdf_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, ExportPdfRequest)
    result = export_routes.export_planner_pdf(
        req.route_params.get("plannerId"), actor.uid, _iso(body.date), body.viewType, body.includeSections
    )
    return respond(result)


@api_handler
@token_required
def export_range_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, ExportRangeRequest)
    result = export_routes.export_date_range_pdf(
        body.plannerId, actor.uid, _iso(body.startDate), _iso(body.endDate), body.viewType
    )
    return respond(result)


@api_handler
@token_required
def export_status_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    return respond(export_routes.get_export_status(req.route_params.get("exportId"), actor.uid))


@api_handler
@token_required
def export_download_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    return respond(export_routes.get_export_download(req.route_params.get("exportId"), actor.uid))


@api_handler
@token_required
def export_calendar_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, CalendarExportRequest)
    result = export_routes.export_to_calendar(
        req.route_params.get("plannerId"), actor.uid, _iso(body.startDate), _iso(body.endDate), body.calendarType
    )
    return respond(result)


# -----------------------
# Handwriting
# -----------------------
@api_handler
@token_required
def convert_handwriting_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, HandwritingRequest)
    result = handwriting_routes.convert_handwriting(actor.uid, body.drawingData, body.plannerId, body.sectionId)
    return respond(result)


@api_handler
@token_required
def save_handwriting_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    body = parse_body(req, HandwritingRequest)
    result = handwriting_routes.save_handwriting(actor.uid, body.drawingData, body.plannerId, body.sectionId)
    return respond(result, "Handwriting saved", 201)


@api_handler
@token_required
def get_handwriting_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    record = handwriting_routes.get_handwriting(req.route_params.get("handwritingId"), actor.uid)
    return respond({"handwriting": record})


@api_handler
@token_required
def delete_handwriting_handler(req: HttpRequest, actor: Actor) -> HttpResponse:
    handwriting_routes.delete_handwriting(req.route_params.get("handwritingId"), actor.uid)
    return respond(message="Handwriting deleted successfully")
