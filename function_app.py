# function_app.py

import azure.functions as func
import logging

from app import main
from app.config import LOG_LEVEL

logger = logging.getLogger()
logger.setLevel(LOG_LEVEL)

# Ensure that handlers are added only once
if not logger.hasHandlers():
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)

# Requests carry their own bearer tokens; no function keys.
app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)


@app.route(route="health", methods=["GET"])
def health_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.health_handler(req)


# -----------------------
# Auth
# -----------------------
@app.route(route="v1/auth/register", methods=["POST"])
def register_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.register_handler(req)

@app.route(route="v1/auth/login", methods=["POST"])
def login_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.login_handler(req)

@app.route(route="v1/auth/google", methods=["POST"])
def google_login_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.google_login_handler(req)

@app.route(route="v1/auth/refresh", methods=["POST"])
def refresh_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.refresh_handler(req)

@app.route(route="v1/auth/me", methods=["GET"])
def me_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.me_handler(req)

@app.route(route="v1/auth/logout", methods=["POST"])
def logout_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.logout_handler(req)

@app.route(route="v1/auth/profile", methods=["PUT"])
def update_profile_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.update_profile_handler(req)

@app.route(route="v1/auth/password", methods=["PUT"])
def change_password_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.change_password_handler(req)

@app.route(route="v1/auth/account", methods=["DELETE"])
def delete_account_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.delete_account_handler(req)


# -----------------------
# Planners
# -----------------------
@app.route(route="v1/planners", methods=["GET"])
def list_planners_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.list_planners_handler(req)

@app.route(route="v1/planners", methods=["POST"])
def create_planner_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.create_planner_handler(req)

@app.route(route="v1/planners/date/{date}", methods=["GET"])
def planners_for_date_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.planners_for_date_handler(req)

@app.route(route="v1/planners/{plannerId}", methods=["GET"])
def get_planner_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.get_planner_handler(req)

@app.route(route="v1/planners/{plannerId}", methods=["PUT"])
def update_planner_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.update_planner_handler(req)

@app.route(route="v1/planners/{plannerId}", methods=["DELETE"])
def delete_planner_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.delete_planner_handler(req)

@app.route(route="v1/planners/{plannerId}/duplicate", methods=["POST"])
def duplicate_planner_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.duplicate_planner_handler(req)

@app.route(route="v1/planners/{plannerId}/default", methods=["PUT"])
def set_default_planner_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.set_default_planner_handler(req)

@app.route(route="v1/planners/{plannerId}/archive", methods=["PUT"])
def archive_planner_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.archive_planner_handler(req)

@app.route(route="v1/planners/{plannerId}/restore", methods=["PUT"])
def restore_planner_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.restore_planner_handler(req)


# -----------------------
# Sections
# -----------------------
@app.route(route="v1/sections/planner/{plannerId}/date/{date}", methods=["GET"])
def list_sections_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.list_sections_handler(req)

@app.route(route="v1/sections/planner/{plannerId}", methods=["POST"])
def create_section_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.create_section_handler(req)

@app.route(route="v1/sections/planner/{plannerId}/range", methods=["GET"])
def sections_in_range_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.sections_in_range_handler(req)

@app.route(route="v1/sections/planner/{plannerId}/type/{sectionType}", methods=["GET"])
def sections_by_type_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.sections_by_type_handler(req)

@app.route(route="v1/sections/reorder", methods=["PUT"])
def reorder_sections_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.reorder_sections_handler(req)

@app.route(route="v1/sections/bulk-update", methods=["PUT"])
def bulk_update_sections_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.bulk_update_sections_handler(req)

@app.route(route="v1/sections/{sectionId}", methods=["GET"])
def get_section_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.get_section_handler(req)

@app.route(route="v1/sections/{sectionId}", methods=["PUT"])
def update_section_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.update_section_handler(req)

@app.route(route="v1/sections/{sectionId}", methods=["DELETE"])
def delete_section_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.delete_section_handler(req)

@app.route(route="v1/sections/{sectionId}/collapse", methods=["PUT"])
def toggle_collapse_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.toggle_collapse_handler(req)

@app.route(route="v1/sections/{sectionId}/duplicate", methods=["POST"])
def duplicate_section_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.duplicate_section_handler(req)


# -----------------------
# Sharing
# -----------------------
@app.route(route="v1/sharing/invitations", methods=["GET"])
def invitations_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.invitations_handler(req)

@app.route(route="v1/sharing/shared-with-me", methods=["GET"])
def shared_with_me_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.shared_with_me_handler(req)

@app.route(route="v1/sharing/planner/{plannerId}", methods=["POST"])
def share_planner_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.share_planner_handler(req)

@app.route(route="v1/sharing/planner/{plannerId}", methods=["GET"])
def list_shares_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.list_shares_handler(req)

@app.route(route="v1/sharing/planner/{plannerId}/leave", methods=["POST"])
def leave_planner_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.leave_planner_handler(req)

@app.route(route="v1/sharing/{shareId}/permission", methods=["PUT"])
def update_permission_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.update_permission_handler(req)

@app.route(route="v1/sharing/{shareId}", methods=["DELETE"])
def remove_share_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.remove_share_handler(req)

@app.route(route="v1/sharing/{shareId}/accept", methods=["POST"])
def accept_invitation_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.accept_invitation_handler(req)

@app.route(route="v1/sharing/{shareId}/reject", methods=["POST"])
def reject_invitation_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.reject_invitation_handler(req)


# -----------------------
# Activity
# -----------------------
@app.route(route="v1/activity/planner/{plannerId}", methods=["GET"])
def planner_activity_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.planner_activity_handler(req)

@app.route(route="v1/activity/planner/{plannerId}", methods=["DELETE"])
def clear_activity_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.clear_activity_handler(req)

@app.route(route="v1/activity/user", methods=["GET"])
def user_activity_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.user_activity_handler(req)

@app.route(route="v1/activity/{activityId}", methods=["GET"])
def get_activity_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.get_activity_handler(req)


# -----------------------
# AI
# -----------------------
@app.route(route="v1/ai/chat", methods=["POST"])
def chat_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.chat_handler(req)

@app.route(route="v1/ai/chat/history/{plannerId}", methods=["GET"])
def chat_history_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.chat_history_handler(req)

@app.route(route="v1/ai/chat/history/{plannerId}", methods=["DELETE"])
def clear_chat_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.clear_chat_handler(req)

@app.route(route="v1/ai/suggest-meals", methods=["POST"])
def suggest_meals_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.suggest_meals_handler(req)

@app.route(route="v1/ai/generate-schedule", methods=["POST"])
def generate_schedule_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.generate_schedule_handler(req)

@app.route(route="v1/ai/analyze-habits", methods=["POST"])
def analyze_habits_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.analyze_habits_handler(req)

@app.route(route="v1/ai/suggest-tasks", methods=["POST"])
def suggest_tasks_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.suggest_tasks_handler(req)

@app.route(route="v1/ai/generate-goals", methods=["POST"])
def generate_goals_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.generate_goals_handler(req)

@app.route(route="v1/ai/provide-feedback", methods=["POST"])
def provide_feedback_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.provide_feedback_handler(req)


# -----------------------
# Export
# -----------------------
@app.route(route="v1/export/pdf/planner/{plannerId}", methods=["POST"])
def export_pdf_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.export_pdf_handler(req)

@app.route(route="v1/export/pdf/date-range", methods=["POST"])
def export_range_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.export_range_handler(req)

@app.route(route="v1/export/calendar/{plannerId}", methods=["POST"])
def export_calendar_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.export_calendar_handler(req)

@app.route(route="v1/export/status/{exportId}", methods=["GET"])
def export_status_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.export_status_handler(req)

@app.route(route="v1/export/download/{exportId}", methods=["GET"])
def export_download_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.export_download_handler(req)


# -----------------------
# Handwriting
# -----------------------
@app.route(route="v1/handwriting/convert", methods=["POST"])
def convert_handwriting_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.convert_handwriting_handler(req)

@app.route(route="v1/handwriting/save", methods=["POST"])
def save_handwriting_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.save_handwriting_handler(req)

@app.route(route="v1/handwriting/{handwritingId}", methods=["GET"])
def get_handwriting_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.get_handwriting_handler(req)

@app.route(route="v1/handwriting/{handwritingId}", methods=["DELETE"])
def delete_handwriting_function(req: func.HttpRequest) -> func.HttpResponse:
    return main.delete_handwriting_handler(req)
