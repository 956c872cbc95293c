# app/config.py

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# -----------------------
# Cosmos DB
# -----------------------
COSMOS_CONNECTION_STRING = os.getenv("COSMOS_CONNECTION_STRING")
DATABASE_NAME = os.getenv("COSMOS_DATABASE", "PlannerDB")

USERS_CONTAINER = "Users"          # partition key /id
PLANNERS_CONTAINER = "Planners"    # partition key /plannerId
RECORDS_CONTAINER = "UserRecords"  # partition key /userId

# Cosmos transactional batches accept at most 100 operations.
MAX_BATCH_OPERATIONS = 100

# -----------------------
# Auth
# -----------------------
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRES_DAYS = 7
REFRESH_TOKEN_EXPIRES_DAYS = 30
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
MIN_PASSWORD_LENGTH = 6

# -----------------------
# Workflow engine (n8n)
# -----------------------
N8N_BASE_URL = os.getenv("N8N_BASE_URL", "http://localhost:5678")
N8N_API_KEY = os.getenv("N8N_API_KEY")

WEBHOOKS = {
    "ai_chat": ("/webhook/ai-chat", 30),
    "meal_plan": ("/webhook/generate-meal-plan", 20),
    "schedule": ("/webhook/generate-schedule", 20),
    "habit_analysis": ("/webhook/analyze-habits", 20),
    "task_suggestions": ("/webhook/suggest-tasks", 15),
    "goal_generation": ("/webhook/generate-goals", 15),
    "feedback": ("/webhook/provide-feedback", 15),
    "pdf_export": ("/webhook/export-pdf", 60),
    "handwriting_ocr": ("/webhook/handwriting-to-text", 30),
    "calendar_sync": ("/webhook/calendar-sync", 30),
    "share_notification": ("/webhook/share-notification", 10),
}

# -----------------------
# Object storage
# -----------------------
STORAGE_CONNECTION_STRING = os.getenv("STORAGE_CONNECTION_STRING")
STORAGE_CONTAINER = os.getenv("STORAGE_CONTAINER", "planner-files")
DOWNLOAD_URL_TTL_MINUTES = 60
UPLOAD_URL_TTL_DAYS = 365

# -----------------------
# Email
# -----------------------
MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
MAIL_PORT = int(os.getenv("MAIL_PORT", 587))
MAIL_USERNAME = os.getenv("MAIL_USERNAME")
MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
MAIL_FROM = os.getenv("MAIL_FROM")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# -----------------------
# Planner rules
# -----------------------
DUPLICATE_WINDOW_DAYS = 7       # today and the six days before it
SECTIONS_BY_TYPE_LIMIT = 50
DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100
CONDITIONAL_WRITE_ATTEMPTS = 3

ACTIVITY_TYPES = (
    "planner_created",
    "planner_updated",
    "planner_shared",
    "planner_archived",
    "planner_restored",
    "planner_duplicated",
    "section_created",
    "section_updated",
    "section_deleted",
    "sections_reordered",
    "section_duplicated",
    "sections_bulk_updated",
    "permission_updated",
    "share_removed",
    "invitation_accepted",
    "left_planner",
    "ai_chat",
    "ai_meal_suggestions",
    "ai_schedule_generated",
    "ai_goals_generated",
    "pdf_exported",
    "calendar_exported",
)
