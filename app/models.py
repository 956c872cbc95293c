# app/models.py

import datetime as dt
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Type
from typing_extensions import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from app.config import MIN_PASSWORD_LENGTH
from app.utils import new_id, utc_now


class AppModel(BaseModel):
    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)


# -----------------------
# Enumerations
# -----------------------
class SectionType(str, Enum):
    daily_schedule = "daily_schedule"
    todo_list = "todo_list"
    priorities = "priorities"
    habit_tracker = "habit_tracker"
    notes = "notes"
    gratitude = "gratitude"
    mood_tracker = "mood_tracker"
    progress = "progress"
    goals = "goals"
    water_intake = "water_intake"
    meal_planning = "meal_planning"
    expenses = "expenses"
    reflections = "reflections"
    custom = "custom"


class Permission(str, Enum):
    view = "view"
    edit = "edit"


class AccentColor(str, Enum):
    blue = "blue"
    green = "green"
    purple = "purple"
    orange = "orange"


class ViewType(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class ExportStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"


def _check_email(value: str) -> str:
    value = value.strip().lower()
    if "@" not in value or "." not in value.split("@")[-1]:
        raise ValueError("Invalid email address")
    return value


Email = Annotated[str, AfterValidator(_check_email)]


# -----------------------
# Section content, one shape per SectionType
# -----------------------
class ScheduleEvent(AppModel):
    id: str = Field(default_factory=new_id)
    time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    title: str
    description: Optional[str] = None
    completed: bool = False


class DailyScheduleContent(AppModel):
    events: List[ScheduleEvent] = []


class TodoTask(AppModel):
    id: str = Field(default_factory=new_id)
    text: str
    completed: bool = False
    priority: Optional[Literal["low", "medium", "high"]] = None


class TodoListContent(AppModel):
    tasks: List[TodoTask] = []


class Priority(AppModel):
    id: str = Field(default_factory=new_id)
    text: str
    order: int = 0


class PrioritiesContent(AppModel):
    priorities: List[Priority] = []


class Habit(AppModel):
    id: str = Field(default_factory=new_id)
    name: str
    completed: bool = False
    streak: int = 0


class HabitTrackerContent(AppModel):
    habits: List[Habit] = []


class NotesContent(AppModel):
    text: str = ""
    handwritingId: Optional[str] = None


class GratitudeContent(AppModel):
    items: List[str] = []


class MoodTrackerContent(AppModel):
    mood: Optional[Literal["great", "good", "okay", "bad", "terrible"]] = None
    note: Optional[str] = None


class ProgressItem(AppModel):
    id: str = Field(default_factory=new_id)
    label: str
    current: float = 0
    target: float = 0
    unit: str = ""


class ProgressContent(AppModel):
    items: List[ProgressItem] = []


class Goal(AppModel):
    id: str = Field(default_factory=new_id)
    text: str
    completed: bool = False


class GoalsContent(AppModel):
    weekly: Optional[List[Goal]] = None
    monthly: Optional[List[Goal]] = None
    yearly: Optional[List[Goal]] = None


class WaterIntakeContent(AppModel):
    glasses: int = Field(default=0, ge=0)
    target: int = Field(default=8, ge=0)


class MealPlanningContent(AppModel):
    breakfast: Optional[str] = None
    lunch: Optional[str] = None
    dinner: Optional[str] = None
    snacks: Optional[str] = None


class Expense(AppModel):
    id: str = Field(default_factory=new_id)
    description: str
    amount: float
    category: Optional[str] = None


class ExpensesContent(AppModel):
    items: List[Expense] = []
    total: float = 0


class ReflectionsContent(AppModel):
    text: str = ""


class CustomField(AppModel):
    id: str = Field(default_factory=new_id)
    type: Literal["text", "number", "checkbox", "date", "time"]
    label: str
    value: Any = None


class CustomSectionContent(AppModel):
    fields: List[CustomField] = []


SECTION_CONTENT_MODELS: Dict[str, Type[AppModel]] = {
    SectionType.daily_schedule.value: DailyScheduleContent,
    SectionType.todo_list.value: TodoListContent,
    SectionType.priorities.value: PrioritiesContent,
    SectionType.habit_tracker.value: HabitTrackerContent,
    SectionType.notes.value: NotesContent,
    SectionType.gratitude.value: GratitudeContent,
    SectionType.mood_tracker.value: MoodTrackerContent,
    SectionType.progress.value: ProgressContent,
    SectionType.goals.value: GoalsContent,
    SectionType.water_intake.value: WaterIntakeContent,
    SectionType.meal_planning.value: MealPlanningContent,
    SectionType.expenses.value: ExpensesContent,
    SectionType.reflections.value: ReflectionsContent,
    SectionType.custom.value: CustomSectionContent,
}


def validate_section_content(section_type: str, content: Optional[dict]) -> dict:
    """
    Validates `content` against the shape registered for `section_type`.
    Missing content becomes the type's empty shape.
    Raises pydantic.ValidationError on a mismatch.
    """
    model = SECTION_CONTENT_MODELS[section_type]
    return model.model_validate(content or {}).model_dump(mode="json", exclude_none=True)


# -----------------------
# Stored documents
# -----------------------
class Preferences(AppModel):
    theme: Literal["light", "dark"] = "light"
    accentColor: AccentColor = AccentColor.blue
    defaultView: ViewType = ViewType.daily
    notifications: bool = True


class User(AppModel):
    id: str = Field(default_factory=new_id)
    docType: Literal["user"] = "user"
    email: str
    displayName: str
    photoURL: str = ""
    authProvider: Literal["email", "google"] = "email"
    password: Optional[str] = None  # bcrypt hash
    googleId: Optional[str] = None
    preferences: Preferences = Field(default_factory=Preferences)
    defaultPlannerId: Optional[str] = None
    tokenVersion: int = 0
    createdAt: str = Field(default_factory=utc_now)
    lastLogin: str = Field(default_factory=utc_now)
    updatedAt: str = Field(default_factory=utc_now)


class Planner(AppModel):
    id: str = Field(default_factory=new_id)
    docType: Literal["planner"] = "planner"
    userId: str
    title: str
    color: str = AccentColor.blue.value
    icon: str = "calendar"
    description: str = ""
    isDefault: bool = False
    isArchived: bool = False
    archivedAt: Optional[str] = None
    createdAt: str = Field(default_factory=utc_now)
    updatedAt: str = Field(default_factory=utc_now)

    def to_document(self) -> dict:
        doc = self.model_dump(mode="json")
        doc["plannerId"] = self.id
        return doc


class Section(AppModel):
    id: str = Field(default_factory=new_id)
    docType: Literal["section"] = "section"
    plannerId: str
    date: str
    type: SectionType
    title: str
    content: Dict[str, Any] = {}
    order: int = 0
    isCollapsed: bool = False
    createdBy: str
    updatedBy: Optional[str] = None
    createdAt: str = Field(default_factory=utc_now)
    updatedAt: str = Field(default_factory=utc_now)


class PlannerShare(AppModel):
    id: str = Field(default_factory=new_id)
    docType: Literal["share"] = "share"
    plannerId: str
    ownerId: str
    sharedWithUserId: str
    sharedWithEmail: str
    permission: Permission
    isAccepted: bool = False
    acceptedAt: Optional[str] = None
    createdAt: str = Field(default_factory=utc_now)
    updatedAt: Optional[str] = None


class ActivityLog(AppModel):
    id: str = Field(default_factory=new_id)
    docType: Literal["activity"] = "activity"
    plannerId: str
    userId: str
    activityType: str
    description: str
    metadata: Optional[Dict[str, Any]] = None
    timestamp: str = Field(default_factory=utc_now)


class ChatMessage(AppModel):
    id: str = Field(default_factory=new_id)
    docType: Literal["chat"] = "chat"
    plannerId: str
    userId: str
    message: str
    response: str
    timestamp: str = Field(default_factory=utc_now)


class ExportRecord(AppModel):
    id: str = Field(default_factory=new_id)
    docType: Literal["export"] = "export"
    userId: str
    plannerId: str
    status: ExportStatus = ExportStatus.pending
    filePath: str
    filename: str
    jobId: Optional[str] = None
    viewType: Optional[str] = None
    createdAt: str = Field(default_factory=utc_now)
    completedAt: Optional[str] = None


class HandwritingRecord(AppModel):
    id: str = Field(default_factory=new_id)
    docType: Literal["handwriting"] = "handwriting"
    userId: str
    plannerId: Optional[str] = None
    sectionId: Optional[str] = None
    drawingData: str
    recognizedText: Optional[str] = None
    confidence: Optional[float] = None
    imageUrl: Optional[str] = None
    imagePath: Optional[str] = None
    createdAt: str = Field(default_factory=utc_now)


# -----------------------
# Request bodies
# -----------------------
class RegisterRequest(AppModel):
    email: Email
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    displayName: str = Field(min_length=2, max_length=50)


class LoginRequest(AppModel):
    email: Email
    password: str


class GoogleAuthRequest(AppModel):
    idToken: str


class RefreshRequest(AppModel):
    refreshToken: str


class PreferencesUpdate(AppModel):
    theme: Optional[Literal["light", "dark"]] = None
    accentColor: Optional[AccentColor] = None
    defaultView: Optional[ViewType] = None
    notifications: Optional[bool] = None


class UpdateProfileRequest(AppModel):
    displayName: Optional[str] = Field(default=None, min_length=2, max_length=50)
    photoURL: Optional[str] = None
    preferences: Optional[PreferencesUpdate] = None


class ChangePasswordRequest(AppModel):
    currentPassword: str
    newPassword: str = Field(min_length=MIN_PASSWORD_LENGTH)


class PlannerCreate(AppModel):
    title: str = Field(min_length=1, max_length=100)
    color: AccentColor = AccentColor.blue
    icon: str = Field(default="calendar", max_length=50)
    description: str = Field(default="", max_length=500)
    isDefault: bool = False


class PlannerUpdate(AppModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[AccentColor] = None
    icon: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)
    isDefault: Optional[bool] = None


class DuplicatePlannerRequest(AppModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)


class SectionCreate(AppModel):
    date: dt.date
    type: SectionType
    title: Optional[str] = Field(default=None, max_length=100)
    content: Optional[Dict[str, Any]] = None
    order: int = Field(default=0, ge=0)
    isCollapsed: bool = False


class SectionUpdate(AppModel):
    title: Optional[str] = Field(default=None, max_length=100)
    content: Optional[Dict[str, Any]] = None
    order: Optional[int] = Field(default=None, ge=0)
    isCollapsed: Optional[bool] = None


class SectionOrder(AppModel):
    id: str
    order: int = Field(ge=0)


class ReorderRequest(AppModel):
    plannerId: str
    sectionOrders: List[SectionOrder] = Field(min_length=1)


class BulkUpdateItem(AppModel):
    id: str
    updates: SectionUpdate


class BulkUpdateRequest(AppModel):
    plannerId: str
    sections: List[BulkUpdateItem] = Field(min_length=1)


class DuplicateSectionRequest(AppModel):
    targetDate: Optional[dt.date] = None


class ShareRequest(AppModel):
    email: Email
    permission: Permission


class PermissionUpdate(AppModel):
    permission: Permission


class ChatContext(AppModel):
    date: Optional[dt.date] = None
    sections: Optional[List[str]] = None


class ChatRequest(AppModel):
    plannerId: str
    message: str = Field(min_length=1, max_length=1000)
    context: Optional[ChatContext] = None


class MealSuggestionRequest(AppModel):
    plannerId: str
    date: dt.date
    preferences: Optional[Dict[str, Any]] = None


class ScheduleRequest(AppModel):
    plannerId: str
    date: dt.date
    tasks: List[Any] = []
    preferences: Optional[Dict[str, Any]] = None


class DateRange(AppModel):
    start: dt.date
    end: dt.date


class HabitAnalysisRequest(AppModel):
    plannerId: str
    dateRange: DateRange


class TaskSuggestionRequest(AppModel):
    plannerId: str
    context: Optional[ChatContext] = None


class GoalsRequest(AppModel):
    plannerId: str
    timeframe: Literal["weekly", "monthly", "yearly"]
    category: Optional[str] = None


class FeedbackRequest(AppModel):
    plannerId: str
    date: dt.date


class ExportPdfRequest(AppModel):
    date: dt.date
    viewType: ViewType
    includeSections: Optional[List[SectionType]] = None


class ExportRangeRequest(AppModel):
    plannerId: str
    startDate: dt.date
    endDate: dt.date
    viewType: ViewType


class CalendarExportRequest(AppModel):
    startDate: dt.date
    endDate: dt.date
    calendarType: Literal["google", "apple", "ics"] = "ics"


class HandwritingRequest(AppModel):
    drawingData: str = Field(min_length=1)
    sectionId: Optional[str] = None
    plannerId: Optional[str] = None
