from datetime import date, datetime
from enum import Enum
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field, computed_field


class MilestoneStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    AT_RISK = "AT_RISK"
    DELAYED = "DELAYED"


# Usuarios / autenticación

class UserCreate(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class UserOut(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: Optional[str] = None
    is_admin: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    message: str
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# Tareas (planes) y milestones

class TaskCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class MilestoneCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    deadline: Optional[datetime] = None
    task_id: Optional[int] = None
    parent_id: Optional[int] = None
    status: Optional[MilestoneStatus] = None
    # Campo legacy: tiene prioridad sobre status si viene presente
    is_complete: Optional[bool] = None


class MilestoneUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    deadline: Optional[datetime] = None
    parent_id: Optional[int] = None
    status: Optional[MilestoneStatus] = None
    is_complete: Optional[bool] = None


class MilestoneOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    deadline: Optional[datetime] = None
    status: MilestoneStatus
    task_id: int
    parent_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    children: list["MilestoneOut"] = Field(default_factory=list)

    @computed_field
    @property
    def is_complete(self) -> bool:
        return self.status == MilestoneStatus.COMPLETED

    class Config:
        from_attributes = True


class TaskOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    user_id: int
    is_public: bool = False
    shareable_link: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    milestones: list[MilestoneOut] = Field(
        default_factory=list,
        validation_alias=AliasChoices("root_milestones", "milestones"),
    )

    class Config:
        from_attributes = True


# Presentación

class StatusColors(BaseModel):
    bar: str
    badge: str
    badge_text: str
    border: Optional[str] = None
    text: Optional[str] = None


class StatusLegendEntry(BaseModel):
    status: MilestoneStatus
    label: str
    color: str
    colors: StatusColors


class StatusLegend(BaseModel):
    class_name: str = ""
    statuses: list[StatusLegendEntry]


class ShareIcon(BaseModel):
    name: str
    size: int = 16
    class_name: str


class ShareOut(BaseModel):
    task_id: int
    is_public: bool
    shareable_link: Optional[str] = None
    icon: ShareIcon


# Analítica

class UpcomingMilestone(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    status: MilestoneStatus
    deadline: datetime
    task_id: int


class DashboardStats(BaseModel):
    total_plans: int
    active_plans: int
    completed_plans: int
    total_milestones: int
    completed_milestones: int
    in_progress_milestones: int
    not_started_milestones: int
    at_risk_milestones: int
    delayed_milestones: int
    completion_rate: int
    due_today: int
    due_this_week: int
    overdue_milestones: int
    upcoming_milestones: list[UpcomingMilestone]


class TrendPoint(BaseModel):
    date: date
    completed: int
    total: int


class ActivityItem(BaseModel):
    id: str
    type: str
    entity_type: str
    entity_id: int
    task_id: Optional[int] = None
    title: str
    description: str
    status: Optional[MilestoneStatus] = None
    timestamp: datetime
