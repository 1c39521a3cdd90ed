"""
Estadísticas del dashboard calculadas sobre las tareas del usuario.

Las funciones build_* son puras (reciben las tareas ya cargadas) y las
get_* las cargan a través de task_service, reutilizando su cache.
"""

import math
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional
from errors import BadRequestError
from models import as_utc
from schemas import (
    ActivityItem,
    DashboardStats,
    MilestoneOut,
    MilestoneStatus,
    TaskOut,
    TrendPoint,
    UpcomingMilestone,
)
import task_service

logger = logging.getLogger(__name__)

MAX_UPCOMING = 10


def flatten_milestones(milestones: Iterable[MilestoneOut]) -> list[MilestoneOut]:
    """Aplanar la jerarquía de milestones en orden de recorrido (pre-orden)"""
    result = []
    stack = list(reversed(list(milestones)))
    while stack:
        milestone = stack.pop()
        result.append(milestone)
        stack.extend(reversed(milestone.children))
    return result


def _all_milestones(tasks: list[TaskOut]) -> list[MilestoneOut]:
    return flatten_milestones(m for t in tasks for m in t.milestones)


def _is_completed(m: MilestoneOut) -> bool:
    return m.status == MilestoneStatus.COMPLETED


def build_dashboard_stats(tasks: list[TaskOut], now: Optional[datetime] = None) -> DashboardStats:
    now = as_utc(now) if now else datetime.now(timezone.utc)
    today = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
    tomorrow = today + timedelta(days=1)
    week_end = today + timedelta(days=7)

    milestones = _all_milestones(tasks)
    counts = {status: 0 for status in MilestoneStatus}
    for m in milestones:
        counts[m.status] += 1

    active_plans = 0
    completed_plans = 0
    for t in tasks:
        task_milestones = flatten_milestones(t.milestones)
        if any(not _is_completed(m) for m in task_milestones):
            active_plans += 1
        if task_milestones and all(_is_completed(m) for m in task_milestones):
            completed_plans += 1

    total = len(milestones)
    completed = counts[MilestoneStatus.COMPLETED]
    completion_rate = math.floor(completed * 100 / total + 0.5) if total else 0

    pending = [m for m in milestones if not _is_completed(m) and m.deadline is not None]
    due_today = sum(1 for m in pending if today <= as_utc(m.deadline) < tomorrow)
    due_this_week = sum(1 for m in pending if today <= as_utc(m.deadline) <= week_end)
    overdue = sum(1 for m in pending if as_utc(m.deadline) < today)

    upcoming = sorted(pending, key=lambda m: as_utc(m.deadline))[:MAX_UPCOMING]

    return DashboardStats(
        total_plans=len(tasks),
        active_plans=active_plans,
        completed_plans=completed_plans,
        total_milestones=total,
        completed_milestones=completed,
        in_progress_milestones=counts[MilestoneStatus.IN_PROGRESS],
        not_started_milestones=counts[MilestoneStatus.NOT_STARTED],
        at_risk_milestones=counts[MilestoneStatus.AT_RISK],
        delayed_milestones=counts[MilestoneStatus.DELAYED],
        completion_rate=completion_rate,
        due_today=due_today,
        due_this_week=due_this_week,
        overdue_milestones=overdue,
        upcoming_milestones=[
            UpcomingMilestone(
                id=m.id,
                title=m.title,
                description=m.description,
                status=m.status,
                deadline=m.deadline,
                task_id=m.task_id,
            )
            for m in upcoming
        ],
    )


def build_completion_trends(tasks: list[TaskOut], days: int = 30, today: Optional[date] = None) -> list[TrendPoint]:
    """
    Un punto por día en la ventana que termina hoy. Cada milestone cuenta en
    el día de su última actualización; completed solo si está COMPLETED.
    """
    if days < 1 or days > 365:
        raise BadRequestError("Days must be between 1 and 365")

    today = today or datetime.now(timezone.utc).date()
    dates = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    trend = {d: {"completed": 0, "total": 0} for d in dates}

    for m in _all_milestones(tasks):
        updated = as_utc(m.updated_at).date()
        if updated in trend:
            trend[updated]["total"] += 1
            if _is_completed(m):
                trend[updated]["completed"] += 1

    return [TrendPoint(date=d, **trend[d]) for d in dates]


def build_status_distribution(tasks: list[TaskOut]) -> dict[str, int]:
    distribution = {status.value: 0 for status in MilestoneStatus}
    for m in _all_milestones(tasks):
        distribution[m.status.value] += 1
    return distribution


def build_activity_feed(tasks: list[TaskOut], limit: int = 10) -> list[ActivityItem]:
    if limit < 1 or limit > 50:
        raise BadRequestError("Limit must be between 1 and 50")

    activities = []
    for t in tasks:
        activities.append(ActivityItem(
            id=f"task-{t.id}",
            type="task_created",
            entity_type="task",
            entity_id=t.id,
            task_id=t.id,
            title=t.title,
            description=f'Created plan "{t.title}"',
            timestamp=t.created_at,
        ))

        for m in flatten_milestones(t.milestones):
            if m.status == MilestoneStatus.COMPLETED:
                activity_type, verb = "milestone_completed", "Completed"
            elif m.status == MilestoneStatus.IN_PROGRESS:
                activity_type, verb = "milestone_started", "Started"
            else:
                activity_type, verb = "milestone_updated", "Updated"

            activities.append(ActivityItem(
                id=f"milestone-{m.id}",
                type=activity_type,
                entity_type="milestone",
                entity_id=m.id,
                task_id=t.id,
                title=m.title,
                description=f'{verb} milestone "{m.title}"',
                status=m.status,
                timestamp=m.updated_at,
            ))

    activities.sort(key=lambda a: as_utc(a.timestamp), reverse=True)
    return activities[:limit]


def get_dashboard_stats(user_id: int) -> DashboardStats:
    return build_dashboard_stats(task_service.get_tasks_by_user_id(user_id))


def get_completion_trends(user_id: int, days: int = 30) -> list[TrendPoint]:
    if days < 1 or days > 365:
        raise BadRequestError("Days must be between 1 and 365")
    return build_completion_trends(task_service.get_tasks_by_user_id(user_id), days)


def get_status_distribution(user_id: int) -> dict[str, int]:
    return build_status_distribution(task_service.get_tasks_by_user_id(user_id))


def get_activity_feed(user_id: int, limit: int = 10) -> list[ActivityItem]:
    if limit < 1 or limit > 50:
        raise BadRequestError("Limit must be between 1 and 50")
    return build_activity_feed(task_service.get_tasks_by_user_id(user_id), limit)
