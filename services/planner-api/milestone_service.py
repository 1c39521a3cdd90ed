import logging
from typing import Optional
from sqlalchemy import select
from db import session_scope
from errors import BadRequestError, NotFoundError
from messaging import publish_plan_event
from models import Milestone
from patterns import cache
from schemas import MilestoneCreate, MilestoneOut, MilestoneStatus, MilestoneUpdate
from task_service import get_owned_task, task_list_key

logger = logging.getLogger(__name__)


def milestone_list_key(task_id: int) -> str:
    return f"milestones:task:{task_id}"


def _invalidate(task_id: int, user_id: int):
    cache.delete(milestone_list_key(task_id), task_list_key(user_id))


def _status_from_legacy(is_complete: Optional[bool]) -> MilestoneStatus:
    # null cuenta como no completado
    return MilestoneStatus.COMPLETED if is_complete else MilestoneStatus.NOT_STARTED


def _get_owned_milestone(s, milestone_id: int, user_id: int) -> Milestone:
    if not milestone_id:
        raise BadRequestError("Milestone ID is required")
    m = s.get(Milestone, milestone_id)
    if not m:
        raise NotFoundError("Milestone not found")
    get_owned_task(s, m.task_id, user_id)
    return m


def _resolve_parent(s, parent_id: Optional[int], task_id: int, milestone_id: Optional[int] = None):
    if parent_id is None:
        return None
    parent = s.get(Milestone, parent_id)
    if not parent or parent.task_id != task_id:
        raise BadRequestError("Parent milestone must belong to the same task")
    # Evitar ciclos: el padre no puede ser el propio milestone ni un descendiente
    ancestor = parent
    while ancestor is not None:
        if milestone_id is not None and ancestor.id == milestone_id:
            raise BadRequestError("A milestone cannot be nested under itself")
        ancestor = ancestor.parent
    return parent


def create_milestone(data: MilestoneCreate, user_id: int) -> MilestoneOut:
    if not data.title or not data.description or not data.deadline or not data.task_id:
        raise BadRequestError("Missing required fields: title, description, deadline, task_id")

    status = data.status or MilestoneStatus.NOT_STARTED
    if "is_complete" in data.model_fields_set:
        status = _status_from_legacy(data.is_complete)

    with session_scope() as s:
        task = get_owned_task(s, data.task_id, user_id)
        parent = _resolve_parent(s, data.parent_id, task.id)
        m = Milestone(
            title=data.title,
            description=data.description,
            deadline=data.deadline,
            status=status,
            task=task,
            parent=parent,
        )
        s.add(m)
        s.flush()
        milestone_out = MilestoneOut.model_validate(m)

    _invalidate(data.task_id, user_id)
    logger.info(f"Milestone {milestone_out.id} creado en tarea {data.task_id}")
    return milestone_out


def get_milestones_by_task_id(task_id: int, user_id: int) -> list[MilestoneOut]:
    """Milestones raíz de la tarea (más antiguos primero) con sus hijos anidados"""
    if not task_id:
        raise BadRequestError("Task ID is required")

    with session_scope() as s:
        get_owned_task(s, task_id, user_id)

    def load():
        with session_scope() as s:
            roots = s.scalars(
                select(Milestone)
                .where(Milestone.task_id == task_id, Milestone.parent_id.is_(None))
                .order_by(Milestone.created_at, Milestone.id)
            ).all()
            return [MilestoneOut.model_validate(m).model_dump(mode="json") for m in roots]

    return [MilestoneOut.model_validate(m) for m in cache.get_or_load(milestone_list_key(task_id), load)]


def update_milestone(milestone_id: int, payload: MilestoneUpdate, user_id: int) -> MilestoneOut:
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise BadRequestError("No fields provided for update")

    if "is_complete" in fields:
        fields["status"] = _status_from_legacy(fields.pop("is_complete"))

    for required in ("title", "status"):
        if required in fields and not fields[required]:
            raise BadRequestError(f"{required} cannot be empty")

    with session_scope() as s:
        m = _get_owned_milestone(s, milestone_id, user_id)
        previous_status = m.status

        if "parent_id" in fields:
            m.parent = _resolve_parent(s, fields.pop("parent_id"), m.task_id, m.id)
        for key, value in fields.items():
            setattr(m, key, value)
        s.flush()
        milestone_out = MilestoneOut.model_validate(m)
        task_id = m.task_id

    _invalidate(task_id, user_id)
    if milestone_out.status != previous_status:
        publish_plan_event(
            "milestone_status_changed",
            milestone_id=milestone_out.id,
            task_id=task_id,
            status=milestone_out.status.value,
        )
    return milestone_out


def delete_milestone(milestone_id: int, user_id: int) -> MilestoneOut:
    with session_scope() as s:
        m = _get_owned_milestone(s, milestone_id, user_id)
        milestone_out = MilestoneOut.model_validate(m)
        s.delete(m)

    _invalidate(milestone_out.task_id, user_id)
    logger.info(f"Milestone {milestone_id} eliminado")
    return milestone_out
