"""
Compartir tareas de forma pública mediante un link no adivinable.
"""

import logging
import secrets
from sqlalchemy import select
from db import session_scope
from errors import BadRequestError, NotFoundError
from models import Task
from presentation import share_status_icon
from schemas import ShareOut, TaskOut
from task_service import get_owned_task, invalidate_user_tasks

logger = logging.getLogger(__name__)


def _new_link() -> str:
    return secrets.token_urlsafe(24)


def _share_out(t: Task) -> ShareOut:
    return ShareOut(
        task_id=t.id,
        is_public=t.is_public,
        shareable_link=t.shareable_link,
        icon=share_status_icon(t.is_public),
    )


def enable_sharing(task_id: int, user_id: int) -> ShareOut:
    with session_scope() as s:
        t = get_owned_task(s, task_id, user_id)
        t.is_public = True
        if not t.shareable_link:
            t.shareable_link = _new_link()
        s.flush()
        share = _share_out(t)

    invalidate_user_tasks(user_id)
    logger.info(f"Tarea {task_id} compartida públicamente")
    return share


def disable_sharing(task_id: int, user_id: int) -> ShareOut:
    with session_scope() as s:
        t = get_owned_task(s, task_id, user_id)
        t.is_public = False
        t.shareable_link = None
        s.flush()
        share = _share_out(t)

    invalidate_user_tasks(user_id)
    return share


def regenerate_link(task_id: int, user_id: int) -> ShareOut:
    with session_scope() as s:
        t = get_owned_task(s, task_id, user_id)
        if not t.is_public:
            raise BadRequestError("Task is not shared publicly")
        t.shareable_link = _new_link()
        s.flush()
        share = _share_out(t)

    invalidate_user_tasks(user_id)
    return share


def get_shared_task(link: str) -> TaskOut:
    """Vista pública de solo lectura de una tarea compartida"""
    if not link:
        raise NotFoundError("Shared plan not found")

    with session_scope() as s:
        t = s.scalar(select(Task).where(Task.shareable_link == link))
        if not t or not t.is_public:
            raise NotFoundError("Shared plan not found")
        return TaskOut.model_validate(t)
