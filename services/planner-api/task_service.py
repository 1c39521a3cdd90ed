import logging
from sqlalchemy import select
from db import session_scope
from errors import BadRequestError, ForbiddenError, NotFoundError
from messaging import publish_plan_event
from models import Task, User
from patterns import cache
from schemas import TaskCreate, TaskOut, TaskUpdate

logger = logging.getLogger(__name__)


def task_list_key(user_id: int) -> str:
    return f"tasks:user:{user_id}"


def invalidate_user_tasks(user_id: int):
    cache.delete(task_list_key(user_id))


def get_owned_task(s, task_id: int, user_id: int) -> Task:
    """Cargar una tarea verificando que pertenezca al usuario"""
    if not task_id:
        raise BadRequestError("Task ID is required")
    t = s.get(Task, task_id)
    if not t:
        raise NotFoundError("Task not found")
    if t.user_id != user_id:
        raise ForbiddenError("You do not have access to this task")
    return t


def create_task(payload: TaskCreate, user_id: int) -> TaskOut:
    if not payload.title or not payload.title.strip() or not user_id:
        raise BadRequestError("Title and user_id are required")

    with session_scope() as s:
        user = s.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")

        t = Task(title=payload.title.strip(), description=payload.description, user=user)
        s.add(t)
        s.flush()
        task_out = TaskOut.model_validate(t)

    invalidate_user_tasks(user_id)
    publish_plan_event("task_created", task_id=task_out.id, user_id=user_id)
    logger.info(f"Tarea {task_out.id} creada para usuario {user_id}")
    return task_out


def get_tasks_by_user_id(user_id: int) -> list[TaskOut]:
    """Listar tareas del usuario (más recientes primero) con patrón Cache-Aside"""
    if not user_id:
        raise BadRequestError("User ID is required")

    def load():
        with session_scope() as s:
            if not s.get(User, user_id):
                raise NotFoundError("User not found")
            tasks = s.scalars(
                select(Task).where(Task.user_id == user_id).order_by(Task.created_at.desc(), Task.id.desc())
            ).all()
            return [TaskOut.model_validate(t).model_dump(mode="json") for t in tasks]

    return [TaskOut.model_validate(t) for t in cache.get_or_load(task_list_key(user_id), load)]


def get_task(task_id: int, user_id: int) -> TaskOut:
    with session_scope() as s:
        return TaskOut.model_validate(get_owned_task(s, task_id, user_id))


def update_task(task_id: int, payload: TaskUpdate, user_id: int) -> TaskOut:
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise BadRequestError("No fields provided for update")
    if "title" in fields and not (fields["title"] or "").strip():
        raise BadRequestError("Title cannot be empty")

    with session_scope() as s:
        t = get_owned_task(s, task_id, user_id)
        for key, value in fields.items():
            setattr(t, key, value.strip() if key == "title" else value)
        s.flush()
        task_out = TaskOut.model_validate(t)

    invalidate_user_tasks(user_id)
    return task_out


def delete_task(task_id: int, user_id: int):
    with session_scope() as s:
        t = get_owned_task(s, task_id, user_id)
        s.delete(t)

    cache.delete(task_list_key(user_id), f"milestones:task:{task_id}")
    publish_plan_event("task_deleted", task_id=task_id, user_id=user_id)
    logger.info(f"Tarea {task_id} eliminada")
