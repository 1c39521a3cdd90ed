import pytest

import milestone_service
import task_service
from errors import BadRequestError, ForbiddenError, NotFoundError
from schemas import MilestoneCreate, MilestoneStatus, MilestoneUpdate, TaskCreate

from tests import fixtures


def _create(user, task, **overrides):
    payload = {**fixtures.CREATE_MILESTONE_PAYLOAD, "task_id": task.id, **overrides}
    return milestone_service.create_milestone(MilestoneCreate(**payload), user.id)


# Servicio

def test_create_milestone_defaults(user, task):
    m = _create(user, task)
    assert m.title == "New Milestone"
    assert m.task_id == task.id
    assert m.status == MilestoneStatus.NOT_STARTED
    assert m.is_complete is False
    assert m.parent_id is None


def test_create_milestone_with_status(user, task):
    assert _create(user, task, status="AT_RISK").status == MilestoneStatus.AT_RISK


def test_legacy_is_complete_overrides_status(user, task):
    done = _create(user, task, status="DELAYED", is_complete=True)
    assert done.status == MilestoneStatus.COMPLETED
    assert done.is_complete is True

    pending = _create(user, task, status="IN_PROGRESS", is_complete=False)
    assert pending.status == MilestoneStatus.NOT_STARTED



def test_explicit_null_is_complete_means_not_started(user, task):
    m = _create(user, task, status="COMPLETED", is_complete=None)
    assert m.status == MilestoneStatus.NOT_STARTED

    done = _create(user, task, is_complete=True)
    reset = milestone_service.update_milestone(done.id, MilestoneUpdate(is_complete=None), user.id)
    assert reset.status == MilestoneStatus.NOT_STARTED


def test_null_is_complete_in_request_body(client, auth_headers, task):
    response = client.post(
        "/api/milestones",
        json={**fixtures.CREATE_MILESTONE_PAYLOAD, "task_id": task.id, "status": "AT_RISK", "is_complete": None},
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["status"] == "NOT_STARTED"

@pytest.mark.parametrize("missing", ["title", "description", "deadline"])
def test_create_milestone_requires_fields(user, task, missing):
    payload = {**fixtures.CREATE_MILESTONE_PAYLOAD, "task_id": task.id}
    payload.pop(missing)
    with pytest.raises(BadRequestError, match="Missing required fields"):
        milestone_service.create_milestone(MilestoneCreate(**payload), user.id)


def test_create_milestone_requires_task_id(user):
    with pytest.raises(BadRequestError, match="Missing required fields"):
        milestone_service.create_milestone(MilestoneCreate(**fixtures.CREATE_MILESTONE_PAYLOAD), user.id)


def test_create_milestone_on_foreign_task(other_user, task):
    with pytest.raises(ForbiddenError):
        _create(other_user, task)


def test_parent_must_belong_to_same_task(user, task):
    other_task = task_service.create_task(TaskCreate(title="Other"), user.id)
    foreign_parent = _create(user, other_task)
    with pytest.raises(BadRequestError, match="same task"):
        _create(user, task, parent_id=foreign_parent.id)


def test_list_returns_roots_oldest_first_with_children(user, task):
    first = _create(user, task, title="Milestone 1")
    second = _create(user, task, title="Milestone 2")
    child = _create(user, task, title="Child", parent_id=first.id)
    _create(user, task, title="Grandchild", parent_id=child.id)

    roots = milestone_service.get_milestones_by_task_id(task.id, user.id)
    assert [m.id for m in roots] == [first.id, second.id]
    assert roots[0].children[0].title == "Child"
    assert roots[0].children[0].children[0].title == "Grandchild"


def test_list_requires_task(user):
    with pytest.raises(BadRequestError, match="Task ID is required"):
        milestone_service.get_milestones_by_task_id(None, user.id)
    with pytest.raises(NotFoundError):
        milestone_service.get_milestones_by_task_id(555, user.id)


def test_update_milestone(user, task):
    m = _create(user, task)
    updated = milestone_service.update_milestone(m.id, MilestoneUpdate(**fixtures.UPDATE_MILESTONE_PAYLOAD), user.id)
    assert updated.title == "Updated Milestone"
    assert updated.deadline.day == 15


def test_update_is_complete_converts_to_status(user, task):
    m = _create(user, task)
    assert milestone_service.update_milestone(m.id, MilestoneUpdate(is_complete=True), user.id).status == MilestoneStatus.COMPLETED
    assert milestone_service.update_milestone(m.id, MilestoneUpdate(is_complete=False), user.id).status == MilestoneStatus.NOT_STARTED


def test_update_milestone_errors(user, other_user, task):
    m = _create(user, task)
    with pytest.raises(BadRequestError, match="No fields provided for update"):
        milestone_service.update_milestone(m.id, MilestoneUpdate(), user.id)
    with pytest.raises(NotFoundError, match="Milestone not found"):
        milestone_service.update_milestone(999, MilestoneUpdate(title="x"), user.id)
    with pytest.raises(ForbiddenError):
        milestone_service.update_milestone(m.id, MilestoneUpdate(title="x"), other_user.id)


def test_cannot_nest_milestone_under_its_descendant(user, task):
    parent = _create(user, task)
    child = _create(user, task, parent_id=parent.id)
    with pytest.raises(BadRequestError, match="under itself"):
        milestone_service.update_milestone(parent.id, MilestoneUpdate(parent_id=child.id), user.id)


def test_move_milestone_to_root(user, task):
    parent = _create(user, task)
    child = _create(user, task, parent_id=parent.id)
    moved = milestone_service.update_milestone(child.id, MilestoneUpdate(parent_id=None), user.id)
    assert moved.parent_id is None
    assert len(milestone_service.get_milestones_by_task_id(task.id, user.id)) == 2


def test_delete_milestone_removes_children(user, task):
    parent = _create(user, task)
    _create(user, task, parent_id=parent.id)

    deleted = milestone_service.delete_milestone(parent.id, user.id)
    assert deleted.id == parent.id
    assert milestone_service.get_milestones_by_task_id(task.id, user.id) == []
    with pytest.raises(NotFoundError):
        milestone_service.delete_milestone(parent.id, user.id)


# Rutas

def test_milestone_routes(client, auth_headers, task):
    created = client.post(
        "/api/milestones",
        json={**fixtures.CREATE_MILESTONE_PAYLOAD, "task_id": task.id},
        headers=auth_headers,
    )
    assert created.status_code == 201
    body = created.json()
    assert body["task_id"] == task.id
    assert body["is_complete"] is False
    milestone_id = body["id"]

    listed = client.get(f"/api/milestones/{task.id}", headers=auth_headers)
    assert listed.status_code == 200
    assert [m["id"] for m in listed.json()] == [milestone_id]

    updated = client.put(f"/api/milestones/{milestone_id}", json={"is_complete": True}, headers=auth_headers)
    assert updated.status_code == 200
    assert updated.json()["status"] == "COMPLETED"
    assert updated.json()["is_complete"] is True

    deleted = client.delete(f"/api/milestones/{milestone_id}", headers=auth_headers)
    assert deleted.status_code == 200
    assert deleted.json()["id"] == milestone_id


def test_invalid_status_is_rejected(client, auth_headers, task):
    response = client.post(
        "/api/milestones",
        json={**fixtures.CREATE_MILESTONE_PAYLOAD, "task_id": task.id, "status": "SOMEDAY"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_milestone_routes_require_auth(client, task):
    assert client.get(f"/api/milestones/{task.id}").status_code == 401
