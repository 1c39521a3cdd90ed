"""Datos estáticos compartidos por los tests."""

from datetime import datetime, timezone

CREATED = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

VALID_USER = {
    "id": 1,
    "email": "test@example.com",
    "first_name": "Test",
    "last_name": "User",
    "created_at": CREATED,
    "updated_at": CREATED,
}

ADMIN_USER = {
    "id": 2,
    "email": "admin@example.com",
    "first_name": "Admin",
    "last_name": "User",
    "is_admin": True,
    "created_at": CREATED,
    "updated_at": CREATED,
}

# Sin email
INVALID_USER = {"first_name": "Invalid", "last_name": "User"}

CREATE_USER_PAYLOAD = {
    "email": "newuser@example.com",
    "password": "Password123!",
    "first_name": "New",
    "last_name": "User",
}

OTHER_USER_PAYLOAD = {
    "email": "other@example.com",
    "password": "Password123!",
    "first_name": "Other",
    "last_name": "Person",
}

LOGIN_CREDENTIALS = {"email": "newuser@example.com", "password": "Password123!"}

VALID_TASK = {
    "id": 1,
    "title": "Test Task",
    "description": "Test Description",
    "user_id": 1,
    "created_at": CREATED,
    "updated_at": CREATED,
}

# Sin título
INVALID_TASK = {"description": "Invalid task"}

CREATE_TASK_PAYLOAD = {"title": "New Task", "description": "New task description"}

UPDATE_TASK_PAYLOAD = {"title": "Updated Task", "description": "Updated description"}

CREATE_MILESTONE_PAYLOAD = {
    "title": "New Milestone",
    "description": "New milestone description",
    "deadline": "2025-12-31T12:00:00Z",
}

UPDATE_MILESTONE_PAYLOAD = {
    "title": "Updated Milestone",
    "description": "Updated description",
    "deadline": "2025-10-15T12:00:00Z",
}
