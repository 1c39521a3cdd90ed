"""
Fixtures compartidos.

El entorno se fuerza antes de importar la aplicación: base SQLite
temporal (o TEST_DATABASE_URL), Redis y RabbitMQ deshabilitados.
"""

import os
import shutil
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="planner_test_")

os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL") or f"sqlite:///{_TMP_DIR}/planner_test.db"
os.environ["REDIS_URL"] = ""
os.environ["RABBITMQ_URL"] = ""

import pytest
from fastapi.testclient import TestClient

from app import app
from db import Base, engine, disconnect
from schemas import TaskCreate, UserCreate
from security import create_access_token
import task_service
import user_service

from tests import fixtures
from tests.utils.db import reset_tables


@pytest.fixture(scope="session", autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    disconnect()
    shutil.rmtree(_TMP_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    reset_tables()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def user():
    return user_service.create_user(UserCreate(**fixtures.CREATE_USER_PAYLOAD))


@pytest.fixture
def other_user():
    return user_service.create_user(UserCreate(**fixtures.OTHER_USER_PAYLOAD))


def bearer(u) -> dict:
    return {"Authorization": f"Bearer {create_access_token(u.id, u.email)}"}


@pytest.fixture
def auth_headers(user):
    return bearer(user)


@pytest.fixture
def other_headers(other_user):
    return bearer(other_user)


@pytest.fixture
def task(user):
    return task_service.create_task(TaskCreate(**fixtures.CREATE_TASK_PAYLOAD), user.id)
