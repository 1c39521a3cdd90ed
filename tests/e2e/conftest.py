import pytest

from db import disconnect
from tests.utils.db import prepare_test_database, reset_tables


@pytest.fixture(scope="module", autouse=True)
def e2e_database():
    prepare_test_database()
    yield
    reset_tables()
    disconnect()


@pytest.fixture(autouse=True)
def clean_tables():
    # El flujo e2e comparte estado entre tests del módulo
    yield
