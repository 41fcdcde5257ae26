import pytest

from cadutilities.model.database import Database, set_working_database


@pytest.fixture
def database():
    """Fresh drawing database."""
    return Database()


@pytest.fixture(autouse=True)
def reset_working_database():
    set_working_database(None)
    yield
    set_working_database(None)
