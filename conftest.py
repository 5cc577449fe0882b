import pytest
from fastapi.testclient import TestClient

from bookshelf.api import create_app
from bookshelf.database import bootstrap_schema, create_pool
from bookshelf.library import Library


@pytest.fixture
def engine():
    # A fresh in-memory database per test
    engine = create_pool("sqlite://")
    bootstrap_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def lib(engine):
    return Library(engine)


@pytest.fixture
def client(engine):
    # Entering the client runs the app lifespan
    with TestClient(create_app(engine=engine)) as test_client:
        yield test_client
