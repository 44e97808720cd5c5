"""Fixtures for API route tests."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from examcustody.api.app import create_app
from examcustody.api.dependencies import get_engine
from examcustody.config import CustodyConfig, DatabaseConfig, TokenConfig
from examcustody.engine import CustodyEngine


@pytest.fixture
def app(engine: CustodyEngine) -> FastAPI:
    """Create the app with its engine dependency pointed at the test engine."""
    config = CustodyConfig(
        database=DatabaseConfig(path=":memory:"),
        tokens=TokenConfig(secret="api-test-secret"),
    )
    app = create_app(config=config)

    def override_get_engine():
        yield engine

    app.dependency_overrides[get_engine] = override_get_engine
    return app


@pytest.fixture
def client(app: FastAPI):
    """Create a test client."""
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
