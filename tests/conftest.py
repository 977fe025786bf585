"""
Test Configuration
==================

Pytest configuration with fixtures for all test types.
Provides test settings, the application, HTTP clients and protocol objects.
"""

from typing import AsyncGenerator, Generator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient

from mcp_sse_server.api.main import create_app
from mcp_sse_server.config.settings import Settings
from mcp_sse_server.mcp_server.handlers import Dispatcher
from mcp_sse_server.mcp_server.tools import ToolRegistry, create_default_registry

from tests.utils.helpers import make_settings


@pytest.fixture
def test_settings() -> Settings:
    """Test settings fixture."""
    return make_settings()


@pytest.fixture
def registry() -> ToolRegistry:
    """Registry with the built-in tools."""
    return create_default_registry()


@pytest.fixture
def dispatcher(test_settings: Settings, registry: ToolRegistry) -> Dispatcher:
    return Dispatcher.from_settings(test_settings, registry)


@pytest.fixture
def app(test_settings: Settings, registry: ToolRegistry) -> FastAPI:
    """Application under test."""
    return create_app(test_settings, registry)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """FastAPI test client."""
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async client sharing the test's event loop with the application."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
    app.state.session_store.close_all("test_finished")


def pytest_collection_modifyitems(config, items):
    """Add markers based on file paths."""
    for item in items:
        path = str(item.path)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
