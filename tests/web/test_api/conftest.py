"""Test configuration and fixtures specifically for API testing."""

from __future__ import annotations

from typing import Any, AsyncGenerator, Dict, Optional

import pytest
from httpx import ASGITransport, AsyncClient

from coblog.web.api.app import api
from coblog.web.api.dependencies import get_database_session


@pytest.fixture
async def api_client(session_maker) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client talking to the API app with the test database."""

    async def override_get_database_session():
        async with session_maker() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    api.dependency_overrides[get_database_session] = override_get_database_session

    try:
        async with AsyncClient(transport=ASGITransport(app=api), base_url="http://test") as client:
            yield client
    finally:
        api.dependency_overrides.clear()


@pytest.fixture
def rpc(api_client):
    """Invoke an RPC procedure by name, with an optional JSON input."""

    async def _call(procedure: str, params: Optional[Dict[str, Any]] = None):
        if params is None:
            return await api_client.post(f"/rpc/{procedure}")
        return await api_client.post(f"/rpc/{procedure}", json=params)

    return _call


@pytest.fixture
def create_post(rpc, owner_id):
    """Factory creating posts through the API."""

    async def _create(title: str = "Test Post", **overrides) -> Dict[str, Any]:
        params = {
            "title": title,
            "content": "Some content for the post",
            "ownerId": owner_id,
            "published": True,
        }
        params.update(overrides)
        response = await rpc("post.create", params)
        assert response.status_code == 200, response.text
        return response.json()

    return _create


@pytest.fixture
def create_category(rpc):
    """Factory creating categories through the API."""

    async def _create(name: str = "Test Category", description: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"name": name}
        if description is not None:
            params["description"] = description
        response = await rpc("category.create", params)
        assert response.status_code == 200, response.text
        return response.json()

    return _create
