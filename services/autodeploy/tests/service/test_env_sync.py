from unittest.mock import AsyncMock

import pytest

from autodeploy.env_sync import EnvSyncService
from autodeploy.errors import ExternalServiceError
from shared.models import Project

ENV = {
    "API_URL": {"value": "https://api", "is_secret": False},
    "API_KEY": {"value": "k", "is_secret": True},
}


def make_project(**fields):
    return Project(id="p1", name="My Shop", env_vars=ENV, **fields)


@pytest.mark.asyncio
async def test_syncs_every_configured_provider():
    vercel, render, railway = AsyncMock(), AsyncMock(), AsyncMock()
    service = EnvSyncService(vercel, render, railway)

    warnings = await service.sync(make_project(render_service_id="srv", railway_service_id="rw"))

    assert warnings == []
    assert vercel.upsert_env.await_count == 2
    vercel.upsert_env.assert_any_await("my-shop", "API_KEY", "k", True)
    render.update_env_vars.assert_awaited_once_with("srv", {"API_URL": "https://api", "API_KEY": "k"})
    railway.upsert_variables.assert_awaited_once_with(
        "rw", {"API_URL": "https://api", "API_KEY": "k"}
    )


@pytest.mark.asyncio
async def test_providers_without_service_ids_are_skipped():
    render, railway = AsyncMock(), AsyncMock()

    await EnvSyncService(None, render, railway).sync(make_project())

    render.update_env_vars.assert_not_awaited()
    railway.upsert_variables.assert_not_awaited()


@pytest.mark.asyncio
async def test_failures_become_warnings():
    vercel = AsyncMock()
    vercel.upsert_env.side_effect = ExternalServiceError("vercel", "forbidden", 403)
    render = AsyncMock()
    render.update_env_vars.side_effect = ExternalServiceError("render", "boom")

    warnings = await EnvSyncService(vercel, render).sync(make_project(render_service_id="srv"))

    assert warnings == [
        "Vercel sync failed for API_URL: forbidden",
        "Vercel sync failed for API_KEY: forbidden",
        "Render sync failed: boom",
    ]


@pytest.mark.asyncio
async def test_nothing_to_sync():
    vercel = AsyncMock()

    assert await EnvSyncService(vercel).sync(make_project(), env_vars={}) == []
    vercel.upsert_env.assert_not_awaited()
