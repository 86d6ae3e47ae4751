import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import respx

from autodeploy.errors import OperationInProgressError
from autodeploy.tasks.health_monitor import RECOVERY_STATUS, SelfHealingMonitor

URL = "https://shop.example.com"


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.is_busy.return_value = False
    orchestrator.redeploy = AsyncMock()
    return orchestrator


@pytest.fixture
def monitor(store, orchestrator):
    return SelfHealingMonitor(store, orchestrator, interval=0.01, failure_threshold=3)


async def deployed_project(store, **fields):
    return await store.create_project(name="shop", status="deployed", deployed_url=URL, **fields)


class TestProbe:
    @pytest.mark.asyncio
    @respx.mock
    async def test_2xx_is_healthy(self, monitor):
        respx.get(URL).mock(return_value=httpx.Response(200))
        assert await monitor.probe(URL) is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_redirect_is_followed(self, monitor):
        respx.get(URL).mock(
            return_value=httpx.Response(301, headers={"Location": f"{URL}/home"})
        )
        respx.get(f"{URL}/home").mock(return_value=httpx.Response(204))
        assert await monitor.probe(URL) is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_5xx_is_unhealthy(self, monitor):
        respx.get(URL).mock(return_value=httpx.Response(503))
        assert await monitor.probe(URL) is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_is_unhealthy(self, monitor):
        respx.get(URL).mock(side_effect=httpx.ConnectError("refused"))
        assert await monitor.probe(URL) is False


@pytest.mark.asyncio
async def test_three_failures_trigger_exactly_one_redeploy(monitor, store, orchestrator):
    project = await deployed_project(store)

    with patch.object(monitor, "probe", AsyncMock(return_value=False)):
        for _ in range(3):
            await monitor.check_once()

    orchestrator.redeploy.assert_awaited_once_with(project.id)
    stored = await store.get_project(project.id)
    assert stored.health_failures == 0
    assert stored.last_deploy_status == RECOVERY_STATUS


@pytest.mark.asyncio
async def test_success_before_threshold_resets_counter(monitor, store, orchestrator):
    project = await deployed_project(store)
    probe = AsyncMock(side_effect=[False, False, True, False, False])

    with patch.object(monitor, "probe", probe):
        for _ in range(5):
            await monitor.check_once()

    orchestrator.redeploy.assert_not_awaited()
    assert (await store.get_project(project.id)).health_failures == 2


@pytest.mark.asyncio
async def test_busy_project_is_skipped_and_counter_kept(monitor, store, orchestrator):
    project = await deployed_project(store, health_failures=2)
    orchestrator.is_busy.return_value = True

    with patch.object(monitor, "probe", AsyncMock(return_value=False)):
        await monitor.check_once()

    orchestrator.redeploy.assert_not_awaited()
    assert (await store.get_project(project.id)).health_failures == 3


@pytest.mark.asyncio
async def test_rejected_redeploy_is_not_fatal(monitor, store, orchestrator):
    await deployed_project(store, health_failures=2)
    orchestrator.redeploy.side_effect = OperationInProgressError("busy")

    with patch.object(monitor, "probe", AsyncMock(return_value=False)):
        await monitor.check_once()

    orchestrator.redeploy.assert_awaited_once()


@pytest.mark.asyncio
async def test_projects_without_url_are_not_probed(monitor, store):
    await store.create_project(name="pending", status="deploying", deployed_url=URL)
    probe = AsyncMock()

    with patch.object(monitor, "probe", probe):
        await monitor.check_once()

    probe.assert_not_awaited()


@pytest.mark.asyncio
async def test_process_exit_counts_as_failure(monitor, store, orchestrator):
    project = await deployed_project(store, health_failures=2)

    await monitor.notify_process_exit(project.id, 1)

    orchestrator.redeploy.assert_awaited_once_with(project.id)


@pytest.mark.asyncio
async def test_process_exit_ignored_when_not_deployed(monitor, store, orchestrator):
    project = await store.create_project(name="shop", status="deploying")

    await monitor.notify_process_exit(project.id, 1)

    assert (await store.get_project(project.id)).health_failures == 0


@pytest.mark.asyncio
async def test_start_and_stop(monitor):
    with patch.object(monitor, "check_once", AsyncMock()) as check_once:
        task = monitor.start()
        assert monitor.start() is task
        await asyncio.sleep(0.05)
        await monitor.stop()

    assert task.done()
    assert check_once.await_count >= 1
