import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from autodeploy.autofix.service import AutoFixResult
from autodeploy.deploy import DeployOutcome
from autodeploy.errors import InvalidStateError, NotFoundError, OperationInProgressError
from autodeploy.lifecycle import LifecycleAction, LifecycleOrchestrator
from autodeploy.lifecycle.qa import QAResult
from shared.models import AutoFixStatus


@pytest.fixture
def qa():
    qa = AsyncMock()
    qa.run.return_value = QAResult(passed=True, report="QA Report\nVerdict: PASS", logs="ok")
    return qa


@pytest.fixture
def autofix():
    autofix = AsyncMock()
    autofix.repair.return_value = AutoFixResult(
        status=AutoFixStatus.SUCCESS,
        report="Auto-fix Report",
        ready_for_deploy=True,
        actions=["Build succeeded without changes"],
        env_vars={"API_URL": {"value": "", "is_secret": False}},
    )
    return autofix


@pytest.fixture
def coordinator():
    coordinator = AsyncMock()
    coordinator.deploy.return_value = DeployOutcome(
        success=True,
        provider="local",
        deployed_url="http://localhost:4000",
        deploy_id="local-1",
        status="running",
    )
    return coordinator


@pytest.fixture
def poller():
    poller = MagicMock()
    poller.shutdown = AsyncMock()
    return poller


@pytest.fixture
def orchestrator(store, qa, autofix, coordinator, poller):
    return LifecycleOrchestrator(store, qa, autofix, coordinator, poller)


@pytest.mark.asyncio
async def test_deploy_from_registered_is_rejected_without_side_effects(
    orchestrator, store, coordinator
):
    project = await store.create_project(name="a", normalized_folder_path="/tmp/a")

    with pytest.raises(InvalidStateError):
        await orchestrator.request_transition(project.id, LifecycleAction.DEPLOY)

    coordinator.deploy.assert_not_awaited()
    assert (await store.get_project(project.id)).status == "registered"


@pytest.mark.asyncio
async def test_unknown_project(orchestrator):
    with pytest.raises(NotFoundError):
        await orchestrator.request_transition("nope", LifecycleAction.AUTO_FIX)


@pytest.mark.asyncio
async def test_deploy_success(orchestrator, store, poller):
    project = await store.create_project(name="a", status="qa_passed", health_failures=2)

    in_progress = await orchestrator.request_transition(project.id, LifecycleAction.DEPLOY)
    assert in_progress.status == "deploying"
    await orchestrator.join(project.id)

    stored = await store.get_project(project.id)
    assert stored.status == "deployed"
    assert stored.deployed_url == "http://localhost:4000"
    assert stored.last_deploy_status == "running"
    assert stored.health_failures == 0
    poller.cancel.assert_called_once_with(project.id)


@pytest.mark.asyncio
async def test_deploy_failure(orchestrator, store, coordinator):
    coordinator.deploy.return_value = DeployOutcome.failed("vercel", "quota")
    project = await store.create_project(name="a", status="deployed")

    await orchestrator.request_transition(project.id, LifecycleAction.DEPLOY)
    await orchestrator.join(project.id)

    stored = await store.get_project(project.id)
    assert stored.status == "deploy_failed"
    assert stored.last_deploy_status == "failed"


@pytest.mark.asyncio
async def test_in_progress_deploy_left_to_poller(orchestrator, store, coordinator):
    coordinator.deploy.return_value = DeployOutcome(
        success=True, provider="render", deploy_id="dep-1", status="building", in_progress=True
    )
    project = await store.create_project(name="a", status="qa_passed")

    await orchestrator.request_transition(project.id, LifecycleAction.DEPLOY)
    await orchestrator.join(project.id)

    assert (await store.get_project(project.id)).status == "deploying"


@pytest.mark.asyncio
async def test_concurrent_request_is_rejected(orchestrator, store, coordinator):
    release = asyncio.Event()

    async def slow_deploy(_project):
        await release.wait()
        return DeployOutcome(success=True, provider="local", deployed_url="http://x")

    coordinator.deploy.side_effect = slow_deploy
    project = await store.create_project(name="a", status="qa_passed", normalized_folder_path="/a")

    await orchestrator.request_transition(project.id, LifecycleAction.DEPLOY)
    assert orchestrator.is_busy(project.id)

    with pytest.raises(OperationInProgressError):
        await orchestrator.request_transition(project.id, LifecycleAction.AUTO_FIX)

    release.set()
    await orchestrator.join(project.id)
    assert not orchestrator.is_busy(project.id)
    assert coordinator.deploy.await_count == 1


@pytest.mark.asyncio
async def test_crash_writes_terminal_failure(orchestrator, store, coordinator):
    coordinator.deploy.side_effect = RuntimeError("disk full")
    project = await store.create_project(name="a", status="qa_passed")

    await orchestrator.request_transition(project.id, LifecycleAction.DEPLOY)
    await orchestrator.join(project.id)

    stored = await store.get_project(project.id)
    assert stored.status == "deploy_failed"
    assert "Deploy failed: RuntimeError: disk full" in stored.deploy_logs


@pytest.mark.asyncio
async def test_autofix_records_result(orchestrator, store):
    project = await store.create_project(name="a", normalized_folder_path="/tmp/a")

    in_progress = await orchestrator.request_transition(project.id, LifecycleAction.AUTO_FIX)
    assert in_progress.auto_fix_status == "running"
    await orchestrator.join(project.id)

    stored = await store.get_project(project.id)
    assert stored.auto_fix_status == "success"
    assert stored.auto_fix_report == "Auto-fix Report"
    assert stored.ready_for_deploy is True
    assert stored.auto_fixed_at is not None
    assert stored.env_vars == {"API_URL": {"value": "", "is_secret": False}}
    assert stored.auto_fix_logs == "Build succeeded without changes\n"
    assert stored.status == "registered"


@pytest.mark.asyncio
async def test_autofix_crash_marks_failed(orchestrator, store, autofix):
    autofix.repair.side_effect = ValueError("unexpected")
    project = await store.create_project(name="a", normalized_folder_path="/tmp/a")

    await orchestrator.request_transition(project.id, LifecycleAction.AUTO_FIX)
    await orchestrator.join(project.id)

    stored = await store.get_project(project.id)
    assert stored.auto_fix_status == "failed"
    assert stored.auto_fix_report == "Auto-fix failed: ValueError: unexpected"


@pytest.mark.asyncio
async def test_qa_requires_autofix_then_records_verdict(orchestrator, store, qa):
    project = await store.create_project(name="a")

    with pytest.raises(InvalidStateError):
        await orchestrator.request_transition(project.id, LifecycleAction.RUN_QA)
    qa.run.assert_not_awaited()

    await store.update_project(project.id, auto_fix_status="success")
    await orchestrator.request_transition(project.id, LifecycleAction.RUN_QA)
    await orchestrator.join(project.id)

    stored = await store.get_project(project.id)
    assert stored.status == "qa_passed"
    assert stored.qa_report.endswith("Verdict: PASS")
    assert stored.qa_logs == "ok\n"


@pytest.mark.asyncio
async def test_redeploy_waits_for_result(orchestrator, store):
    project = await store.create_project(name="a", status="deployed")

    refreshed = await orchestrator.redeploy(project.id)

    assert refreshed.status == "deployed"


@pytest.mark.asyncio
async def test_shutdown_cancels_running_work(orchestrator, store, coordinator, poller):
    async def hang(_project):
        await asyncio.Event().wait()

    coordinator.deploy.side_effect = hang
    project = await store.create_project(name="a", status="qa_passed")
    await orchestrator.request_transition(project.id, LifecycleAction.DEPLOY)
    await asyncio.sleep(0)

    await orchestrator.shutdown()

    assert (await store.get_project(project.id)).status == "deploy_failed"
    poller.shutdown.assert_awaited_once()


@pytest.mark.asyncio
async def test_recover_interrupted_fails_stale_operations(orchestrator, store):
    deploying = await store.create_project(name="d", status="deploying")
    qa_running = await store.create_project(name="q", status="qa_running")
    fixing = await store.create_project(name="f", status="deploy_failed", auto_fix_status="running")
    idle = await store.create_project(name="i", status="deployed")

    assert await orchestrator.recover_interrupted() == 3

    stored = await store.get_project(deploying.id)
    assert stored.status == "deploy_failed"
    assert "Interrupted by a service restart" in stored.deploy_logs
    assert (await store.get_project(qa_running.id)).status == "qa_failed"
    stored = await store.get_project(fixing.id)
    assert stored.auto_fix_status == "failed"
    assert stored.status == "deploy_failed"
    assert (await store.get_project(idle.id)).status == "deployed"

    redeploy = await orchestrator.request_transition(deploying.id, LifecycleAction.DEPLOY)
    assert redeploy.status == "deploying"
    await orchestrator.join(deploying.id)


@pytest.mark.asyncio
async def test_guard_delete_rejects_busy_project(orchestrator, store, coordinator):
    release = asyncio.Event()

    async def slow_deploy(_project):
        await release.wait()
        return DeployOutcome(success=True, provider="local", deployed_url="http://x")

    coordinator.deploy.side_effect = slow_deploy
    project = await store.create_project(name="a", status="qa_passed")
    await orchestrator.request_transition(project.id, LifecycleAction.DEPLOY)

    with pytest.raises(OperationInProgressError):
        async with orchestrator.guard_delete(project.id):
            pytest.fail("guard entered while a deploy is running")

    release.set()
    await orchestrator.join(project.id)


@pytest.mark.asyncio
async def test_transition_waits_for_guarded_delete(orchestrator, store, coordinator):
    project = await store.create_project(name="a", status="qa_passed")

    async with orchestrator.guard_delete(project.id):
        pending = asyncio.create_task(
            orchestrator.request_transition(project.id, LifecycleAction.DEPLOY)
        )
        await asyncio.sleep(0.01)
        assert not pending.done()
        await store.delete_project(project.id)

    with pytest.raises(NotFoundError):
        await pending
    coordinator.deploy.assert_not_awaited()
