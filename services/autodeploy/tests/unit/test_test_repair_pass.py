from unittest.mock import AsyncMock

import pytest

from autodeploy.autofix.ai_repair import AIFileRepairer
from autodeploy.autofix.verification import TestRepairPass


@pytest.mark.asyncio
async def test_skipped_without_test_script(fake_runner, tmp_path):
    actions = await TestRepairPass(fake_runner, AIFileRepairer(None), 60).run(tmp_path, None)

    assert actions == ["No test script declared; test repair skipped"]
    assert fake_runner.calls == []


@pytest.mark.asyncio
async def test_passing_tests_run_in_ci_mode(fake_runner, tmp_path):
    actions = await TestRepairPass(fake_runner, AIFileRepairer(None), 60).run(
        tmp_path, "npm test"
    )

    assert actions == ["Tests passed"]
    assert fake_runner.calls[0].env == {"CI": "true"}


@pytest.mark.asyncio
async def test_single_repair_attempt_on_failure(fake_runner, tmp_path):
    (tmp_path / "sum.test.js").write_text("expect(sum(1, 2)).toBe(4)")
    fake_runner.on("npm test", (1, "FAIL sum.test.js\n  expected 4, received 3"))
    client = AsyncMock()
    client.repair.return_value = "expect(sum(1, 2)).toBe(3)\n"

    actions = await TestRepairPass(fake_runner, AIFileRepairer(client), 60).run(
        tmp_path, "npm test"
    )

    assert actions == ["Repaired test error in sum.test.js with AI code repair"]
    assert fake_runner.commands == ["npm test"]
    client.repair.assert_awaited_once()
