from pathlib import Path

import pytest
import pytest_asyncio

from autodeploy.errors import InvalidStateError, MissingArtifactError
from autodeploy.pull_requests import PullRequestService


@pytest.fixture
def folders(tmp_path):
    base = tmp_path / "normalized"
    staged = tmp_path / "patch"
    (base / "src").mkdir(parents=True)
    (staged / "src").mkdir(parents=True)
    (base / "src" / "x.txt").write_text("A")
    (base / "old.txt").write_text("remove me")
    (staged / "src" / "x.txt").write_text("B")
    (staged / "new.txt").write_text("hello")
    return base, staged


@pytest_asyncio.fixture
async def project(store, folders):
    base, _ = folders
    return await store.create_project(name="app", normalized_folder_path=str(base))


@pytest.fixture
def service(store):
    return PullRequestService(store)


@pytest.mark.asyncio
async def test_create_records_diff(service, project, folders):
    base, staged = folders

    pr = await service.create(project.id, base, staged, ["Fixed a", "Fixed b"])

    assert pr.pr_number == 1
    assert pr.title == "Auto-Fix Update (PR #1)"
    assert pr.status == "open"
    assert pr.description == "Fixed a\nFixed b"
    assert pr.diff_json == [
        {"file": "new.txt", "change": "added", "after": "hello"},
        {"file": "old.txt", "change": "removed", "before": "remove me"},
        {"file": "src/x.txt", "change": "modified", "before": "A", "after": "B"},
    ]


@pytest.mark.asyncio
async def test_create_without_changes_returns_none(service, store, project, folders):
    base, _ = folders

    assert await service.create(project.id, base, base, []) is None
    assert (await store.get_project(project.id)).last_pr_number == 0


@pytest.mark.asyncio
async def test_merge_applies_staged_tree(service, project, folders):
    base, staged = folders
    pr = await service.create(project.id, base, staged, [])

    merged = await service.merge(pr.id)

    assert merged.status == "merged"
    assert (base / "src" / "x.txt").read_text() == "B"
    assert (base / "new.txt").read_text() == "hello"
    assert not (base / "old.txt").exists()


@pytest.mark.asyncio
async def test_close_leaves_filesystem(service, project, folders):
    base, staged = folders
    pr = await service.create(project.id, base, staged, [])

    closed = await service.close(pr.id)

    assert closed.status == "closed"
    assert (base / "src" / "x.txt").read_text() == "A"
    assert (base / "old.txt").exists()


@pytest.mark.asyncio
async def test_terminal_pull_requests_cannot_change(service, project, folders):
    base, staged = folders
    pr = await service.create(project.id, base, staged, [])
    await service.close(pr.id)

    with pytest.raises(InvalidStateError):
        await service.merge(pr.id)
    with pytest.raises(InvalidStateError):
        await service.close(pr.id)


@pytest.mark.asyncio
async def test_merge_with_missing_patch_folder(service, store, project, folders):
    base, staged = folders
    pr = await service.create(project.id, base, staged, [])
    await store.update_pull_request(pr.id, patch_folder_path=str(Path(staged).parent / "gone"))

    with pytest.raises(MissingArtifactError):
        await service.merge(pr.id)
    assert (await store.get_pull_request(pr.id)).status == "open"
