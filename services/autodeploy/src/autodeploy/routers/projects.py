"""Projects router."""

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Response, status
import structlog

from shared.models import Project, PullRequest

from ..autofix.env_discovery import discover_env_vars, merge_env_vars
from ..cleanup import remove_project_artifacts
from ..container import Container
from ..dependencies import get_container, get_orchestrator, get_store
from ..errors import MissingArtifactError
from ..files import iter_files
from ..lifecycle import LifecycleAction, LifecycleOrchestrator
from ..schemas import (
    AutoFixRead,
    DeployStatusRead,
    EnvAutoFixResult,
    EnvVarsRead,
    EnvVarsUpdate,
    EnvVarsUpdateResult,
    ProjectCreate,
    ProjectFilesRead,
    ProjectRead,
    ProjectUpdate,
    PullRequestRead,
)
from ..storage import ProjectStore

logger = structlog.get_logger()

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_in: ProjectCreate,
    store: ProjectStore = Depends(get_store),
) -> Project:
    """Register a project."""
    return await store.create_project(
        name=project_in.name,
        source_type=project_in.source_type.value,
        source_value=project_in.source_value,
        project_type=project_in.project_type.value if project_in.project_type else None,
        normalized_folder_path=project_in.normalized_folder_path,
    )


@router.get("", response_model=list[ProjectRead])
async def list_projects(
    status: str | None = None,
    store: ProjectStore = Depends(get_store),
) -> list[Project]:
    """List projects, optionally filtered by status."""
    return await store.list_projects(status=status)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(project_id: str, store: ProjectStore = Depends(get_store)) -> Project:
    return await store.require_project(project_id)


@router.patch("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: str,
    project_in: ProjectUpdate,
    store: ProjectStore = Depends(get_store),
) -> Project:
    await store.require_project(project_id)
    fields = project_in.model_dump(exclude_unset=True, mode="json")
    logger.info("updating_project", project_id=project_id, fields=sorted(fields))
    return await store.update_project(project_id, **fields)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    container: Container = Depends(get_container),
) -> Response:
    """Delete a project, its pull requests and its files."""
    project = await container.store.require_project(project_id)
    async with container.orchestrator.guard_delete(project_id):
        container.poller.cancel(project_id)
        await container.local.stop(project_id)
        await container.store.delete_project(project_id)
    remove_project_artifacts(container.settings, project)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _transition(
    orchestrator: LifecycleOrchestrator, project_id: str, action: LifecycleAction
) -> Project:
    project = await orchestrator.request_transition(project_id, action)
    logger.info("transition_accepted", project_id=project_id, action=action.value)
    return project


@router.post("/{project_id}/run-qa", response_model=ProjectRead, status_code=status.HTTP_202_ACCEPTED)
async def run_qa(
    project_id: str,
    orchestrator: LifecycleOrchestrator = Depends(get_orchestrator),
) -> Project:
    return await _transition(orchestrator, project_id, LifecycleAction.RUN_QA)


@router.post("/{project_id}/deploy", response_model=ProjectRead, status_code=status.HTTP_202_ACCEPTED)
async def deploy(
    project_id: str,
    orchestrator: LifecycleOrchestrator = Depends(get_orchestrator),
) -> Project:
    return await _transition(orchestrator, project_id, LifecycleAction.DEPLOY)


@router.post(
    "/{project_id}/auto-fix", response_model=ProjectRead, status_code=status.HTTP_202_ACCEPTED
)
async def auto_fix(
    project_id: str,
    orchestrator: LifecycleOrchestrator = Depends(get_orchestrator),
) -> Project:
    return await _transition(orchestrator, project_id, LifecycleAction.AUTO_FIX)


@router.get("/{project_id}/auto-fix", response_model=AutoFixRead)
async def get_auto_fix(project_id: str, store: ProjectStore = Depends(get_store)) -> Project:
    return await store.require_project(project_id)


@router.get("/{project_id}/deploy-status", response_model=DeployStatusRead)
async def get_deploy_status(project_id: str, store: ProjectStore = Depends(get_store)) -> Project:
    return await store.require_project(project_id)


@router.get("/{project_id}/files", response_model=ProjectFilesRead)
async def list_files(project_id: str, store: ProjectStore = Depends(get_store)) -> ProjectFilesRead:
    project = await store.require_project(project_id)
    if not project.normalized_folder_path or not Path(project.normalized_folder_path).is_dir():
        raise HTTPException(status_code=404, detail="Project is not normalized yet")
    folder = Path(project.normalized_folder_path)
    return ProjectFilesRead(root=str(folder), files=[p.as_posix() for p in iter_files(folder)])


@router.get("/{project_id}/env", response_model=EnvVarsRead)
async def get_env(project_id: str, store: ProjectStore = Depends(get_store)) -> EnvVarsRead:
    project = await store.require_project(project_id)
    return EnvVarsRead.masked(project.env_vars)


@router.post("/{project_id}/env", response_model=EnvVarsUpdateResult)
async def update_env(
    project_id: str,
    env_in: EnvVarsUpdate,
    container: Container = Depends(get_container),
) -> EnvVarsUpdateResult:
    """Upsert variables, then push them to every configured provider."""
    project = await container.store.require_project(project_id)
    env_vars = dict(project.env_vars or {})
    env_vars.update({key: value.model_dump() for key, value in env_in.env_vars.items()})

    project = await container.store.update_project(project_id, env_vars=env_vars)
    warnings = await container.env_sync.sync(project)
    masked = EnvVarsRead.masked(project.env_vars)
    return EnvVarsUpdateResult(env_vars=masked.env_vars, warnings=warnings)


@router.post("/{project_id}/env/autofix", response_model=EnvAutoFixResult)
async def auto_fix_env(
    project_id: str,
    container: Container = Depends(get_container),
) -> EnvAutoFixResult:
    """Discover variables referenced by the code, then push them to every provider."""
    project = await container.store.require_project(project_id)
    folder = Path(project.normalized_folder_path) if project.normalized_folder_path else None
    if folder is None or not folder.is_dir():
        raise MissingArtifactError(f"Project {project_id} has no normalized folder")

    env_vars, added = merge_env_vars(project.env_vars, discover_env_vars(folder))
    if added:
        project = await container.store.update_project(project_id, env_vars=env_vars)
    logger.info("env_autofix_finished", project_id=project_id, added=added)

    warnings = await container.env_sync.sync(project)
    masked = EnvVarsRead.masked(project.env_vars)
    return EnvAutoFixResult(env_vars=masked.env_vars, warnings=warnings, added=added)


@router.get("/{project_id}/prs", response_model=list[PullRequestRead])
async def list_pull_requests(
    project_id: str, store: ProjectStore = Depends(get_store)
) -> list[PullRequest]:
    await store.require_project(project_id)
    return await store.list_pull_requests(project_id)
