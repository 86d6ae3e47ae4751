"""Pull requests router."""

from fastapi import APIRouter, Depends

from shared.models import PullRequest

from ..dependencies import get_pull_request_service, get_store
from ..pull_requests import PullRequestService
from ..schemas import PullRequestRead
from ..storage import ProjectStore

router = APIRouter(prefix="/prs", tags=["pull-requests"])


@router.get("/{pr_id}", response_model=PullRequestRead)
async def get_pull_request(pr_id: str, store: ProjectStore = Depends(get_store)) -> PullRequest:
    return await store.require_pull_request(pr_id)


@router.post("/{pr_id}/merge", response_model=PullRequestRead)
async def merge_pull_request(
    pr_id: str,
    service: PullRequestService = Depends(get_pull_request_service),
) -> PullRequest:
    """Copy the staged files into the project and mark the PR merged."""
    return await service.merge(pr_id)


@router.post("/{pr_id}/close", response_model=PullRequestRead)
async def close_pull_request(
    pr_id: str,
    service: PullRequestService = Depends(get_pull_request_service),
) -> PullRequest:
    """Discard the PR without touching any files."""
    return await service.close(pr_id)
