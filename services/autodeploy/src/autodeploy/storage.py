"""Persistent store for projects and pull requests.

Every method opens its own short-lived session, so callers running in
background tasks never share a session with a request handler. Updates are
partial: only the named columns are written, which keeps concurrent writers
(monitor, user-triggered deploys) from clobbering each other's fields.
"""

from collections.abc import Iterable
from typing import Any
import uuid

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from shared.models import AutoFixStatus, Project, ProjectStatus, PullRequest

from .errors import NotFoundError

logger = structlog.get_logger()

_PROJECT_COLUMNS = frozenset(Project.__table__.columns.keys())
_PR_COLUMNS = frozenset(PullRequest.__table__.columns.keys())
_APPENDABLE_LOGS = frozenset({"deploy_logs", "qa_logs", "auto_fix_logs"})


def _check_columns(fields: Iterable[str], allowed: frozenset[str], table: str) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown {table} fields: {sorted(unknown)}")


class ProjectStore:
    """CRUD over ``Project`` and ``PullRequest`` records."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    # === Projects ===

    async def create_project(self, **fields: Any) -> Project:
        _check_columns(fields, _PROJECT_COLUMNS, "project")
        fields.setdefault("id", str(uuid.uuid4()))
        fields.setdefault("env_vars", {})
        async with self._session_maker() as session:
            project = Project(**fields)
            session.add(project)
            await session.commit()
            await session.refresh(project)
        logger.info("project_created", project_id=project.id, name=project.name)
        return project

    async def get_project(self, project_id: str) -> Project | None:
        async with self._session_maker() as session:
            return await session.get(Project, project_id)

    async def require_project(self, project_id: str) -> Project:
        project = await self.get_project(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    async def list_projects(self, status: str | None = None) -> list[Project]:
        query = select(Project).order_by(Project.created_at)
        if status:
            query = query.where(Project.status == status)
        async with self._session_maker() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_monitored_projects(self) -> list[Project]:
        """Deployed projects that have a URL to probe."""
        query = select(Project).where(
            Project.status == ProjectStatus.DEPLOYED.value,
            Project.deployed_url.is_not(None),
            Project.deployed_url != "",
        )
        async with self._session_maker() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_in_progress_projects(self) -> list[Project]:
        """Projects whose record still shows a running operation."""
        query = select(Project).where(
            or_(
                Project.status.in_(
                    [ProjectStatus.QA_RUNNING.value, ProjectStatus.DEPLOYING.value]
                ),
                Project.auto_fix_status == AutoFixStatus.RUNNING.value,
            )
        )
        async with self._session_maker() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def update_project(self, project_id: str, **fields: Any) -> Project | None:
        """Write only the given columns; returns the fresh record or None if missing."""
        _check_columns(fields, _PROJECT_COLUMNS, "project")
        async with self._session_maker() as session:
            if fields:
                await session.execute(
                    update(Project).where(Project.id == project_id).values(**fields)
                )
                await session.commit()
            return await session.get(Project, project_id, populate_existing=True)

    async def append_log(self, project_id: str, field: str, line: str) -> None:
        """Append to an audit trail column in a single statement."""
        if field not in _APPENDABLE_LOGS:
            raise ValueError(f"{field} is not an append-only log field")
        column = getattr(Project, field)
        async with self._session_maker() as session:
            await session.execute(
                update(Project)
                .where(Project.id == project_id)
                .values({field: func.coalesce(column, "") + line})
            )
            await session.commit()

    async def append_deploy_log(self, project_id: str, line: str) -> None:
        await self.append_log(project_id, "deploy_logs", line)

    async def increment_health_failures(self, project_id: str) -> int:
        async with self._session_maker() as session:
            await session.execute(
                update(Project)
                .where(Project.id == project_id)
                .values(health_failures=Project.health_failures + 1)
            )
            result = await session.execute(
                select(Project.health_failures).where(Project.id == project_id)
            )
            await session.commit()
            return result.scalar_one_or_none() or 0

    async def reset_health_failures(self, project_id: str) -> None:
        await self.update_project(project_id, health_failures=0)

    async def delete_project(self, project_id: str) -> bool:
        """Delete a project and its pull requests. Returns False if it did not exist."""
        async with self._session_maker() as session:
            await session.execute(delete(PullRequest).where(PullRequest.project_id == project_id))
            result = await session.execute(delete(Project).where(Project.id == project_id))
            await session.commit()
        deleted = result.rowcount > 0
        if deleted:
            logger.info("project_deleted", project_id=project_id)
        return deleted

    # === Pull requests ===

    async def next_pr_number(self, project_id: str) -> int:
        """Reserve the next sequential PR number for a project."""
        async with self._session_maker() as session:
            await session.execute(
                update(Project)
                .where(Project.id == project_id)
                .values(last_pr_number=func.coalesce(Project.last_pr_number, 0) + 1)
            )
            result = await session.execute(
                select(Project.last_pr_number).where(Project.id == project_id)
            )
            number = result.scalar_one_or_none()
            await session.commit()
        if number is None:
            raise NotFoundError(f"Project {project_id} not found")
        return number

    async def create_pull_request(self, **fields: Any) -> PullRequest:
        _check_columns(fields, _PR_COLUMNS, "pull request")
        fields.setdefault("id", str(uuid.uuid4()))
        async with self._session_maker() as session:
            pr = PullRequest(**fields)
            session.add(pr)
            await session.commit()
            await session.refresh(pr)
        logger.info(
            "pull_request_created",
            project_id=pr.project_id,
            pr_id=pr.id,
            pr_number=pr.pr_number,
        )
        return pr

    async def get_pull_request(self, pr_id: str) -> PullRequest | None:
        async with self._session_maker() as session:
            return await session.get(PullRequest, pr_id)

    async def require_pull_request(self, pr_id: str) -> PullRequest:
        pr = await self.get_pull_request(pr_id)
        if pr is None:
            raise NotFoundError(f"Pull request {pr_id} not found")
        return pr

    async def list_pull_requests(self, project_id: str) -> list[PullRequest]:
        query = (
            select(PullRequest)
            .where(PullRequest.project_id == project_id)
            .order_by(PullRequest.pr_number)
        )
        async with self._session_maker() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def update_pull_request(self, pr_id: str, **fields: Any) -> PullRequest | None:
        _check_columns(fields, _PR_COLUMNS, "pull request")
        async with self._session_maker() as session:
            if fields:
                await session.execute(
                    update(PullRequest).where(PullRequest.id == pr_id).values(**fields)
                )
                await session.commit()
            return await session.get(PullRequest, pr_id, populate_existing=True)
