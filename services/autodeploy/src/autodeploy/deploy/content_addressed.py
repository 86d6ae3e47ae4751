"""Content-addressed deployment through Vercel."""

import hashlib
from pathlib import Path

import structlog

from shared.models import Project

from ..clients.vercel import FileEntry, VercelClient, vercel_project_name
from ..errors import ExternalServiceError
from ..files import iter_files
from .base import DeployOutcome
from .deploy_log import DeployLog

logger = structlog.get_logger()

PROVIDER = "vercel"


def hash_folder(folder: Path) -> tuple[list[FileEntry], dict[str, Path]]:
    """SHA-1 digest and size for every deployable file, plus digest -> path."""
    entries = []
    by_digest: dict[str, Path] = {}
    for rel in iter_files(folder):
        data = (folder / rel).read_bytes()
        digest = hashlib.sha1(data).hexdigest()  # noqa: S324
        entries.append(FileEntry(file=rel.as_posix(), sha=digest, size=len(data)))
        by_digest[digest] = folder / rel
    return entries, by_digest


class ContentAddressedDeployer:
    """Uploads only the blobs Vercel reports missing, then resubmits.

    Failures raise ``ExternalServiceError``; the coordinator never falls back
    from this provider.
    """

    def __init__(self, client: VercelClient, max_submissions: int = 3):
        self.client = client
        self.max_submissions = max_submissions

    async def deploy(self, project: Project, folder: Path, log: DeployLog) -> DeployOutcome:
        entries, by_digest = hash_folder(folder)
        if not entries:
            raise ExternalServiceError(PROVIDER, "No files to deploy")

        name = vercel_project_name(project.name)
        await log.info(f"Hashed {len(entries)} files for Vercel project {name}")

        for submission in range(1, self.max_submissions + 1):
            deployment = await self.client.create_deployment(name, entries)
            if not deployment.missing:
                await log.info(f"Vercel deployment {deployment.id} created: {deployment.url}")
                logger.info(
                    "vercel_deployment_created",
                    project_id=project.id,
                    deploy_id=deployment.id,
                    submission=submission,
                )
                return DeployOutcome(
                    success=True,
                    provider=PROVIDER,
                    deployed_url=deployment.url,
                    deploy_id=deployment.id,
                    status=(deployment.ready_state or "ready").lower(),
                )

            await log.info(f"Uploading {len(deployment.missing)} missing files")
            for digest in deployment.missing:
                path = by_digest.get(digest)
                if path is None:
                    raise ExternalServiceError(PROVIDER, f"Unknown digest requested: {digest}")
                await self.client.upload_file(digest, path.read_bytes())

        raise ExternalServiceError(
            PROVIDER, f"Files still missing after {self.max_submissions} submissions"
        )
