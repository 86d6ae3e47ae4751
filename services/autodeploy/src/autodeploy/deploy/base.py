"""Result type shared by every deploy branch."""

from dataclasses import dataclass


@dataclass
class DeployOutcome:
    """What one deploy attempt produced.

    ``in_progress`` means a background poller now owns the final status and
    the project should stay ``deploying``.
    """

    success: bool
    provider: str
    deployed_url: str | None = None
    deploy_id: str | None = None
    status: str | None = None
    in_progress: bool = False
    error: str | None = None

    @classmethod
    def failed(cls, provider: str, error: str) -> "DeployOutcome":
        return cls(success=False, provider=provider, status="failed", error=error)
