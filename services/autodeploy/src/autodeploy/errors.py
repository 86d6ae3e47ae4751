"""Error taxonomy for the deployment lifecycle."""


class LifecycleError(Exception):
    """Base class for errors raised by the lifecycle service."""


class NotFoundError(LifecycleError):
    """A project or pull request id does not exist."""


class InvalidStateError(LifecycleError):
    """The requested transition is illegal from the current state.

    Raised before any side effect, so the project is untouched.
    """


class OperationInProgressError(InvalidStateError):
    """Another long operation is already running for this project."""


class MissingArtifactError(LifecycleError):
    """The normalized folder (or a patch folder) is not on disk."""


class ExternalServiceError(LifecycleError):
    """The AI service, a deploy provider or a probe failed."""

    def __init__(self, service: str, message: str, status_code: int | None = None):
        self.service = service
        self.message = message
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class BuildError(LifecycleError):
    """The build subprocess exited non-zero."""

    def __init__(self, output: str, returncode: int | None = None):
        self.output = output
        self.returncode = returncode
        super().__init__(f"build failed with exit code {returncode}")


class TestFailureError(LifecycleError):
    """The test subprocess exited non-zero."""

    __test__ = False

    def __init__(self, output: str, returncode: int | None = None):
        self.output = output
        self.returncode = returncode
        super().__init__(f"tests failed with exit code {returncode}")
