"""Domain errors raised by monolift.

Every error derives from :class:`MonoliftError` so the CLI can map it to an
exit code in one place.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

from constants import ExitCodes


class MonoliftError(Exception):
    """Base class for all domain errors."""

    exit_code = ExitCodes.FILE_ERROR


class WorkspaceNotFound(MonoliftError):
    """No package.json could be found at or above the working directory."""


class ManifestInvalid(MonoliftError):
    """A package.json could not be read or is not a JSON object."""

    def __init__(self, manifest_path: Any, reason: Any):
        self.manifest_path = str(manifest_path)
        super().__init__(f"Invalid manifest {self.manifest_path}: {reason}")


class ConfigError(MonoliftError):
    """Configuration file or override could not be understood."""

    exit_code = ExitCodes.CONFIG_ERROR


class ManifestLockConflict(MonoliftError):
    """A manifest is already being mutated, or a stale backup exists.

    A stale backup means a previous run exited uncleanly; it is never
    overwritten and must be recovered by hand.
    """

    exit_code = ExitCodes.LOCK_CONFLICT

    def __init__(self, manifest_path: Any, backup_path: Any = None, reason: str = ""):
        self.manifest_path = str(manifest_path)
        self.backup_path = str(backup_path) if backup_path is not None else None
        message = f"Cannot mutate {self.manifest_path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SubprocessFailed(MonoliftError):
    """A wrapped tool exited with a non-zero status."""

    exit_code = ExitCodes.SUBPROCESS_ERROR

    def __init__(self, cmd: Sequence[str], code: int, stdout: str = "", stderr: str = ""):
        self.cmd = list(cmd)
        self.code = code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"Command '{' '.join(self.cmd)}' exited with code {code}")


class RegistryQueryFailed(MonoliftError):
    """The registry could not be queried (network error or unexpected status)."""

    exit_code = ExitCodes.CONNECTION_ERROR

    def __init__(self, name: str, reason: str, status: Optional[int] = None):
        self.name = name
        self.status = status
        super().__init__(f"Registry query for '{name}' failed: {reason}")


class VersionInconsistency(MonoliftError):
    """Local version is behind the registry.

    Only used to build the warning; publish skips the package instead of
    raising this.
    """

    def __init__(self, name: str, local_version: str, published_version: str):
        self.name = name
        self.local_version = local_version
        self.published_version = published_version
        super().__init__(
            f"{name} is at {local_version} locally but {published_version} is published; "
            "not publishing"
        )


class TaskBatchFailed(MonoliftError):
    """At least one operation in a task batch failed.

    ``results`` holds every :class:`~orchestration.task_runner.TaskResult`,
    successful ones included.
    """

    exit_code = ExitCodes.TASK_ERROR

    def __init__(self, results: List[Any]):
        self.results = list(results)
        failed = [r for r in self.results if not r.ok]
        names = ", ".join(r.package.name for r in failed)
        super().__init__(f"{len(failed)} of {len(self.results)} package task(s) failed: {names}")

    @property
    def failures(self) -> List[Any]:
        return [r for r in self.results if not r.ok]


class PublishFailed(MonoliftError):
    """Top-level publish failure, carrying what was published before it."""

    exit_code = ExitCodes.PUBLISH_ERROR

    def __init__(self, cause: BaseException, partial_results: Optional[List[Any]] = None):
        self.cause = cause
        self.partial_results = list(partial_results or [])
        super().__init__("Failed to publish")
