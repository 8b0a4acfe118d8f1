"""Task scheduling and crash-safe manifest mutation."""

from .mutation_guard import ManifestMutationGuard, MutationRegistry, default_registry
from .task_runner import ConcurrencyPolicy, TaskResult, TaskRunner

__all__ = [
    "ManifestMutationGuard",
    "MutationRegistry",
    "default_registry",
    "ConcurrencyPolicy",
    "TaskResult",
    "TaskRunner",
]
