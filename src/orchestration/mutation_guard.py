"""Crash-safe manifest mutation.

A mutation moves ``package.json`` aside to ``package.json.monolift_backup``,
lets the caller write a fresh manifest, then either deletes the backup
(success) or moves it back (failure, signal, interpreter exit). At every
point one of the two paths names a complete manifest.

Active guards live in a :class:`MutationRegistry`. The CLI installs exit and
signal handlers on the default registry so every in-flight mutation is
restored on shutdown; tests create their own registry and call
:meth:`MutationRegistry.drain` to simulate a crash.
"""

from __future__ import annotations

import atexit
import logging
import os
import signal
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from common.logging_utils import extra_context
from constants import Constants
from errors import ManifestLockConflict, MonoliftError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_HANDLED_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGHUP") if hasattr(signal, name)
)


class ManifestMutationGuard:
    """Backup/restore protocol around one manifest path.

    Use as a context manager: the backup is taken on enter, committed on a
    clean exit and restored when the body raises. The body may call
    :meth:`commit` or :meth:`restore` itself to end the mutation early.
    """

    def __init__(self, manifest_path: PathLike, registry: "MutationRegistry", suffix: str = Constants.BACKUP_SUFFIX):
        self.original_path = Path(manifest_path)
        self.backup_path = Path(str(manifest_path) + suffix)
        self.active = False
        self._registry = registry

    @property
    def key(self) -> str:
        return os.path.abspath(str(self.original_path))

    def acquire(self) -> "ManifestMutationGuard":
        """Take the per-path token and move the manifest aside.

        Raises:
            ManifestLockConflict: Another guard holds the path, a backup from
                an earlier unclean exit exists, or the rename failed.
        """
        self._registry.take_token(self)
        try:
            if self.backup_path.exists():
                raise ManifestLockConflict(
                    self.original_path,
                    self.backup_path,
                    f"backup {self.backup_path} already exists from an unclean exit; recover it manually",
                )
            try:
                os.rename(self.original_path, self.backup_path)
            except OSError as exc:
                raise ManifestLockConflict(self.original_path, self.backup_path, str(exc)) from exc
        except BaseException:
            self._registry.release_token(self)
            raise
        self.active = True
        self._registry.register(self)
        logger.debug(
            "Backed up %s",
            self.original_path,
            extra=extra_context(event="guard_acquire", target=str(self.backup_path)),
        )
        return self

    def commit(self) -> None:
        """Keep the new manifest and delete the backup."""
        if not self.active:
            return
        if not self.original_path.exists():
            self.restore()
            raise MonoliftError(f"Mutation of {self.original_path} did not write a manifest; original restored")
        self._registry.unregister(self)
        try:
            os.unlink(self.backup_path)
        finally:
            self.active = False
            self._registry.release_token(self)
        logger.debug("Committed %s", self.original_path, extra=extra_context(event="guard_commit"))

    def restore(self) -> None:
        """Put the pre-mutation manifest back, byte for byte."""
        if not self.active:
            return
        os.replace(self.backup_path, self.original_path)
        self.active = False
        self._registry.unregister(self)
        self._registry.release_token(self)
        logger.debug("Restored %s", self.original_path, extra=extra_context(event="guard_restore"))

    def __enter__(self) -> "ManifestMutationGuard":
        return self.acquire()

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        if exc_type is not None:
            if self.active:
                self.restore()
            return False
        self.commit()
        return False


class MutationRegistry:
    """Process-wide record of in-flight manifest mutations."""

    def __init__(self, suffix: str = Constants.BACKUP_SUFFIX):
        self.suffix = suffix
        self._lock = threading.RLock()
        self._tokens: set = set()
        self._active: "OrderedDict[str, ManifestMutationGuard]" = OrderedDict()
        self._previous_handlers: Dict[int, Any] = {}
        self._atexit_installed = False

    def guard(self, manifest_path: PathLike) -> ManifestMutationGuard:
        return ManifestMutationGuard(manifest_path, self, self.suffix)

    # ---------- token and registration bookkeeping ----------

    def take_token(self, guard: ManifestMutationGuard) -> None:
        with self._lock:
            if guard.key in self._tokens:
                raise ManifestLockConflict(guard.original_path, guard.backup_path, "already being mutated")
            self._tokens.add(guard.key)

    def release_token(self, guard: ManifestMutationGuard) -> None:
        with self._lock:
            self._tokens.discard(guard.key)

    def register(self, guard: ManifestMutationGuard) -> None:
        with self._lock:
            self._active[guard.key] = guard

    def unregister(self, guard: ManifestMutationGuard) -> None:
        with self._lock:
            if self._active.get(guard.key) is guard:
                del self._active[guard.key]

    def active(self) -> List[ManifestMutationGuard]:
        with self._lock:
            return list(self._active.values())

    def is_locked(self, manifest_path: PathLike) -> bool:
        with self._lock:
            return os.path.abspath(str(manifest_path)) in self._tokens

    # ---------- shutdown ----------

    def drain(self) -> List[Path]:
        """Restore every active guard, newest first.

        A failing restore is logged and the rest still run.

        Returns:
            The manifest paths that were restored.
        """
        restored = []
        for guard in reversed(self.active()):
            try:
                guard.restore()
                restored.append(guard.original_path)
                logger.warning("Restored %s after interrupted mutation", guard.original_path)
            except OSError as exc:
                logger.error(
                    "Could not restore %s from %s: %s",
                    guard.original_path,
                    guard.backup_path,
                    exc,
                )
        return restored

    def _on_signal(self, signum: int, frame: Any) -> None:
        self.drain()
        previous = self._previous_handlers.get(signum, signal.SIG_DFL)
        if callable(previous):
            previous(signum, frame)
            return
        if previous == signal.SIG_IGN:
            return
        signal.signal(signum, signal.SIG_DFL)
        os.kill(os.getpid(), signum)

    def install_exit_handlers(self, signals: Optional[tuple] = None) -> None:
        """Drain on interpreter exit and on termination signals.

        Must be called from the main thread.
        """
        if not self._atexit_installed:
            atexit.register(self.drain)
            self._atexit_installed = True
        for signum in signals if signals is not None else _HANDLED_SIGNALS:
            if signum in self._previous_handlers:
                continue
            self._previous_handlers[signum] = signal.getsignal(signum)
            signal.signal(signum, self._on_signal)

    def uninstall_exit_handlers(self) -> None:
        if self._atexit_installed:
            atexit.unregister(self.drain)
            self._atexit_installed = False
        for signum, previous in self._previous_handlers.items():
            signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
        self._previous_handlers.clear()


default_registry = MutationRegistry()
