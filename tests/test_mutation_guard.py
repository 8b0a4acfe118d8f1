"""Tests for crash-safe manifest mutation."""

import json
import signal
from unittest.mock import patch

import pytest

from errors import ManifestLockConflict, MonoliftError
from orchestration.mutation_guard import MutationRegistry
from workspace.manifest import Manifest

from conftest import write_manifest


@pytest.fixture
def registry():
    return MutationRegistry()


@pytest.fixture
def manifest_path(tmp_path):
    return write_manifest(tmp_path, {"name": "a", "version": "1.0.0", "custom": [1, 2]})


def _backup(path):
    return path.with_name(path.name + ".monolift_backup")


class TestGuardLifecycle:
    def test_success_commits_and_removes_backup(self, registry, manifest_path):
        m = Manifest.load(manifest_path)
        with registry.guard(manifest_path) as guard:
            assert not manifest_path.exists()
            assert guard.backup_path.exists()
            m.write({**m.get_config(), "version": "1.0.1"})

        assert json.loads(manifest_path.read_text())["version"] == "1.0.1"
        assert not _backup(manifest_path).exists()
        assert registry.active() == []
        assert not registry.is_locked(manifest_path)

    def test_failure_restores_original_bytes(self, registry, manifest_path):
        before = manifest_path.read_bytes()
        m = Manifest.load(manifest_path)
        with pytest.raises(RuntimeError):
            with registry.guard(manifest_path):
                m.write({"name": "mangled"})
                raise RuntimeError("boom")

        assert manifest_path.read_bytes() == before
        assert not _backup(manifest_path).exists()
        assert registry.active() == []

    def test_explicit_restore(self, registry, manifest_path):
        before = manifest_path.read_bytes()
        guard = registry.guard(manifest_path).acquire()
        manifest_path.write_text("{}\n")
        guard.restore()
        assert manifest_path.read_bytes() == before
        assert not guard.active

    def test_commit_without_new_manifest_restores(self, registry, manifest_path):
        before = manifest_path.read_bytes()
        guard = registry.guard(manifest_path).acquire()
        with pytest.raises(MonoliftError):
            guard.commit()
        assert manifest_path.read_bytes() == before
        assert not _backup(manifest_path).exists()


class TestConflicts:
    def test_stale_backup_is_never_overwritten(self, registry, manifest_path):
        stale = _backup(manifest_path)
        stale.write_text("stale")
        before = manifest_path.read_bytes()

        with pytest.raises(ManifestLockConflict):
            registry.guard(manifest_path).acquire()

        assert stale.read_text() == "stale"
        assert manifest_path.read_bytes() == before
        assert not registry.is_locked(manifest_path)

    def test_second_guard_on_same_path_conflicts(self, registry, manifest_path):
        first = registry.guard(manifest_path).acquire()
        with pytest.raises(ManifestLockConflict):
            registry.guard(manifest_path).acquire()
        first.restore()
        assert not _backup(manifest_path).exists()

    def test_missing_manifest_conflicts(self, registry, tmp_path):
        with pytest.raises(ManifestLockConflict):
            registry.guard(tmp_path / "package.json").acquire()
        assert registry.active() == []


class TestDrain:
    def test_drain_restores_every_active_guard(self, registry, tmp_path):
        paths = [
            write_manifest(tmp_path / name, {"name": name, "version": "1.0.0"})
            for name in ("a", "b")
        ]
        originals = [p.read_bytes() for p in paths]
        for p in paths:
            registry.guard(p).acquire()
            p.write_text('{"name": "half-written"}')

        restored = registry.drain()

        assert sorted(restored) == sorted(paths)
        assert [p.read_bytes() for p in paths] == originals
        assert not any(_backup(p).exists() for p in paths)
        assert registry.active() == []

    def test_drain_with_nothing_active(self, registry):
        assert registry.drain() == []

    def test_exit_handlers_installed_once(self, registry):
        with patch("orchestration.mutation_guard.atexit.register") as reg, \
                patch("orchestration.mutation_guard.signal.signal") as sig, \
                patch("orchestration.mutation_guard.signal.getsignal", return_value=signal.SIG_DFL):
            registry.install_exit_handlers(signals=(signal.SIGTERM,))
            registry.install_exit_handlers(signals=(signal.SIGTERM,))
        reg.assert_called_once_with(registry.drain)
        sig.assert_called_once_with(signal.SIGTERM, registry._on_signal)

    def test_signal_drains_then_chains(self, registry, manifest_path):
        before = manifest_path.read_bytes()
        calls = []
        registry._previous_handlers[signal.SIGTERM] = lambda signum, frame: calls.append(signum)
        registry.guard(manifest_path).acquire()

        registry._on_signal(signal.SIGTERM, None)

        assert manifest_path.read_bytes() == before
        assert calls == [signal.SIGTERM]
