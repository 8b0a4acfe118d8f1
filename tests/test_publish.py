"""Tests for ``monolift publish``."""

import asyncio
import json
import logging
from unittest.mock import AsyncMock, patch

import pytest

from commands.publish import (
    PublishCandidate,
    PublishOptions,
    implementation_name,
    publish,
    should_publish,
)
from errors import PublishFailed, RegistryQueryFailed
from orchestration.mutation_guard import MutationRegistry
from orchestration.task_runner import ConcurrencyPolicy
from registry.npm import PublishConfirmation, RegistryInfo


def _read(path):
    return json.loads(path.read_text(encoding="utf-8"))


def _registry_state(published):
    """Registry stub: ``published`` maps name -> latest version."""

    async def info(name, registry=None, session=None):
        if name in published:
            return RegistryInfo(published=True, version=published[name])
        return RegistryInfo(published=False)

    return info


def _opts(root, **kwargs):
    kwargs.setdefault("mutations", MutationRegistry())
    kwargs.setdefault("policy", ConcurrencyPolicy(order="serial"))
    return PublishOptions(cwd=str(root), **kwargs)


class TestClassification:
    def test_unpublished_is_published(self):
        assert should_publish(PublishCandidate("a", "a@x", "1.0.0", is_published=False))

    def test_ahead_of_registry(self):
        assert should_publish(PublishCandidate("a", "a@x", "1.1.0", True, "1.0.0"))

    def test_same_version_skipped(self):
        assert not should_publish(PublishCandidate("a", "a@x", "1.0.0", True, "1.0.0"))

    def test_behind_registry_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert not should_publish(PublishCandidate("a", "a@x", "0.9.0", True, "1.0.0"))
        assert "0.9.0" in caplog.text
        assert "1.0.0" in caplog.text

    @pytest.mark.parametrize("typing_name,expected", [
        ("@flowtyped/react", "react"),
        ("@flowtyped/babel__core", "@babel/core"),
        ("react", None),
    ])
    def test_implementation_name(self, typing_name, expected):
        assert implementation_name(typing_name) == expected


class TestPublish:
    def test_nothing_to_publish_spawns_nothing(self, make_workspace, caplog):
        root = make_workspace({"packages/a": {"name": "a", "version": "1.0.0"}})
        npm_publish = AsyncMock()
        with patch("registry.npm.info_allow_404", side_effect=_registry_state({"a": "1.0.0"})), \
                patch("registry.npm.publish", npm_publish), \
                caplog.at_level(logging.WARNING):
            result = asyncio.run(publish(_opts(root)))

        assert result == []
        npm_publish.assert_not_called()
        assert "No unpublished packages to publish" in caplog.text

    def test_private_packages_never_queried(self, make_workspace):
        root = make_workspace({
            "packages/a": {"name": "a", "version": "1.0.0"},
            "packages/priv": {"name": "priv", "version": "1.0.0", "private": True},
        })
        info = AsyncMock(side_effect=_registry_state({}))
        with patch("registry.npm.info_allow_404", info), \
                patch("registry.npm.publish", AsyncMock(return_value=PublishConfirmation(True))):
            result = asyncio.run(publish(_opts(root)))

        assert [m.name for m in result] == ["a"]
        assert [c.args[0] for c in info.call_args_list] == ["a"]

    def test_tagged_dependencies_rewritten_and_kept(self, make_workspace):
        root = make_workspace({
            "packages/app": {
                "name": "app",
                "version": "2.0.0",
                "dependencies": {"lib": "^1.0.0"},
                "devDependencies": {"tool": "^1.0.0"},
            },
            "packages/lib": {"name": "lib", "version": "1.0.0", "flowVersion": "^0.80.0"},
            "packages/tool": {"name": "tool", "version": "1.0.0", "flowVersion": "^0.81.0"},
        })
        seen = {}

        async def fake_publish(name, cwd, registry=None, access=None):
            seen[name] = _read(root / "packages" / name / "package.json")
            return PublishConfirmation(published=True)

        with patch("registry.npm.info_allow_404", side_effect=_registry_state({"lib": "1.0.0", "tool": "1.0.0"})), \
                patch("registry.npm.publish", side_effect=fake_publish):
            result = asyncio.run(publish(_opts(root)))

        assert [(m.name, m.new_version, m.published) for m in result] == [("app", "2.0.0", True)]
        assert seen["app"]["dependencies"] == {"lib": "^0.80.0"}
        assert seen["app"]["devDependencies"] == {"tool": "^1.0.0"}
        on_disk = _read(root / "packages" / "app" / "package.json")
        assert on_disk["dependencies"] == {"lib": "^0.80.0"}
        assert not list(root.rglob("*.monolift_backup"))

    def test_restore_after_publish(self, make_workspace):
        root = make_workspace({
            "packages/app": {"name": "app", "version": "2.0.0", "dependencies": {"lib": "^1.0.0"}},
            "packages/lib": {"name": "lib", "version": "1.0.0", "flowVersion": "^0.80.0"},
        })
        before = (root / "packages" / "app" / "package.json").read_bytes()
        with patch("registry.npm.info_allow_404", side_effect=_registry_state({"lib": "1.0.0"})), \
                patch("registry.npm.publish", AsyncMock(return_value=PublishConfirmation(True))):
            asyncio.run(publish(_opts(root, restore_after_publish=True)))

        assert (root / "packages" / "app" / "package.json").read_bytes() == before
        assert not list(root.rglob("*.monolift_backup"))

    def test_typing_package_peer_ranges(self, make_workspace):
        root = make_workspace({
            "packages/react": {
                "name": "@flowtyped/react",
                "version": "16.4.0",
                "flowVersion": "v0.70.x-v0.89.x",
            },
        })
        with patch("registry.npm.info_allow_404", side_effect=_registry_state({})), \
                patch("registry.npm.publish", AsyncMock(return_value=PublishConfirmation(True))):
            asyncio.run(publish(_opts(root)))

        peers = _read(root / "packages" / "react" / "package.json")["peerDependencies"]
        assert peers == {"flow-bin": ">=0.70.x <=0.89.x", "react": "^16.x"}

    def test_publish_passes_registry_and_access(self, make_workspace):
        root = make_workspace({"packages/a": {"name": "a", "version": "1.0.0"}})
        npm_publish = AsyncMock(return_value=PublishConfirmation(True))
        with patch("registry.npm.info_allow_404", side_effect=_registry_state({})), \
                patch("registry.npm.publish", npm_publish):
            asyncio.run(publish(_opts(root, registry="http://localhost:4873", access="public")))

        kwargs = npm_publish.call_args.kwargs
        assert kwargs == {"registry": "http://localhost:4873", "access": "public"}
        assert npm_publish.call_args.args == ("a", root.resolve() / "packages" / "a")

    def test_pre_publish_remaps_directory(self, make_workspace, tmp_path):
        root = make_workspace({"packages/a": {"name": "a", "version": "1.0.0"}})
        dist = tmp_path / "dist"
        npm_publish = AsyncMock(return_value=PublishConfirmation(True))

        async def pre_publish(name, pkg):
            return dist

        with patch("registry.npm.info_allow_404", side_effect=_registry_state({})), \
                patch("registry.npm.publish", npm_publish):
            asyncio.run(publish(_opts(root, pre_publish=pre_publish)))

        assert npm_publish.call_args.args[1] == dist

    def test_failed_npm_publish_is_reported(self, make_workspace):
        root = make_workspace({
            "packages/app": {"name": "app", "version": "2.0.0", "dependencies": {"lib": "^1.0.0"}},
            "packages/lib": {"name": "lib", "version": "1.0.0", "flowVersion": "^0.80.0"},
        })
        before = (root / "packages" / "app" / "package.json").read_bytes()
        with patch("registry.npm.info_allow_404", side_effect=_registry_state({"lib": "1.0.0"})), \
                patch("registry.npm.publish", AsyncMock(return_value=PublishConfirmation(False))):
            result = asyncio.run(publish(_opts(root)))

        assert [(m.name, m.new_version, m.published) for m in result] == [("app", "2.0.0", False)]
        assert (root / "packages" / "app" / "package.json").read_bytes() == before
        assert not list(root.rglob("*.monolift_backup"))

    def test_error_carries_partial_results_and_restores(self, make_workspace):
        root = make_workspace({
            "packages/a": {"name": "a", "version": "1.0.0"},
            "packages/b": {"name": "@flowtyped/b", "version": "1.0.0", "flowVersion": "all"},
        })
        before = (root / "packages" / "b" / "package.json").read_bytes()

        async def fake_publish(name, cwd, registry=None, access=None):
            if name == "@flowtyped/b":
                raise RuntimeError("network down")
            return PublishConfirmation(published=True)

        with patch("registry.npm.info_allow_404", side_effect=_registry_state({})), \
                patch("registry.npm.publish", side_effect=fake_publish):
            with pytest.raises(PublishFailed) as excinfo:
                asyncio.run(publish(_opts(root)))

        err = excinfo.value
        assert str(err) == "Failed to publish"
        assert [(m.name, m.published) for m in err.partial_results] == [("a", True)]
        assert (root / "packages" / "b" / "package.json").read_bytes() == before
        assert not list(root.rglob("*.monolift_backup"))

    def test_registry_failure_wrapped(self, make_workspace):
        root = make_workspace({"packages/a": {"name": "a", "version": "1.0.0"}})
        with patch("registry.npm.info_allow_404", AsyncMock(side_effect=RegistryQueryFailed("a", "timeout"))), \
                patch("registry.npm.publish", AsyncMock()) as npm_publish:
            with pytest.raises(PublishFailed) as excinfo:
                asyncio.run(publish(_opts(root)))
        assert isinstance(excinfo.value.cause, RegistryQueryFailed)
        assert excinfo.value.partial_results == []
        npm_publish.assert_not_called()
