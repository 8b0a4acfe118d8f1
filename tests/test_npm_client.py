"""Tests for the npm registry client."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

aiohttp = pytest.importorskip("aiohttp")

from errors import RegistryQueryFailed, SubprocessFailed
from registry.npm import client
from registry.npm.client import info_allow_404, package_url, publish


class _FakeResponse:
    def __init__(self, status, text="", decode_error=None):
        self.status = status
        self._text = text
        self._decode_error = decode_error

    async def text(self):
        if self._decode_error is not None:
            raise self._decode_error
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.urls = []

    def get(self, url, headers=None):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.response


class TestPackageUrl:
    def test_default_registry(self):
        assert package_url("left-pad") == "https://registry.npmjs.org/left-pad"

    def test_scoped_name_escaped(self):
        assert package_url("@scope/pkg", "http://localhost:4873") == "http://localhost:4873/@scope%2Fpkg"


class TestInfoAllow404:
    def test_not_found_is_unpublished(self):
        session = _FakeSession(_FakeResponse(404, '{"error": "Not found"}'))
        info = asyncio.run(info_allow_404("brand-new", session=session))
        assert info.published is False
        assert info.version == ""

    def test_latest_dist_tag(self):
        session = _FakeSession(_FakeResponse(200, '{"dist-tags": {"latest": "3.1.4", "next": "4.0.0-rc.1"}}'))
        info = asyncio.run(info_allow_404("pkg", "http://localhost:4873/", session))
        assert info.published is True
        assert info.version == "3.1.4"
        assert session.urls == ["http://localhost:4873/pkg"]

    def test_server_error_raises(self):
        session = _FakeSession(_FakeResponse(503, "unavailable"))
        with pytest.raises(RegistryQueryFailed) as excinfo:
            asyncio.run(info_allow_404("pkg", session=session))
        assert excinfo.value.status == 503

    def test_transport_error_raises(self):
        session = _FakeSession(error=aiohttp.ClientConnectionError("refused"))
        with pytest.raises(RegistryQueryFailed):
            asyncio.run(info_allow_404("pkg", session=session))

    def test_bad_json_raises(self):
        session = _FakeSession(_FakeResponse(200, "<html>"))
        with pytest.raises(RegistryQueryFailed):
            asyncio.run(info_allow_404("pkg", session=session))

    @pytest.mark.parametrize("body", ["[1,2]", "\"latest\"", "null"])
    def test_non_object_body_raises(self, body):
        session = _FakeSession(_FakeResponse(200, body))
        with pytest.raises(RegistryQueryFailed) as excinfo:
            asyncio.run(info_allow_404("pkg", session=session))
        assert excinfo.value.status == 200

    def test_undecodable_body_raises(self):
        error = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
        session = _FakeSession(_FakeResponse(200, decode_error=error))
        with pytest.raises(RegistryQueryFailed):
            asyncio.run(info_allow_404("pkg", session=session))

    def test_malformed_dist_tags_means_no_version(self):
        session = _FakeSession(_FakeResponse(200, '{"dist-tags": ["1.0.0"]}'))
        info = asyncio.run(info_allow_404("pkg", session=session))
        assert info.published is True
        assert info.version == ""


class TestPublish:
    def test_publish_args(self, tmp_path):
        spawn = AsyncMock()
        with patch.object(client, "spawn", spawn):
            result = asyncio.run(publish("pkg", tmp_path, registry="http://r", access="public"))
        assert result.published is True
        args = spawn.call_args.args
        assert args[0] == "npm"
        assert args[1] == ["publish", "--registry", "http://r", "--access", "public"]
        assert spawn.call_args.kwargs["cwd"] == tmp_path

    def test_failed_publish_reports_not_published(self, tmp_path):
        spawn = AsyncMock(side_effect=SubprocessFailed(["npm", "publish"], 1, "", "E403 forbidden"))
        with patch.object(client, "spawn", spawn):
            result = asyncio.run(publish("pkg", tmp_path))
        assert result.published is False
        assert spawn.call_args.args[1] == ["publish"]
