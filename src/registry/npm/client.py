"""NPM registry client: published-version lookup and publish."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote

import aiohttp

from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from common.process import spawn
from constants import Constants
from errors import RegistryQueryFailed, SubprocessFailed

logger = logging.getLogger(__name__)

PACKUMENT_ACCEPT = "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8, */*"


@dataclass
class RegistryInfo:
    """Published state of one package name."""

    published: bool
    version: str = ""


@dataclass
class PublishConfirmation:
    published: bool


def package_url(name: str, registry: Optional[str] = None) -> str:
    """Packument URL; the ``/`` of a scoped name is escaped."""
    base = (registry or Constants.REGISTRY_URL_NPM).rstrip("/") + "/"
    return base + quote(name, safe="@")


async def info_allow_404(
    name: str,
    registry: Optional[str] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> RegistryInfo:
    """Look up the latest published version of ``name``.

    A 404 means "never published" and is not an error.

    Raises:
        RegistryQueryFailed: On transport errors, other non-2xx statuses or
            an unreadable body.
    """
    url = package_url(name, registry)
    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=Constants.REQUEST_TIMEOUT))
    try:
        with Timer() as timer:
            try:
                async with session.get(url, headers={"Accept": PACKUMENT_ACCEPT}) as res:
                    status = res.status
                    text = await res.text()
            except UnicodeDecodeError as exc:
                raise RegistryQueryFailed(name, "could not decode registry response", status) from exc
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                logger.error(
                    "npm connection error: %s",
                    exc,
                    extra=extra_context(event="http_error", outcome="exception", target=safe_url(url)),
                )
                raise RegistryQueryFailed(name, str(exc)) from exc
    finally:
        if owns_session:
            await session.close()

    if status == 404:
        logger.debug(
            "Package %s not found on registry",
            name,
            extra=extra_context(event="http_response", outcome="not_found", status_code=404, target=safe_url(url)),
        )
        return RegistryInfo(published=False, version="")
    if not 200 <= status < 300:
        logger.warning(
            "HTTP non-2xx from registry",
            extra=extra_context(
                event="http_response",
                outcome="handled_non_2xx",
                status_code=status,
                duration_ms=timer.duration_ms(),
                target=safe_url(url),
            ),
        )
        raise RegistryQueryFailed(name, f"unexpected status {status}", status)

    try:
        packument = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RegistryQueryFailed(name, "could not decode registry response", status) from exc

    if not isinstance(packument, dict):
        raise RegistryQueryFailed(name, "unexpected registry response", status)
    tags = packument.get("dist-tags")
    version = str(tags.get("latest") or "") if isinstance(tags, dict) else ""
    if is_debug_enabled(logger):
        logger.debug(
            "HTTP response ok",
            extra=extra_context(
                event="http_response",
                outcome="success",
                status_code=status,
                duration_ms=timer.duration_ms(),
                package_manager="npm",
            ),
        )
    return RegistryInfo(published=True, version=version)


async def publish(
    name: str,
    cwd: Union[str, Path],
    registry: Optional[str] = None,
    access: Optional[str] = None,
) -> PublishConfirmation:
    """Run ``npm publish`` in ``cwd``.

    A failing publish is logged and reported as not published; the caller
    decides what that means for the batch.
    """
    args = ["publish"]
    if registry:
        args += ["--registry", registry]
    if access:
        args += ["--access", access]
    try:
        await spawn(Constants.NPM_BIN, args, cwd=cwd, tty=False, label=name)
    except SubprocessFailed as exc:
        logger.error("Publishing %s failed: %s", name, (exc.stderr or exc.stdout).strip() or exc)
        return PublishConfirmation(published=False)
    return PublishConfirmation(published=True)
