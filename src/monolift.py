"""monolift: version, publish and run scripts across a JavaScript workspace."""

import asyncio
import logging
import os
import sys
from pathlib import Path

from args import parse_args
from cli_config import RuntimeSettings, apply_overrides, config_root, load_config
from commands.publish import PublishOptions, publish
from commands.run import run_script
from commands.version import VersionOptions, version
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from errors import MonoliftError, PublishFailed, TaskBatchFailed, WorkspaceNotFound
from orchestration.mutation_guard import default_registry
from orchestration.task_runner import ConcurrencyPolicy
from pm import yarn
from workspace.filters import FilterOptions
from workspace.project import Project, find_workspace_root

logger = logging.getLogger(__name__)


def _setup_logging(args):
    """Configure logging based on CLI arguments."""
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.ENV_LOG_LEVEL] = str(args.LOG_LEVEL).upper()
    configure_logging()

    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)
        logger.info("Logging to file: %s", log_file)


def load_settings(args):
    """Config file, then ``--set`` overrides, then explicit flags."""
    cwd = config_root(args)
    try:
        root = find_workspace_root(cwd)
    except WorkspaceNotFound:
        root = cwd
    config = load_config(getattr(args, "CONFIG", None), root)
    config = apply_overrides(config, getattr(args, "POLICY_SET", None) or [])
    return RuntimeSettings.from_sources(config, args)


def build_policy(settings):
    return ConcurrencyPolicy(order=settings.order, max_workers=settings.concurrency)


async def cmd_version(args, settings):
    results = await version(VersionOptions(
        cwd=getattr(args, "CWD", None),
        filter_opts=FilterOptions.from_args(args),
        policy=build_policy(settings),
        strict=settings.strict,
    ))
    for res in results:
        print(f"{res.name}@{res.new_version}")
    return ExitCodes.SUCCESS


async def cmd_publish(args, settings):
    restore = getattr(args, "RESTORE_AFTER_PUBLISH", None)
    results = await publish(PublishOptions(
        cwd=getattr(args, "CWD", None),
        access=settings.access,
        registry=settings.registry,
        policy=build_policy(settings),
        restore_after_publish=settings.restore_after_publish if restore is None else restore,
        strict=settings.strict,
    ))
    failed = [meta for meta in results if not meta.published]
    for meta in results:
        print(f"{meta.name}@{meta.new_version} {'published' if meta.published else 'FAILED'}")
    if failed:
        logger.warning("%d package(s) were not published", len(failed))
        return ExitCodes.EXIT_WARNINGS
    return ExitCodes.SUCCESS


async def cmd_run(args, settings):
    project = Project.init(config_root(args), strict=settings.strict)
    await run_script(
        project,
        args.SCRIPT,
        list(getattr(args, "SCRIPT_ARGS", None) or []),
        FilterOptions.from_args(args),
        build_policy(settings),
    )
    return ExitCodes.SUCCESS


async def cmd_install(args, settings):
    root = find_workspace_root(config_root(args))
    await yarn.install(root, pure_lockfile=bool(getattr(args, "PURE_LOCKFILE", False)))
    return ExitCodes.SUCCESS


async def cmd_ls(args, settings):
    project = Project.init(config_root(args), strict=settings.strict)
    graph = project.get_dependency_graph()
    for pkg in await project.select_packages(FilterOptions.from_args(args)):
        rel = os.path.relpath(str(pkg.directory), str(project.dir))
        links = ", ".join(sorted(graph.links_of(pkg))) or "-"
        private = " (private)" if pkg.private else ""
        print(f"{pkg.name}@{pkg.version}{private} {Path(rel).as_posix()} -> {links}")
    return ExitCodes.SUCCESS


COMMANDS = {
    "version": cmd_version,
    "publish": cmd_publish,
    "run": cmd_run,
    "install": cmd_install,
    "ls": cmd_ls,
}


def _fail(err):
    if is_debug_enabled(logger):
        logger.debug("Failure details", exc_info=err)
    sys.exit(err.exit_code.value)


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    _setup_logging(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.action),
        )

    default_registry.install_exit_handlers()
    try:
        settings = load_settings(args)
        code = asyncio.run(COMMANDS[args.action](args, settings))
    except PublishFailed as err:
        logger.error("%s: %s", err, err.cause)
        for meta in err.partial_results:
            logger.error("  %s@%s was attempted before the failure", meta.name, meta.new_version)
        _fail(err)
    except TaskBatchFailed as err:
        for res in err.failures:
            logger.error("%s: %s", res.package.name, res.error)
        logger.error("%s", err)
        _fail(err)
    except MonoliftError as err:
        logger.error("%s", err)
        _fail(err)
    except OSError as err:
        logger.error("File error: %s", err)
        if is_debug_enabled(logger):
            logger.debug("Failure details", exc_info=err)
        sys.exit(ExitCodes.FILE_ERROR.value)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(event="function_exit", component="cli", action=args.action, outcome="success"),
        )
    sys.exit(code.value)


if __name__ == "__main__":
    main()
