"""``monolift run``: run a package script in every selected package that has it."""

from __future__ import annotations

import logging
from typing import List, Optional

from orchestration.task_runner import ConcurrencyPolicy
from pm import yarn
from workspace.filters import FilterOptions
from workspace.package import Package
from workspace.project import Project

logger = logging.getLogger(__name__)


async def run_script(
    project: Project,
    script: str,
    args: Optional[List[str]] = None,
    filter_opts: Optional[FilterOptions] = None,
    policy: Optional[ConcurrencyPolicy] = None,
) -> List[Package]:
    """Run ``script`` across the selection; packages without it are skipped.

    Returns:
        The packages the script actually ran in, in selection order.
    """
    packages = await project.select_packages(filter_opts)

    async def run_in(pkg: Package) -> bool:
        return await yarn.run_if_exists(pkg, script, args) is not None

    results = await project.run_package_tasks(packages, policy, run_in)
    ran = [r.package for r in results if r.value]
    if not ran:
        logger.warning("No selected package has a '%s' script", script)
    return ran
