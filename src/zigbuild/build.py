"""Concurrent build orchestration across named targets."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path

from zigbuild import compile_db
from zigbuild.compiler import TargetPlan, synthesize
from zigbuild.log import TargetLogger, make_logger
from zigbuild.models import BuildOptions, HostPlatform, PlatformFamily, TargetConfig
from zigbuild.toolchain import Runner, ToolchainCache


async def build(
    targets: Mapping[str, TargetConfig],
    options: BuildOptions | None = None,
    *,
    cache: ToolchainCache | None = None,
    runner: Runner | None = None,
) -> None:
    """Build every target concurrently.

    The toolchain is resolved once and shared. When a compilation database is
    requested it is written even if some targets failed; the first failure is
    raised afterwards.
    """
    options = options or BuildOptions()
    cache = cache or ToolchainCache()
    runner = runner or cache.runner
    host = cache.host
    cwd = Path(options.cwd)

    handles = await cache.ensure_all(
        [config.node_version for config in targets.values()],
        cwd=cwd,
        need_node_api_def=any(_needs_import_library(config, host) for config in targets.values()),
    )

    plans: dict[str, TargetPlan] = {
        name: synthesize(config, handles[config.node_version], cwd=cwd, host=host)
        for name, config in targets.items()
    }

    async def pipeline(name: str, plan: TargetPlan, log: TargetLogger) -> None:
        zig = handles[targets[name].node_version].zig
        if plan.auxiliary is not None:
            await runner(zig, list(plan.auxiliary.args), cwd=cwd, log=log)
        await runner(zig, list(plan.args), cwd=cwd, log=log)

    tasks = [
        pipeline(name, plan, make_logger(name, index))
        for index, (name, plan) in enumerate(plans.items())
    ]

    db_path = options.compile_commands_path
    if db_path is None:
        await asyncio.gather(*tasks)
        return

    outcomes = await asyncio.gather(*tasks, return_exceptions=True)
    entries = [entry for plan in plans.values() for entry in plan.compile_commands]
    compile_db.write(entries, db_path)
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome


def _needs_import_library(config: TargetConfig, host: HostPlatform) -> bool:
    return config.type == "shared" and config.family(host) is PlatformFamily.WINDOWS
