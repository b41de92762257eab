"""Queries against the local Node.js runtime.

The running Node release decides which headers are fetched by default, and
optional companion packages (``node-addon-api``, ``node-api-headers``) are
located through Node's own module resolution from the build directory.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path

from zigbuild.errors import AcquisitionError

NAPI_MODULE = "node-addon-api"
NAPI_INCLUDE_EXPRESSION = ".include.slice(1, -1)"
NODE_API_HEADERS_MODULE = "node-api-headers"
NODE_API_DEF_EXPRESSION = ".def_paths.node_api_def"

_RELEASE_EXPRESSION = (
    "JSON.stringify({version: process.version, headersUrl: process.release.headersUrl})"
)


@dataclass(frozen=True, slots=True)
class NodeRelease:
    version: str
    headers_url: str


async def node_release(*, node: str = "node") -> NodeRelease:
    returncode, stdout, stderr = await _evaluate(_RELEASE_EXPRESSION, node=node, cwd=None)
    if returncode != 0:
        raise AcquisitionError(
            "Could not read the running Node.js release.",
            hint=stderr.strip() or None,
            context={"node": node, "exit_code": str(returncode)},
        )
    try:
        payload = json.loads(stdout)
        version = str(payload["version"]).lstrip("v")
        headers_url = str(payload["headersUrl"])
    except (json.JSONDecodeError, KeyError, TypeError) as exc:
        raise AcquisitionError(
            "Node.js returned an unexpected release report.",
            context={"node": node, "output": stdout.strip()[:200]},
        ) from exc
    return NodeRelease(version=version, headers_url=headers_url)


async def resolve_node_module(
    module: str,
    expression: str,
    *,
    cwd: str | Path | None = None,
    node: str = "node",
) -> Path | None:
    """Evaluate ``require(module)<expression>`` and return it as a path.

    Returns ``None`` only when ``module`` itself cannot be found. Any other
    failure raises ``AcquisitionError``.
    """
    script = f"require({json.dumps(module)}){expression}"
    returncode, stdout, stderr = await _evaluate(script, node=node, cwd=cwd)
    if returncode != 0:
        if "MODULE_NOT_FOUND" in stderr and f"Cannot find module '{module}'" in stderr:
            return None
        raise AcquisitionError(
            f"Resolving '{module}' failed.",
            hint=stderr.strip()[:2000] or None,
            context={"module": module, "exit_code": str(returncode)},
        )
    value = stdout.strip()
    if not value or value == "undefined":
        raise AcquisitionError(
            f"'{module}' did not report a path.",
            context={"module": module, "expression": expression},
        )
    return Path(value)


async def _evaluate(
    expression: str,
    *,
    node: str,
    cwd: str | Path | None,
) -> tuple[int, str, str]:
    try:
        proc = await asyncio.create_subprocess_exec(
            node,
            "-p",
            expression,
            cwd=str(cwd) if cwd is not None else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise AcquisitionError(
            "Node.js executable not found.",
            hint="Install Node.js or put it on PATH.",
            context={"node": node},
        ) from exc
    stdout, stderr = await proc.communicate()
    return (
        proc.returncode if proc.returncode is not None else -1,
        stdout.decode("utf-8", errors="replace"),
        stderr.decode("utf-8", errors="replace"),
    )
