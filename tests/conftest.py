"""Shared test fixtures."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import pytest

from zigbuild.errors import ProcessFailureError
from zigbuild.models import HostPlatform, ToolchainHandle
from zigbuild.node import NAPI_MODULE, NODE_API_HEADERS_MODULE, NodeRelease
from zigbuild.toolchain import ToolchainCache

NODE_VERSION = "20.11.0"
HEADERS_URL = f"https://nodejs.org/download/release/v{NODE_VERSION}/node-v{NODE_VERSION}-headers.tar.gz"
LINUX_X64 = HostPlatform(os="linux", arch="x86_64")


@dataclass(slots=True)
class RecordingRunner:
    """Stands in for ``zigbuild.proc.run`` and records every invocation."""

    calls: list[tuple[str, tuple[str, ...]]] = field(default_factory=list)
    fail_when: str | None = None

    async def __call__(self, command, args, *, log, cwd=None, stdin=None) -> int:
        self.calls.append((str(command), tuple(args)))
        log(f"executing '{command}'")
        if self.fail_when is not None and self.fail_when in args:
            raise ProcessFailureError("compiler failed", exit_code=1)
        return 0


@dataclass(slots=True)
class NetworkRecorder:
    """Client factory whose transport answers 404 and counts requests."""

    requests: list[str] = field(default_factory=list)
    clients: int = 0

    def __call__(self) -> httpx.AsyncClient:
        self.clients += 1

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(str(request.url))
            return httpx.Response(404)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def fake_resolver(napi: Path | None, node_api_def: Path | None = None):
    async def resolve(module: str, expression: str, *, cwd=None, node="node") -> Path | None:
        return {NAPI_MODULE: napi, NODE_API_HEADERS_MODULE: node_api_def}.get(module)

    return resolve


def populate(root: Path, *versions: str) -> None:
    zig = root / "zig" / "0.10.1" / "zig"
    zig.parent.mkdir(parents=True, exist_ok=True)
    zig.write_text("#!/bin/sh\n", encoding="utf-8")
    for version in versions or (NODE_VERSION,):
        (root / "node" / version / "include" / "node").mkdir(parents=True, exist_ok=True)


@pytest.fixture
def network() -> NetworkRecorder:
    return NetworkRecorder()


@pytest.fixture
def cache(tmp_path: Path, network: NetworkRecorder) -> ToolchainCache:
    """A toolchain cache with zig and the default headers already present."""
    root = tmp_path / "cache"
    populate(root)
    return ToolchainCache(
        root=root,
        host=LINUX_X64,
        use_system_zig=False,
        client_factory=network,
        module_resolver=fake_resolver(tmp_path / "node_modules" / "node-addon-api"),
        release=NodeRelease(version=NODE_VERSION, headers_url=HEADERS_URL),
    )


@pytest.fixture
def handle() -> ToolchainHandle:
    return ToolchainHandle(
        zig=Path("/cache/zig/0.10.1/zig"),
        node_include=Path("/cache/node/20.11.0/include/node"),
        napi_include=Path("/project/node_modules/node-addon-api"),
        node_api_def=Path("/project/node_modules/node-api-headers/def/node_api.def"),
    )


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger = logging.getLogger("zigbuild")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
