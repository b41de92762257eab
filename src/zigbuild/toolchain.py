"""Acquisition and local caching of the zig toolchain and Node headers.

Layout under the cache root::

    zig/<zig-version>/zig[.exe]
    node/<node-version>/include/node

A cache hit is a plain existence check. A failed or cancelled download removes
its directory; one left behind by a killed process stays valid until it is
removed by hand.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from zigbuild.errors import AcquisitionError, PlatformUnsupportedError, ProcessFailureError
from zigbuild.fetch import ClientFactory, default_client, open_stream
from zigbuild.log import NODE_COLOUR, ZIG_COLOUR, TargetLogger, make_logger
from zigbuild.models import HostPlatform, ToolchainHandle
from zigbuild.node import (
    NAPI_INCLUDE_EXPRESSION,
    NAPI_MODULE,
    NODE_API_DEF_EXPRESSION,
    NODE_API_HEADERS_MODULE,
    NodeRelease,
    node_release,
    resolve_node_module,
)
from zigbuild.proc import run

CACHE_ENV = "ZIG_BUILD_CACHE_DIR"
ZIG_VERSION = "0.10.1"
NODE_HEADERS_URL = "https://nodejs.org/download/release/v{version}/node-v{version}-headers.tar.gz"

# (host os, host arch) -> (os segment in the archive name, archive extension)
ZIG_DOWNLOADS: dict[tuple[str, str], tuple[str, str]] = {
    ("linux", "x86_64"): ("linux", "tar.xz"),
    ("linux", "aarch64"): ("linux", "tar.xz"),
    ("macos", "x86_64"): ("macos", "tar.xz"),
    ("macos", "aarch64"): ("macos", "tar.xz"),
    ("windows", "x86_64"): ("windows", "zip"),
    ("windows", "aarch64"): ("windows", "zip"),
}

Runner = Callable[..., Awaitable[int]]
ModuleResolver = Callable[..., Awaitable[Path | None]]


def default_cache_root() -> Path:
    override = os.environ.get(CACHE_ENV)
    if override:
        return Path(override)
    return Path.home() / ".zig-build"


def zig_download_url(host: HostPlatform, version: str = ZIG_VERSION) -> str | None:
    entry = ZIG_DOWNLOADS.get((host.os, host.arch))
    if entry is None:
        return None
    os_segment, ext = entry
    return (
        f"https://ziglang.org/download/{version}/"
        f"zig-{os_segment}-{host.arch}-{version}.{ext}"
    )


@dataclass(slots=True)
class ToolchainCache:
    root: Path = field(default_factory=default_cache_root)
    zig_version: str = ZIG_VERSION
    host: HostPlatform = field(default_factory=HostPlatform.current)
    use_system_zig: bool = True
    node: str = "node"
    client_factory: ClientFactory = default_client
    runner: Runner = run
    module_resolver: ModuleResolver = resolve_node_module
    release: NodeRelease | None = None

    @property
    def zig_dir(self) -> Path:
        return Path(self.root) / "zig" / self.zig_version

    @property
    def zig_binary(self) -> Path:
        name = "zig.exe" if self.host.os == "windows" else "zig"
        return self.zig_dir / name

    def headers_dir(self, node_version: str) -> Path:
        return Path(self.root) / "node" / node_version

    def headers_include(self, node_version: str) -> Path:
        return self.headers_dir(node_version) / "include" / "node"

    async def ensure(
        self,
        node_version: str | None = None,
        *,
        cwd: str | Path | None = None,
        need_node_api_def: bool = False,
    ) -> ToolchainHandle:
        handles = await self.ensure_all(
            [node_version], cwd=cwd, need_node_api_def=need_node_api_def
        )
        return handles[node_version]

    async def ensure_all(
        self,
        node_versions: Iterable[str | None],
        *,
        cwd: str | Path | None = None,
        need_node_api_def: bool = False,
    ) -> dict[str | None, ToolchainHandle]:
        """Resolve zig and one header set per requested Node version.

        ``None`` stands for the running Node release. Zig is located first,
        so an unsupported host fails before any download starts. Pending
        downloads then run concurrently and a failure cancels the rest;
        companion headers are resolved once they finish.
        """
        zig_log = make_logger("zig", colour=ZIG_COLOUR)
        zig, zig_url = await self._locate_zig(zig_log)

        resolved: dict[str | None, str] = {}
        urls: dict[str, str] = {}
        for requested in dict.fromkeys(node_versions):
            version, url = await self._headers_source(requested)
            resolved[requested] = version
            urls.setdefault(version, url)

        try:
            async with asyncio.TaskGroup() as group:
                if zig_url is not None:
                    group.create_task(self._download_zig(zig_url, zig_log))
                header_tasks = {
                    version: group.create_task(self.ensure_headers(version, url))
                    for version, url in urls.items()
                }
        except ExceptionGroup as group_error:
            raise _first_error(group_error)
        include_for = {version: task.result() for version, task in header_tasks.items()}

        napi_include = await self.module_resolver(
            NAPI_MODULE, NAPI_INCLUDE_EXPRESSION, cwd=cwd, node=self.node
        )
        node_api_def = None
        if need_node_api_def:
            node_api_def = await self.module_resolver(
                NODE_API_HEADERS_MODULE, NODE_API_DEF_EXPRESSION, cwd=cwd, node=self.node
            )
        return {
            requested: ToolchainHandle(
                zig=zig,
                node_include=include_for[version],
                napi_include=napi_include,
                node_api_def=node_api_def,
            )
            for requested, version in resolved.items()
        }

    async def ensure_zig(self) -> Path:
        log = make_logger("zig", colour=ZIG_COLOUR)
        binary, url = await self._locate_zig(log)
        if url is not None:
            await self._download_zig(url, log)
        return binary

    async def _locate_zig(self, log: TargetLogger) -> tuple[Path, str | None]:
        """Return the zig binary and, when it still has to be fetched, its URL."""
        binary = self.zig_binary
        log(f"checking for zig at '{binary}'")
        if binary.exists():
            return binary, None

        if self.use_system_zig:
            system = await self._system_zig(log)
            if system is not None:
                return system, None

        url = zig_download_url(self.host, self.zig_version)
        if url is None:
            raise PlatformUnsupportedError(
                f"No zig {self.zig_version} download for {self.host.os} {self.host.arch}.",
                hint=f"Install zig {self.zig_version} and put it on PATH.",
                context={"os": self.host.os, "arch": self.host.arch},
            )
        return binary, url

    async def _download_zig(self, url: str, log: TargetLogger) -> None:
        flags = "-xf" if url.endswith(".zip") else "-xJf"
        await self._download(url, self.zig_dir, flags, log)

    async def ensure_headers(self, node_version: str, url: str) -> Path:
        log = make_logger("node", colour=NODE_COLOUR)
        include = self.headers_include(node_version)
        log(f"checking for node headers at '{include}'")
        if include.exists():
            return include
        await self._download(url, self.headers_dir(node_version), "-xzf", log)
        return include

    async def _headers_source(self, node_version: str | None) -> tuple[str, str]:
        if node_version is not None:
            return node_version, NODE_HEADERS_URL.format(version=node_version)
        if self.release is None:
            self.release = await node_release(node=self.node)
        return self.release.version, self.release.headers_url

    async def _system_zig(self, log: TargetLogger) -> Path | None:
        found = shutil.which("zig")
        if found is None:
            return None
        try:
            proc = await asyncio.create_subprocess_exec(
                found,
                "version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
            stdout, _ = await proc.communicate()
        except OSError as exc:
            log(f"ignoring zig at '{found}': {exc}")
            return None
        version = stdout.decode("utf-8", errors="replace").strip()
        if proc.returncode != 0 or version != self.zig_version:
            log(f"ignoring zig {version or '?'} at '{found}', need {self.zig_version}")
            return None
        log(f"using zig from PATH at '{found}'")
        return Path(found)

    async def _download(self, url: str, dest: Path, flags: str, log: TargetLogger) -> None:
        dest.mkdir(parents=True, exist_ok=True)
        try:
            async with self.client_factory() as client:
                async with open_stream(url, client=client, log=log) as response:
                    await self.runner(
                        "tar",
                        [flags, "-", "--strip-components=1", "-C", str(dest)],
                        log=log,
                        stdin=response.aiter_bytes(),
                    )
        except BaseException as exc:
            # cache hits are existence checks, so never leave a partial directory
            shutil.rmtree(dest, ignore_errors=True)
            if isinstance(exc, ProcessFailureError):
                raise AcquisitionError(
                    "Extracting the downloaded archive failed.",
                    hint="Check the archive download and retry the build.",
                    context={
                        "url": url,
                        "path": str(dest),
                        "exit_code": exc.context.get("exit_code", ""),
                    },
                ) from exc
            raise


def _first_error(group: BaseExceptionGroup) -> BaseException:
    first = group.exceptions[0]
    while isinstance(first, BaseExceptionGroup):
        first = first.exceptions[0]
    return first
