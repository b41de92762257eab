"""Core typed dataclasses for target configuration and resolved toolchains."""

from __future__ import annotations

import platform
import re
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Literal

from zigbuild.errors import ValidationError

OutputType = Literal["bin", "shared", "static"]
OutputMode = Literal["debug", "fast", "small"]
DefineValue = bool | str | int | float

OUTPUT_TYPES: tuple[OutputType, ...] = ("bin", "shared", "static")
OUTPUT_MODES: tuple[OutputMode, ...] = ("debug", "fast", "small")
DEFAULT_COMPILE_COMMANDS = "compile_commands.json"

GLIBC_PATTERN = re.compile(r"^\d+\.\d+(\.\d+)?$")
NODE_VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")

_OS_ALIASES = {
    "linux": "linux",
    "darwin": "macos",
    "win32": "windows",
    "cygwin": "windows",
}
_ARCH_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
    "x86": "x86",
    "i386": "x86",
    "i686": "x86",
    "armv7l": "arm",
    "armv6l": "arm",
}


class PlatformFamily(StrEnum):
    """Triple families that gate platform-conditional target options."""

    GNU = "gnu"
    NIX = "nix"
    MACOS = "macos"
    WINDOWS = "windows"


def platform_family(triple: str) -> PlatformFamily:
    """Classify a ``<cpu>-<os>[-<abi>]`` triple."""
    parts = triple.split("-")
    os_name = parts[1] if len(parts) > 1 else ""
    abi = parts[2] if len(parts) > 2 else ""
    if os_name == "windows":
        return PlatformFamily.WINDOWS
    if os_name in ("macos", "darwin"):
        return PlatformFamily.MACOS
    if os_name == "linux" and abi.startswith("gnu"):
        return PlatformFamily.GNU
    return PlatformFamily.NIX


@dataclass(frozen=True, slots=True)
class HostPlatform:
    os: str
    arch: str

    @classmethod
    def current(cls) -> HostPlatform:
        os_name = _OS_ALIASES.get(sys.platform, sys.platform)
        machine = platform.machine().lower()
        return cls(os=os_name, arch=_ARCH_ALIASES.get(machine, machine))

    @property
    def triple(self) -> str:
        return f"{self.arch}-{self.os}"

    @property
    def family(self) -> PlatformFamily:
        if self.os == "windows":
            return PlatformFamily.WINDOWS
        if self.os == "macos":
            return PlatformFamily.MACOS
        return PlatformFamily.NIX


@dataclass(frozen=True, slots=True)
class NixOptions:
    """Options valid for every non-Windows target."""

    rpath: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "rpath", _as_tuple(self.rpath))

    @property
    def family(self) -> PlatformFamily:
        return PlatformFamily.NIX


@dataclass(frozen=True, slots=True)
class GnuOptions(NixOptions):
    """Options for GNU libc Linux triples."""

    glibc: str | None = None

    def __post_init__(self) -> None:
        NixOptions.__post_init__(self)
        if self.glibc is not None and not GLIBC_PATTERN.fullmatch(self.glibc):
            raise ValidationError(
                "glibc version must look like major.minor[.patch].",
                context={"glibc": self.glibc},
            )

    @property
    def family(self) -> PlatformFamily:
        return PlatformFamily.GNU


@dataclass(frozen=True, slots=True)
class MacosOptions(NixOptions):
    """Options for macOS triples."""

    frameworks: tuple[str, ...] = ()
    frameworks_search: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        NixOptions.__post_init__(self)
        object.__setattr__(self, "frameworks", _as_tuple(self.frameworks))
        object.__setattr__(self, "frameworks_search", _as_tuple(self.frameworks_search))

    @property
    def family(self) -> PlatformFamily:
        return PlatformFamily.MACOS


PlatformOptions = NixOptions | GnuOptions | MacosOptions


@dataclass(frozen=True, slots=True)
class TargetConfig:
    """One build unit. ``target=None`` builds for the host."""

    output: str
    sources: tuple[str, ...]
    target: str | None = None
    cpu: str | None = None
    type: OutputType = "shared"
    mode: OutputMode = "fast"
    include: tuple[str, ...] = ()
    libraries: tuple[str, ...] = ()
    libraries_search: tuple[str, ...] = ()
    node_version: str | None = None
    napi_version: int | None = None
    defines: Mapping[str, DefineValue] = field(default_factory=dict)
    std: str | None = None
    exceptions: bool | None = None
    cflags: tuple[str, ...] = ()
    verbose: bool = False
    platform: PlatformOptions | None = None

    def __post_init__(self) -> None:
        for name in ("sources", "include", "libraries", "libraries_search", "cflags"):
            object.__setattr__(self, name, _as_tuple(getattr(self, name)))
        object.__setattr__(self, "defines", dict(self.defines))
        if not self.output:
            raise ValidationError("Targets require a non-empty output path.")
        if not self.sources:
            raise ValidationError(
                "Targets require at least one source file.",
                context={"output": self.output},
            )
        if self.type not in OUTPUT_TYPES:
            raise ValidationError(
                f"Unknown output type {self.type!r}.",
                hint=f"Use one of: {', '.join(OUTPUT_TYPES)}.",
                context={"output": self.output},
            )
        if self.mode not in OUTPUT_MODES:
            raise ValidationError(
                f"Unknown optimisation mode {self.mode!r}.",
                hint=f"Use one of: {', '.join(OUTPUT_MODES)}.",
                context={"output": self.output},
            )
        if self.node_version is not None and not NODE_VERSION_PATTERN.fullmatch(self.node_version):
            raise ValidationError(
                "Node headers version must look like major.minor.patch.",
                context={"output": self.output, "node_version": self.node_version},
            )

    def family(self, host: HostPlatform) -> PlatformFamily:
        if self.target is None:
            return host.family
        return platform_family(self.target)


@dataclass(frozen=True, slots=True)
class ToolchainHandle:
    """Resolved local paths shared read-only by every target of a build."""

    zig: Path
    node_include: Path
    napi_include: Path | None = None
    node_api_def: Path | None = None


@dataclass(frozen=True, slots=True)
class CompileCommand:
    directory: str
    file: str
    arguments: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "directory": self.directory,
            "file": self.file,
            "arguments": list(self.arguments),
        }


@dataclass(frozen=True, slots=True)
class BuildOptions:
    cwd: Path = field(default_factory=Path.cwd)
    compile_commands: bool | str = False

    def __post_init__(self) -> None:
        if isinstance(self.compile_commands, str) and not self.compile_commands.strip():
            raise ValidationError(
                "Compilation database name must not be empty.",
                hint="Use true for compile_commands.json or give a file name.",
            )

    @property
    def compile_commands_path(self) -> Path | None:
        if self.compile_commands is False:
            return None
        if self.compile_commands is True:
            return Path(self.cwd) / DEFAULT_COMPILE_COMMANDS
        return Path(self.cwd) / self.compile_commands


def _as_tuple(value: str | Sequence[str] | None) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)
