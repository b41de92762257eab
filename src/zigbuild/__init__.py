"""Build and cross-compile Node-API addons with zig."""

from .build import build
from .compile_db import dedupe
from .compiler import AuxiliaryStep, TargetPlan, synthesize
from .config import BuildFile, load_build_file
from .errors import (
    AcquisitionError,
    ErrorCode,
    PlatformUnsupportedError,
    ProcessFailureError,
    UnsupportedWindowsTargetError,
    ValidationError,
    ZigBuildError,
)
from .models import (
    BuildOptions,
    CompileCommand,
    GnuOptions,
    HostPlatform,
    MacosOptions,
    NixOptions,
    PlatformFamily,
    TargetConfig,
    ToolchainHandle,
)
from .toolchain import ToolchainCache

__all__ = [
    "AcquisitionError",
    "AuxiliaryStep",
    "BuildFile",
    "BuildOptions",
    "CompileCommand",
    "ErrorCode",
    "GnuOptions",
    "HostPlatform",
    "MacosOptions",
    "NixOptions",
    "PlatformFamily",
    "PlatformUnsupportedError",
    "ProcessFailureError",
    "TargetConfig",
    "TargetPlan",
    "ToolchainCache",
    "ToolchainHandle",
    "UnsupportedWindowsTargetError",
    "ValidationError",
    "ZigBuildError",
    "build",
    "dedupe",
    "load_build_file",
    "synthesize",
]
