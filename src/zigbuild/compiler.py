"""Translation of one target configuration into a zig invocation.

Nothing here touches the filesystem or starts a process. ``synthesize``
returns the argument list for ``zig``, the compilation database entries for
every source, and the optional Windows import library step that must run
before the main invocation.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from zigbuild.errors import UnsupportedWindowsTargetError, ValidationError
from zigbuild.models import (
    CompileCommand,
    DefineValue,
    GnuOptions,
    HostPlatform,
    MacosOptions,
    NixOptions,
    PlatformFamily,
    TargetConfig,
    ToolchainHandle,
)

# "fast" stops at -O2; -O3 and -Ofast are never emitted.
OPTIMISATION_FLAGS = {
    "debug": (),
    "fast": ("-O2",),
    "small": ("-Oz",),
}

WINDOWS_MACHINES = {
    "x86_64": "i386:x86-64",
    "aarch64": "arm64",
    "x86": "i386",
    "i386": "i386",
    "i486": "i386",
    "i586": "i386",
    "i686": "i386",
}


@dataclass(frozen=True, slots=True)
class AuxiliaryStep:
    """A zig sub-command that must finish before the main invocation."""

    args: tuple[str, ...]
    output: str


@dataclass(frozen=True, slots=True)
class TargetPlan:
    args: tuple[str, ...]
    compile_commands: tuple[CompileCommand, ...]
    auxiliary: AuxiliaryStep | None = None


def synthesize(
    config: TargetConfig,
    toolchain: ToolchainHandle,
    *,
    cwd: str | Path,
    host: HostPlatform | None = None,
) -> TargetPlan:
    host = host or HostPlatform.current()
    family = config.family(host)
    options = _platform_options(config, family)

    triple = config.target
    if triple is not None and isinstance(options, GnuOptions) and options.glibc:
        # zig reads the glibc version from the end of the triple
        triple = f"{triple}.{options.glibc}"

    cxx = "++" in (config.std if config.std is not None else "++")
    args: list[str] = ["c++" if cxx else "cc"]
    if triple is not None:
        args += ["-target", triple]
    args += [f"-mcpu={config.cpu or 'baseline'}", "-o", config.output]

    auxiliary: AuxiliaryStep | None = None
    if config.type == "shared":
        args += ["-shared", "-fPIC"]
        if family is PlatformFamily.WINDOWS:
            auxiliary = _import_library_step(config, toolchain, host)
        elif family is PlatformFamily.MACOS:
            args.append("-Wl,-undefined,dynamic_lookup")
    else:
        args.append("-static")

    args += OPTIMISATION_FLAGS[config.mode]

    compile_flags = _compile_flags(config, toolchain, options)
    args += compile_flags.language
    args += compile_flags.includes
    args += [f"-l{lib}" for lib in config.libraries]
    args += [f"-L{path}" for path in config.libraries_search]
    args += compile_flags.defines

    if isinstance(options, MacosOptions):
        for framework in options.frameworks:
            args += ["-framework", framework]
        args += compile_flags.frameworks_search
    if options is not None:
        args += [f"-Wl,-rpath,{path}" for path in options.rpath]

    if config.verbose:
        args.append("-v")
    args += config.cflags
    args += config.sources
    if auxiliary is not None:
        args.append(auxiliary.output)

    directory = str(cwd)
    db_prefix: list[str] = ["clang++" if cxx else "clang"]
    if config.target is not None:
        db_prefix.append(f"--target={config.target}")
    db_prefix += compile_flags.all()
    compile_commands = tuple(
        CompileCommand(
            directory=directory,
            file=source,
            arguments=(*db_prefix, "-c", source),
        )
        for source in config.sources
    )
    return TargetPlan(args=tuple(args), compile_commands=compile_commands, auxiliary=auxiliary)


def effective_defines(config: TargetConfig) -> dict[str, DefineValue]:
    """Merge synthesised defines under the user's, which win on conflict."""
    synthesised: dict[str, DefineValue] = {}
    if config.exceptions is False:
        synthesised["NAPI_DISABLE_CPP_EXCEPTIONS"] = True
        synthesised["NODE_ADDON_API_ENABLE_MAYBE"] = True
    if config.napi_version:
        synthesised["NAPI_VERSION"] = config.napi_version
    return {**synthesised, **config.defines}


def define_flags(defines: dict[str, DefineValue]) -> list[str]:
    flags: list[str] = []
    for name, value in defines.items():
        if value is True:
            flags.append(f"-D{name}")
        elif isinstance(value, bool):
            continue
        elif isinstance(value, str):
            flags.append(f"-D{name}={value}")
        elif isinstance(value, int | float):
            flags.append(f"-D{name}={_format_number(value)}")
    return flags


def windows_machine(triple: str) -> str:
    cpu = triple.split("-", 1)[0]
    machine = WINDOWS_MACHINES.get(cpu)
    if machine is None:
        raise UnsupportedWindowsTargetError(
            f"Cannot generate a Node import library for CPU {cpu!r}.",
            hint=f"Supported CPUs: {', '.join(sorted(WINDOWS_MACHINES))}.",
            context={"triple": triple},
        )
    return machine


@dataclass(frozen=True, slots=True)
class _CompileFlags:
    language: tuple[str, ...]
    includes: tuple[str, ...]
    defines: tuple[str, ...]
    frameworks_search: tuple[str, ...]
    extra: tuple[str, ...]

    def all(self) -> list[str]:
        return [
            *self.language,
            *self.includes,
            *self.defines,
            *self.frameworks_search,
            *self.extra,
        ]


def _compile_flags(
    config: TargetConfig,
    toolchain: ToolchainHandle,
    options: NixOptions | None,
) -> _CompileFlags:
    language: list[str] = []
    if config.std:
        language.append(f"-std={config.std}")
    if config.exceptions is False:
        language.append("-fno-exceptions")

    includes = [f"-I{toolchain.node_include}"]
    if toolchain.napi_include is not None:
        includes.append(f"-I{toolchain.napi_include}")
    includes += [f"-I{path}" for path in config.include]

    frameworks_search: tuple[str, ...] = ()
    if isinstance(options, MacosOptions):
        frameworks_search = tuple(f"-F{path}" for path in options.frameworks_search)

    return _CompileFlags(
        language=tuple(language),
        includes=tuple(includes),
        defines=tuple(define_flags(effective_defines(config))),
        frameworks_search=frameworks_search,
        extra=config.cflags,
    )


def _platform_options(config: TargetConfig, family: PlatformFamily) -> NixOptions | None:
    options = config.platform
    if options is None:
        return None
    if family is PlatformFamily.WINDOWS:
        raise ValidationError(
            "Platform options are not available for Windows targets.",
            hint="Remove rpath, glibc and framework settings from this target.",
            context={"output": config.output, "target": config.target or "host"},
        )
    if isinstance(options, GnuOptions) and (
        family is not PlatformFamily.GNU or config.target is None
    ):
        raise ValidationError(
            "glibc can only be set for an explicit GNU libc Linux triple.",
            context={"output": config.output, "target": config.target or "host"},
        )
    if isinstance(options, MacosOptions) and family is not PlatformFamily.MACOS:
        raise ValidationError(
            "Frameworks can only be set for macOS targets.",
            context={"output": config.output, "target": config.target or "host"},
        )
    return options


def _import_library_step(
    config: TargetConfig,
    toolchain: ToolchainHandle,
    host: HostPlatform,
) -> AuxiliaryStep:
    machine = windows_machine(config.target or host.triple)
    if toolchain.node_api_def is None:
        raise ValidationError(
            "Windows shared targets need the node-api-headers package.",
            hint="Install node-api-headers in the project so its module definition file is found.",
            context={"output": config.output},
        )
    output = Path(config.output)
    library = str(output.with_name(f"{output.stem}.node_api.lib"))
    args = (
        "dlltool",
        "-m",
        machine,
        "-D",
        "node.exe",
        "-d",
        str(toolchain.node_api_def),
        "-l",
        library,
    )
    return AuxiliaryStep(args=args, output=library)


def _format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
