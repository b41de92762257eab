"""Build file parsing.

A build file is TOML (or JSON) with one table per target::

    [build]
    compile_commands = true

    [targets.linux-x64]
    target = "x86_64-linux-gnu"
    glibc = "2.17"
    output = "build/addon.linux-x64.node"
    sources = ["src/addon.cc"]
"""

from __future__ import annotations

import json
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from zigbuild.errors import ValidationError
from zigbuild.models import (
    BuildOptions,
    GnuOptions,
    MacosOptions,
    NixOptions,
    PlatformOptions,
    TargetConfig,
)

DEFAULT_BUILD_FILE = "zig-build.toml"

# camelCase spellings accepted for configs carried over from package.json scripts
_ALIASES = {
    "librariesSearch": "libraries_search",
    "nodeVersion": "node_version",
    "napiVersion": "napi_version",
    "frameworksSearch": "frameworks_search",
}
_STR_KEYS = ("target", "cpu", "type", "mode", "node_version", "std", "glibc")
_LIST_KEYS = (
    "sources",
    "include",
    "libraries",
    "libraries_search",
    "cflags",
    "rpath",
    "frameworks",
    "frameworks_search",
)
_BOOL_KEYS = ("exceptions", "verbose")
_KNOWN_KEYS = {"output", "napi_version", "defines", *_STR_KEYS, *_LIST_KEYS, *_BOOL_KEYS}


@dataclass(frozen=True, slots=True)
class BuildFile:
    targets: dict[str, TargetConfig]
    options: BuildOptions


def load_build_file(path: str | Path) -> BuildFile:
    file_path = Path(path)
    try:
        raw = file_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ValidationError(
            "Build file does not exist.",
            hint=f"Create {DEFAULT_BUILD_FILE} or pass a path explicitly.",
            context={"path": str(file_path)},
        ) from exc
    payload = parse_build_file(raw, json_format=file_path.suffix == ".json")
    return BuildFile(
        targets=parse_targets(payload),
        options=_parse_options(payload.get("build", {}), base=file_path.parent),
    )


def parse_build_file(raw: str, *, json_format: bool = False) -> dict[str, Any]:
    try:
        payload = json.loads(raw) if json_format else tomllib.loads(raw)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ValidationError("Invalid build file.", hint=str(exc)) from exc
    if not isinstance(payload, dict):
        raise ValidationError("Build file must contain a table at the top level.")
    return payload


def parse_targets(payload: Mapping[str, Any]) -> dict[str, TargetConfig]:
    targets = payload.get("targets")
    if not isinstance(targets, dict) or not targets:
        raise ValidationError(
            "Build file defines no targets.",
            hint="Add at least one [targets.<name>] table.",
        )
    return {name: target_from_mapping(name, raw) for name, raw in targets.items()}


def target_from_mapping(name: str, raw: Any) -> TargetConfig:
    if not isinstance(raw, dict):
        raise ValidationError(f"Target {name!r} must be a table.")
    values = {_ALIASES.get(key, key): value for key, value in raw.items()}
    unknown = sorted(set(values) - _KNOWN_KEYS)
    if unknown:
        raise ValidationError(
            f"Target {name!r} has unknown keys.",
            context={"target": name, "keys": ", ".join(unknown)},
        )

    fields: dict[str, Any] = {
        "output": _required_str(name, values, "output"),
        "sources": _str_list(name, values, "sources"),
    }
    for key in _STR_KEYS:
        if key in values and key != "glibc":
            fields[key] = _required_str(name, values, key)
    for key in ("include", "libraries", "libraries_search", "cflags"):
        if key in values:
            fields[key] = _str_list(name, values, key)
    for key in _BOOL_KEYS:
        if key in values:
            fields[key] = _required_bool(name, values, key)
    if "napi_version" in values:
        fields["napi_version"] = _required_int(name, values, "napi_version")
    if "defines" in values:
        fields["defines"] = _defines(name, values["defines"])
    fields["platform"] = _platform_options(name, values)

    try:
        return TargetConfig(**fields)
    except ValidationError as exc:
        raise ValidationError(
            f"Invalid target {name!r}: {exc.args[0]}",
            hint=exc.hint,
            context={"target": name, **exc.context},
        ) from exc
    except TypeError as exc:
        raise ValidationError(f"Invalid target {name!r}.", hint=str(exc)) from exc


def _platform_options(name: str, values: dict[str, Any]) -> PlatformOptions | None:
    rpath = _str_list(name, values, "rpath") if "rpath" in values else ()
    has_frameworks = "frameworks" in values or "frameworks_search" in values
    if "glibc" in values and has_frameworks:
        raise ValidationError(
            f"Target {name!r} mixes glibc and framework settings.",
            context={"target": name},
        )
    try:
        if "glibc" in values:
            return GnuOptions(rpath=rpath, glibc=_required_str(name, values, "glibc"))
        if has_frameworks:
            return MacosOptions(
                rpath=rpath,
                frameworks=_str_list(name, values, "frameworks") if "frameworks" in values else (),
                frameworks_search=(
                    _str_list(name, values, "frameworks_search")
                    if "frameworks_search" in values
                    else ()
                ),
            )
    except ValidationError as exc:
        raise ValidationError(
            f"Invalid target {name!r}: {exc.args[0]}",
            context={"target": name, **exc.context},
        ) from exc
    if "rpath" in values:
        return NixOptions(rpath=rpath)
    return None


def _parse_options(raw: Any, *, base: Path) -> BuildOptions:
    if not isinstance(raw, dict):
        raise ValidationError("Invalid `build` table.")
    cwd = base / raw["cwd"] if isinstance(raw.get("cwd"), str) else base
    compile_commands = raw.get("compile_commands", False)
    if not isinstance(compile_commands, bool | str) or compile_commands == "":
        raise ValidationError(
            "Invalid `build.compile_commands` value.",
            hint="Use true/false or a file name.",
        )
    return BuildOptions(cwd=cwd.resolve(), compile_commands=compile_commands)


def _defines(name: str, raw: Any) -> dict[str, bool | str | int | float]:
    if not isinstance(raw, dict):
        raise ValidationError(f"Target {name!r} has an invalid `defines` table.")
    return dict(raw)


def _required_str(name: str, values: dict[str, Any], key: str) -> str:
    value = values.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(
            f"Invalid `{key}` value.",
            context={"target": name, "key": key},
        )
    return value


def _required_bool(name: str, values: dict[str, Any], key: str) -> bool:
    value = values.get(key)
    if not isinstance(value, bool):
        raise ValidationError(
            f"Invalid `{key}` value.",
            context={"target": name, "key": key},
        )
    return value


def _required_int(name: str, values: dict[str, Any], key: str) -> int:
    value = values.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"Invalid `{key}` value.",
            context={"target": name, "key": key},
        )
    return value


def _str_list(name: str, values: dict[str, Any], key: str) -> tuple[str, ...]:
    value = values.get(key)
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError(
            f"Invalid `{key}` value.",
            hint="Use a string or a list of strings.",
            context={"target": name, "key": key},
        )
    return tuple(value)
