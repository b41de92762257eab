from pathlib import Path

import pytest

from zigbuild import compile_db
from zigbuild.errors import (
    ErrorCode,
    ProcessFailureError,
    UnsupportedWindowsTargetError,
    ValidationError,
)
from zigbuild.models import (
    BuildOptions,
    CompileCommand,
    GnuOptions,
    HostPlatform,
    MacosOptions,
    PlatformFamily,
    TargetConfig,
    platform_family,
)


def test_error_payload() -> None:
    err = ValidationError("bad target", hint="fix it", context={"target": "x"})

    assert err.code == ErrorCode.VALIDATION.value
    assert err.to_dict() == {
        "code": "E_VALIDATION",
        "message": "bad target\nHint: fix it\n  target: x",
        "context": {"target": "x"},
        "hint": "fix it",
    }
    assert UnsupportedWindowsTargetError("nope").code == "E_UNSUPPORTED_WINDOWS_TARGET"


def test_process_failure_context() -> None:
    exited = ProcessFailureError("failed", exit_code=2)
    killed = ProcessFailureError("killed", exit_code=None, signal=15)

    assert exited.context == {"exit_code": "2"}
    assert killed.context == {"exit_code": "null", "signal": "15"}
    assert killed.exit_code is None and killed.signal == 15


@pytest.mark.parametrize(
    ("triple", "family"),
    [
        ("x86_64-linux-gnu", PlatformFamily.GNU),
        ("aarch64-linux-gnueabihf", PlatformFamily.GNU),
        ("x86_64-linux-musl", PlatformFamily.NIX),
        ("x86_64-linux", PlatformFamily.NIX),
        ("x86_64-freebsd", PlatformFamily.NIX),
        ("aarch64-macos", PlatformFamily.MACOS),
        ("x86_64-windows-gnu", PlatformFamily.WINDOWS),
    ],
)
def test_platform_family(triple: str, family: PlatformFamily) -> None:
    assert platform_family(triple) is family


def test_host_platform_normalises_names(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("zigbuild.models.sys.platform", "darwin")
    monkeypatch.setattr("zigbuild.models.platform.machine", lambda: "arm64")

    host = HostPlatform.current()

    assert host == HostPlatform(os="macos", arch="aarch64")
    assert host.triple == "aarch64-macos"
    assert host.family is PlatformFamily.MACOS


def test_target_config_defaults_and_copies() -> None:
    defines = {"A": "1"}
    config = TargetConfig(output="a.node", sources=["a.cc"], defines=defines)
    defines["B"] = "2"

    assert config.sources == ("a.cc",)
    assert config.type == "shared"
    assert config.mode == "fast"
    assert config.defines == {"A": "1"}
    assert config.family(HostPlatform(os="windows", arch="x86_64")) is PlatformFamily.WINDOWS
    assert TargetConfig(output="a", sources=("a.c",), target="x86_64-linux-gnu").family(
        HostPlatform(os="windows", arch="x86_64")
    ) is PlatformFamily.GNU


@pytest.mark.parametrize(
    "kwargs",
    [
        {"output": "", "sources": ("a.cc",)},
        {"output": "a", "sources": ()},
        {"output": "a", "sources": ("a.cc",), "mode": "turbo"},
        {"output": "a", "sources": ("a.cc",), "type": "dll"},
        {"output": "a", "sources": ("a.cc",), "node_version": "20"},
    ],
)
def test_target_config_validation(kwargs: dict) -> None:
    with pytest.raises(ValidationError):
        TargetConfig(**kwargs)


def test_platform_options_normalise() -> None:
    assert GnuOptions(rpath="lib", glibc="2.17").rpath == ("lib",)
    assert MacosOptions(frameworks=["A", "B"]).frameworks == ("A", "B")
    with pytest.raises(ValidationError):
        GnuOptions(glibc="2")


def test_compile_commands_path(tmp_path: Path) -> None:
    assert BuildOptions(cwd=tmp_path).compile_commands_path is None
    assert BuildOptions(cwd=tmp_path, compile_commands=True).compile_commands_path == (
        tmp_path / "compile_commands.json"
    )
    assert BuildOptions(cwd=tmp_path, compile_commands="out/db.json").compile_commands_path == (
        tmp_path / "out" / "db.json"
    )


def test_compile_db_dedupes_in_first_seen_order(tmp_path: Path) -> None:
    first = CompileCommand(directory="/p", file="a.cc", arguments=("clang++", "-c", "a.cc"))
    second = CompileCommand(directory="/p", file="b.cc", arguments=("clang++", "-c", "b.cc"))
    again = CompileCommand(directory="/p", file="a.cc", arguments=("clang++", "-c", "a.cc"))

    path = compile_db.write([first, second, again], tmp_path / "nested" / "db.json")

    assert compile_db.read(path) == [first, second]
    assert path.read_text(encoding="utf-8").endswith("]\n")


@pytest.mark.parametrize("name", ["", "   "])
def test_empty_compile_commands_name_is_rejected(tmp_path: Path, name: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        BuildOptions(cwd=tmp_path, compile_commands=name)

    assert excinfo.value.code == "E_VALIDATION"
