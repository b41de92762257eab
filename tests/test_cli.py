from pathlib import Path

import pytest

from zigbuild import cli


def test_parser_defaults() -> None:
    args = cli.make_parser().parse_args([])

    assert args.config == "zig-build.toml"
    assert args.compile_commands is None
    assert args.no_system_zig is False


def test_compile_commands_flag_forms() -> None:
    parser = cli.make_parser()

    assert parser.parse_args(["--compile-commands"]).compile_commands is True
    assert parser.parse_args(["--compile-commands", "db.json"]).compile_commands == "db.json"


def test_missing_build_file_reports_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main([str(tmp_path / "zig-build.toml")])

    assert code == 1
    assert "error [E_VALIDATION]" in capsys.readouterr().err


def test_main_applies_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "zig-build.toml"
    config.write_text('[targets.a]\noutput = "a.node"\nsources = ["a.cc"]\n', encoding="utf-8")
    seen = {}

    async def fake_build(targets, options, *, cache):
        seen.update(targets=targets, options=options, cache=cache)

    monkeypatch.setattr(cli, "build", fake_build)

    code = cli.main(
        [
            str(config),
            "--compile-commands=db.json",
            "--cwd",
            str(tmp_path / "out"),
            "--cache-dir",
            str(tmp_path / "cache"),
            "--no-system-zig",
        ]
    )

    assert code == 0
    assert list(seen["targets"]) == ["a"]
    assert seen["options"].compile_commands == "db.json"
    assert seen["options"].cwd == (tmp_path / "out").resolve()
    assert seen["cache"].root == tmp_path / "cache"
    assert seen["cache"].use_system_zig is False


def test_empty_compile_commands_flag_is_rejected(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    config = tmp_path / "zig-build.toml"
    config.write_text('[targets.a]\noutput = "a.node"\nsources = ["a.cc"]\n', encoding="utf-8")
    called = []

    async def fake_build(targets, options, *, cache):
        called.append(options)

    monkeypatch.setattr(cli, "build", fake_build)

    code = cli.main([str(config), "--compile-commands="])

    assert code == 1
    assert called == []
    assert "error [E_VALIDATION]" in capsys.readouterr().err
