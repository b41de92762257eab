"""Compilation database deduplication and persistence."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

from zigbuild.models import CompileCommand


def dedupe(entries: Iterable[CompileCommand]) -> list[CompileCommand]:
    """Drop structurally equal entries, keeping the first occurrence."""
    seen: set[CompileCommand] = set()
    unique: list[CompileCommand] = []
    for entry in entries:
        if entry in seen:
            continue
        seen.add(entry)
        unique.append(entry)
    return unique


def serialize(entries: Iterable[CompileCommand]) -> str:
    payload = [entry.to_dict() for entry in entries]
    return json.dumps(payload, indent=2) + "\n"


def write(entries: Iterable[CompileCommand], path: str | Path) -> Path:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(serialize(dedupe(entries)), encoding="utf-8")
    return output_path


def read(path: str | Path) -> list[CompileCommand]:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return [
        CompileCommand(
            directory=item["directory"],
            file=item["file"],
            arguments=tuple(item["arguments"]),
        )
        for item in payload
    ]
