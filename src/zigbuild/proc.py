"""Async external process execution with line-buffered output logging."""

from __future__ import annotations

import asyncio
import contextlib
import shlex
from collections.abc import AsyncIterable, Callable
from pathlib import Path

from zigbuild.errors import ProcessFailureError

Logger = Callable[[str], None]

_CHUNK_SIZE = 4096


async def run(
    command: str | Path,
    args: list[str] | tuple[str, ...],
    *,
    log: Logger,
    cwd: str | Path | None = None,
    stdin: AsyncIterable[bytes] | None = None,
) -> int:
    """Run ``command`` and resolve with 0, or raise ``ProcessFailureError``."""
    command_line = shlex.join([str(command), *args])
    log(f"executing '{command_line}'")
    try:
        proc = await asyncio.create_subprocess_exec(
            str(command),
            *args,
            cwd=str(cwd) if cwd is not None else None,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ProcessFailureError(
            f"Could not start '{command}'.",
            exit_code=None,
            hint=str(exc),
            context={"command": command_line},
        ) from exc

    assert proc.stdout is not None and proc.stderr is not None
    pumps = [_pump(proc.stdout, log), _pump(proc.stderr, log)]
    if stdin is not None:
        assert proc.stdin is not None
        pumps.append(_feed(proc.stdin, stdin))
    try:
        await asyncio.gather(*pumps)
    except BaseException:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()
        raise

    returncode = await proc.wait()
    if returncode == 0:
        return returncode
    if returncode < 0:
        raise ProcessFailureError(
            f"'{command}' was killed by signal {-returncode}.",
            exit_code=None,
            signal=-returncode,
            context={"command": command_line},
        )
    raise ProcessFailureError(
        f"'{command}' exited with code {returncode}.",
        exit_code=returncode,
        context={"command": command_line},
    )


async def _pump(stream: asyncio.StreamReader, log: Logger) -> None:
    buffer = b""
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        buffer += chunk
        *lines, buffer = buffer.split(b"\n")
        for line in lines:
            log(line.decode("utf-8", errors="replace"))
    if buffer:
        log(buffer.decode("utf-8", errors="replace"))


async def _feed(writer: asyncio.StreamWriter, source: AsyncIterable[bytes]) -> None:
    try:
        async for chunk in source:
            writer.write(chunk)
            await writer.drain()
    except (BrokenPipeError, ConnectionResetError):
        # The process stopped reading; its exit status reports the failure.
        return
    finally:
        writer.close()
