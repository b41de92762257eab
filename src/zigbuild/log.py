"""Coloured, prefixed line loggers and process-wide logging setup.

Every logger writes through the ``zigbuild`` logging hierarchy, so output
follows whatever handlers :func:`setup_logging` (or the host application)
installed.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field

from colorama import Fore, Style

COLOURS = (
    Fore.RED,
    Fore.CYAN,
    Fore.MAGENTA,
    Fore.BLUE,
    Fore.YELLOW,
    Fore.GREEN,
)
ZIG_COLOUR = Fore.YELLOW
NODE_COLOUR = Fore.GREEN

_FMT = "%(message)s"


@dataclass(slots=True)
class TargetLogger:
    """Callable logger that prints ``[prefix] message`` lines."""

    prefix: str
    colour: str
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(f"zigbuild.{self.prefix}")

    def __call__(self, message: str) -> None:
        if not message.strip():
            return
        bracket = f"{Style.BRIGHT}[{Style.RESET_ALL}"
        closing = f"{Style.BRIGHT}]{Style.RESET_ALL}"
        label = f"{Style.BRIGHT}{self.colour}{self.prefix}{Style.RESET_ALL}"
        self._logger.info("%s%s%s %s", bracket, label, closing, message)


def make_logger(prefix: str, index: int | None = None, *, colour: str | None = None) -> TargetLogger:
    """Build a logger, picking the colour from ``index`` when none is given."""
    if colour is None:
        colour = COLOURS[(index or 0) % len(COLOURS)]
    return TargetLogger(prefix=prefix, colour=colour)


def setup_logging(level: str = "INFO") -> None:
    """Install a single stdout handler for the ``zigbuild`` loggers."""
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        numeric = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric)
    handler.setFormatter(logging.Formatter(_FMT))

    root = logging.getLogger("zigbuild")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric)
    root.propagate = False
