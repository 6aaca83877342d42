"""Pseudo-terminal sessions and their registry."""

from .models import TerminalSpec, TerminalState
from .pty_backend import (
    DEFAULT_COLS,
    DEFAULT_ROWS,
    READ_CHUNK_SIZE,
    ProcessTerminal,
    build_environment,
)
from .registry import SessionRegistry

__all__ = [
    "build_environment",
    "DEFAULT_COLS",
    "DEFAULT_ROWS",
    "ProcessTerminal",
    "READ_CHUNK_SIZE",
    "SessionRegistry",
    "TerminalSpec",
    "TerminalState",
]
