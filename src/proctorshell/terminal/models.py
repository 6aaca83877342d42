"""Terminal domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TerminalState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass(frozen=True)
class TerminalSpec:
    terminal_id: str
    command: str
    args: tuple[str, ...] = ()
    cwd: str | None = None
    extra_env: dict[str, str] = field(default_factory=dict)

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]
