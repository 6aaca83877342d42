"""Typed events pushed from the session core to the UI layer."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

from typing_extensions import TypedDict


class LogKind(str, Enum):
    COMMAND = "command"
    FILE = "file"
    ALERT = "alert"


class ChangeKind(str, Enum):
    CREATED = "Created"
    MODIFIED = "Modified"
    DELETED = "Deleted"


class LogEventPayload(TypedDict):
    type: str
    message: str


@dataclass(frozen=True)
class CommandEvent:
    command: str

    @property
    def kind(self) -> LogKind:
        return LogKind.COMMAND

    @property
    def message(self) -> str:
        return self.command

    def to_payload(self) -> LogEventPayload:
        return LogEventPayload(type=self.kind.value, message=self.message)


@dataclass(frozen=True)
class FileChangeEvent:
    change: ChangeKind
    file_name: str

    @property
    def kind(self) -> LogKind:
        return LogKind.FILE

    @property
    def message(self) -> str:
        return f"{self.change.value} file '{self.file_name}'"

    def to_payload(self) -> LogEventPayload:
        return LogEventPayload(type=self.kind.value, message=self.message)


ClassifiedEvent = CommandEvent | FileChangeEvent


@dataclass(frozen=True)
class ShieldAlert:
    """Forbidden applications found running by the process shield."""

    processes: tuple[str, ...]

    @property
    def kind(self) -> LogKind:
        return LogKind.ALERT

    @property
    def message(self) -> str:
        return f"Process Shield: Detected {', '.join(self.processes)}"

    def to_payload(self) -> LogEventPayload:
        return LogEventPayload(type=self.kind.value, message=self.message)


ActivityEvent = ClassifiedEvent | ShieldAlert


@dataclass(frozen=True)
class TerminalOutput:
    terminal_id: str
    data: bytes


@dataclass(frozen=True)
class TerminalEnded:
    terminal_id: str
    exit_status: int | None = None


class EventSink(Protocol):
    """Consumer of everything the session produces.

    Implementations are called from background threads and must not block for
    long; there is no ordering guarantee across the three callbacks.
    """

    def on_output(self, event: TerminalOutput) -> None: ...

    def on_activity(self, event: ActivityEvent) -> None: ...

    def on_terminal_ended(self, event: TerminalEnded) -> None: ...


@dataclass(frozen=True)
class JournalEntry:
    timestamp: datetime
    event: ActivityEvent

    def render(self) -> str:
        return f"[{self.timestamp:%H:%M:%S}] {self.event.message}"


@dataclass
class ActivityJournal:
    """Timestamped record of classified events, exported as the session log."""

    entries: list[JournalEntry] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, event: ActivityEvent, *, timestamp: datetime | None = None) -> JournalEntry:
        entry = JournalEntry(timestamp=timestamp or datetime.now(), event=event)
        with self._lock:
            self.entries.append(entry)
        return entry

    def render(self) -> str:
        with self._lock:
            return "\n".join(entry.render() for entry in self.entries)
