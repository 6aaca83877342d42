"""Classify raw filesystem notifications into command and file-change events."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from proctorshell.events import ChangeKind, ClassifiedEvent, CommandEvent, FileChangeEvent

logger = py_logging.getLogger(__name__)

# Keys are watchdog event types. A rename is reported as a modification of
# both paths; opened/closed notifications carry no content change.
RAW_CHANGE_KINDS: dict[str, ChangeKind] = {
    "created": ChangeKind.CREATED,
    "modified": ChangeKind.MODIFIED,
    "moved": ChangeKind.MODIFIED,
    "deleted": ChangeKind.DELETED,
}


@dataclass(frozen=True)
class WatchRoots:
    workspace: Path
    internal: Path

    @classmethod
    def resolve(cls, workspace: str | Path, internal: str | Path) -> WatchRoots:
        return cls(
            workspace=Path(workspace).expanduser().resolve(),
            internal=Path(internal).expanduser().resolve(),
        )


@dataclass
class HistoryCursor:
    """Last observed byte size of the history file.

    Only grows. A truncation is not detected, so commands are missed until the
    file is larger than it was before.
    """

    size: int = 0

    @classmethod
    def at_end_of(cls, path: Path) -> HistoryCursor:
        try:
            return cls(size=path.stat().st_size)
        except OSError:
            return cls(size=0)

    def advance(self, new_size: int) -> bool:
        if new_size <= self.size:
            return False
        self.size = new_size
        return True


def read_last_line(path: Path) -> str | None:
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.debug("watcher-event step=read-history-failed path=%s error=%s", path, exc)
        return None
    lines = data.decode("utf-8", errors="replace").split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    if not lines:
        return None
    return lines[-1].removesuffix("\r")


def _is_under(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


class ActivityClassifier:
    def __init__(
        self,
        roots: WatchRoots,
        *,
        history_file_name: str,
        session_log_name: str,
        ignored_suffixes: Iterable[str] = (".swp", "~"),
        cursor: HistoryCursor | None = None,
    ) -> None:
        self.roots = roots
        self.history_file_name = history_file_name
        self.session_log_name = session_log_name
        self.ignored_suffixes = tuple(suffix for suffix in ignored_suffixes if suffix)
        self.cursor = cursor if cursor is not None else HistoryCursor.at_end_of(self.history_path)

    @property
    def history_path(self) -> Path:
        return self.roots.internal / self.history_file_name

    def is_noise(self, file_name: str) -> bool:
        return file_name == self.session_log_name or file_name.endswith(self.ignored_suffixes)

    def classify(self, path: str | Path, raw_kind: str) -> ClassifiedEvent | None:
        candidate = Path(path)
        file_name = candidate.name
        if self.is_noise(file_name):
            return None

        if file_name == self.history_file_name and _is_under(candidate, self.roots.internal):
            return self._classify_history(candidate)

        if _is_under(candidate, self.roots.workspace):
            change = RAW_CHANGE_KINDS.get(raw_kind)
            if change is None:
                return None
            return FileChangeEvent(change=change, file_name=file_name)

        return None

    def _classify_history(self, path: Path) -> CommandEvent | None:
        try:
            current_size = path.stat().st_size
        except OSError:
            return None
        if not self.cursor.advance(current_size):
            return None
        line = read_last_line(path)
        if line is None:
            return None
        return CommandEvent(command=line)
