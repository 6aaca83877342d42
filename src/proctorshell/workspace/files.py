"""Sandboxed file access confined to the workspace root."""

from __future__ import annotations

import logging as py_logging
from pathlib import Path

from proctorshell.errors import RequestError, RequestFailure

logger = py_logging.getLogger(__name__)


def _access_denied(name: str) -> RequestError:
    return RequestError(
        RequestFailure.ACCESS_DENIED,
        f"Access denied: {name}",
        hint="Use a file name inside the workspace.",
    )


def _io_failure(action: str, name: str, exc: OSError) -> RequestError:
    return RequestError(
        RequestFailure.IO_ERROR,
        f"Failed to {action} {name}",
        hint=exc.strerror or str(exc) or "Check workspace permissions.",
    )


class WorkspaceFiles:
    """List/read/write/create under one canonical root.

    A name whose resolved path leaves the root (``../x``, absolute paths,
    symlinks pointing outside) is rejected before the filesystem is touched.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        session_log_name: str,
        excluded: tuple[str | Path, ...] = (),
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.session_log_name = session_log_name
        self.excluded = tuple(Path(item).expanduser().resolve() for item in excluded)

    @property
    def session_log_path(self) -> Path:
        return self.root / self.session_log_name

    def resolve(self, name: str) -> Path:
        if not name or "\x00" in name:
            raise _access_denied(name)
        candidate = (self.root / name).resolve()
        if candidate == self.root or self.root not in candidate.parents:
            raise _access_denied(name)
        for hidden in self.excluded:
            if candidate == hidden or hidden in candidate.parents:
                raise _access_denied(name)
        return candidate

    def list_files(self) -> list[str]:
        names: list[str] = []
        try:
            entries = list(self.root.iterdir())
        except OSError as exc:
            logger.debug("workspace-event step=list-failed error=%s", exc)
            return names
        for entry in entries:
            name = entry.name
            if name == self.session_log_name or name.startswith("."):
                continue
            try:
                if not entry.is_file():
                    continue
            except OSError:
                continue
            names.append(name)
        return sorted(names)

    def read_file(self, name: str) -> str:
        path = self.resolve(name)
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise RequestError(
                RequestFailure.IO_ERROR,
                f"Failed to read {name}",
                hint="The file is not UTF-8 text.",
            ) from exc
        except OSError as exc:
            raise _io_failure("read", name, exc) from exc

    def write_file(self, name: str, content: str) -> None:
        path = self.resolve(name)
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise _io_failure("write", name, exc) from exc

    def create_file(self, name: str) -> None:
        path = self.resolve(name)
        try:
            # "x" mode refuses an existing target atomically.
            with path.open("x", encoding="utf-8"):
                pass
        except FileExistsError as exc:
            raise RequestError(
                RequestFailure.ALREADY_EXISTS,
                f"File already exists: {name}",
                hint="Pick another name or open the existing file.",
            ) from exc
        except OSError as exc:
            raise _io_failure("create", name, exc) from exc

    def save_log(self, content: str) -> None:
        try:
            self.session_log_path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise _io_failure("save", self.session_log_name, exc) from exc
