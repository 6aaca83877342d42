from __future__ import annotations

import logging as py_logging
import queue
import threading
import time
from pathlib import Path

import pytest

from proctorshell.events import ActivityEvent, TerminalEnded, TerminalOutput

_SECURITY_TEST_FILES = {
    "test_workspace_files.py",
    "test_sandbox_properties.py",
}


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))
        name = path.name

        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)

        if name in _SECURITY_TEST_FILES:
            item.add_marker(pytest.mark.security)


class RecordingSink:
    def __init__(self) -> None:
        self.outputs: list[TerminalOutput] = []
        self.activity: list[ActivityEvent] = []
        self.ended: list[TerminalEnded] = []
        self.ended_event = threading.Event()
        self._lock = threading.Lock()

    def on_output(self, event: TerminalOutput) -> None:
        with self._lock:
            self.outputs.append(event)

    def on_activity(self, event: ActivityEvent) -> None:
        with self._lock:
            self.activity.append(event)

    def on_terminal_ended(self, event: TerminalEnded) -> None:
        with self._lock:
            self.ended.append(event)
        self.ended_event.set()

    def output_bytes(self, terminal_id: str | None = None) -> bytes:
        with self._lock:
            return b"".join(
                item.data for item in self.outputs if terminal_id is None or item.terminal_id == terminal_id
            )

    def messages(self) -> list[str]:
        with self._lock:
            return [event.message for event in self.activity]


class FakePty:
    """Stands in for ptyprocess.PtyProcess.

    ``hold_open`` keeps the output stream open until the terminal is closed.
    """

    def __init__(
        self,
        chunks: list[bytes] | None = None,
        *,
        hold_open: bool = False,
        exit_code: int = 0,
        max_write: int | None = None,
    ) -> None:
        self._chunks: queue.Queue[bytes | None] = queue.Queue()
        for chunk in chunks or []:
            self._chunks.put(chunk)
        if not hold_open:
            self._chunks.put(None)
        self.pid = 4242
        self.exit_code = exit_code
        self.max_write = max_write
        self.writes: list[bytes] = []
        self.flushes = 0
        self.closed = False
        self.terminated = False
        self._exited = threading.Event()
        self._write_lock = threading.Lock()

    def feed(self, chunk: bytes) -> None:
        self._chunks.put(chunk)

    def read(self, size: int = 4096) -> bytes:
        chunk = self._chunks.get(timeout=5)
        if chunk is None:
            self._exited.set()
            raise EOFError("End Of File (EOF).")
        return chunk[:size]

    def write(self, data: bytes) -> int:
        accepted = data if self.max_write is None else data[: self.max_write]
        with self._write_lock:
            self.writes.append(accepted)
        return len(accepted)

    def flush(self) -> None:
        self.flushes += 1

    def wait(self) -> int:
        self._exited.wait(5)
        return self.exit_code

    def terminate(self, force: bool = False) -> bool:
        self.terminated = True
        self._exited.set()
        self._chunks.put(None)
        return True

    def close(self, force: bool = True) -> None:
        self.closed = True
        self._chunks.put(None)

    def written(self) -> bytes:
        with self._write_lock:
            return b"".join(self.writes)


class NullObserver:
    def start(self) -> None:
        pass

    def schedule(self, handler: object, path: str, recursive: bool = False) -> object:
        return object()

    def stop(self) -> None:
        pass

    def is_alive(self) -> bool:
        return False

    def join(self, timeout: float | None = None) -> None:
        pass


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = py_logging.getLogger("proctorshell")
    logger.handlers.clear()
    logger.setLevel(py_logging.NOTSET)
    logger.propagate = True


def wait_for(predicate, timeout: float = 10.0, interval: float = 0.05) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
