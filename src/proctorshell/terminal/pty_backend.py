"""Ptyprocess-backed terminal lifecycle: spawn, input, output streaming, reaping."""

from __future__ import annotations

import logging as py_logging
import os
import threading
from collections.abc import Callable, Mapping
from contextlib import suppress

from proctorshell.errors import ExitCode, SetupError
from proctorshell.events import EventSink, TerminalEnded, TerminalOutput
from proctorshell.terminal.models import TerminalSpec, TerminalState

logger = py_logging.getLogger(__name__)

DEFAULT_ROWS = 24
DEFAULT_COLS = 80
READ_CHUNK_SIZE = 4096
TERMINAL_ENV = {
    "TERM": "xterm-256color",
    "COLORTERM": "truecolor",
}
# How long the reader waits for the reaper before reporting an unknown exit status.
_EXIT_STATUS_GRACE_SECONDS = 1.0

PtySpawn = Callable[[list[str], str | None, dict[str, str] | None], object]


def build_environment(
    extra_env: Mapping[str, str] | None = None,
    *,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    env.update(TERMINAL_ENV)
    if extra_env:
        env.update(extra_env)
    return env


def _spawn_with_ptyprocess(command: list[str], cwd: str | None, env: dict[str, str] | None) -> object:
    try:
        from ptyprocess import PtyProcess
    except ImportError as exc:
        raise SetupError(
            "ptyprocess backend is unavailable",
            code=ExitCode.UNSUPPORTED_PLATFORM,
            hint="Run on a POSIX system with ptyprocess installed.",
        ) from exc

    return PtyProcess.spawn(command, cwd=cwd, env=env, dimensions=(DEFAULT_ROWS, DEFAULT_COLS))


class ProcessTerminal:
    """One pseudo-terminal and the child process attached to it.

    Output is pushed to the sink from a reader thread, in read order. A reaper
    thread waits for the child. Both threads are owned by the terminal and
    joined by :meth:`close`.
    """

    def __init__(self, spec: TerminalSpec, process: object, sink: EventSink) -> None:
        self.spec = spec
        self._process = process
        self._sink = sink
        self._input_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._state = TerminalState.CREATED
        self._closed = threading.Event()
        self._exit_status: int | None = None
        self._reaped = threading.Event()
        self._reader = threading.Thread(
            target=self._read_loop,
            name=f"pty-reader-{spec.terminal_id}",
            daemon=True,
        )
        self._reaper = threading.Thread(
            target=self._reap,
            name=f"pty-reaper-{spec.terminal_id}",
            daemon=True,
        )

    @classmethod
    def spawn(
        cls,
        spec: TerminalSpec,
        sink: EventSink,
        *,
        spawn: PtySpawn | None = None,
    ) -> ProcessTerminal:
        if not spec.command.strip():
            raise SetupError(
                "PTY command cannot be empty",
                code=ExitCode.SETUP_ERROR,
                hint="Provide a shell command for the terminal.",
            )

        env = build_environment(spec.extra_env)
        try:
            process = (spawn or _spawn_with_ptyprocess)(spec.argv, spec.cwd, env)
        except SetupError:
            raise
        except Exception as exc:
            raise SetupError(
                f"Failed to start PTY process for terminal {spec.terminal_id}",
                code=ExitCode.SETUP_ERROR,
                hint=str(exc) or "Check the shell installation.",
            ) from exc

        terminal = cls(spec, process, sink)
        terminal._start()
        logger.info(
            "terminal-event terminal=%s step=spawn pid=%s",
            spec.terminal_id,
            getattr(process, "pid", "?"),
        )
        return terminal

    @property
    def terminal_id(self) -> str:
        return self.spec.terminal_id

    @property
    def state(self) -> TerminalState:
        with self._state_lock:
            return self._state

    @property
    def exit_status(self) -> int | None:
        with self._state_lock:
            return self._exit_status

    @property
    def is_running(self) -> bool:
        return self._reader.is_alive() or self._reaper.is_alive()

    def write(self, data: bytes) -> None:
        """Write all of ``data`` to the terminal input. Errors are dropped."""
        if not data:
            return
        with self._input_lock:
            if self._closed.is_set():
                logger.debug("terminal-event terminal=%s step=write-dropped reason=closed", self.terminal_id)
                return
            try:
                self._write_all(data)
            except Exception as exc:
                logger.debug(
                    "terminal-event terminal=%s step=write-failed error=%s",
                    self.terminal_id,
                    exc,
                )

    def wait_output_closed(self, timeout: float | None = None) -> bool:
        self._reader.join(timeout)
        return not self._reader.is_alive()

    def close(self, *, timeout: float = 2.0) -> None:
        # Never takes the input lock; terminating the child unblocks a stuck writer.
        with self._state_lock:
            already_closed = self._closed.is_set()
            self._closed.set()
        if not already_closed:
            self._terminate_process()
            logger.info("terminal-event terminal=%s step=close", self.terminal_id)
        for thread in (self._reader, self._reaper):
            if thread.ident is not None:
                thread.join(timeout)

    def _start(self) -> None:
        with self._state_lock:
            self._state = TerminalState.RUNNING
        self._reaper.start()
        self._reader.start()

    def _write_all(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = self._process.write(bytes(view))
            if not isinstance(written, int) or written >= len(view):
                break
            if written <= 0:
                raise OSError(f"PTY accepted no bytes ({len(view)} pending)")
            view = view[written:]
        flush = getattr(self._process, "flush", None)
        if callable(flush):
            flush()

    def _read_loop(self) -> None:
        failed = False
        while True:
            try:
                chunk = self._process.read(READ_CHUNK_SIZE)
            except EOFError:
                logger.debug("terminal-event terminal=%s step=eof", self.terminal_id)
                break
            except Exception as exc:
                failed = not self._closed.is_set()
                logger.debug("terminal-event terminal=%s step=read-failed error=%s", self.terminal_id, exc)
                break
            if not chunk:
                logger.debug("terminal-event terminal=%s step=eof", self.terminal_id)
                break
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            self._deliver(self._sink.on_output, TerminalOutput(terminal_id=self.terminal_id, data=chunk))
        self._finish_output(failed=failed)

    def _finish_output(self, *, failed: bool) -> None:
        self._reaped.wait(_EXIT_STATUS_GRACE_SECONDS)
        with self._state_lock:
            self._state = TerminalState.FAILED if failed else TerminalState.STOPPED
            exit_status = self._exit_status
        logger.info(
            "terminal-event terminal=%s step=ended exit_status=%s",
            self.terminal_id,
            exit_status,
        )
        self._deliver(
            self._sink.on_terminal_ended,
            TerminalEnded(terminal_id=self.terminal_id, exit_status=exit_status),
        )

    def _reap(self) -> None:
        status: int | None = None
        try:
            result = self._process.wait()
        except Exception as exc:
            logger.debug("terminal-event terminal=%s step=wait-failed error=%s", self.terminal_id, exc)
        else:
            status = result if isinstance(result, int) else None
        with self._state_lock:
            self._exit_status = status
        self._reaped.set()
        logger.debug("terminal-event terminal=%s step=reaped exit_status=%s", self.terminal_id, status)

    def _terminate_process(self) -> None:
        if hasattr(self._process, "terminate"):
            with suppress(Exception):
                self._process.terminate(force=True)
        if hasattr(self._process, "close"):
            try:
                self._process.close(force=True)
            except TypeError:
                with suppress(Exception):
                    self._process.close()
            except Exception as exc:
                logger.debug("terminal-event terminal=%s step=close-failed error=%s", self.terminal_id, exc)

    def _deliver(self, callback: Callable[[object], None], event: object) -> None:
        try:
            callback(event)
        except Exception as exc:
            logger.debug(
                "terminal-event terminal=%s step=delivery-failed event=%s error=%s",
                self.terminal_id,
                type(event).__name__,
                exc,
            )
