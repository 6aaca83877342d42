"""Registry of named terminals plus the session-active flag."""

from __future__ import annotations

import logging as py_logging
import threading

from proctorshell.errors import ExitCode, SetupError
from proctorshell.events import EventSink
from proctorshell.terminal.models import TerminalSpec
from proctorshell.terminal.pty_backend import ProcessTerminal, PtySpawn

logger = py_logging.getLogger(__name__)


class SessionRegistry:
    """Multiplexes input to terminals by id.

    ``_lock`` guards the terminal map and the session flag and is never held
    across terminal I/O. Entries are never removed once spawned.
    """

    def __init__(self, sink: EventSink, *, spawn: PtySpawn | None = None) -> None:
        self._sink = sink
        self._spawn = spawn
        self._lock = threading.Lock()
        self._spawn_lock = threading.Lock()
        self._terminals: dict[str, ProcessTerminal] = {}
        self._session_active = True

    @property
    def session_active(self) -> bool:
        with self._lock:
            return self._session_active

    def deactivate_session(self) -> None:
        with self._lock:
            self._session_active = False
        logger.info("session-event step=deactivate")

    def spawn(self, spec: TerminalSpec) -> ProcessTerminal:
        with self._spawn_lock:
            with self._lock:
                exists = spec.terminal_id in self._terminals
            if exists:
                raise SetupError(
                    f"Terminal already exists: {spec.terminal_id}",
                    code=ExitCode.SETUP_ERROR,
                    hint="Use a unique terminal id.",
                )
            terminal = ProcessTerminal.spawn(spec, self._sink, spawn=self._spawn)
            with self._lock:
                self._terminals[spec.terminal_id] = terminal
        return terminal

    def get(self, terminal_id: str) -> ProcessTerminal | None:
        with self._lock:
            return self._terminals.get(terminal_id)

    def terminal_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._terminals)

    def write(self, terminal_id: str, data: bytes) -> None:
        terminal = self.get(terminal_id)
        if terminal is None:
            logger.debug("terminal-event terminal=%s step=write-dropped reason=unknown", terminal_id)
            return
        terminal.write(data)

    def shutdown(self, *, timeout: float = 2.0) -> None:
        with self._lock:
            terminals = list(self._terminals.values())
        for terminal in terminals:
            terminal.close(timeout=timeout)
