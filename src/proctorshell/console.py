"""Console front-end standing in for the graphical proctor window."""

from __future__ import annotations

import getpass
import logging as py_logging
import os
import select
import sys
import termios
import threading
import tty
from collections.abc import Callable
from typing import BinaryIO, TextIO

from proctorshell.errors import ExitCode, RequestError
from proctorshell.events import ActivityEvent, ActivityJournal, TerminalEnded, TerminalOutput
from proctorshell.session import ProctorSession
from proctorshell.terminal.pty_backend import READ_CHUNK_SIZE

logger = py_logging.getLogger(__name__)

UNLOCK_KEY = b"\x1d"  # Ctrl-]
_POLL_SECONDS = 0.2

KeyPrompt = Callable[[str], str]


class ConsoleEventSink:
    """Mirrors terminal output to stdout and journals classified activity."""

    def __init__(self, output: BinaryIO | None = None, *, journal: ActivityJournal | None = None) -> None:
        self._output = output if output is not None else sys.stdout.buffer
        self._output_lock = threading.Lock()
        self.journal = journal if journal is not None else ActivityJournal()
        self.ended = threading.Event()
        self.ended_events: list[TerminalEnded] = []

    def on_output(self, event: TerminalOutput) -> None:
        with self._output_lock:
            self._output.write(event.data)
            self._output.flush()

    def on_activity(self, event: ActivityEvent) -> None:
        self.journal.record(event)

    def on_terminal_ended(self, event: TerminalEnded) -> None:
        self.ended_events.append(event)
        self.ended.set()


def export_journal(session: ProctorSession, sink: ConsoleEventSink) -> bool:
    try:
        session.save_log(sink.journal.render())
    except RequestError as exc:
        logger.error("session-event step=save-log-failed error=%s", exc.message)
        return False
    return True


class _RawMode:
    def __init__(self, fd: int) -> None:
        self.fd = fd
        self._saved = termios.tcgetattr(fd) if os.isatty(fd) else None

    def enter(self) -> None:
        if self._saved is not None:
            tty.setraw(self.fd)

    def leave(self) -> None:
        if self._saved is not None:
            termios.tcsetattr(self.fd, termios.TCSADRAIN, self._saved)


def _notify(notices: TextIO, text: str) -> None:
    notices.write(f"\r\n{text}\r\n")
    notices.flush()


def _ask_key(raw_mode: _RawMode, prompt: KeyPrompt, question: str) -> str:
    raw_mode.leave()
    try:
        return prompt(question)
    except (EOFError, KeyboardInterrupt):
        return ""
    finally:
        raw_mode.enter()


def _attempt_unlock(
    session: ProctorSession,
    raw_mode: _RawMode,
    prompt: KeyPrompt,
    notices: TextIO,
) -> bool:
    """Handle the unlock key. Returns True when the session should end."""
    if session.paused:
        key = _ask_key(raw_mode, prompt, "\nAdmin key to resume the session: ")
        if session.resume_session(key):
            _notify(notices, "Session resumed.")
        else:
            _notify(notices, "Invalid key. Session stays paused.")
        return False
    key = _ask_key(raw_mode, prompt, "\nAdmin key to end the session: ")
    if session.unlock_session(key):
        return True
    _notify(notices, "Invalid key. Session continues.")
    return False


def run_console(
    session: ProctorSession,
    sink: ConsoleEventSink,
    *,
    stdin: TextIO | None = None,
    prompt: KeyPrompt | None = None,
    notices: TextIO | None = None,
) -> int:
    """Relay raw keyboard input to the session terminal until unlocked.

    ``Ctrl-]`` asks for the admin key. While the process shield has paused the
    session, typed input is dropped and the key resumes the session instead of
    ending it. The activity journal is exported to the session log whenever the
    loop ends.
    """
    fd = (stdin or sys.stdin).fileno()
    ask = prompt or getpass.getpass
    out = notices or sys.stderr
    terminal_id = session.config.terminal_id
    raw_mode = _RawMode(fd)
    paused_notice_shown = False
    raw_mode.enter()
    try:
        while not sink.ended.is_set():
            ready, _, _ = select.select([fd], [], [], _POLL_SECONDS)
            if not ready:
                continue
            data = os.read(fd, READ_CHUNK_SIZE)
            if not data:
                logger.info("session-event step=stdin-closed")
                break
            before, marker, _ = data.partition(UNLOCK_KEY)
            if before and session.paused:
                if not paused_notice_shown:
                    detected = ", ".join(session.shield.detected) or "a forbidden application"
                    _notify(out, f"Session paused: {detected} detected. Ask the proctor to resume.")
                    paused_notice_shown = True
            elif before:
                paused_notice_shown = False
                session.write(terminal_id, before)
            if marker and _attempt_unlock(session, raw_mode, ask, out):
                break
    finally:
        raw_mode.leave()

    if not export_journal(session, sink):
        return int(ExitCode.LOG_EXPORT_FAILED)
    return int(ExitCode.SUCCESS)
