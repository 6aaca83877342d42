from __future__ import annotations

import shutil

import pytest
from conftest import RecordingSink, wait_for
from hypothesis import given, settings
from hypothesis import strategies as st

from proctorshell.terminal import ProcessTerminal, SessionRegistry, TerminalSpec, TerminalState

pytest.importorskip("ptyprocess")


def test_real_pty_echoes_input_and_relays_child_output(sink: RecordingSink) -> None:
    cat = shutil.which("cat") or "/bin/cat"
    terminal = ProcessTerminal.spawn(TerminalSpec(terminal_id="echo", command=cat), sink)
    try:
        terminal.write(b"proctor-check\n")

        # Line discipline echo plus the copy printed by cat.
        assert wait_for(lambda: sink.output_bytes("echo").count(b"proctor-check") >= 2)
    finally:
        terminal.close()

    assert sink.ended_event.wait(5)
    assert [event.terminal_id for event in sink.ended] == ["echo"]


def test_real_pty_reports_exit_status(sink: RecordingSink) -> None:
    spec = TerminalSpec(terminal_id="short", command="/bin/sh", args=("-c", "printf done; exit 3"))
    terminal = ProcessTerminal.spawn(spec, sink)

    assert sink.ended_event.wait(10)
    terminal.close()

    assert b"done" in sink.output_bytes("short")
    assert sink.ended[0].exit_status == 3
    assert terminal.state == TerminalState.STOPPED


def test_registry_shutdown_terminates_long_running_child(sink: RecordingSink) -> None:
    registry = SessionRegistry(sink)
    registry.spawn(TerminalSpec(terminal_id="sleeper", command="/bin/sh", args=("-c", "sleep 30")))

    registry.shutdown(timeout=5)

    assert sink.ended_event.wait(5)
    assert registry.terminal_ids() == []


def test_child_sees_working_directory_and_extra_env(sink: RecordingSink, tmp_path) -> None:
    spec = TerminalSpec(
        terminal_id="env",
        command="/bin/sh",
        args=("-c", 'printf "%s|%s|%s" "$PWD" "$PROCTOR_MARK" "$TERM"'),
        cwd=str(tmp_path),
        extra_env={"PROCTOR_MARK": "marked"},
    )
    terminal = ProcessTerminal.spawn(spec, sink)

    assert sink.ended_event.wait(10)
    terminal.close()

    output = sink.output_bytes("env").decode("utf-8", errors="replace")
    assert f"{tmp_path.resolve()}|marked|xterm-256color" in output or f"{tmp_path}|marked|xterm-256color" in output


_PRINTABLE = st.characters(min_codepoint=33, max_codepoint=126)


@settings(max_examples=5, deadline=None)
@given(lines=st.lists(st.text(alphabet=_PRINTABLE, min_size=1, max_size=60), min_size=1, max_size=5))
def test_real_pty_round_trips_printable_lines(lines: list[str]) -> None:
    sink = RecordingSink()
    cat = shutil.which("cat") or "/bin/cat"
    terminal = ProcessTerminal.spawn(TerminalSpec(terminal_id="echo", command=cat), sink)
    try:
        for line in lines:
            terminal.write(f"{line}\n".encode("ascii"))
        expected = [line.encode("ascii") for line in lines]

        assert wait_for(lambda: all(sink.output_bytes().count(item) >= 2 for item in expected))
    finally:
        terminal.close()
