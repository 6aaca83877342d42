from __future__ import annotations

import threading

import pytest
from conftest import FakePty, RecordingSink

from proctorshell.errors import SetupError
from proctorshell.terminal import SessionRegistry, TerminalSpec


def _registry(sink: RecordingSink, spawned: dict[str, FakePty]) -> SessionRegistry:
    def spawn(command: list[str], _cwd: str | None, _env: dict[str, str] | None) -> FakePty:
        pty = FakePty(hold_open=True)
        spawned[command[-1]] = pty
        return pty

    return SessionRegistry(sink, spawn=spawn)


def test_spawn_registers_terminals_by_id(sink: RecordingSink) -> None:
    spawned: dict[str, FakePty] = {}
    registry = _registry(sink, spawned)

    registry.spawn(TerminalSpec("terminal", "sh", args=("-c", "main")))
    registry.spawn(TerminalSpec("editor", "sh", args=("-c", "vim")))

    assert registry.terminal_ids() == ["editor", "terminal"]
    assert registry.get("terminal") is not None
    assert registry.get("missing") is None
    registry.shutdown()


def test_duplicate_terminal_id_is_rejected(sink: RecordingSink) -> None:
    spawned: dict[str, FakePty] = {}
    registry = _registry(sink, spawned)
    registry.spawn(TerminalSpec("terminal", "sh", args=("-c", "first")))

    with pytest.raises(SetupError):
        registry.spawn(TerminalSpec("terminal", "sh", args=("-c", "second")))

    assert "second" not in spawned
    registry.shutdown()


def test_write_routes_to_named_terminal(sink: RecordingSink) -> None:
    spawned: dict[str, FakePty] = {}
    registry = _registry(sink, spawned)
    registry.spawn(TerminalSpec("a", "sh", args=("-c", "a")))
    registry.spawn(TerminalSpec("b", "sh", args=("-c", "b")))

    registry.write("b", b"pwd\n")

    assert spawned["a"].writes == []
    assert spawned["b"].writes == [b"pwd\n"]
    registry.shutdown()


def test_write_to_unknown_terminal_is_silent_noop(sink: RecordingSink) -> None:
    registry = SessionRegistry(sink, spawn=lambda _c, _cwd, _env: FakePty(hold_open=True))

    registry.write("ghost", b"rm -rf /\n")

    assert registry.terminal_ids() == []


def test_write_to_dead_terminal_is_dropped(sink: RecordingSink) -> None:
    spawned: dict[str, FakePty] = {}
    registry = _registry(sink, spawned)
    registry.spawn(TerminalSpec("terminal", "sh", args=("-c", "main")))
    registry.shutdown()

    registry.write("terminal", b"ls\n")

    assert spawned["main"].writes == []
    assert registry.terminal_ids() == ["terminal"]


def test_session_flag_starts_active_and_can_be_cleared(sink: RecordingSink) -> None:
    registry = SessionRegistry(sink)

    assert registry.session_active is True
    registry.deactivate_session()
    assert registry.session_active is False


def test_writes_to_different_terminals_proceed_concurrently(sink: RecordingSink) -> None:
    entered = threading.Event()
    release = threading.Event()

    class SlowPty(FakePty):
        def write(self, data: bytes) -> int:
            entered.set()
            release.wait(5)
            return super().write(data)

    slow = SlowPty(hold_open=True)
    fast = FakePty(hold_open=True)
    ptys = {"slow": slow, "fast": fast}
    registry = SessionRegistry(sink, spawn=lambda command, _cwd, _env: ptys[command[-1]])
    registry.spawn(TerminalSpec("slow", "sh", args=("slow",)))
    registry.spawn(TerminalSpec("fast", "sh", args=("fast",)))

    blocked = threading.Thread(target=registry.write, args=("slow", b"sleep\n"))
    blocked.start()
    assert entered.wait(5)

    registry.write("fast", b"echo ok\n")
    assert fast.writes == [b"echo ok\n"]

    release.set()
    blocked.join(5)
    assert slow.writes == [b"sleep\n"]
    registry.shutdown()


def test_shutdown_stops_every_terminal(sink: RecordingSink) -> None:
    spawned: dict[str, FakePty] = {}
    registry = _registry(sink, spawned)
    registry.spawn(TerminalSpec("a", "sh", args=("-c", "a")))
    registry.spawn(TerminalSpec("b", "sh", args=("-c", "b")))

    registry.shutdown(timeout=5)

    assert all(pty.terminated for pty in spawned.values())
    assert all(not registry.get(terminal_id).is_running for terminal_id in ("a", "b"))
    assert sorted(event.terminal_id for event in sink.ended) == ["a", "b"]
