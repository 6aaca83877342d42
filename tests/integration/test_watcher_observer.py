from __future__ import annotations

from pathlib import Path

import pytest
from conftest import RecordingSink, wait_for

from proctorshell.watcher import ActivityClassifier, ActivityWatcher, WatchRoots, WatcherState


@pytest.fixture
def watcher(tmp_path: Path, sink: RecordingSink):
    workspace = tmp_path / "workspace"
    internal = tmp_path / "internal"
    workspace.mkdir()
    internal.mkdir()
    (internal / ".cmd_history").write_text("", encoding="utf-8")
    classifier = ActivityClassifier(
        WatchRoots.resolve(workspace, internal),
        history_file_name=".cmd_history",
        session_log_name="session_log.txt",
    )
    activity = ActivityWatcher(classifier, sink)
    assert activity.start() == WatcherState.WATCHING
    yield activity
    activity.stop()


def test_created_workspace_file_is_reported(watcher: ActivityWatcher, sink: RecordingSink) -> None:
    (watcher.classifier.roots.workspace / "answer.txt").write_text("42\n", encoding="utf-8")

    assert wait_for(lambda: "Created file 'answer.txt'" in sink.messages())


def test_history_append_is_reported_as_command(watcher: ActivityWatcher, sink: RecordingSink) -> None:
    with watcher.classifier.history_path.open("a", encoding="utf-8") as handle:
        handle.write("git status\n")

    assert wait_for(lambda: "git status" in sink.messages())
    assert all("cmd_history" not in message for message in sink.messages())


def test_session_log_and_swap_files_stay_silent(watcher: ActivityWatcher, sink: RecordingSink) -> None:
    workspace = watcher.classifier.roots.workspace
    (workspace / "session_log.txt").write_text("[10:00:00] ls\n", encoding="utf-8")
    (workspace / ".answer.txt.swp").write_text("swap", encoding="utf-8")
    (workspace / "marker.txt").write_text("", encoding="utf-8")

    assert wait_for(lambda: "Created file 'marker.txt'" in sink.messages())
    assert not any("session_log" in message or ".swp" in message for message in sink.messages())
