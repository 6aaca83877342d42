"""Watchdog-backed observer feeding classified activity to the event sink."""

from __future__ import annotations

import logging as py_logging
import os
import threading
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from proctorshell.events import EventSink
from proctorshell.watcher.classifier import ActivityClassifier

logger = py_logging.getLogger(__name__)

ObserverFactory = Callable[[], BaseObserver]


class WatcherState(str, Enum):
    IDLE = "idle"
    WATCHING = "watching"
    STOPPED = "stopped"


class _ActivityEventHandler(FileSystemEventHandler):
    def __init__(self, dispatch: Callable[[str, str], None]) -> None:
        super().__init__()
        self._dispatch = dispatch

    def on_any_event(self, event: FileSystemEvent) -> None:
        # Directory mtime updates accompany every child change.
        if event.is_directory and event.event_type == "modified":
            return
        paths = [event.src_path]
        dest_path = getattr(event, "dest_path", "")
        if event.event_type == "moved" and dest_path:
            paths.append(dest_path)
        for path in paths:
            self._dispatch(os.fsdecode(path), event.event_type)


class ActivityWatcher:
    """Subscribes to the workspace and internal roots.

    A root that cannot be subscribed is logged and skipped; the watcher keeps
    running on whatever subscribed.
    """

    def __init__(
        self,
        classifier: ActivityClassifier,
        sink: EventSink,
        *,
        observer_factory: ObserverFactory | None = None,
    ) -> None:
        self.classifier = classifier
        self._sink = sink
        self._observer_factory = observer_factory or Observer
        self._observer: BaseObserver | None = None
        self._dispatch_lock = threading.Lock()
        self._state = WatcherState.IDLE
        self._watched: list[Path] = []

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def watched_roots(self) -> list[Path]:
        return list(self._watched)

    def start(self) -> WatcherState:
        if self._state != WatcherState.IDLE:
            return self._state

        observer = self._observer_factory()
        try:
            observer.start()
        except Exception as exc:
            logger.error("watcher-event step=start-failed error=%s", exc)
            return self._state
        self._observer = observer

        handler = _ActivityEventHandler(self.dispatch)
        roots = self.classifier.roots
        for label, root in (("workspace", roots.workspace), ("internal", roots.internal)):
            try:
                observer.schedule(handler, str(root), recursive=True)
            except Exception as exc:
                logger.error("watcher-event step=subscribe-failed root=%s path=%s error=%s", label, root, exc)
                continue
            self._watched.append(root)
            logger.info("watcher-event step=subscribed root=%s path=%s", label, root)

        if not self._watched:
            logger.error("watcher-event step=degraded message=No watch root could be subscribed.")
        self._state = WatcherState.WATCHING
        return self._state

    def dispatch(self, path: str, raw_kind: str) -> None:
        with self._dispatch_lock:
            event = self.classifier.classify(path, raw_kind)
        if event is None:
            return
        logger.info("activity-event kind=%s message=%s", event.kind.value, event.message)
        try:
            self._sink.on_activity(event)
        except Exception as exc:
            logger.debug("activity-event step=delivery-failed error=%s", exc)

    def stop(self, *, timeout: float = 2.0) -> None:
        observer = self._observer
        self._observer = None
        if observer is not None:
            observer.stop()
            if observer.is_alive():
                observer.join(timeout)
        if self._state == WatcherState.WATCHING:
            logger.info("watcher-event step=stopped")
        self._state = WatcherState.STOPPED
