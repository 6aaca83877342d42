"""Process shield: periodic scan of running processes for forbidden applications."""

from __future__ import annotations

import logging as py_logging
import threading
from collections.abc import Callable, Iterable
from enum import Enum

import psutil

from proctorshell.events import EventSink, ShieldAlert

logger = py_logging.getLogger(__name__)

ProcessLister = Callable[[], Iterable[str]]


class ShieldState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"
    STOPPED = "stopped"


def running_process_names() -> list[str]:
    names: list[str] = []
    # Processes that vanish or deny access mid-iteration are skipped by psutil.
    for proc in psutil.process_iter(["name"]):
        name = proc.info.get("name") or ""
        if name:
            names.append(name)
    return names


def match_forbidden(process_names: Iterable[str], forbidden_apps: Iterable[str]) -> tuple[str, ...]:
    """Return the forbidden entries that occur in any process name.

    Matching is a case-insensitive substring test; the result keeps the order
    of ``forbidden_apps``.
    """
    lowered = [name.lower() for name in process_names]
    found: list[str] = []
    for app in forbidden_apps:
        needle = app.lower()
        if needle and needle not in found and any(needle in name for name in lowered):
            found.append(needle)
    return tuple(found)


class ProcessShield:
    """Scans every ``interval`` seconds and pauses the session on a hit.

    An alert is sent once per newly detected application; a pause lasts until
    :meth:`resume` is called, and the next scan pauses again if the
    application is still running.
    """

    def __init__(
        self,
        forbidden_apps: Iterable[str],
        sink: EventSink,
        *,
        interval: float = 5.0,
        process_lister: ProcessLister | None = None,
    ) -> None:
        self.forbidden_apps = tuple(app.strip().lower() for app in forbidden_apps if app.strip())
        self.interval = interval
        self._sink = sink
        self._lister = process_lister or running_process_names
        self._lock = threading.Lock()
        self._state = ShieldState.IDLE
        self._reported: set[str] = set()
        self._detected: tuple[str, ...] = ()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> ShieldState:
        with self._lock:
            return self._state

    @property
    def paused(self) -> bool:
        return self.state == ShieldState.PAUSED

    @property
    def detected(self) -> tuple[str, ...]:
        with self._lock:
            return self._detected

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> ShieldState:
        with self._lock:
            if self._state != ShieldState.IDLE:
                return self._state
            self._state = ShieldState.ACTIVE
        self._thread = threading.Thread(target=self._run, name="process-shield", daemon=True)
        self._thread.start()
        logger.info(
            "shield-event step=start interval=%s forbidden=%s",
            self.interval,
            ",".join(self.forbidden_apps),
        )
        return ShieldState.ACTIVE

    def scan_once(self) -> tuple[str, ...]:
        try:
            names = list(self._lister())
        except Exception as exc:
            logger.debug("shield-event step=scan-failed error=%s", exc)
            return ()

        found = match_forbidden(names, self.forbidden_apps)
        with self._lock:
            if self._state == ShieldState.STOPPED:
                return found
            fresh = [app for app in found if app not in self._reported]
            if found:
                self._state = ShieldState.PAUSED
                self._detected = found
                self._reported.update(found)
        if fresh:
            alert = ShieldAlert(processes=found)
            logger.warning("shield-event step=detected processes=%s", ",".join(found))
            try:
                self._sink.on_activity(alert)
            except Exception as exc:
                logger.debug("shield-event step=delivery-failed error=%s", exc)
        return found

    def resume(self) -> bool:
        with self._lock:
            if self._state != ShieldState.PAUSED:
                return False
            self._state = ShieldState.ACTIVE
            self._detected = ()
            self._reported.clear()
        logger.info("shield-event step=resume")
        return True

    def stop(self, *, timeout: float = 2.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout)
        with self._lock:
            was_running = self._state in (ShieldState.ACTIVE, ShieldState.PAUSED)
            self._state = ShieldState.STOPPED
        if was_running:
            logger.info("shield-event step=stopped")

    def _run(self) -> None:
        while not self._stop.is_set():
            self.scan_once()
            self._stop.wait(self.interval)
