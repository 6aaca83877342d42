"""Proctored session bootstrap and the command surface exposed to the UI."""

from __future__ import annotations

import hmac
import logging as py_logging
from dataclasses import dataclass
from pathlib import Path

from proctorshell.config import AppConfig
from proctorshell.errors import ExitCode, SetupError
from proctorshell.events import EventSink
from proctorshell.shell.composer import ComposedShell, ShellLayout, compose_shell, detect_shell_family
from proctorshell.shield import ProcessLister, ProcessShield
from proctorshell.terminal.models import TerminalSpec
from proctorshell.terminal.pty_backend import ProcessTerminal, PtySpawn
from proctorshell.terminal.registry import SessionRegistry
from proctorshell.watcher.activity import ActivityWatcher, ObserverFactory
from proctorshell.watcher.classifier import ActivityClassifier, WatchRoots
from proctorshell.workspace.files import WorkspaceFiles

logger = py_logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionPaths:
    workspace: Path
    internal: Path
    history_file: Path
    session_log: Path

    @classmethod
    def from_config(cls, config: AppConfig) -> SessionPaths:
        workspace = config.workspace_path()
        internal = config.internal_path()
        return cls(
            workspace=workspace,
            internal=internal,
            history_file=internal / config.history_file_name,
            session_log=workspace / config.session_log_name,
        )


def prepare_directories(paths: SessionPaths) -> None:
    """Create both roots and truncate the history file and session log."""
    for directory in (paths.workspace, paths.internal):
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SetupError(
                f"Failed to create directory: {directory}",
                code=ExitCode.SETUP_ERROR,
                hint=str(exc) or "Check permissions of the home directory.",
            ) from exc
    for path in (paths.history_file, paths.session_log):
        try:
            path.write_bytes(b"")
        except OSError as exc:
            logger.warning("session-event step=truncate-failed path=%s error=%s", path, exc)


class ProctorSession:
    """Context object owning the registry, watcher and workspace files.

    Built once by :meth:`start` and handed to every UI handler.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        paths: SessionPaths,
        registry: SessionRegistry,
        watcher: ActivityWatcher,
        files: WorkspaceFiles,
        shell: ComposedShell,
        shield: ProcessShield,
    ) -> None:
        self.config = config
        self.paths = paths
        self.registry = registry
        self.watcher = watcher
        self.files = files
        self.shell = shell
        self.shield = shield
        self._closed = False

    @classmethod
    def start(
        cls,
        config: AppConfig,
        sink: EventSink,
        *,
        spawn: PtySpawn | None = None,
        observer_factory: ObserverFactory | None = None,
        platform: str | None = None,
        process_lister: ProcessLister | None = None,
    ) -> ProctorSession:
        paths = SessionPaths.from_config(config)
        prepare_directories(paths)

        family = detect_shell_family(config.shell_family, platform=platform)
        shell = compose_shell(family, ShellLayout(internal_dir=paths.internal, history_file=paths.history_file))

        roots = WatchRoots.resolve(paths.workspace, paths.internal)
        classifier = ActivityClassifier(
            roots,
            history_file_name=config.history_file_name,
            session_log_name=config.session_log_name,
            ignored_suffixes=config.ignored_suffixes,
        )
        watcher = ActivityWatcher(classifier, sink, observer_factory=observer_factory)
        watcher.start()

        registry = SessionRegistry(sink, spawn=spawn)
        try:
            registry.spawn(
                TerminalSpec(
                    terminal_id=config.terminal_id,
                    command=shell.command,
                    args=shell.args,
                    cwd=str(paths.workspace),
                    extra_env=shell.extra_env,
                )
            )
        except SetupError:
            watcher.stop()
            raise

        files = WorkspaceFiles(
            paths.workspace,
            session_log_name=config.session_log_name,
            excluded=(paths.internal,),
        )
        shield = ProcessShield(
            config.forbidden_apps,
            sink,
            interval=config.shield_interval_seconds,
            process_lister=process_lister,
        )
        if config.shield_enabled:
            shield.start()
        logger.info(
            "session-event step=start family=%s workspace=%s terminal=%s",
            family.value,
            paths.workspace,
            config.terminal_id,
        )
        return cls(
            config,
            paths=paths,
            registry=registry,
            watcher=watcher,
            files=files,
            shell=shell,
            shield=shield,
        )

    @property
    def session_active(self) -> bool:
        return self.registry.session_active

    @property
    def paused(self) -> bool:
        return self.shield.paused

    def terminal(self, terminal_id: str | None = None) -> ProcessTerminal | None:
        return self.registry.get(terminal_id or self.config.terminal_id)

    def write(self, terminal_id: str, data: bytes) -> None:
        """Relay input unless the process shield has paused the session."""
        if self.shield.paused:
            logger.debug("session-event step=input-dropped reason=paused bytes=%s", len(data))
            return
        self.registry.write(terminal_id, data)

    def _key_matches(self, key: str) -> bool:
        return hmac.compare_digest(key.encode("utf-8"), self.config.admin_key.encode("utf-8"))

    def unlock_session(self, key: str) -> bool:
        if not self._key_matches(key):
            logger.warning("session-event step=unlock-rejected")
            return False
        self.registry.deactivate_session()
        return True

    def resume_session(self, key: str) -> bool:
        """Lift a shield pause. Returns False for a wrong key or when not paused."""
        if not self._key_matches(key):
            logger.warning("session-event step=resume-rejected")
            return False
        return self.shield.resume()

    def list_files(self) -> list[str]:
        return self.files.list_files()

    def read_file(self, name: str) -> str:
        return self.files.read_file(name)

    def write_file(self, name: str, content: str) -> None:
        self.files.write_file(name, content)

    def create_file(self, name: str) -> None:
        self.files.create_file(name)

    def save_log(self, content: str) -> None:
        self.files.save_log(content)

    def close(self, *, timeout: float = 2.0) -> None:
        if self._closed:
            return
        self._closed = True
        self.shield.stop(timeout=timeout)
        self.watcher.stop(timeout=timeout)
        self.registry.shutdown(timeout=timeout)
        logger.info("session-event step=close")
