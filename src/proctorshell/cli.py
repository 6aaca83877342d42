"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import logging as py_logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from .config import AppConfig, load_config
from .errors import ExitCode, ProctorError, SetupError, user_facing_error
from .logging import configure_logging, default_log_path

_VALID_SHELLS = ("auto", "zsh", "bash")
_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")

SessionRunner = Callable[[AppConfig], int]


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proctorshell",
        description="Run a supervised shell that records commands and workspace changes.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    parser.add_argument("--workspace", type=Path, default=None, help="User-visible workspace directory")
    parser.add_argument("--internal", type=Path, default=None, help="Hidden directory for history and shell overrides")
    parser.add_argument("--shell", choices=_VALID_SHELLS, default=None, help="Shell family to launch")
    parser.add_argument("--log-level", type=_log_level_type, default="INFO")
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def resolve_config(namespace: argparse.Namespace) -> AppConfig:
    config = load_config(namespace.config)
    try:
        if namespace.workspace is not None:
            config.workspace_dir = str(namespace.workspace.expanduser())
        if namespace.internal is not None:
            config.internal_dir = str(namespace.internal.expanduser())
        if namespace.shell is not None:
            config.shell_family = namespace.shell
    except ValueError as exc:
        raise SetupError(
            "Invalid command line override",
            code=ExitCode.INVALID_ARGS,
            hint=str(exc),
        ) from exc
    if config.workspace_path() == config.internal_path():
        raise SetupError(
            "Workspace and internal directories must differ",
            code=ExitCode.CONFIG_ERROR,
            hint="Point --internal at a separate hidden directory.",
        )
    return config


def run_console_session(config: AppConfig) -> int:
    from proctorshell.console import ConsoleEventSink, run_console
    from proctorshell.session import ProctorSession

    sink = ConsoleEventSink()
    session = ProctorSession.start(config, sink)
    try:
        return run_console(session, sink)
    finally:
        session.close()


def main(
    argv: Sequence[str] | None = None,
    *,
    runner: SessionRunner | None = None,
) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    # The console front-end owns the tty; log to file only while it runs.
    logger = configure_logging(level=namespace.log_level, log_file=log_path, console=False)

    try:
        config = resolve_config(namespace)
        logger.debug("Starting proctored session workspace=%s", config.workspace_path())
        return (runner or run_console_session)(config)
    except ProctorError as exc:
        logger.error(
            "Handled %s (code=%s): %s",
            type(exc).__name__,
            int(exc.exit_code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.exit_code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        try:
            hint = f"Inspect logs: {log_path}"
            print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        except Exception:
            pass
        return int(ExitCode.SETUP_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
