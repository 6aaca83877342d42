"""Launch commands that force incremental command history into a hidden file."""

from __future__ import annotations

import logging as py_logging
import shlex
import shutil
import sys
from contextlib import suppress
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from proctorshell.errors import ExitCode, SetupError

logger = py_logging.getLogger(__name__)

LAUNCHER = "/bin/sh"
HISTORY_SIZE = 10000
_GENERATED_HEADER = "# Generated by proctorshell at session start. Local edits are overwritten.\n"


class ShellFamily(str, Enum):
    ZSH = "zsh"
    BASH = "bash"


@dataclass(frozen=True)
class ShellLayout:
    internal_dir: Path
    history_file: Path


@dataclass(frozen=True)
class ComposedShell:
    command: str
    args: tuple[str, ...]
    extra_env: dict[str, str] = field(default_factory=dict)
    generated_files: tuple[Path, ...] = ()

    @property
    def script(self) -> str:
        return self.args[-1] if self.args else ""


class ShellStrategy(Protocol):
    family: ShellFamily

    def compose(self, layout: ShellLayout) -> ComposedShell: ...


def _resolve_shell(name: str, explicit: str | None) -> str:
    if explicit:
        return explicit
    return shutil.which(name) or f"/bin/{name}"


def _respawn_loop(command: str) -> str:
    return f"while true; do {command}; done"


def _write_config(path: Path, content: str) -> Path:
    try:
        path.write_text(_GENERATED_HEADER + content, encoding="utf-8")
    except OSError as exc:
        raise SetupError(
            f"Failed to write shell override: {path}",
            code=ExitCode.SETUP_ERROR,
            hint=str(exc) or "Check permissions of the internal directory.",
        ) from exc
    with suppress(OSError):
        path.chmod(0o600)
    return path


def _source_user_file(name: str) -> str:
    return f'[[ -f "$HOME/{name}" ]] && source "$HOME/{name}"\n'


class ZshOverrideStrategy:
    """Point ``ZDOTDIR`` at generated startup files.

    Every generated file sources the user's own counterpart first, so the
    user's setup is preserved; ``.zshrc`` then pins the history settings.
    """

    family = ShellFamily.ZSH

    def __init__(self, shell_path: str | None = None) -> None:
        self.shell_path = _resolve_shell("zsh", shell_path)

    def render_zshenv(self) -> str:
        # A user .zshenv that sets ZDOTDIR would route around the override.
        return (
            '_proctor_zdotdir="$ZDOTDIR"\n'
            + _source_user_file(".zshenv")
            + 'export ZDOTDIR="$_proctor_zdotdir"\n'
            + "unset _proctor_zdotdir\n"
        )

    def render_zshrc(self, history_file: Path) -> str:
        return (
            _source_user_file(".zshrc")
            + "\n"
            + f"export HISTFILE={shlex.quote(str(history_file))}\n"
            + f"HISTSIZE={HISTORY_SIZE}\n"
            + f"SAVEHIST={HISTORY_SIZE}\n"
            + "unsetopt EXTENDED_HISTORY HIST_IGNORE_SPACE HIST_IGNORE_DUPS HIST_IGNORE_ALL_DUPS HIST_NO_STORE\n"
            + "setopt INC_APPEND_HISTORY\n"
            + "setopt SHARE_HISTORY\n"
        )

    def compose(self, layout: ShellLayout) -> ComposedShell:
        internal = layout.internal_dir
        generated = (
            _write_config(internal / ".zshenv", self.render_zshenv()),
            _write_config(internal / ".zprofile", _source_user_file(".zprofile")),
            _write_config(internal / ".zshrc", self.render_zshrc(layout.history_file)),
            _write_config(internal / ".zlogin", _source_user_file(".zlogin")),
        )
        script = (
            f"export ZDOTDIR={shlex.quote(str(internal))}; "
            + _respawn_loop(f"{shlex.quote(self.shell_path)} -l")
        )
        return ComposedShell(command=LAUNCHER, args=("-c", script), generated_files=generated)


class BashPromptCommandStrategy:
    """Export ``HISTFILE`` and a ``history -a`` prompt hook, then respawn bash forever."""

    family = ShellFamily.BASH

    def __init__(self, shell_path: str | None = None) -> None:
        self.shell_path = _resolve_shell("bash", shell_path)

    def compose(self, layout: ShellLayout) -> ComposedShell:
        script = (
            f"export HISTFILE={shlex.quote(str(layout.history_file))}; "
            "export PROMPT_COMMAND='history -a'; "
            + _respawn_loop(shlex.quote(self.shell_path))
        )
        return ComposedShell(command=LAUNCHER, args=("-c", script))


STRATEGIES: dict[ShellFamily, type[ZshOverrideStrategy] | type[BashPromptCommandStrategy]] = {
    ShellFamily.ZSH: ZshOverrideStrategy,
    ShellFamily.BASH: BashPromptCommandStrategy,
}


def detect_shell_family(preference: str = "auto", *, platform: str | None = None) -> ShellFamily:
    normalized = preference.strip().lower()
    if normalized == "auto":
        current = sys.platform if platform is None else platform
        return ShellFamily.ZSH if current == "darwin" else ShellFamily.BASH
    try:
        return ShellFamily(normalized)
    except ValueError as exc:
        raise SetupError(
            f"Unsupported shell family: {preference}",
            code=ExitCode.CONFIG_ERROR,
            hint="Use auto, zsh or bash.",
        ) from exc


def compose_shell(
    family: ShellFamily,
    layout: ShellLayout,
    *,
    shell_path: str | None = None,
) -> ComposedShell:
    strategy_cls = STRATEGIES.get(family)
    if strategy_cls is None:
        raise SetupError(
            f"No launch strategy for shell family: {family}",
            code=ExitCode.CONFIG_ERROR,
            hint="Use zsh or bash.",
        )
    composed = strategy_cls(shell_path).compose(layout)
    logger.info(
        "shell-event step=compose family=%s generated=%s",
        family.value,
        len(composed.generated_files),
    )
    return composed
