"""Error taxonomy for proctored sessions.

Two families share the :class:`ProctorError` base:

* :class:`SetupError` is fatal. It aborts session bootstrap and is mapped to a
  process exit code by the CLI.
* :class:`RequestError` answers a single UI request (a file operation). The
  session keeps running and the caller inspects :attr:`RequestError.failure`.

Runtime failures inside the reader, reaper, watcher and shield threads are not
raised at all; they are logged where they happen.
"""

from __future__ import annotations

from enum import Enum, IntEnum

from typing_extensions import TypedDict


class ExitCode(IntEnum):
    """Process exit status of the ``proctorshell`` command."""

    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    SETUP_ERROR = 4
    LOG_EXPORT_FAILED = 5
    UNSUPPORTED_PLATFORM = 6


class RequestFailure(str, Enum):
    ACCESS_DENIED = "access_denied"
    ALREADY_EXISTS = "already_exists"
    IO_ERROR = "io_error"


class RequestErrorPayload(TypedDict):
    failure: str
    message: str


class ProctorError(Exception):
    def __init__(self, message: str, *, hint: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint

    @property
    def exit_code(self) -> ExitCode:
        return ExitCode.SETUP_ERROR

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


class SetupError(ProctorError):
    def __init__(
        self,
        message: str,
        *,
        code: ExitCode = ExitCode.SETUP_ERROR,
        hint: str = "",
    ) -> None:
        super().__init__(message, hint=hint)
        self.code = code

    @property
    def exit_code(self) -> ExitCode:
        return self.code


class RequestError(ProctorError):
    def __init__(self, failure: RequestFailure, message: str, *, hint: str = "") -> None:
        super().__init__(message, hint=hint)
        self.failure = failure

    def to_payload(self) -> RequestErrorPayload:
        return RequestErrorPayload(failure=self.failure.value, message=self.message)


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
