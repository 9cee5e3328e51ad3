"""Error kinds surfaced by the SSH session manager and the tool boundary."""
from enum import Enum


class ErrorKind(Enum):
    VALIDATION = "validation"
    CONNECTION = "connection"
    EXECUTION = "execution"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


class SessionError(Exception):
    """Base class for every error the session layer raises on purpose."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SessionError):
    """Malformed or missing arguments, or an operation called in the wrong state."""

    kind = ErrorKind.VALIDATION


class SSHConnectionError(SessionError):
    """Transport-level failure while connecting or during a session.

    Raising it from an operation forces the session to Disconnected.
    """

    kind = ErrorKind.CONNECTION


class CommandExecutionError(SessionError):
    """The command could not be started at all (channel or exec request refused)."""

    kind = ErrorKind.EXECUTION


class CommandTimeoutError(SessionError):
    kind = ErrorKind.TIMEOUT


class InternalError(SessionError):
    kind = ErrorKind.INTERNAL
