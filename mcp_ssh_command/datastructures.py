"""Data structures for SSH session management."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .errors import ValidationError


DEFAULT_PORT = 22


def iso_now() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class AuthMethod(Enum):
    PASSWORD = "password"
    KEY = "key"


@dataclass(frozen=True)
class SessionConfig:
    """Connection parameters for one SSH session.

    Either a password or private key material must be supplied. When both are
    present the private key wins, for authentication and for reporting.
    """
    host: str
    username: str
    port: int = DEFAULT_PORT
    password: Optional[str] = field(default=None, repr=False)
    private_key: Optional[str] = field(default=None, repr=False)
    passphrase: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        if not isinstance(self.host, str) or not self.host.strip():
            raise ValidationError("SSH configuration incomplete. Required: host, username")
        if not isinstance(self.username, str) or not self.username.strip():
            raise ValidationError("SSH configuration incomplete. Required: host, username")
        if isinstance(self.port, bool) or not isinstance(self.port, int) or not 0 < self.port < 65536:
            raise ValidationError(f"Invalid SSH port: {self.port!r}")
        if not self.password and not self.private_key:
            raise ValidationError("SSH authentication incomplete. Provide either password or privateKey")

    @property
    def auth_method(self) -> AuthMethod:
        return AuthMethod.KEY if self.private_key else AuthMethod.PASSWORD

    @property
    def session_key(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"


@dataclass(frozen=True)
class ActiveSession:
    """The Connected state: the live connection and the config it was opened with."""
    connection: Any
    config: SessionConfig
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ExecutionResult:
    command: str
    original_command: str
    working_directory: Optional[str]
    exit_code: Optional[int]
    stdout: str
    stderr: str
    timestamp: str = field(default_factory=iso_now)
    host: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "command": self.command,
            "originalCommand": self.original_command,
            "workingDirectory": self.working_directory,
            "exitCode": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "success": self.success,
            "timestamp": self.timestamp,
        }
