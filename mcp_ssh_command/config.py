"""Static defaults and environment-driven settings."""
import logging
import os
from pathlib import Path
from typing import Optional

from .datastructures import DEFAULT_PORT, SessionConfig

# ========= Static config =========
DEFAULT_COMMAND_TIMEOUT_MS = 30000

# paramiko connect timeouts (seconds)
CONNECT_TIMEOUT = 30
BANNER_TIMEOUT = 30
AUTH_TIMEOUT = 30
KEEPALIVE_INTERVAL = 30

# Thread pool for timeout enforcement
MAX_WORKERS = 4

DEFAULT_LOG_DIR = "/tmp/mcp_ssh_command_logs"
DEFAULT_LOG_LEVEL = "DEBUG"

logger = logging.getLogger('ssh_command.config')


# ========= Runtime Configuration =========
class ServerSettings:
    """Settings read from the process environment at startup.

    The SSH_* variables describe a connection to open as soon as the server
    starts; they are optional, an agent can always call ssh_connect itself.
    """

    def __init__(self):
        self.ssh_host: Optional[str] = None
        self.ssh_port: int = DEFAULT_PORT
        self.ssh_username: Optional[str] = None
        self.ssh_password: Optional[str] = None
        self.ssh_private_key: Optional[str] = None
        self.ssh_private_key_path: Optional[str] = None
        self.ssh_passphrase: Optional[str] = None
        self.log_dir: str = DEFAULT_LOG_DIR
        self.log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ=None) -> "ServerSettings":
        env = os.environ if environ is None else environ
        settings = cls()
        settings.ssh_host = env.get("SSH_HOST") or None
        settings.ssh_username = env.get("SSH_USERNAME") or env.get("SSH_USER") or None
        settings.ssh_password = env.get("SSH_PASSWORD") or None
        settings.ssh_private_key = env.get("SSH_PRIVATE_KEY") or None
        settings.ssh_private_key_path = env.get("SSH_PRIVATE_KEY_PATH") or None
        settings.ssh_passphrase = env.get("SSH_PASSPHRASE") or None
        settings.log_dir = env.get("MCP_SSH_LOG_DIR") or DEFAULT_LOG_DIR
        settings.log_level = (env.get("MCP_SSH_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()

        port = env.get("SSH_PORT")
        if port:
            try:
                settings.ssh_port = int(port)
            except ValueError:
                logger.warning(f"Ignoring invalid SSH_PORT {port!r}, using {DEFAULT_PORT}")
        return settings

    @property
    def has_connection(self) -> bool:
        return bool(self.ssh_host)

    def read_private_key(self) -> Optional[str]:
        """Inline key text wins over a key file path."""
        if self.ssh_private_key:
            return self.ssh_private_key
        if self.ssh_private_key_path:
            return Path(self.ssh_private_key_path).expanduser().read_text()
        return None

    def session_config(self) -> Optional[SessionConfig]:
        """Build a SessionConfig from SSH_* variables, or None when SSH_HOST is unset.

        Raises ValidationError when SSH_HOST is set but the rest is incomplete.
        """
        if not self.has_connection:
            return None
        return SessionConfig(
            host=self.ssh_host,
            username=self.ssh_username or "",
            port=self.ssh_port,
            password=self.ssh_password,
            private_key=self.read_private_key(),
            passphrase=self.ssh_passphrase,
        )
