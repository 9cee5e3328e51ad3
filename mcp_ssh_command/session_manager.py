"""SSH session manager using Paramiko."""
import logging
import re
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .command_executor import CommandExecutor
from .config import DEFAULT_COMMAND_TIMEOUT_MS
from .connection import SSHConnection
from .datastructures import DEFAULT_PORT, ActiveSession, ExecutionResult, SessionConfig, iso_now
from .errors import SSHConnectionError, ValidationError

# Letters, digits and / . _ - only; the value is spliced into `cd "<dir>"`.
WORKING_DIRECTORY_PATTERN = re.compile(r'[a-zA-Z0-9/._-]+')


class SSHSessionManager:
    """Manages exactly one SSH session with an explicit connect/disconnect lifecycle.

    Every public operation runs under one lock scoped to the whole session
    state, so lifecycle transitions never interleave. The lock is reentrant
    because the end-of-connection callback runs while an operation that
    noticed the dead transport still holds it.
    """

    def __init__(self, command_executor: Optional[CommandExecutor] = None):
        self._session: Optional[ActiveSession] = None
        self._lock = threading.RLock()
        self.logger = logging.getLogger('ssh_command.session_manager')
        self.command_executor = command_executor or CommandExecutor()
        self.logger.info("SSHSessionManager initialized")

    def connect(self, host: str, username: str, port: int = DEFAULT_PORT,
                password: Optional[str] = None, private_key: Optional[str] = None,
                passphrase: Optional[str] = None) -> Dict[str, Any]:
        """Open a new session, replacing any current one.

        Args:
            host: Hostname or IP address
            username: SSH username
            port: SSH port (default 22)
            password: Password (used only when no private key is given)
            private_key: Private key material as text
            passphrase: Passphrase for an encrypted private key

        Raises:
            ValidationError: incomplete configuration; the current session is untouched.
            SSHConnectionError: the new connection failed; the session is Disconnected.
        """
        logger = self.logger.getChild('connect')
        config = SessionConfig(
            host=host,
            username=username,
            port=DEFAULT_PORT if port is None else port,
            password=password,
            private_key=private_key,
            passphrase=passphrase,
        )

        with self._lock:
            if self._session is not None:
                logger.info(f"[REPLACE] Tearing down {self._session.config.session_key} "
                            f"before connecting to {config.session_key}")
                self._teardown()

            logger.info(f"[CONNECT] {config.session_key} auth={config.auth_method.value}")
            connection = SSHConnection.open(config, on_end=self._handle_connection_end)
            self._session = ActiveSession(connection=connection, config=config)

            return {
                "status": "connected",
                "host": config.host,
                "port": config.port,
                "username": config.username,
                "authMethod": config.auth_method.value,
                "timestamp": iso_now(),
            }

    def disconnect(self) -> Dict[str, Any]:
        """Close the current session. Calling it with no session is not an error."""
        logger = self.logger.getChild('disconnect')
        with self._lock:
            self._reconcile()
            if self._session is None:
                logger.info("No active connection to disconnect")
                return {
                    "status": "no_connection",
                    "message": "No active SSH connection to disconnect",
                    "timestamp": iso_now(),
                }

            logger.info(f"Request to close session: {self._session.config.session_key}")
            self._teardown()
            return {
                "status": "disconnected",
                "timestamp": iso_now(),
            }

    def status(self) -> Dict[str, Any]:
        """Report the current session; never fails."""
        with self._lock:
            self._reconcile()
            config = self._session.config if self._session else None
            return {
                "connected": config is not None,
                "host": config.host if config else None,
                "port": config.port if config else None,
                "username": config.username if config else None,
                "authMethod": config.auth_method.value if config else None,
                "timestamp": iso_now(),
            }

    def execute(self, command: str, timeout: int = DEFAULT_COMMAND_TIMEOUT_MS,
                working_directory: Optional[str] = None) -> ExecutionResult:
        """Execute a command on the connected host.

        Args:
            command: Command to execute
            timeout: Timeout in milliseconds (default: 30000)
            working_directory: Directory to cd into first (optional)

        Raises:
            ValidationError: bad arguments or not connected; nothing is sent.
            CommandExecutionError: the command could not be started.
            CommandTimeoutError: no exit within the timeout; the session stays connected.
            SSHConnectionError: the transport failed; the session is Disconnected.
        """
        logger = self.logger.getChild('execute')

        with self._lock:
            self._reconcile()
            if self._session is None:
                raise ValidationError("Not connected to SSH server. Use ssh_connect first.")

            if not isinstance(command, str) or not command:
                raise ValidationError("Command is required and must be a string")
            if timeout is None:
                timeout = DEFAULT_COMMAND_TIMEOUT_MS
            if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
                raise ValidationError(f"Timeout must be a positive number of milliseconds, got {timeout!r}")
            if working_directory and not WORKING_DIRECTORY_PATTERN.fullmatch(working_directory):
                logger.warning(f"[EXEC_INVALID] Rejected working directory {working_directory!r}")
                raise ValidationError("Invalid working directory format")

            session = self._session
            try:
                result = self.command_executor.run(
                    session.connection, command, timeout, working_directory or None
                )
            except SSHConnectionError as exc:
                logger.error(f"[EXEC_CONN_LOST] {session.config.session_key}: {exc}")
                if self._session is session:
                    self._teardown()
                raise

            result.host = session.config.host
            result.port = session.config.port
            result.username = session.config.username
            return result

    def shutdown(self):
        """Close the session and stop the executor pool."""
        logger = self.logger.getChild('shutdown')
        logger.info("Shutting down session manager")
        with self._lock:
            if self._session is not None:
                self._teardown()
        try:
            self.command_executor.shutdown()
        except Exception as e:
            logger.error(f"Error shutting down executor: {e}", exc_info=True)

    def _teardown(self):
        """Release the current connection and go Disconnected (caller holds the lock)."""
        session = self._session
        self._session = None
        session.connection.close()
        uptime = (datetime.now(timezone.utc) - session.connected_at).total_seconds()
        self.logger.getChild('teardown').info(
            f"Session closed: {session.config.session_key} (connected for {uptime:.1f}s)"
        )

    def _reconcile(self):
        """Process the end event of a connection whose transport died unnoticed."""
        session = self._session
        if session is not None and not session.connection.is_alive():
            session.connection.notify_end()
            if self._session is session:
                self._session = None

    def _handle_connection_end(self, connection: SSHConnection):
        with self._lock:
            if self._session is not None and self._session.connection is connection:
                self.logger.warning(f"[SESSION_END] Remote ended session {connection.config.session_key}")
                self._session = None
