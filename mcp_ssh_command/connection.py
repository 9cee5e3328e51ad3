"""A single owned SSH connection built on paramiko."""
import io
import logging
import threading
from typing import Callable, Optional

import paramiko

from .config import AUTH_TIMEOUT, BANNER_TIMEOUT, CONNECT_TIMEOUT, KEEPALIVE_INTERVAL
from .datastructures import SessionConfig
from .errors import CommandExecutionError, SSHConnectionError

# Tried in order, modern key types first. DSSKey is gone from recent paramiko.
_KEY_CLASS_NAMES = ('Ed25519Key', 'ECDSAKey', 'RSAKey', 'DSSKey')


def load_private_key(key_data: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """Parse private key text into a paramiko key object.

    Raises SSHConnectionError if the key is encrypted without a passphrase or
    cannot be parsed as any supported key type.
    """
    logger = logging.getLogger('ssh_command.connection.load_key')
    last_error = None
    for class_name in _KEY_CLASS_NAMES:
        key_class = getattr(paramiko, class_name, None)
        if key_class is None:
            continue
        try:
            return key_class.from_private_key(io.StringIO(key_data), password=passphrase)
        except paramiko.PasswordRequiredException as exc:
            raise SSHConnectionError(
                "SSH connection failed: private key is encrypted, passphrase required"
            ) from exc
        except (paramiko.SSHException, ValueError) as exc:
            logger.debug(f"Key is not {class_name}: {exc}")
            last_error = exc
    raise SSHConnectionError(f"SSH connection failed: unable to parse private key ({last_error})")


class SSHConnection:
    """Owns one live paramiko.SSHClient.

    The end callback fires at most once, only for a connection that was ready,
    and never after close(); a locally closed connection is simply gone.
    """

    def __init__(self, client: paramiko.SSHClient, config: SessionConfig,
                 on_end: Optional[Callable[["SSHConnection"], None]] = None):
        self._client = client
        self.config = config
        self._on_end = on_end
        self._ended = False
        self._lock = threading.Lock()
        self.logger = logging.getLogger('ssh_command.connection')

    @classmethod
    def open(cls, config: SessionConfig,
             on_end: Optional[Callable[["SSHConnection"], None]] = None) -> "SSHConnection":
        """Connect and authenticate, returning a ready connection.

        Raises SSHConnectionError carrying the underlying failure reason.
        """
        logger = logging.getLogger('ssh_command.connection.open')
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        connect_kwargs = {
            'hostname': config.host,
            'port': config.port,
            'username': config.username,
            'timeout': CONNECT_TIMEOUT,
            'banner_timeout': BANNER_TIMEOUT,
            'auth_timeout': AUTH_TIMEOUT,
            'allow_agent': False,
            'look_for_keys': False,
        }

        try:
            if config.private_key:
                connect_kwargs['pkey'] = load_private_key(config.private_key, config.passphrase)
                logger.debug(f"Connecting to {config.session_key} with key")
            else:
                connect_kwargs['password'] = config.password
                logger.debug(f"Connecting to {config.session_key} with password")

            client.connect(**connect_kwargs)
        except SSHConnectionError:
            client.close()
            raise
        except (paramiko.AuthenticationException, paramiko.SSHException,
                OSError, EOFError) as exc:
            logger.error(f"[CONNECT_FAILED] {config.session_key}: {type(exc).__name__}: {exc}")
            client.close()
            raise SSHConnectionError(f"SSH connection failed: {exc}") from exc

        transport = client.get_transport()
        if transport is not None:
            transport.set_keepalive(KEEPALIVE_INTERVAL)

        logger.info(f"[CONNECTED] {config.session_key}")
        return cls(client, config, on_end=on_end)

    @property
    def ended(self) -> bool:
        return self._ended

    def is_alive(self) -> bool:
        if self._ended:
            return False
        try:
            transport = self._client.get_transport()
            return bool(transport and transport.is_active())
        except Exception as exc:
            self.logger.warning(f"Error checking transport for {self.config.session_key}: {exc}")
            return False

    def notify_end(self):
        """Deliver the remote end-of-connection event."""
        with self._lock:
            if self._ended:
                return
            self._ended = True
            callback = self._on_end

        self.logger.warning(f"[REMOTE_END] Connection ended: {self.config.session_key}")
        self._release()
        if callback is not None:
            callback(self)

    def close(self):
        """Release the transport. Idempotent; suppresses the end callback."""
        with self._lock:
            already_ended = self._ended
            self._ended = True
        if not already_ended:
            self.logger.debug(f"Closing SSH client for {self.config.session_key}")
        self._release()

    def _release(self):
        try:
            self._client.close()
        except Exception as exc:
            self.logger.warning(f"Error closing client for {self.config.session_key}: {exc}")

    def open_exec_channel(self, command: str) -> paramiko.Channel:
        """Open a session channel and start `command` on it.

        Raises SSHConnectionError when the transport is gone and
        CommandExecutionError when the server refuses the channel or exec request.
        """
        transport = self._client.get_transport() if not self._ended else None
        if transport is None or not transport.is_active():
            raise SSHConnectionError("SSH connection is no longer active")

        channel = None
        try:
            channel = transport.open_session()
            channel.exec_command(command)
        except (paramiko.SSHException, OSError) as exc:
            if channel is not None:
                channel.close()
            raise CommandExecutionError(f"Failed to execute command: {exc}") from exc
        return channel
