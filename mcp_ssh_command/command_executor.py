"""Command execution for SSH sessions."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Optional, Tuple

import paramiko

from .config import DEFAULT_COMMAND_TIMEOUT_MS, MAX_WORKERS
from .datastructures import ExecutionResult
from .errors import CommandTimeoutError, SSHConnectionError


class CommandExecutor:
    """Runs one command to completion on an exec channel."""

    RECV_BUFFER = 65536
    POLL_INTERVAL = 0.05

    def __init__(self, max_workers: int = MAX_WORKERS):
        self.logger = logging.getLogger('ssh_command.command_executor')
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ssh_cmd")

    @staticmethod
    def compose_command(command: str, working_directory: Optional[str] = None) -> str:
        """Prefix the command with a cd when a working directory is given.

        The directory must already be validated as free of shell metacharacters.
        """
        if working_directory:
            return f'cd "{working_directory}" && {command}'
        return command

    def run(self, connection, command: str, timeout_ms: int = DEFAULT_COMMAND_TIMEOUT_MS,
            working_directory: Optional[str] = None) -> ExecutionResult:
        """Execute `command` and wait for it to exit.

        Raises:
            CommandExecutionError: the channel or exec request was refused.
            CommandTimeoutError: no exit within timeout_ms; the channel is closed.
            SSHConnectionError: the transport failed before or during the run.
        """
        logger = self.logger.getChild('run')
        final_command = self.compose_command(command, working_directory)
        logger.info(f"[EXEC_REQ] cmd={final_command[:100]!r}, timeout={timeout_ms}ms")

        channel = connection.open_exec_channel(final_command)
        start = time.monotonic()
        try:
            future = self._executor.submit(self._drain_channel, channel)
            stdout, stderr, exit_code = future.result(timeout=timeout_ms / 1000.0)
        except FutureTimeoutError:
            logger.warning(f"[EXEC_TIMEOUT] Command timed out after {timeout_ms}ms: {final_command[:100]!r}")
            raise CommandTimeoutError(f"SSH command timed out after {timeout_ms}ms")
        except (paramiko.SSHException, OSError, EOFError) as exc:
            logger.error(f"[EXEC_TRANSPORT_ERROR] {type(exc).__name__}: {exc}")
            raise SSHConnectionError(f"SSH connection lost during command execution: {exc}") from exc
        finally:
            # Also stops the drain worker when the wait was abandoned.
            channel.close()

        if exit_code is None and not connection.is_alive():
            logger.error("[EXEC_CONN_LOST] Channel closed without exit status, transport is gone")
            raise SSHConnectionError("SSH connection lost during command execution")

        logger.info(f"[EXEC_DONE] exit_code={exit_code}, duration={time.monotonic() - start:.2f}s")
        return ExecutionResult(
            command=final_command,
            original_command=command,
            working_directory=working_directory,
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
        )

    def _read_available(self, channel, stdout_chunks: list, stderr_chunks: list) -> bool:
        received = False
        if channel.recv_ready():
            data = channel.recv(self.RECV_BUFFER)
            if data:
                stdout_chunks.append(data)
                received = True
        if channel.recv_stderr_ready():
            data = channel.recv_stderr(self.RECV_BUFFER)
            if data:
                stderr_chunks.append(data)
                received = True
        return received

    def _drain_channel(self, channel) -> Tuple[str, str, Optional[int]]:
        """Accumulate stdout and stderr until the exit status arrives.

        Both streams are drained once more after the exit status is seen, so
        every chunk that preceded it is included. Returns a None exit code when
        the channel closed without reporting one (paramiko reports -1).
        """
        stdout_chunks = []
        stderr_chunks = []

        while True:
            if self._read_available(channel, stdout_chunks, stderr_chunks):
                continue
            if channel.exit_status_ready():
                while self._read_available(channel, stdout_chunks, stderr_chunks):
                    pass
                exit_code = channel.recv_exit_status()
                if exit_code is not None and exit_code < 0:
                    exit_code = None
                break
            if channel.closed:
                exit_code = None
                break
            time.sleep(self.POLL_INTERVAL)

        stdout = b"".join(stdout_chunks).decode('utf-8', errors='replace')
        stderr = b"".join(stderr_chunks).decode('utf-8', errors='replace')
        return stdout, stderr, exit_code

    def shutdown(self):
        """Shut down the underlying thread pool executor."""
        logger = self.logger.getChild('shutdown')
        logger.info("Shutting down command executor pool")
        self._executor.shutdown(wait=False, cancel_futures=True)
