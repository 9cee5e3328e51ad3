import threading
import time
import unittest
from unittest.mock import MagicMock

import paramiko

from mcp_ssh_command.command_executor import CommandExecutor
from mcp_ssh_command.errors import CommandExecutionError, CommandTimeoutError, SSHConnectionError
from conftest import MockChannel


class TestCommandExecutor(unittest.TestCase):
    def setUp(self):
        self.executor = CommandExecutor(max_workers=2)
        self.addCleanup(self.executor.shutdown)
        self.connection = MagicMock()

    def use_channel(self, channel):
        def open_exec_channel(command):
            channel.exec_command(command)
            return channel
        self.connection.open_exec_channel.side_effect = open_exec_channel
        return channel

    def test_compose_command(self):
        self.assertEqual(CommandExecutor.compose_command("ls", "/tmp"), 'cd "/tmp" && ls')
        self.assertEqual(CommandExecutor.compose_command("ls"), "ls")
        self.assertEqual(CommandExecutor.compose_command("ls", ""), "ls")

    def test_streams_accumulate_separately(self):
        self.use_channel(MockChannel(
            stdout=["line 1\n", "line 2\n"],
            stderr=["warn 1\n", "warn 2\n"],
            exit_code=0,
        ))

        result = self.executor.run(self.connection, "make")

        self.assertEqual(result.stdout, "line 1\nline 2\n")
        self.assertEqual(result.stderr, "warn 1\nwarn 2\n")
        self.assertEqual(result.exit_code, 0)
        self.assertTrue(result.success)

    def test_multibyte_split_across_chunks(self):
        encoded = "héllo".encode("utf-8")
        self.use_channel(MockChannel(stdout=[encoded[:2], encoded[2:]]))

        result = self.executor.run(self.connection, "echo")

        self.assertEqual(result.stdout, "héllo")

    def test_nonzero_exit(self):
        self.use_channel(MockChannel(stderr=["boom\n"], exit_code=2))

        result = self.executor.run(self.connection, "false")

        self.assertEqual(result.exit_code, 2)
        self.assertFalse(result.success)

    def test_missing_exit_status_is_none(self):
        channel = self.use_channel(MockChannel(stdout=["x"], exit_code=-1))
        self.connection.is_alive.return_value = True

        result = self.executor.run(self.connection, "kill -9 $$")

        self.assertIsNone(result.exit_code)
        self.assertFalse(result.success)
        self.assertTrue(channel.closed)

    def test_output_arriving_before_exit_is_kept(self):
        """Data queued by the transport before the exit status must be returned."""
        channel = MockChannel(hang=True)
        self.use_channel(channel)

        def finish():
            time.sleep(0.2)
            with channel._lock:
                channel.stdout_queue.append(b"late output\n")
            channel.hang = False

        t = threading.Thread(target=finish)
        t.start()
        result = self.executor.run(self.connection, "slow", timeout_ms=5000)
        t.join()

        self.assertEqual(result.stdout, "late output\n")
        self.assertEqual(result.exit_code, 0)

    def test_timeout_closes_channel(self):
        channel = self.use_channel(MockChannel(hang=True))

        start = time.monotonic()
        with self.assertRaises(CommandTimeoutError) as ctx:
            self.executor.run(self.connection, "sleep 60", timeout_ms=100)

        self.assertLess(time.monotonic() - start, 2)
        self.assertIn("timed out after 100ms", str(ctx.exception))
        self.assertTrue(channel.closed)

    def test_exec_refused_propagates(self):
        self.connection.open_exec_channel.side_effect = CommandExecutionError("Failed to execute command: denied")

        with self.assertRaises(CommandExecutionError):
            self.executor.run(self.connection, "ls")

    def test_transport_error_mid_run(self):
        channel = self.use_channel(MockChannel(fail_on_recv=paramiko.SSHException("Socket is closed")))

        with self.assertRaises(SSHConnectionError):
            self.executor.run(self.connection, "ls")
        self.assertTrue(channel.closed)

    def test_channel_dropped_with_transport_is_connection_error(self):
        channel = self.use_channel(MockChannel(stdout=["partial\n"], hang=True))
        self.connection.is_alive.return_value = True

        def drop():
            time.sleep(0.2)
            self.connection.is_alive.return_value = False
            channel.closed = True

        t = threading.Thread(target=drop)
        t.start()
        with self.assertRaises(SSHConnectionError) as ctx:
            self.executor.run(self.connection, "tail -f log", timeout_ms=5000)
        t.join()

        self.assertIn("connection lost during command execution", str(ctx.exception))

    def test_channel_closed_after_pool_shutdown(self):
        channel = self.use_channel(MockChannel())
        self.executor.shutdown()

        with self.assertRaises(RuntimeError):
            self.executor.run(self.connection, "ls")
        self.assertTrue(channel.closed)

    def test_result_records_commands(self):
        self.use_channel(MockChannel())

        result = self.executor.run(self.connection, "pwd", working_directory="/var/log")

        self.connection.open_exec_channel.assert_called_once_with('cd "/var/log" && pwd')
        self.assertEqual(result.command, 'cd "/var/log" && pwd')
        self.assertEqual(result.original_command, "pwd")
        self.assertEqual(result.working_directory, "/var/log")


if __name__ == '__main__':
    unittest.main()
