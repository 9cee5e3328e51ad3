"""MCP server for SSH command execution."""
import json
import logging
from typing import Any, Callable, Dict, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from .config import DEFAULT_COMMAND_TIMEOUT_MS
from .datastructures import DEFAULT_PORT, ExecutionResult
from .errors import InternalError, SessionError
from .session_manager import SSHSessionManager

SERVER_NAME = "ssh-command-server"

logger = logging.getLogger('ssh_command.server')

# Initialize the MCP server
mcp = FastMCP(SERVER_NAME)
session_manager = SSHSessionManager()


def render(payload: Any) -> str:
    """Render an operation result as the single JSON text payload of a tool call."""
    if isinstance(payload, ExecutionResult):
        payload = payload.to_dict()
    return json.dumps(payload, indent=2)


def run_tool(name: str, operation: Callable[..., Any], **kwargs) -> str:
    """Invoke a session operation and map failures to typed tool errors.

    Session errors keep their kind; anything else becomes an internal error.
    The error message is prefixed with the machine-readable kind, e.g.
    "[validation] Invalid working directory format".
    """
    try:
        return render(operation(**kwargs))
    except SessionError as exc:
        logger.warning(f"[TOOL_ERROR] {name}: {exc.kind.value}: {exc.message}")
        raise ToolError(f"[{exc.kind.value}] {exc.message}") from exc
    except Exception as exc:
        logger.error(f"[TOOL_INTERNAL] {name}: {type(exc).__name__}: {exc}", exc_info=True)
        error = InternalError(f"Tool execution failed: {exc}")
        raise ToolError(f"[{error.kind.value}] {error.message}") from exc


@mcp.tool()
def ssh_connect(
    host: str,
    username: str,
    port: int = DEFAULT_PORT,
    password: Optional[str] = None,
    privateKey: Optional[str] = None,
    passphrase: Optional[str] = None,
) -> str:
    """Connect to an SSH server and maintain the connection.

    Any existing connection is closed first; only one connection is kept.
    When both privateKey and password are given, the key is used.

    Args:
        host: SSH host to connect to
        username: SSH username
        port: SSH port (default: 22)
        password: SSH password (if using password authentication)
        privateKey: SSH private key content (if using key authentication)
        passphrase: Passphrase for encrypted private key (optional)
    """
    return run_tool(
        "ssh_connect",
        session_manager.connect,
        host=host,
        username=username,
        port=port,
        password=password,
        private_key=privateKey,
        passphrase=passphrase,
    )


@mcp.tool()
def ssh_disconnect() -> str:
    """Disconnect from the current SSH server."""
    return run_tool("ssh_disconnect", session_manager.disconnect)


@mcp.tool()
def ssh_exec(
    command: str,
    timeout: int = DEFAULT_COMMAND_TIMEOUT_MS,
    workingDirectory: Optional[str] = None,
) -> str:
    """Execute command on the connected SSH server.

    Args:
        command: Command to execute
        timeout: Timeout in milliseconds (default: 30000)
        workingDirectory: Working directory for command execution (optional)
    """
    return run_tool(
        "ssh_exec",
        session_manager.execute,
        command=command,
        timeout=timeout,
        working_directory=workingDirectory,
    )


@mcp.tool()
def ssh_status() -> str:
    """Get the current SSH connection status."""
    return run_tool("ssh_status", session_manager.status)

