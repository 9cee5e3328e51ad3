"""Entry point: configure logging, optionally auto-connect, serve over stdio."""
from .config import ServerSettings
from .errors import SessionError
from .logging_manager import setup_logging


def main():
    settings = ServerSettings.from_env()
    logger = setup_logging(settings.log_dir, settings.log_level)

    # server builds the session manager at import time
    from .server import mcp, session_manager

    if settings.has_connection:
        try:
            config = settings.session_config()
            session_manager.connect(
                host=config.host,
                username=config.username,
                port=config.port,
                password=config.password,
                private_key=config.private_key,
                passphrase=config.passphrase,
            )
        except (SessionError, OSError) as exc:
            logger.error(f"Startup connection to {settings.ssh_host} failed: {exc}")

    logger.info("SSH MCP server started and ready to accept connections")
    try:
        mcp.run()
    finally:
        session_manager.shutdown()


if __name__ == "__main__":
    main()
