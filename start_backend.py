"""
extbridge Backend Startup Script

Serves a receiving context over HTTP so other contexts can reach it with
``HttpTransport``.  Register commands on ``router`` before the server starts.
"""
import asyncio
import logging
import sys

from extbridge.configs import get_global_config
from extbridge.core.messaging import MessageRouter

router = MessageRouter()


@router.route("ping")
def ping(data):
    return {"pong": data}


async def main():
    """Main entry point for the extbridge backend."""
    try:
        config = get_global_config()
    except (OSError, ValueError) as e:
        logging.basicConfig(level=logging.INFO)
        logging.getLogger(__name__).error(f"Failed to load configuration: {e}")
        return 1

    logging.basicConfig(
        level=config.get("logging.level", "INFO"),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)
    logger.info(f"Configuration loaded from: {config.config_path}")

    from extbridge.ui_bridge import create_app
    import uvicorn

    host = config.get("ui_bridge.host", "127.0.0.1")
    port = config.get("ui_bridge.port", 8765)
    logger.info(f"Receiving context will listen on {host}:{port}")

    # Use Config and Server to run uvicorn in the existing event loop
    config_uvicorn = uvicorn.Config(
        create_app(router),
        host=host,
        port=port,
        log_level="info"
    )
    server = uvicorn.Server(config_uvicorn)
    await server.serve()
    return 0


if __name__ == "__main__":
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Received shutdown signal, stopping...")
        sys.exit(0)
