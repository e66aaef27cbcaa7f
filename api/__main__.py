"""Command line interface for running the API server."""
import asyncio
import logging

import uvicorn

from config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class UvicornServer:
    """Wrapper for running uvicorn with proper lifecycle management."""

    def __init__(self, app_path: str = "api:create_app", host: str = "0.0.0.0", port: int = 8000):
        self.config = uvicorn.Config(
            app_path,
            factory=True,
            host=host,
            port=port,
            log_level="info"
        )
        self.server = uvicorn.Server(self.config)

    async def run(self):
        """Run the server in a way that can be stopped."""
        await self.server.serve()


async def main():
    """Run the API server until it exits. uvicorn handles SIGINT and SIGTERM."""
    settings = get_settings()
    server = UvicornServer(host=settings['host'], port=settings['port'])

    logger.info(f"Starting {settings['service_name']} on {settings['host']}:{settings['port']}")
    try:
        await server.run()
    finally:
        logger.info("Server stopped.")


if __name__ == "__main__":
    # Use uvloop if available for better performance
    try:
        import uvloop
        uvloop.install()
    except ImportError:
        pass

    asyncio.run(main())
