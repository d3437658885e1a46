import asyncio
import sys

from core.config import settings
from core.logger import setup_logging, logger
from db.session import init_db

async def start_api():
    import uvicorn
    from api.main import app
    config = uvicorn.Config(app, host=settings.API_HOST, port=settings.API_PORT, log_level="info")
    server = uvicorn.Server(config)
    await server.serve()

async def main():
    # Setup structured logging
    setup_logging()

    # Development convenience: create tables without running Alembic
    if "--init-db" in sys.argv:
        logger.info("Creating database tables...")
        await init_db()

    logger.info("Starting API...", env=settings.ENV, port=settings.API_PORT)
    await start_api()

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Application stopped.")
