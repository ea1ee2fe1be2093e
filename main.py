import asyncio
import logging

import uvicorn

from api.main import app
from app.container import get_container
from db.database import init_db

container = get_container()


async def main():
    logging.basicConfig(level=logging.INFO)

    # tables are created on first start
    await init_db()

    settings = container.settings
    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.api_host, port=settings.api_port, log_level="info")
    )
    logging.info("API started on %s:%s", settings.api_host, settings.api_port)
    try:
        await server.serve()
    finally:
        if container.bot is not None:
            await container.bot.session.close()

if __name__ == "__main__":
    asyncio.run(main())
