import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError

from erblocks.api.routes import router
from erblocks.config import CORS_ORIGINS, LOG_LEVEL
from erblocks.db.models import Base
from erblocks.db.session import engine

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="ER Blocks",
    version="0.1.0",
)

# Middleware first
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes after middleware
app.include_router(router)


@app.on_event("startup")
async def startup():
    retries = 5
    delay = 2

    for attempt in range(retries):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database connected")
            return
        except OperationalError:
            logger.warning("Waiting for database... (%d/%d)", attempt + 1, retries)
            await asyncio.sleep(delay)

    # Keep serving the parser endpoints even without persistence
    logger.error("Database not ready; block endpoints will fail until it is")
