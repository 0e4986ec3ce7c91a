"""FastAPI entry-point exposing the agent router."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from agent_router.api.chat import router as chat_router
from agent_router.api.routes import router as agents_router
from agent_router.api.sessions import router as sessions_router
from agent_router.config import config
from agent_router.runtime import get_context_store, get_registry

logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    # Startup: begin expiring stale conversation state
    store = get_context_store()
    store.start()
    logger.info("Agent router started with %d agents (%s)", get_registry().agent_count, config.environment)
    yield
    # Shutdown: stop the sweep before the loop goes away
    await store.stop()


app = FastAPI(title="Agent Router", lifespan=lifespan)
app.include_router(agents_router)
app.include_router(sessions_router)
app.include_router(chat_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "agents": get_registry().agent_count}
