"""Webchat Backend Application.

Main entry point for the chat backend. Clients identify by phone number,
join one shared room over a WebSocket, exchange messages, and see who is
online.

Modules:
    - chat: WebSocket transport, session coordinator, broadcast channel
    - presence: in-memory presence table
    - store: DuckDB identity store and message log
    - users: profile and online-user HTTP endpoints
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from webchat.chat.coordinator import get_coordinator, reset_coordinator
from webchat.chat.router import router as chat_router
from webchat.config import get_config
from webchat.users.router import router as users_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# uvicorn access logs every probe hit; keep them out of the way.
for _noisy in ("uvicorn.access", "websockets", "websockets.protocol"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    coordinator = get_coordinator()
    logger.info(
        "Chat session layer ready (history_limit=%d, database=%s)",
        coordinator.history_limit,
        config.database.path,
    )

    yield  # Application runs here

    # Shutdown
    reset_coordinator()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Webchat API",
    description="Real-time chat backend with phone-based identity and live presence",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "x-requested-with", "Accept"],
)

app.include_router(chat_router)
app.include_router(users_router)


@app.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "Chat Server API is running!"


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}


def run() -> None:
    """Start the server with uvicorn using the configured host/port."""
    server = get_config().server
    uvicorn.run(
        "webchat.main:app",
        host=server.host,
        port=server.port,
        reload=server.reload,
    )


if __name__ == "__main__":
    run()
