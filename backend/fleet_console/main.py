"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fleet_console.api import buses, creation, editor, sessions, trips
from fleet_console.config import settings
from fleet_console.core.fleet_client import FleetApiError, FleetClient
from fleet_console.core.ui_session import SessionRegistry

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    client = FleetClient()

    # Wire up API modules
    sessions.registry = SessionRegistry(client)
    logger.info("Fleet console started - fleet API at %s", settings.fleet_api_base_url)

    yield

    # Shutdown
    sessions.registry = None
    await client.close()
    logger.info("Fleet console shut down")


app = FastAPI(
    title="Fleet Console",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions.router)
app.include_router(editor.router)
app.include_router(buses.router)
app.include_router(trips.router)
app.include_router(creation.router)


@app.exception_handler(FleetApiError)
async def fleet_api_error(request: Request, exc: FleetApiError):
    """Upstream failures outside a save surface as 502 (or 404 when the entity is gone)."""
    status = 404 if exc.status_code == 404 else 502
    return JSONResponse(status_code=status, content={"detail": exc.detail, "errors": exc.errors})


@app.get("/api/health")
async def health():
    return {"status": "ok", "sessions": len(sessions.registry) if sessions.registry is not None else 0}
