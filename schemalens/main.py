"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from schemalens.config import get_settings
from schemalens.routers import ontology, pending_changes, schema
from schemalens.services.background_jobs import shutdown_task_runner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    logger.info("app.shutdown waiting for background tasks")
    shutdown_task_runner()


app = FastAPI(title=get_settings().app_name, version="0.1.0", lifespan=lifespan)

app.include_router(schema.router, tags=["schema"])
app.include_router(pending_changes.router, tags=["pending-changes"])
app.include_router(ontology.router, tags=["ontology"])


@app.get("/health")
def health() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}
