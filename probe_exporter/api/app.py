"""FastAPI application serving the scrape endpoint."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from .. import __version__
from ..cleanup import GarbageCollector
from ..config import ExporterConfig
from ..orchestrator import ProbeOrchestrator

logger = logging.getLogger(__name__)


class RootResponse(BaseModel):
    message: str
    version: str
    metrics_path: str = "/metrics"


class GcResponse(BaseModel):
    running: bool
    interval: float
    max_age: float
    last_sweep_started_at: Optional[float] = None
    last_sweep_finished_at: Optional[float] = None
    scanned: int = 0
    candidates: int = 0
    deleted: int = 0
    failed: int = 0


def create_app(
    config: ExporterConfig,
    orchestrator: Optional[ProbeOrchestrator] = None,
    garbage_collector: Optional[GarbageCollector] = None,
) -> FastAPI:
    """
    Build the exporter app.

    The garbage collector, when given, is started with the app and stopped
    on shutdown.
    """
    if orchestrator is None:
        orchestrator = ProbeOrchestrator(config, garbage_collector=garbage_collector)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if garbage_collector is not None:
            garbage_collector.start()
        try:
            yield
        finally:
            if garbage_collector is not None:
                garbage_collector.stop(timeout=5)

    app = FastAPI(
        title="probe-exporter",
        description="Synthetic cloud probes exposed as Prometheus metrics",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.orchestrator = orchestrator
    app.state.garbage_collector = garbage_collector

    @app.get("/", response_model=RootResponse)
    async def root():
        """Health check endpoint."""
        return RootResponse(message="probe-exporter is running", version=__version__)

    @app.get("/metrics")
    async def metrics(timeout: Optional[str] = Query(None, description="Scrape timeout, e.g. 30s or 1m")):
        """Run one probe round and expose the result."""
        scrape_timeout = config.resolve_timeout(timeout)
        logger.debug(f"Scrape started (timeout {scrape_timeout}s)")

        result = await asyncio.to_thread(orchestrator.handle_scrape, scrape_timeout)

        return Response(content=generate_latest(result.registry), media_type=CONTENT_TYPE_LATEST)

    @app.get("/gc", response_model=GcResponse)
    async def gc_status():
        """Report the last garbage collector sweep."""
        if garbage_collector is None:
            return GcResponse(running=False, interval=config.gc_interval, max_age=config.gc_max_age)

        last = garbage_collector.last_result
        response = GcResponse(
            running=garbage_collector.running,
            interval=garbage_collector.interval,
            max_age=garbage_collector.max_age,
        )
        if last is not None:
            response.last_sweep_started_at = last.started_at
            response.last_sweep_finished_at = last.finished_at
            response.scanned = last.scanned
            response.candidates = last.candidates
            response.deleted = last.deleted
            response.failed = last.failed
        return response

    return app
