"""
HTTP API exposing indexing control, statistics and search.
"""

import logging
from typing import Any, Dict, Optional, TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from . import __version__

if TYPE_CHECKING:
    from .application import SiteSearchApp


INDEXING_ALREADY_RUNNING = "Indexing is already running"
INDEXING_NOT_RUNNING = "Indexing is not running"
PAGE_OUTSIDE_SITES = "This page is outside the sites listed in the configuration file"

logger = logging.getLogger(__name__)


def error_response(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"result": False, "error": message}, status_code=status_code)


def ok_response(payload: Optional[Dict[str, Any]] = None) -> JSONResponse:
    return JSONResponse(payload if payload is not None else {"result": True})


def create_app(services: 'SiteSearchApp') -> FastAPI:
    """
    Build the API around already initialized services.

    Args:
        services: Object exposing ``orchestrator``, ``search_engine``,
            ``statistics`` and ``monitor``

    Returns:
        FastAPI application
    """
    app = FastAPI(title="SiteSearch API", version=__version__)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = ", ".join(str(error["loc"][-1]) for error in exc.errors())
        logger.warning(f"Invalid request to {request.url.path}: {fields}")
        return error_response(f"Invalid parameters: {fields}")

    @app.get("/api/startIndexing")
    async def start_indexing():
        if not await services.orchestrator.start_full_indexing():
            return error_response(INDEXING_ALREADY_RUNNING)
        return ok_response()

    @app.get("/api/stopIndexing")
    async def stop_indexing():
        if not await services.orchestrator.stop_indexing():
            return error_response(INDEXING_NOT_RUNNING)
        return ok_response()

    @app.post("/api/indexPage")
    async def index_page(request: Request, url: Optional[str] = None):
        if not url:
            form = await request.form()
            url = form.get("url")
        if not url:
            return error_response("Parameter 'url' is required")

        if not await services.orchestrator.index_single_page(str(url)):
            return error_response(PAGE_OUTSIDE_SITES)
        return ok_response()

    @app.get("/api/statistics")
    async def statistics():
        return ok_response(await services.statistics.get_statistics())

    @app.get("/api/search")
    async def search(query: str = "", site: Optional[str] = None,
                     offset: int = 0, limit: Optional[int] = None):
        if offset < 0:
            return error_response("Parameter 'offset' must not be negative")
        if limit is not None and limit < 0:
            return error_response("Parameter 'limit' must not be negative")

        response = await services.search_engine.search(query, site or None, offset, limit)
        if not response.result:
            return error_response(response.error)
        return ok_response(response.to_dict())

    @app.get("/metrics")
    async def metrics():
        if services.monitor is None:
            return error_response("Monitoring not available", status_code=404)
        return Response(services.monitor.metrics.export(), media_type=CONTENT_TYPE_LATEST)

    return app
