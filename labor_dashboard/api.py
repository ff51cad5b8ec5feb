"""HTTP endpoints serving the consolidated dashboard payload."""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from typing import Any, Callable, Optional

from fastapi import FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers

from .config import CORS_ORIGINS, DASHBOARD_REQUEST_TIMEOUT
from .data_source import DataSource, source_from_env
from .pipeline import build_dashboard_payload
from .predictions import build_predictions_payload
from .scope import Scope, parse_year

logger = logging.getLogger(__name__)


def _error_response(message: str, details: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": message, "details": details},
    )


def _describe(exc: BaseException) -> str:
    cause = exc.__cause__
    if cause is not None:
        return f"{type(exc).__name__}: {exc} (caused by {type(cause).__name__}: {cause})"
    return f"{type(exc).__name__}: {exc}"


class EmptyPreflightCORSMiddleware(CORSMiddleware):
    """CORS middleware whose accepted preflight answers are empty 200s."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        if response.status_code != 200:
            return response
        headers = {
            key: value
            for key, value in response.headers.items()
            if key not in ("content-length", "content-type")
        }
        return Response(status_code=200, headers=headers)


class LazySource:
    """Build the data source once, on first use, from any thread."""

    def __init__(
        self,
        source: Optional[DataSource],
        factory: Callable[[], DataSource],
    ):
        self._source = source
        self._factory = factory
        self._lock = threading.Lock()

    def get(self) -> DataSource:
        if self._source is None:
            with self._lock:
                if self._source is None:
                    self._source = self._factory()
        return self._source


def create_app(
    source: Optional[DataSource] = None,
    *,
    source_factory: Callable[[], DataSource] = source_from_env,
    request_timeout: float = DASHBOARD_REQUEST_TIMEOUT,
) -> FastAPI:
    """Build the FastAPI application.

    ``source`` is used as-is when given; otherwise ``source_factory`` is
    called on the first request, so importing the app never needs
    credentials.
    """
    app = FastAPI(title="Labor Dashboard API")
    app.add_middleware(
        EmptyPreflightCORSMiddleware,
        allow_origins=CORS_ORIGINS or ["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )
    app.state.source = LazySource(source, source_factory)

    def get_source(request: Request) -> DataSource:
        return request.app.state.source.get()

    async def run_request(request: Request, func: Callable[..., Any], *args) -> JSONResponse:
        loop = asyncio.get_running_loop()
        try:
            # on timeout the worker thread keeps running until the query returns
            call = functools.partial(func, get_source(request), *args)
            data = await asyncio.wait_for(
                loop.run_in_executor(None, call), timeout=request_timeout
            )
        except asyncio.TimeoutError:
            logger.error("%s timed out after %ss", request.url.path, request_timeout)
            return _error_response(
                "Request timed out",
                f"No response from the data store within {request_timeout} seconds",
            )
        except Exception as exc:
            logger.exception("Dashboard data error on %s", request.url.path)
            return _error_response(str(exc), _describe(exc))
        return JSONResponse(content={"success": True, "data": data})

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.options("/dashboard-data")
    @app.options("/predictions")
    def preflight() -> Response:
        return Response(status_code=200)

    @app.get("/dashboard-data")
    async def dashboard_data(
        request: Request,
        region: Optional[str] = Query(default=None),
        year: Optional[str] = Query(default=None),
        country: Optional[str] = Query(default=None),
    ) -> JSONResponse:
        scope = Scope.from_params(region=region, year=year, country=country)
        logger.info("Dashboard request: %s", scope)
        return await run_request(request, build_dashboard_payload, scope)

    @app.get("/predictions")
    async def predictions(
        request: Request,
        year: Optional[str] = Query(default=None),
        country: Optional[str] = Query(default=None),
    ) -> JSONResponse:
        return await run_request(
            request,
            build_predictions_payload,
            parse_year(year),
            country.strip() if country and country.strip() else None,
        )

    return app
