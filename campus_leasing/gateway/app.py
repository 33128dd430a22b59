"""FastAPI application factory for the restore gateway."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request

from .. import __version__
from ..audit_trail.context import new_trace_id, trace_context
from ..config import LeasingConfig, get_config
from ..store.database import Store
from .errors import setup_exception_handlers
from .routes import ROUTERS

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(
    store: Optional[Store] = None, config: Optional[LeasingConfig] = None
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        store: Store to serve; one is created from ``config`` and closed on
            shutdown when omitted
        config: Configuration; the global configuration when omitted

    Returns:
        Configured FastAPI application
    """
    config = config or get_config()
    owns_store = store is None
    store = store or Store(config.database_url, echo=config.database_echo)
    store.open()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_store:
            store.close()

    app = FastAPI(
        title=config.application_name,
        version=__version__,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.config = config

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_trace_id()
        request.state.request_id = request_id
        with trace_context(request_id):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    setup_exception_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    logger.info(
        "Gateway ready for %s (%s)", config.application_name, config.environment
    )
    return app
