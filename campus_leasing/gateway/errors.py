"""Map the error taxonomy onto JSON responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..exceptions import LeasingError, StoreError

logger = logging.getLogger(__name__)


def _error_response(request: Request, status_code: int, message: str) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        content={"error": message, "requestId": request_id},
        status_code=status_code,
        headers={"X-Request-ID": request_id} if request_id else None,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(LeasingError)
    async def leasing_exception_handler(request: Request, exc: LeasingError):
        if isinstance(exc, StoreError):
            # Details of store failures stay in the log
            return _error_response(request, exc.status_code, "Database error")
        return _error_response(request, exc.status_code, exc.message)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _error_response(request, 400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        return _error_response(request, 422, str(exc))
