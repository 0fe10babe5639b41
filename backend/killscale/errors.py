"""
Exception handlers that keep every error body in the {"error": "..."} shape the dashboard reads.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from killscale.services.bulk_operations import BulkValidationError
from killscale.services.connections import MetaConnectionError
from killscale.services.meta_graph import MetaGraphError

logger = logging.getLogger(__name__)

# Errors a route lets through to these handlers instead of turning into a 500
HANDLED_ERRORS = (HTTPException, MetaConnectionError, MetaGraphError, BulkValidationError)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Rejected request to {request.url.path}: {exc.errors()}")
        return error_response(400, "Invalid request body")

    @app.exception_handler(MetaConnectionError)
    async def meta_connection_handler(request: Request, exc: MetaConnectionError):
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(MetaGraphError)
    async def meta_graph_handler(request: Request, exc: MetaGraphError):
        return error_response(400, exc.display_message)

    @app.exception_handler(BulkValidationError)
    async def bulk_validation_handler(request: Request, exc: BulkValidationError):
        return error_response(400, str(exc))
