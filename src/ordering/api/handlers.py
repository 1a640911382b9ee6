"""Map ordering failures to structured JSON responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ordering.errors import OrderingError

logger = structlog.get_logger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Protean's own handlers plus one for the ordering error taxonomy."""
    register_exception_handlers(app)

    @app.exception_handler(OrderingError)
    async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log("request_failed", path=request.url.path, kind=exc.kind, error_message=exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})
