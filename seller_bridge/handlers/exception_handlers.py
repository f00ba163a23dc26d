import logging

from fastapi import Request, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from seller_bridge.core.exceptions import BridgeException, AggregateFailedError, ExternalServiceException

logger = logging.getLogger(__name__)


async def bridge_exception_handler(request: Request, exc: BridgeException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail}
    )


async def external_service_exception_handler(request: Request, exc: ExternalServiceException):
    logger.warning("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail}
    )


async def aggregate_failed_exception_handler(request: Request, exc: AggregateFailedError):
    logger.error("Aggregation failed on account %s: %s", exc.account_id, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail}
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
    return JSONResponse(
        status_code=400,
        content={"error": messages or "Invalid request"}
    )


def init_exception_handlers(app: FastAPI):
    app.add_exception_handler(BridgeException, bridge_exception_handler)
    app.add_exception_handler(ExternalServiceException, external_service_exception_handler)
    app.add_exception_handler(AggregateFailedError, aggregate_failed_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
