from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from reviewgate.core.exceptions import ReviewGateError
from reviewgate.core.responses import error_response
from reviewgate.utils.logger import logger


async def unprocessable_entity_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"]) if error["loc"] else "general"
        errors.append({"field": field, "message": error["msg"]})

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "The received data is invalid. Please check the fields below for details.",
            "errors": errors,
        },
    )


async def review_gate_exception_handler(
    request: Request, exc: ReviewGateError
) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} -> {exc.describe()}")
    return error_response(exc.code, message=exc.message, status_code=exc.status_code)
