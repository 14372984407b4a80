"""JSON envelopes shared by routes, controllers and exception handlers.

Success: {"status": "success", "message": "...", "data": ...}
Error:   {"status": "error", "message": "...", "error": "<ERROR_CODE>"}

``data`` may hold review records, enums and datetimes; it is passed through
``jsonable_encoder`` before serialisation.
"""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success_response(
    data: Any,
    message: str = "Request was successful",
    status_code: int = 200,
) -> JSONResponse:
    return JSONResponse(
        content={
            "status": "success",
            "message": message,
            "data": jsonable_encoder(data),
        },
        status_code=status_code,
    )


def error_response(
    error: str,
    message: str = "An error occurred",
    status_code: int = 400,
) -> JSONResponse:
    return JSONResponse(
        content={"status": "error", "message": message, "error": error},
        status_code=status_code,
    )
