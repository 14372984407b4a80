from fastapi.responses import JSONResponse
from typing import Any

from reviewgate.core.exceptions import ReviewGateError
from reviewgate.core.responses import error_response, success_response
from reviewgate.utils.logger import logger


class BaseController:
    def success(
        self, data: Any, message: str = "Request was successful", status_code: int = 200
    ) -> JSONResponse:
        """Return a success response with status code and JSON data"""
        return success_response(data, message=message, status_code=status_code)

    def failure(
        self, error: str, message: str = "An error occurred", status_code: int = 400
    ) -> JSONResponse:
        """Return a failure response with status code and error message"""
        return error_response(error, message=message, status_code=status_code)

    def handle_error(self, exception: Exception) -> JSONResponse:
        """Map an exception to a failure response, keeping ReviewGateError codes."""
        if isinstance(exception, ReviewGateError):
            return self.failure(
                exception.code,
                message=exception.message,
                status_code=exception.status_code,
            )
        logger.exception(f"Unhandled controller error: {exception}")
        return self.failure(str(exception), status_code=500)
