"""
Error handling
Standard error response format and the FastAPI exception handlers.

- application errors map to an HTTP status by error code
- unknown exceptions are logged, written to the logs table and returned as 500
- scan denials never reach this module; they are regular scan responses
"""

import json
import logging
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from .database import db_manager
from .exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


class ErrorResponse:
    """Standard error response"""

    def __init__(self, error_code: str, message: str,
                 details: Optional[Dict[str, Any]] = None,
                 http_status: int = 400, message_ar: Optional[str] = None):
        self.error_code = error_code
        self.message = message
        self.message_ar = message_ar
        self.details = details or {}
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error_code": self.error_code,
            "message": self.message,
            "message_ar": self.message_ar,
            "details": self.details,
            "timestamp": datetime.now().isoformat(),
        }

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.http_status, content=self.to_dict())


class ErrorHandler:
    """Global error handler"""

    ERROR_CODE_STATUS_MAP = {
        "VALIDATION_ERROR": 400,
        "RESOURCE_NOT_FOUND": 404,
        "BUSINESS_RULE_VIOLATION": 422,
        "CONCURRENCY_CONFLICT": 409,
        "DATABASE_ERROR": 500,
        "INTERNAL_ERROR": 500,

        # lookups
        "GUEST_NOT_FOUND": 404,
        "MEAL_TIME_NOT_FOUND": 404,
        "CARD_NOT_FOUND": 404,
        "GATE_NOT_FOUND": 404,

        # inactive records
        "GUEST_INACTIVE": 400,
        "MEAL_TIME_INACTIVE": 400,
        "GATE_INACTIVE": 400,
    }

    @classmethod
    def status_for(cls, error_code: str) -> int:
        return cls.ERROR_CODE_STATUS_MAP.get(error_code, 400)

    @classmethod
    def handle_application_error(cls, error: BaseApplicationError) -> ErrorResponse:
        http_status = cls.status_for(error.error_code)
        if http_status >= 500:
            logger.error("%s: %s", error.error_code, error.message)
        else:
            logger.info("%s: %s", error.error_code, error.message)

        return ErrorResponse(
            error_code=error.error_code,
            message=error.message,
            message_ar=error.message_ar,
            details=error.details,
            http_status=http_status
        )

    @classmethod
    def handle_http_exception(cls, error: HTTPException) -> ErrorResponse:
        return ErrorResponse(
            error_code="HTTP_ERROR",
            message=str(error.detail),
            details={"status_code": error.status_code},
            http_status=error.status_code
        )

    @classmethod
    def handle_validation_error(cls, error: Exception) -> ErrorResponse:
        """Request body/query validation failure"""
        return ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Request validation failed",
            message_ar="بيانات غير صحيحة",
            details={"validation_errors": str(error)},
            http_status=422
        )

    @classmethod
    def handle_unknown_error(cls, error: Exception) -> ErrorResponse:
        logger.error("Unhandled %s: %s", type(error).__name__, error,
                     exc_info=(type(error), error, error.__traceback__))

        cls._log_system_error({
            "type": type(error).__name__,
            "message": str(error),
            "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        })

        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message=str(error) or "Internal server error",
            message_ar="خطأ في النظام",
            details={"error_type": type(error).__name__},
            http_status=500
        )

    @classmethod
    def _log_system_error(cls, error_details: Dict[str, Any]):
        """Write a system error to the logs table"""
        try:
            db_manager.execute_query(
                "INSERT INTO logs (action, detail_json, created_at) VALUES (?, ?, ?)",
                ["system_error", json.dumps(error_details, ensure_ascii=False), datetime.now()]
            )
        except Exception:
            logger.exception("Failed to write system error to the database")


async def application_error_handler(request: Request, exc: BaseApplicationError) -> JSONResponse:
    return ErrorHandler.handle_application_error(exc).to_json_response()


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return ErrorHandler.handle_http_exception(exc).to_json_response()


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return ErrorHandler.handle_validation_error(exc).to_json_response()


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return ErrorHandler.handle_unknown_error(exc).to_json_response()
