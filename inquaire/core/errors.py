from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from fastapi import FastAPI, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from inquaire.context import get_correlation_id


logger = logging.getLogger("inquaire.errors")


class ErrorCode(str, Enum):
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_REFRESH_TOKEN_EXPIRED = "AUTH_REFRESH_TOKEN_EXPIRED"
    AUTH_INVALID_REFRESH_TOKEN = "AUTH_INVALID_REFRESH_TOKEN"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_INSUFFICIENT_PERMISSIONS"
    AUTH_EMAIL_ALREADY_EXISTS = "AUTH_EMAIL_ALREADY_EXISTS"
    AUTH_REQUIRED = "AUTH_REQUIRED"

    VALIDATION_INVALID_INPUT = "VALIDATION_INVALID_INPUT"
    VALIDATION_REQUIRED_FIELD = "VALIDATION_REQUIRED_FIELD"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"
    VALIDATION_WEAK_PASSWORD = "VALIDATION_WEAK_PASSWORD"
    VALIDATION_INVALID_EMAIL = "VALIDATION_INVALID_EMAIL"
    VALIDATION_OUT_OF_RANGE = "VALIDATION_OUT_OF_RANGE"

    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    BUSINESS_DUPLICATE_ENTITY = "BUSINESS_DUPLICATE_ENTITY"
    BUSINESS_OPERATION_NOT_ALLOWED = "BUSINESS_OPERATION_NOT_ALLOWED"
    BUSINESS_INVALID_STATE_TRANSITION = "BUSINESS_INVALID_STATE_TRANSITION"
    BUSINESS_QUOTA_EXCEEDED = "BUSINESS_QUOTA_EXCEEDED"

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_ACCESS_DENIED = "RESOURCE_ACCESS_DENIED"
    RESOURCE_ALREADY_EXISTS = "RESOURCE_ALREADY_EXISTS"
    RESOURCE_ALREADY_DELETED = "RESOURCE_ALREADY_DELETED"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"

    EXTERNAL_API_ERROR = "EXTERNAL_API_ERROR"
    EXTERNAL_OPENAI_ERROR = "EXTERNAL_OPENAI_ERROR"
    EXTERNAL_WEBHOOK_ERROR = "EXTERNAL_WEBHOOK_ERROR"
    EXTERNAL_SERVICE_TIMEOUT = "EXTERNAL_SERVICE_TIMEOUT"
    EXTERNAL_SERVICE_UNAVAILABLE = "EXTERNAL_SERVICE_UNAVAILABLE"

    SYSTEM_INTERNAL_ERROR = "SYSTEM_INTERNAL_ERROR"
    SYSTEM_DATABASE_ERROR = "SYSTEM_DATABASE_ERROR"
    SYSTEM_CACHE_ERROR = "SYSTEM_CACHE_ERROR"
    SYSTEM_CONFIGURATION_ERROR = "SYSTEM_CONFIGURATION_ERROR"
    SYSTEM_SERVICE_UNAVAILABLE = "SYSTEM_SERVICE_UNAVAILABLE"

    UNKNOWN_ERROR = "UNKNOWN_ERROR"


ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.AUTH_INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_TOKEN_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_REFRESH_TOKEN_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_INVALID_REFRESH_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS: status.HTTP_403_FORBIDDEN,
    ErrorCode.AUTH_EMAIL_ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.AUTH_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.VALIDATION_INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_REQUIRED_FIELD: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_INVALID_FORMAT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_WEAK_PASSWORD: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_INVALID_EMAIL: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_OUT_OF_RANGE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.BUSINESS_RULE_VIOLATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.BUSINESS_DUPLICATE_ENTITY: status.HTTP_409_CONFLICT,
    ErrorCode.BUSINESS_OPERATION_NOT_ALLOWED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.BUSINESS_INVALID_STATE_TRANSITION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.BUSINESS_QUOTA_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.RESOURCE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.RESOURCE_ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.RESOURCE_ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.RESOURCE_ALREADY_DELETED: status.HTTP_410_GONE,
    ErrorCode.RESOURCE_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.EXTERNAL_API_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.EXTERNAL_OPENAI_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.EXTERNAL_WEBHOOK_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.EXTERNAL_SERVICE_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.SYSTEM_INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.SYSTEM_DATABASE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.SYSTEM_CACHE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.SYSTEM_CONFIGURATION_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.SYSTEM_SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.UNKNOWN_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.AUTH_INVALID_CREDENTIALS: "Invalid email or password",
    ErrorCode.AUTH_TOKEN_EXPIRED: "Access token has expired",
    ErrorCode.AUTH_INVALID_TOKEN: "Invalid access token",
    ErrorCode.AUTH_REFRESH_TOKEN_EXPIRED: "Refresh token has expired",
    ErrorCode.AUTH_INVALID_REFRESH_TOKEN: "Invalid refresh token",
    ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS: "Insufficient permissions",
    ErrorCode.AUTH_EMAIL_ALREADY_EXISTS: "Email already exists",
    ErrorCode.AUTH_REQUIRED: "Authentication required",
    ErrorCode.VALIDATION_INVALID_INPUT: "Invalid input",
    ErrorCode.VALIDATION_REQUIRED_FIELD: "Required field is missing",
    ErrorCode.VALIDATION_INVALID_FORMAT: "Invalid format",
    ErrorCode.VALIDATION_WEAK_PASSWORD: "Password does not meet strength requirements",
    ErrorCode.VALIDATION_INVALID_EMAIL: "Invalid email address",
    ErrorCode.VALIDATION_OUT_OF_RANGE: "Value is out of range",
    ErrorCode.BUSINESS_RULE_VIOLATION: "Business rule violated",
    ErrorCode.BUSINESS_DUPLICATE_ENTITY: "Entity already exists",
    ErrorCode.BUSINESS_OPERATION_NOT_ALLOWED: "Operation not allowed",
    ErrorCode.BUSINESS_INVALID_STATE_TRANSITION: "Invalid state transition",
    ErrorCode.BUSINESS_QUOTA_EXCEEDED: "Quota exceeded",
    ErrorCode.RESOURCE_NOT_FOUND: "Resource not found",
    ErrorCode.RESOURCE_ACCESS_DENIED: "Access to resource denied",
    ErrorCode.RESOURCE_ALREADY_EXISTS: "Resource already exists",
    ErrorCode.RESOURCE_ALREADY_DELETED: "Resource already deleted",
    ErrorCode.RESOURCE_CONFLICT: "Resource conflict",
    ErrorCode.EXTERNAL_API_ERROR: "External API error",
    ErrorCode.EXTERNAL_OPENAI_ERROR: "AI service error",
    ErrorCode.EXTERNAL_WEBHOOK_ERROR: "Webhook processing error",
    ErrorCode.EXTERNAL_SERVICE_TIMEOUT: "External service timed out",
    ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE: "External service unavailable",
    ErrorCode.SYSTEM_INTERNAL_ERROR: "Internal server error",
    ErrorCode.SYSTEM_DATABASE_ERROR: "Database error",
    ErrorCode.SYSTEM_CACHE_ERROR: "Cache error",
    ErrorCode.SYSTEM_CONFIGURATION_ERROR: "Configuration error",
    ErrorCode.SYSTEM_SERVICE_UNAVAILABLE: "Service unavailable",
    ErrorCode.UNKNOWN_ERROR: "Unknown error",
}

_STATUS_FALLBACK_CODES: dict[int, ErrorCode] = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.VALIDATION_INVALID_INPUT,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.AUTH_REQUIRED,
    status.HTTP_403_FORBIDDEN: ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
    status.HTTP_404_NOT_FOUND: ErrorCode.RESOURCE_NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorCode.RESOURCE_CONFLICT,
    status.HTTP_410_GONE: ErrorCode.RESOURCE_ALREADY_DELETED,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ErrorCode.BUSINESS_RULE_VIOLATION,
    status.HTTP_429_TOO_MANY_REQUESTS: ErrorCode.BUSINESS_QUOTA_EXCEEDED,
    status.HTTP_503_SERVICE_UNAVAILABLE: ErrorCode.SYSTEM_SERVICE_UNAVAILABLE,
}


class BusinessException(Exception):
    def __init__(
        self,
        error_code: ErrorCode,
        message: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message or ERROR_MESSAGES.get(error_code, "Unknown error")
        self.context = context
        self.status_code = ERROR_STATUS.get(error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "statusCode": self.status_code,
            "errorCode": self.error_code.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.context:
            body["context"] = self.context
        return body


def not_found(resource: str, resource_id: Any = None) -> BusinessException:
    message = f"{resource} not found" if resource_id is None else f"{resource} {resource_id} not found"
    context = {"resource": resource}
    if resource_id is not None:
        context["id"] = str(resource_id)
    return BusinessException(ErrorCode.RESOURCE_NOT_FOUND, message, context)


def access_denied(resource: str, resource_id: Any = None) -> BusinessException:
    context = {"resourceType": resource}
    if resource_id is not None:
        context["resourceId"] = str(resource_id)
    return BusinessException(ErrorCode.RESOURCE_ACCESS_DENIED, f"Access to {resource} denied", context)


def duplicate(resource: str, field: str, value: Any) -> BusinessException:
    return BusinessException(
        ErrorCode.RESOURCE_ALREADY_EXISTS,
        f"{resource} with {field} '{value}' already exists",
        {"resource": resource, "field": field, "value": str(value)},
    )


def rule_violation(rule: str, details: dict[str, Any] | None = None) -> BusinessException:
    return BusinessException(ErrorCode.BUSINESS_RULE_VIOLATION, rule, details)


def invalid_input(field: str, reason: str) -> BusinessException:
    return BusinessException(ErrorCode.VALIDATION_INVALID_INPUT, f"{field}: {reason}", {"field": field})


def not_allowed(reason: str, details: dict[str, Any] | None = None) -> BusinessException:
    return BusinessException(ErrorCode.BUSINESS_OPERATION_NOT_ALLOWED, reason, details)


def _envelope(
    request: Request,
    *,
    status_code: int,
    error_code: str,
    message: str,
    timestamp: str | None = None,
    context: dict[str, Any] | None = None,
    validation_errors: list[str] | None = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(getattr(request.state, "context", None), "request_id", None)
    content: dict[str, Any] = {
        "success": False,
        "statusCode": status_code,
        "errorCode": error_code,
        "message": message,
        "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "method": request.method,
        "correlation_id": correlation_id,
    }
    if context:
        content["context"] = context
    if validation_errors:
        content["validationErrors"] = validation_errors
    return JSONResponse(status_code=status_code, content=content)


async def business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        "http.business_error",
        extra={"method": request.method, "path": request.url.path, "status_code": exc.status_code, "error": exc.message},
    )
    return _envelope(
        request,
        status_code=exc.status_code,
        error_code=exc.error_code.value,
        message=exc.message,
        timestamp=exc.timestamp,
        context=exc.context,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    fallback = _STATUS_FALLBACK_CODES.get(exc.status_code, ErrorCode.UNKNOWN_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else ERROR_MESSAGES[fallback]
    response = _envelope(request, status_code=exc.status_code, error_code=fallback.value, message=message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part not in {"body", "query", "path"})
        errors.append(f"{location}: {item.get('msg', 'invalid')}" if location else str(item.get("msg", "invalid")))
    return _envelope(
        request,
        status_code=status.HTTP_400_BAD_REQUEST,
        error_code=ErrorCode.VALIDATION_INVALID_INPUT.value,
        message=", ".join(errors) or ERROR_MESSAGES[ErrorCode.VALIDATION_INVALID_INPUT],
        validation_errors=errors,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "http.unhandled_error",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path, "status_code": 500, "error": str(exc)},
    )
    return _envelope(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code=ErrorCode.SYSTEM_INTERNAL_ERROR.value,
        message=ERROR_MESSAGES[ErrorCode.SYSTEM_INTERNAL_ERROR],
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BusinessException, business_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
