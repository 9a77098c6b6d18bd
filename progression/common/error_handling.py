"""
Error Handling for the Progression Engine

This module provides the exception hierarchy shared by every component,
plus helpers to render errors as API responses and to log them with
context.
"""

import json
import logging
import traceback
from enum import Enum
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Configure logging
logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for errors"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCode(Enum):
    """Standard error codes for the engine"""
    # General errors
    UNKNOWN_ERROR = "unknown_error"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND_ERROR = "not_found_error"
    ACCESS_DENIED = "access_denied"

    # Session / attempt errors
    INVALID_TRANSITION = "invalid_transition"

    # Upstream errors
    QUESTION_GENERATION_ERROR = "question_generation_error"

    # Database errors
    DATABASE_ERROR = "database_error"


class ErrorInfo(BaseModel):
    """Structured information about an error"""
    model_config = ConfigDict(use_enum_values=True)

    code: ErrorCode
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)
    severity: ErrorSeverity = ErrorSeverity.ERROR
    retryable: bool = False
    details: Optional[Dict[str, Any]] = None
    exception_type: Optional[str] = None
    stack_trace: Optional[List[str]] = None
    context: Optional[Dict[str, Any]] = None

    @field_validator('stack_trace', mode='before')
    @classmethod
    def validate_stack_trace(cls, v):
        """Format stack trace if it's a string"""
        if isinstance(v, str):
            return v.splitlines()
        return v


class ProgressionError(Exception):
    """Base exception class for all engine errors"""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.severity = severity
        self.details = details or {}
        self.cause = cause
        self.context = context or {}
        self.timestamp = datetime.now()

    def to_error_info(self, include_stack_trace: bool = False) -> ErrorInfo:
        """Convert the exception to an ErrorInfo object"""
        stack_trace = None
        if include_stack_trace:
            stack_trace = traceback.format_exc().splitlines()

        details = dict(self.details)
        if self.cause is not None:
            details["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause)
            }

        return ErrorInfo(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            severity=self.severity,
            retryable=self.retryable,
            details=details,
            exception_type=type(self).__name__,
            stack_trace=stack_trace,
            context=self.context
        )

    def to_dict(self, include_stack_trace: bool = False) -> Dict[str, Any]:
        """Convert the exception to a dictionary"""
        return self.to_error_info(include_stack_trace).model_dump(mode="json")

    def to_json(self, include_stack_trace: bool = False) -> str:
        """Convert the exception to a JSON string"""
        return json.dumps(self.to_dict(include_stack_trace))

    def __str__(self) -> str:
        base_str = f"{self.code.value}: {self.message}"
        if self.details:
            base_str += f" (details: {self.details})"
        if self.cause:
            base_str += f" caused by {type(self.cause).__name__}: {str(self.cause)}"
        return base_str


class ValidationError(ProgressionError):
    """Error raised when a request is malformed or inconsistent"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            severity=ErrorSeverity.WARNING,
            details=details,
            cause=cause,
            context=context
        )


class NotFoundError(ProgressionError):
    """Error raised when a learner, lesson or quiz does not exist"""

    def __init__(
        self,
        resource: str,
        resource_id: Any,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["resource"] = resource
        details["id"] = str(resource_id)

        super().__init__(
            message=f"{resource.capitalize()} with ID {resource_id} not found",
            code=ErrorCode.NOT_FOUND_ERROR,
            severity=ErrorSeverity.WARNING,
            details=details,
            context=context
        )


class AccessDeniedError(ProgressionError):
    """Error raised when a learner may not access a lesson or quiz"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=ErrorCode.ACCESS_DENIED,
            severity=ErrorSeverity.WARNING,
            details=details,
            context=context
        )


class InvalidTransitionError(ProgressionError):
    """Error raised when a session moves between states illegally"""

    def __init__(
        self,
        current: str,
        target: str,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["from"] = current
        details["to"] = target

        super().__init__(
            message=f"Cannot move session from {current} to {target}",
            code=ErrorCode.INVALID_TRANSITION,
            severity=ErrorSeverity.WARNING,
            details=details,
            context=context
        )


class QuestionGenerationError(ProgressionError):
    """Transient failure of the external question generator"""

    retryable = True

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=ErrorCode.QUESTION_GENERATION_ERROR,
            severity=ErrorSeverity.ERROR,
            details=details,
            cause=cause,
            context=context
        )


class DatabaseError(ProgressionError):
    """Persistence failure; the surrounding unit of work was rolled back"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=ErrorCode.DATABASE_ERROR,
            severity=ErrorSeverity.ERROR,
            details=details,
            cause=cause,
            context=context
        )


# HTTP status for each error code
HTTP_STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.ACCESS_DENIED: 403,
    ErrorCode.NOT_FOUND_ERROR: 404,
    ErrorCode.INVALID_TRANSITION: 409,
    ErrorCode.QUESTION_GENERATION_ERROR: 503,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.UNKNOWN_ERROR: 500,
}


def http_status_for(error: ProgressionError) -> int:
    """Map an engine error onto an HTTP status code."""
    return HTTP_STATUS_BY_CODE.get(error.code, 500)


def convert_exception(
    exception: Exception,
    default_message: str = "An unexpected error occurred",
    default_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
    default_severity: ErrorSeverity = ErrorSeverity.ERROR,
    context: Optional[Dict[str, Any]] = None
) -> ProgressionError:
    """
    Convert a standard exception to a ProgressionError.

    Args:
        exception: The exception to convert
        default_message: Default message if the exception has no message
        default_code: Default error code
        default_severity: Default error severity
        context: Optional additional context

    Returns:
        Converted ProgressionError
    """
    if isinstance(exception, ProgressionError):
        if context:
            exception.context.update(context)
        return exception

    return ProgressionError(
        message=str(exception) or default_message,
        code=default_code,
        severity=default_severity,
        cause=exception,
        context=context
    )


def error_response(
    error: Union[ProgressionError, Exception],
    include_details: bool = True,
    include_stack_trace: bool = False
) -> Dict[str, Any]:
    """
    Generate a standardized API error response.

    Args:
        error: The error to generate a response for
        include_details: Whether to include error details
        include_stack_trace: Whether to include stack trace

    Returns:
        Standardized error response dictionary
    """
    if not isinstance(error, ProgressionError):
        error = convert_exception(error)

    error_info = error.to_error_info(include_stack_trace=include_stack_trace)

    response = {
        "status": "error",
        "code": error_info.code,
        "message": error_info.message,
        "retryable": error_info.retryable
    }

    if include_details and error_info.details:
        response["details"] = error_info.details

    return response


def log_error(
    error: Union[ProgressionError, Exception],
    level: int = logging.ERROR,
    include_stack_trace: bool = True,
    context: Optional[Dict[str, Any]] = None,
    log: Optional[logging.Logger] = None
) -> None:
    """
    Log an error with standardized format.

    Args:
        error: The error to log
        level: Logging level
        include_stack_trace: Whether to include stack trace
        context: Additional context to include
        log: Logger to write to (defaults to this module's logger)
    """
    if not isinstance(error, ProgressionError):
        error = convert_exception(error, context=context)
    elif context:
        error.context.update(context)

    message = f"ERROR [{error.code.value}]: {error.message}"

    if error.context:
        context_str = ", ".join(f"{k}={v}" for k, v in error.context.items())
        message += f" (context: {context_str})"

    if error.cause:
        message += f" caused by {type(error.cause).__name__}: {str(error.cause)}"

    (log or logger).log(level, message, exc_info=include_stack_trace)
