"""
Error Handling & Sanitization
Exception hierarchy for health analytics and client-safe error payloads

REQUIREMENTS:
- Malformed input fails fast with a validation error
- Business-rule violations carry their own exception type
- Error payloads never leak internal details
"""

import logging
import uuid
from collections.abc import Iterable, Mapping
from typing import Optional, Dict, Any, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from health_tracker.core.logging import log_error

logger = logging.getLogger(__name__)


class HealthTrackerError(Exception):
    """Base class for all health tracker errors"""


class HealthDataValidationError(HealthTrackerError, ValueError):
    """Raised when records, goals or trend points are malformed"""

    def __init__(self, message: str, field: Optional[str] = None, index: Optional[int] = None):
        super().__init__(message)
        self.field = field
        self.index = index


class InsufficientDataError(HealthTrackerError, ValueError):
    """Raised when a computation needs more data points than were supplied"""


class UnknownMetricTypeError(HealthTrackerError, KeyError):
    """Raised when a metric type has no scoring ranges"""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Unknown metric type"


class GoalConflictError(HealthTrackerError):
    """Raised when a second active goal is created for the same health type"""


class NotFoundError(HealthTrackerError):
    """Raised when a referenced goal, reminder, constraint or profile does not exist"""


class InvalidScheduleError(HealthTrackerError, ValueError):
    """Raised when a reminder schedule cannot be parsed"""


class ProfileValidationError(HealthTrackerError, ValueError):
    """Raised when profile, preference or constraint data fails validation"""


def first_validation_message(error: ValidationError) -> str:
    """Return the first human-readable message from a pydantic ValidationError"""
    errors = error.errors()
    if not errors:
        return "Validation failed"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "__root__")
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_items(items: Any, model: Type[ModelT], kind: str) -> List[ModelT]:
    """
    Validate every item of a collection against a pydantic model.

    Stops at the first malformed item; the raised error carries its index.

    Raises:
        HealthDataValidationError: items is not a collection, or an item
            fails validation
    """
    if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Iterable):
        raise HealthDataValidationError(f"Invalid {kind}s: must be a list", field=kind)

    validated = []
    for index, item in enumerate(items):
        try:
            validated.append(model.model_validate(item))
        except ValidationError as e:
            raise HealthDataValidationError(
                f"Invalid {kind} at index {index}: {first_validation_message(e)}",
                field=kind,
                index=index,
            ) from e
    return validated


class ErrorSanitizer:
    """Sanitizes errors to prevent information leakage"""

    SAFE_ERROR_MESSAGES = {
        "validation_error": "Validation error",
        "conflict": "Resource conflict",
        "resource_not_found": "Resource not found",
        "insufficient_data": "Not enough data",
        "internal_error": "An error occurred processing your request",
    }

    @staticmethod
    def sanitize_error(error: Exception, context: Optional[str] = None) -> Dict[str, Any]:
        """
        Sanitize error for client response

        Args:
            error: Exception instance
            context: Additional context, logged but never returned

        Returns:
            Sanitized error dictionary
        """
        if isinstance(error, GoalConflictError):
            return {
                "error": str(error),
                "status_code": 409,
                "type": "conflict",
            }

        if isinstance(error, NotFoundError):
            return {
                "error": ErrorSanitizer.SAFE_ERROR_MESSAGES["resource_not_found"],
                "status_code": 404,
                "type": "not_found",
            }

        if isinstance(error, InsufficientDataError):
            return {
                "error": str(error),
                "status_code": 422,
                "type": "insufficient_data",
            }

        if isinstance(error, (HealthDataValidationError, InvalidScheduleError, ProfileValidationError)):
            return {
                "error": str(error),
                "status_code": 422,
                "type": "validation_error",
            }

        if isinstance(error, (ValidationError, ValueError)):
            return {
                "error": ErrorSanitizer.SAFE_ERROR_MESSAGES["validation_error"],
                "status_code": 400,
                "type": "validation_error",
            }

        # Default generic error
        error_id = ErrorSanitizer._generate_error_id()
        log_error(
            f"Unhandled exception [{error_id}]: {type(error).__name__}"
            + (f" ({context})" if context else ""),
            logger_name="error_handler",
        )
        return {
            "error": ErrorSanitizer.SAFE_ERROR_MESSAGES["internal_error"],
            "status_code": 500,
            "type": "internal_error",
            "error_id": error_id,
        }

    @staticmethod
    def _generate_error_id() -> str:
        """Generate a unique error ID for tracking"""
        return str(uuid.uuid4())[:8]
