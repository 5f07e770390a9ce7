"""
Base Service.

Shared helpers for the in-memory services (document store, reminder
scanner, sync coordinator): input checks that raise the application's
ValidationError, and logging tagged with the service's source.

Usage:
    class ReminderScanner(BaseService):
        log_source = "reminders"

        def scan(self, now):
            ...
            self._log_operation("Reminders due", count=len(due))
"""

from typing import Any

from memos.core.exceptions import ValidationError
from memos.core.logging import get_logger


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class BaseService:
    """
    Base class for services.

    Subclasses set ``log_source`` to one of the recognized log sources.
    """

    log_source = "internal"

    def __init__(self) -> None:
        self._logger = get_logger(self.__class__.__module__)

    def _validate_required(self, fields: dict[str, Any], field_names: list[str]) -> None:
        """
        Raises:
            ValidationError: If any named field is None or blank
        """
        missing = [name for name in field_names if _is_blank(fields.get(name))]
        if missing:
            raise ValidationError(
                "Required fields missing",
                details={"missing_fields": missing},
            )

    def _validate_string_length(
        self,
        value: str,
        field_name: str,
        min_length: int | None = None,
        max_length: int | None = None,
    ) -> None:
        """
        Raises:
            ValidationError: If the length is outside [min_length, max_length]
        """
        if min_length is not None and len(value) < min_length:
            raise ValidationError(
                f"{field_name} too short",
                details={field_name: f"Minimum length is {min_length}"},
            )
        if max_length is not None and len(value) > max_length:
            raise ValidationError(
                f"{field_name} too long",
                details={field_name: f"Maximum length is {max_length}"},
            )

    def _log(self, level: str, message: str, context: dict[str, Any]) -> None:
        getattr(self._logger, level)(
            message,
            source=self.log_source,
            extra={"service": self.__class__.__name__, **context},
        )

    def _log_operation(self, operation: str, **context: Any) -> None:
        """Log a state change at info level."""
        self._log("info", operation, context)

    def _log_debug(self, message: str, **context: Any) -> None:
        self._log("debug", message, context)
