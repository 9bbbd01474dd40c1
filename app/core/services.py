"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with logging, transactions and conflict retry

Service Layer Philosophy:
    Views handle HTTP concerns, models hold data and their state machines,
    services orchestrate the two and own transaction boundaries.

Pattern Comparison:
    - ServiceResult: expected failures at an integration seam
      (a declined transfer, a payout already processed)
    - Exceptions: business rule violations surfaced to the caller
      (core.exceptions: InvalidStateError, PermissionDeniedError, ...)

Usage:
    from core.services import BaseService, ServiceResult

    class EscrowLedger(BaseService):
        @classmethod
        def release(cls, escrow_id, released_by) -> EscrowOperationResult:
            with cls.atomic():
                escrow = EscrowPayment.objects.select_for_update().get(pk=escrow_id)
                escrow.release(released_by=released_by)
                escrow.save()

            cls.get_logger().info("Escrow released", extra={"escrow_id": str(escrow_id)})
            return EscrowOperationResult(escrow=escrow)

    # Seam that returns results instead of raising
    result = PaystackAdapter.initiate_transfer(...)
    if result.success:
        transfer = result.data
    else:
        reason = result.error
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

from django_fsm import TransitionNotAllowed

from core.exceptions import BaseApplicationError, ConflictError, InvalidStateError

if TYPE_CHECKING:
    from collections.abc import Callable, Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        return ServiceResult.success(transfer)
        return ServiceResult.failure("Recipient account invalid", "INVALID_RECIPIENT")

        result = gateway.initiate_transfer(...)
        if result:  # Same as: if result.success
            ...
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        """Alias for success() - use whichever reads better in context."""
        return cls(success=True, data=data)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result carrying data."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own message and error code; any other
        exception uses its class name as the code.

        Example:
            try:
                response = cls._post("/transfer", payload)
            except GatewayError as e:
                return ServiceResult.from_exception(e)
        """
        if isinstance(exc, BaseApplicationError):
            return cls(
                success=False,
                error=exc.message,
                error_code=error_code or exc.error_code,
            )
        return cls(
            success=False,
            error=str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
        )

    def to_response(self) -> dict[str, Any]:
        """Convert to API response format."""
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def map(self, func) -> ServiceResult:
        """Transform the data if successful; failures pass through unchanged."""
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data))
        return self  # type: ignore

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - One transparent retry on optimistic concurrency conflicts

    Design Notes:
        - Use @classmethod (no instance state); collaborators that tests
          replace are exposed through set_*/get_* class hooks
        - Raise core.exceptions errors for rule violations
        - Use ServiceResult at integration seams
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around Django's transaction.atomic() that makes
        transaction boundaries explicit in service code.

        Example:
            with cls.atomic():
                booking = Booking.objects.select_for_update().get(pk=booking_id)
                booking.complete(actor=actor)
                booking.save()
        """
        with transaction.atomic():
            yield

    @classmethod
    def retry_on_conflict(cls, operation: Callable[[], T], context: str = "") -> T:
        """
        Run an operation, retrying it once if it raises a ConflictError.

        The operation must reload its records on every call so the retry
        sees fresh state. State-machine violations (InvalidStateError) are
        never retried; they describe the fresh state, not a race.

        Args:
            operation: Zero-argument callable performing the read-modify-write
            context: Short label for the log line

        Returns:
            Whatever the operation returns
        """
        try:
            return operation()
        except InvalidStateError:
            raise
        except ConflictError as exc:
            cls.get_logger().warning(
                "Concurrent modification detected, retrying once",
                extra={"context": context, "error_code": exc.error_code},
            )
            return operation()

    @classmethod
    def apply_transition(cls, instance, transition_name: str, **kwargs) -> None:
        """
        Call a django-fsm transition, translating TransitionNotAllowed.

        Example:
            cls.apply_transition(booking, "confirm", actor=actor)

        Raises:
            InvalidStateError: The transition is not legal from the current state
        """
        field_name = "status" if hasattr(instance, "status") else "state"
        current_state = getattr(instance, field_name)
        try:
            getattr(instance, transition_name)(**kwargs)
        except TransitionNotAllowed:
            model_name = instance.__class__.__name__
            raise InvalidStateError(
                f"Cannot {transition_name.replace('_', ' ')} {model_name} "
                f"in '{current_state}' state",
                details={
                    "id": str(instance.pk),
                    "current_state": current_state,
                    "action": transition_name,
                },
            )
        cls.get_logger().info(
            "State transition applied",
            extra={
                "model": instance.__class__.__name__,
                "id": str(instance.pk),
                "action": transition_name,
                "from_state": current_state,
                "to_state": getattr(instance, field_name),
            },
        )

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Example:
            try:
                recipient = cls._create_recipient(profile)
            except GatewayError as e:
                return cls.handle_exception(e, "recipient creation")
        """
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(log_level, message, exc_info=True)
        return ServiceResult.from_exception(exc)

    @classmethod
    def validate_required(cls, **kwargs) -> ServiceResult | None:
        """
        Validate that required fields are provided.

        Returns a failure result if any field is None or blank, None otherwise.

        Example:
            validation = cls.validate_required(account_number=number, bank_code=code)
            if validation:
                return validation
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            return ServiceResult.failure(
                "Required fields missing",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )
        return None
