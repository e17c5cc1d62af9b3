from typing import Mapping, Optional


class CustomBaseError(Exception):
    """Base class for all custom exceptions - controls logging behavior in @Logger.io"""

    def __init__(self, message: str, status_code: int) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class DomainError(CustomBaseError):
    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message, status_code)


class NotFoundError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 404)


class ConflictError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 409)


class ValidationError(DomainError):
    """Local input validation failed. `field_errors` maps field name to message."""

    def __init__(self, message: str, field_errors: Optional[Mapping[str, str]] = None) -> None:
        super().__init__(message, 422)
        self.field_errors: dict[str, str] = dict(field_errors or {})


class DiscountInvalidError(ConflictError):
    """A provisionally applied discount was rejected by the remote validator."""

    def __init__(self, message: str, *, code: str) -> None:
        super().__init__(message)
        self.code = code


class AvailabilityConflictError(ConflictError):
    """Slot capacity was exhausted between selection and submission."""


class PersistenceError(CustomBaseError):
    """Local storage write failure. The store logs it and keeps going."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 500)


class NetworkError(CustomBaseError):
    def __init__(self, message: str, status_code: int = 503) -> None:
        super().__init__(message, status_code)
