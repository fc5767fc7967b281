"""Shared exceptions module.

Each exception maps to exactly one HTTP status in ``api/middleware.py``.
Domain modules subclass these instead of building HTTP responses.
"""

from typing import Optional

from pydantic import ValidationError


class MeterlineException(Exception):
    """Base exception for Meterline services."""

    def __init__(self, message: Optional[str] = None):
        """Create a new MeterlineException instance."""
        self.message = message or self.__class__.__doc__
        super().__init__(self.message)


class AuthenticationException(MeterlineException):
    """Raised when a request carries no credentials or invalid credentials."""

    def __init__(self, message: Optional[str] = "Invalid or missing API key"):
        """Create a new AuthenticationException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        super().__init__(message)


class PermissionException(MeterlineException):
    """Raised when the caller is authenticated but may not perform the action."""

    def __init__(
        self,
        message: Optional[str] = "API key does not have the right to perform this action",
    ):
        """Create a new PermissionException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        super().__init__(message)


class NotFoundException(MeterlineException):
    """Exception raised when an object is not found."""

    def __init__(self, message: Optional[str] = "Object not found"):
        """Create a new NotFoundException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        super().__init__(message)


class BadRequestException(MeterlineException):
    """Raised when the request is well-formed JSON but semantically invalid."""

    def __init__(self, message: Optional[str] = "Bad request"):
        """Create a new BadRequestException instance."""
        super().__init__(message)


class ExternalServiceError(Exception):
    """Exception raised when an external service fails."""

    def __init__(self, service_name: str, message: Optional[str] = "External service failed"):
        """Create a new ExternalServiceError instance.

        Args:
        ----
            service_name (str): The name of the external service.
            message (str, optional): The error message. Has default message.

        """
        self.service_name = service_name
        self.message = message
        super().__init__(f"{service_name}: {message}")


def unpack_validation_error(exc: ValidationError) -> dict:
    """Unpack a Pydantic validation error into a dictionary.

    Args:
    ----
        exc (ValidationError): The Pydantic validation error.

    Returns:
    -------
        dict: The dictionary representation of the validation error.

    """
    error_messages = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        message = error["msg"]
        error_messages.append({field: message})

    return {"errors": error_messages}
