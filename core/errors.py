"""
Exception taxonomy for the traffic marketplace core.

Validation errors carry a message meant for display. Provider errors wrap
transport failures and malformed or empty model output; they are caught at
the boundary that calls the provider and turned into a local fallback.
"""

from __future__ import annotations

from typing import Optional


class MarketplaceError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(MarketplaceError):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UserAlreadyExistsError(ValidationError):
    def __init__(self, message: str = "User already exists") -> None:
        super().__init__(message)


class NotAuthenticatedError(MarketplaceError):
    pass


class ProviderError(MarketplaceError):
    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
