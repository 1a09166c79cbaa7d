"""Errors raised by onboarding services and mapped to HTTP responses."""
from __future__ import annotations


class OnboardingError(Exception):
    """Onboarding failure with the HTTP status it should be reported as."""

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"message": self.message}


class AccessDeniedError(OnboardingError):
    """Admin guard rejected the caller."""
    pass


class ValidationError(OnboardingError):
    """Request payload is missing or malformed."""

    def __init__(self, message: str):
        super().__init__(400, message)
