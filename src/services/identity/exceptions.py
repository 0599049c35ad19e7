# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Custom exceptions for the identity provider service.

This module defines the exception hierarchy for login identity operations:
- IdentityProviderError: Base exception for all identity errors
- IdentityAPIError: Error responses from the hosted auth admin API
- IdentityConflictError: An identity with the same email already exists
"""


class IdentityProviderError(Exception):
    """Base exception for all identity provider errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class IdentityAPIError(IdentityProviderError):
    """Error from the hosted auth admin API.

    Raised when the API returns an error response or is unreachable.

    Attributes:
        status_code: HTTP status code from API response.
        response_body: Raw response body if available.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        details: dict | None = None,
    ):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message, details)

    def __str__(self) -> str:
        base = self.message
        if self.status_code:
            base = f"[{self.status_code}] {base}"
        return base


class IdentityConflictError(IdentityAPIError):
    """An identity with this email is already registered."""

    def __init__(self, email: str, response_body: str | None = None):
        self.email = email
        super().__init__(
            message=f"A login identity already exists for {email}",
            status_code=422,
            response_body=response_body,
            details={"email": email},
        )
