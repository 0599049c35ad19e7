# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity provider client for the hosted auth service.

Student and parent login accounts live in a hosted auth service. This
module defines the IdentityProvider protocol the directory service depends
on, and HostedIdentityClient, an async HTTP implementation against the
service's admin REST API.

Example:
    client = HostedIdentityClient(
        api_url="https://auth.school.example",
        service_key="service-role-key",
    )

    user = await client.create_user(
        email="ada.lovelace@school.com",
        password="initial-password",
        metadata={"first_name": "Ada", "last_name": "Lovelace", "role": "student"},
    )
    await client.delete_user(user.id)
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import aiohttp

from src.services.identity.exceptions import IdentityAPIError, IdentityConflictError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityUser:
    """A login identity returned by the provider."""

    id: str
    email: str
    metadata: dict[str, Any] = field(default_factory=dict)


class IdentityProvider(Protocol):
    """Operations the directory needs from the login identity store."""

    async def create_user(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> IdentityUser: ...

    async def delete_user(self, user_id: str) -> None: ...


class HostedIdentityClient:
    """Async HTTP client for the hosted auth admin API.

    Attributes:
        api_url: Base URL of the auth service.
        service_key: Service role key for admin endpoints.
        timeout: Request timeout.
    """

    def __init__(
        self,
        api_url: str,
        service_key: str,
        timeout: float = 30.0,
    ):
        """Initialize the identity client.

        Args:
            api_url: Base URL of the auth service.
            service_key: Service role key for admin endpoints.
            timeout: Request timeout in seconds.
        """
        self.api_url = api_url.rstrip("/")
        self.service_key = service_key
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def _get_headers(self) -> dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def create_user(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> IdentityUser:
        """Create a confirmed login identity.

        Args:
            email: Login email address.
            password: Initial password.
            metadata: User metadata (names, role).

        Returns:
            The created identity.

        Raises:
            IdentityConflictError: If the email is already registered.
            IdentityAPIError: If the API returns an error or is unreachable.
        """
        payload = {
            "email": email,
            "password": password,
            "email_confirm": True,
            "user_metadata": metadata or {},
        }

        logger.debug("Creating login identity: email=%s", email)

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(
                    f"{self.api_url}/auth/v1/admin/users",
                    json=payload,
                    headers=self._get_headers(),
                ) as response:
                    body = await response.text()
                    try:
                        response_data = json.loads(body) if body else {}
                    except ValueError as e:
                        raise IdentityAPIError(
                            message=f"Unexpected non-JSON response from identity API (HTTP {response.status})",
                            status_code=response.status,
                            response_body=body,
                        ) from e
                    if not isinstance(response_data, dict):
                        response_data = {}

                    if response.status in (200, 201):
                        data = response_data.get("user", response_data)
                        user = IdentityUser(
                            id=str(data["id"]),
                            email=data.get("email", email),
                            metadata=data.get("user_metadata") or {},
                        )
                        logger.info("Created login identity: id=%s, email=%s", user.id, email)
                        return user

                    if response.status == 422:
                        raise IdentityConflictError(email, body)

                    raise IdentityAPIError(
                        message=response_data.get("msg")
                        or response_data.get("message")
                        or "Failed to create auth user",
                        status_code=response.status,
                        response_body=body,
                    )

        except aiohttp.ClientError as e:
            logger.error("Identity API connection error: %s", str(e))
            raise IdentityAPIError(
                message=f"Failed to connect to identity API: {str(e)}",
                details={"error_type": type(e).__name__},
            ) from e

    async def delete_user(self, user_id: str) -> None:
        """Delete a login identity.

        A missing identity is treated as already deleted.

        Args:
            user_id: Identifier returned by create_user.

        Raises:
            IdentityAPIError: If the API returns an error or is unreachable.
        """
        logger.debug("Deleting login identity: id=%s", user_id)

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.delete(
                    f"{self.api_url}/auth/v1/admin/users/{user_id}",
                    headers=self._get_headers(),
                ) as response:
                    if response.status in (200, 204, 404):
                        logger.info("Deleted login identity: id=%s", user_id)
                        return

                    body = await response.text()
                    raise IdentityAPIError(
                        message="Failed to delete auth user",
                        status_code=response.status,
                        response_body=body,
                    )

        except aiohttp.ClientError as e:
            logger.error("Identity API connection error: %s", str(e))
            raise IdentityAPIError(
                message=f"Failed to connect to identity API: {str(e)}",
                details={"error_type": type(e).__name__},
            ) from e
