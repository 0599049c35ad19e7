# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Login identity service.

Usage:
    from src.services.identity import HostedIdentityClient

    client = HostedIdentityClient(api_url="...", service_key="...")
    user = await client.create_user(email="...", password="...")
"""

from src.services.identity.client import HostedIdentityClient, IdentityProvider, IdentityUser
from src.services.identity.exceptions import (
    IdentityAPIError,
    IdentityConflictError,
    IdentityProviderError,
)

__all__ = [
    "HostedIdentityClient",
    "IdentityProvider",
    "IdentityUser",
    "IdentityAPIError",
    "IdentityConflictError",
    "IdentityProviderError",
]
