# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the hosted identity client.

Runs the client against a local aiohttp test server.
"""

import pytest
from aiohttp import test_utils, web

from src.services.identity import HostedIdentityClient, IdentityAPIError, IdentityConflictError


async def start_server(handler) -> test_utils.TestServer:
    app = web.Application()
    app.router.add_post("/auth/v1/admin/users", handler)
    app.router.add_delete("/auth/v1/admin/users/{user_id}", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server


def client_for(server: test_utils.TestServer) -> HostedIdentityClient:
    return HostedIdentityClient(api_url=str(server.make_url("")), service_key="service-key", timeout=5)


class TestHostedIdentityClient:
    """Tests for HostedIdentityClient."""

    @pytest.mark.asyncio
    async def test_create_user(self) -> None:
        async def handler(request: web.Request) -> web.Response:
            assert request.headers["apikey"] == "service-key"
            body = await request.json()
            return web.json_response(
                {"id": "user-1", "email": body["email"], "user_metadata": body["user_metadata"]},
                status=200,
            )

        server = await start_server(handler)
        try:
            user = await client_for(server).create_user(
                "ada.lovelace@school.com", "test1234", {"role": "student"}
            )
        finally:
            await server.close()

        assert user.id == "user-1"
        assert user.email == "ada.lovelace@school.com"
        assert user.metadata == {"role": "student"}

    @pytest.mark.asyncio
    async def test_existing_email_is_a_conflict(self) -> None:
        async def handler(request: web.Request) -> web.Response:
            return web.json_response({"msg": "User already registered"}, status=422)

        server = await start_server(handler)
        try:
            with pytest.raises(IdentityConflictError) as exc_info:
                await client_for(server).create_user("mum@example.com", "test1234")
        finally:
            await server.close()

        assert exc_info.value.email == "mum@example.com"

    @pytest.mark.asyncio
    async def test_json_error_message_is_used(self) -> None:
        async def handler(request: web.Request) -> web.Response:
            return web.json_response({"msg": "Database error creating new user"}, status=500)

        server = await start_server(handler)
        try:
            with pytest.raises(IdentityAPIError) as exc_info:
                await client_for(server).create_user("mum@example.com", "test1234")
        finally:
            await server.close()

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Database error creating new user"

    @pytest.mark.asyncio
    async def test_html_error_page_becomes_api_error(self) -> None:
        page = "<html><body><h1>502 Bad Gateway</h1></body></html>"

        async def handler(request: web.Request) -> web.Response:
            return web.Response(text=page, status=502, content_type="text/html")

        server = await start_server(handler)
        try:
            with pytest.raises(IdentityAPIError) as exc_info:
                await client_for(server).create_user("mum@example.com", "test1234")
        finally:
            await server.close()

        assert exc_info.value.status_code == 502
        assert exc_info.value.response_body == page
        assert "HTTP 502" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_delete_missing_user_is_not_an_error(self) -> None:
        async def handler(request: web.Request) -> web.Response:
            return web.json_response({"msg": "User not found"}, status=404)

        server = await start_server(handler)
        try:
            await client_for(server).delete_user("gone")
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_unreachable_api(self) -> None:
        async def handler(request: web.Request) -> web.Response:
            return web.json_response({})

        server = await start_server(handler)
        client = client_for(server)
        await server.close()

        with pytest.raises(IdentityAPIError, match="Failed to connect to identity API"):
            await client.create_user("mum@example.com", "test1234")
