"""Tests for the remote client and endpoint gateway."""

import asyncio
import json

import httpx
import pytest

from scoutsync.errors import (
    RemoteError,
    RemoteRejectedError,
    RemoteTimeoutError,
    RemoteUnavailableError,
)
from scoutsync.remote import RemoteClient, ScoutingApi


def _client(handler, **kwargs) -> RemoteClient:
    return RemoteClient(
        "http://scouting.test/api/", transport=httpx.MockTransport(handler), **kwargs
    )


class TestRequest:
    """Tests for RemoteClient.request."""

    @pytest.mark.asyncio
    async def test_parses_json_and_sends_auth(self):
        """Test JSON parsing, bearer auth and dropped None params."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"data": [1, 2]})

        client = _client(handler, api_token="secret")
        body = await client.request("/public/teams", params={"page": 2, "year": None})
        await client.close()

        assert body == {"data": [1, 2]}
        assert seen["url"] == "http://scouting.test/api/public/teams?page=2"
        assert seen["auth"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_empty_and_text_bodies(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/empty"):
                return httpx.Response(204)
            return httpx.Response(200, text="ok")

        client = _client(handler)

        assert await client.request("/empty", method="POST") is None
        assert await client.request("/text") == "ok"
        await client.close()

    @pytest.mark.asyncio
    async def test_json_body_sent(self):
        received = {}

        def handler(request: httpx.Request) -> httpx.Response:
            received["method"] = request.method
            received["body"] = json.loads(request.content)
            return httpx.Response(201, json={"ok": True})

        client = _client(handler)
        await client.request("/scout/pit", method="post", body={"team_number": 254})
        await client.close()

        assert received == {"method": "POST", "body": {"team_number": 254}}

    @pytest.mark.asyncio
    async def test_rejection_carries_server_message(self):
        """Test that a non-2xx status raises with the remote message."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"message": "Match not found"})

        client = _client(handler)
        with pytest.raises(RemoteRejectedError) as exc_info:
            await client.request("/scout/submit", method="POST", body={})
        await client.close()

        assert exc_info.value.status_code == 422
        assert str(exc_info.value) == "Match not found"
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_rejection_message_fallbacks(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/detail"):
                return httpx.Response(400, json={"detail": "Bad input"})
            return httpx.Response(500, text="")

        client = _client(handler)

        with pytest.raises(RemoteRejectedError, match="Bad input"):
            await client.request("/detail")
        with pytest.raises(RemoteRejectedError, match="Request failed with status 500"):
            await client.request("/plain")
        await client.close()

    @pytest.mark.asyncio
    async def test_deadline_raises_timeout(self):
        """Test that a hung request is cancelled at its deadline."""

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json={})

        client = _client(handler)
        with pytest.raises(RemoteTimeoutError) as exc_info:
            await client.request("/scout/submit", method="POST", body={}, deadline=0.05)
        await client.close()

        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value, RemoteError)

    @pytest.mark.asyncio
    async def test_transport_errors_mapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/slow"):
                raise httpx.ReadTimeout("read timed out", request=request)
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)

        with pytest.raises(RemoteTimeoutError):
            await client.request("/slow")
        with pytest.raises(RemoteUnavailableError) as exc_info:
            await client.request("/down")
        await client.close()

        assert exc_info.value.retryable is True


class TestScoutingApi:
    """Tests for the endpoint gateway."""

    @pytest.mark.asyncio
    async def test_read_endpoints(self):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path + (f"?{request.url.query.decode()}" if request.url.query else ""))
            return httpx.Response(200, json=[])

        api = ScoutingApi(_client(handler))
        await api.fetch_teams(3)
        await api.fetch_events(2025)
        await api.fetch_match_schedule("2025miket")
        await api.fetch_event_teams("2025miket")
        await api.get_user_event()
        await api.fetch_pick_lists(3)
        await api.client.close()

        assert paths == [
            "/api/public/teams?page=3",
            "/api/public/events/2025",
            "/api/public/matchSchedule/2025miket",
            "/api/public/event/teams/2025miket",
            "/api/user/event",
            "/api/picklists?organization_id=3",
        ]

    @pytest.mark.asyncio
    async def test_mutations_use_deadline(self):
        """Test that mutations run under the mutation timeout."""

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json={})

        api = ScoutingApi(_client(handler), mutation_timeout=0.05)

        with pytest.raises(RemoteTimeoutError):
            await api.submit_match({"team_number": 254})
        await api.client.close()

    @pytest.mark.asyncio
    async def test_update_organization_selection(self):
        received = {}

        def handler(request: httpx.Request) -> httpx.Response:
            received["method"] = request.method
            received["body"] = json.loads(request.content)
            return httpx.Response(200, json={"organizationId": 3})

        api = ScoutingApi(_client(handler))
        response = await api.update_organization_selection(17)
        await api.client.close()

        assert received == {"method": "PATCH", "body": {"user_organization_id": 17}}
        assert response == {"organizationId": 3}

    @pytest.mark.asyncio
    async def test_upload_robot_photo_multipart(self, tmp_path):
        photo = tmp_path / "robot.jpg"
        photo.write_bytes(b"\xff\xd8jpeg")
        received = {}

        def handler(request: httpx.Request) -> httpx.Response:
            received["path"] = request.url.path
            received["content_type"] = request.headers["Content-Type"]
            received["body"] = request.content
            return httpx.Response(200, json={"image": {"url": "https://cdn/robot.jpg"}})

        api = ScoutingApi(_client(handler))
        response = await api.upload_robot_photo(254, photo, "front view")
        await api.client.close()

        assert received["path"] == "/api/teams/254/images"
        assert received["content_type"].startswith("multipart/form-data")
        assert b"front view" in received["body"]
        assert b"robot.jpg" in received["body"]
        assert response == {"image": {"url": "https://cdn/robot.jpg"}}
