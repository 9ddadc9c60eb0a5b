"""Tests for the Memos API client."""

import base64
import json

import httpx
import pytest

from memogram.client import Memo, MemosClient
from memogram.errors import MemosAuthError, MemosError, MemosNotFoundError


def _client(handler) -> MemosClient:
    return MemosClient("http://memos.local:5230/", transport=httpx.MockTransport(handler))


class TestMemosClient:
    """Request shapes and response parsing."""

    def test_base_url_strips_trailing_slash(self):
        client = MemosClient("http://memos.local/")
        assert client.base_url == "http://memos.local"

    @pytest.mark.asyncio
    async def test_create_memo(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "name": "memos/abc",
                "content": "hello",
                "visibility": "PRIVATE",
                "pinned": False,
            })

        async with _client(handler) as client:
            memo = await client.create_memo("tok", "hello")

        assert seen == {
            "method": "POST",
            "path": "/api/v1/memos",
            "auth": "Bearer tok",
            "body": {"content": "hello"},
        }
        assert memo == Memo(name="memos/abc", content="hello", visibility="PRIVATE", pinned=False)

    @pytest.mark.asyncio
    async def test_get_current_user_wrapped(self):
        def handler(request):
            assert request.url.path == "/api/v1/auth/me"
            return httpx.Response(200, json={"user": {"name": "users/1", "username": "ann", "displayName": "Ann"}})

        async with _client(handler) as client:
            user = await client.get_current_user("tok")
        assert user.name == "users/1"
        assert user.display_name == "Ann"

    @pytest.mark.asyncio
    async def test_get_current_user_unwrapped(self):
        def handler(request):
            return httpx.Response(200, json={"name": "users/2", "username": "bob", "nickname": "Bobby"})

        async with _client(handler) as client:
            user = await client.get_current_user("tok")
        assert user.name == "users/2"
        assert user.display_name == "Bobby"

    @pytest.mark.asyncio
    async def test_invalid_token(self):
        def handler(request):
            return httpx.Response(401, json={"code": 16, "message": "unauthenticated"})

        async with _client(handler) as client:
            with pytest.raises(MemosAuthError, match="unauthenticated") as exc:
                await client.get_current_user("bad")
        assert exc.value.status_code == 401

    @pytest.mark.asyncio
    async def test_not_found(self):
        def handler(request):
            assert request.url.path == "/api/v1/memos/missing"
            return httpx.Response(404, text="not found")

        async with _client(handler) as client:
            with pytest.raises(MemosNotFoundError):
                await client.get_memo("tok", "memos/missing")

    @pytest.mark.asyncio
    async def test_server_error(self):
        def handler(request):
            return httpx.Response(500, json={"message": "boom"})

        async with _client(handler) as client:
            with pytest.raises(MemosError) as exc:
                await client.create_memo("tok", "x")
        assert exc.value.status_code == 500

    @pytest.mark.asyncio
    async def test_update_memo(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["mask"] = request.url.params.get("updateMask")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=seen["body"])

        memo = Memo(name="memos/abc", content="c", visibility="PUBLIC", pinned=True)
        async with _client(handler) as client:
            updated = await client.update_memo("tok", memo, ["visibility", "pinned"])

        assert seen["method"] == "PATCH"
        assert seen["mask"] == "visibility,pinned"
        assert seen["body"]["visibility"] == "PUBLIC"
        assert updated.pinned is True

    @pytest.mark.asyncio
    async def test_list_memos(self):
        def handler(request):
            assert request.url.params["pageSize"] == "10"
            assert request.url.params["filter"] == 'content.contains("x")'
            return httpx.Response(200, json={"memos": [{"name": "memos/1", "content": "x"}]})

        async with _client(handler) as client:
            memos = await client.list_memos("tok", filter='content.contains("x")')
        assert [m.name for m in memos] == ["memos/1"]

    @pytest.mark.asyncio
    async def test_list_memos_empty(self):
        async with _client(lambda request: httpx.Response(200, json={})) as client:
            assert await client.list_memos("tok") == []

    @pytest.mark.asyncio
    async def test_create_attachment(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "name": "attachments/9",
                "filename": "photo.jpg",
                "type": "image/jpeg",
                "size": "3",
                "memo": "memos/abc",
            })

        async with _client(handler) as client:
            attachment = await client.create_attachment("tok", "photo.jpg", "image/jpeg", b"\xff\xd8\xff", "memos/abc")

        assert seen["path"] == "/api/v1/attachments"
        assert base64.b64decode(seen["body"]["content"]) == b"\xff\xd8\xff"
        assert seen["body"]["memo"] == "memos/abc"
        assert attachment.size == 3
        assert attachment.memo == "memos/abc"

    @pytest.mark.asyncio
    async def test_instance_profile_unauthenticated(self):
        def handler(request):
            assert "Authorization" not in request.headers
            return httpx.Response(200, json={"version": "0.25.0", "instanceUrl": "https://notes.example"})

        async with _client(handler) as client:
            profile = await client.get_instance_profile()
        assert profile.instance_url == "https://notes.example"
