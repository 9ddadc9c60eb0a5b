"""Memos API client.

Talks to a Memos server through its ``/api/v1`` JSON gateway. Every call
that acts on behalf of a Telegram user takes that user's access token and
sends it as a Bearer header; the client itself holds no credentials.

Failed calls are not retried.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from .errors import MemosAuthError, MemosError, MemosNotFoundError

logger = logging.getLogger("memogram.client")

VISIBILITIES = ("PUBLIC", "PROTECTED", "PRIVATE")


@dataclass
class Memo:
    name: str                    # memos/<uid>
    content: str = ""
    visibility: str = "PRIVATE"
    pinned: bool = False
    creator: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Memo":
        return cls(
            name=data.get("name", ""),
            content=data.get("content", ""),
            visibility=data.get("visibility") or "PRIVATE",
            pinned=bool(data.get("pinned", False)),
            creator=data.get("creator", ""),
        )


@dataclass
class Attachment:
    name: str
    filename: str
    type: str
    size: int
    memo: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Attachment":
        return cls(
            name=data.get("name", ""),
            filename=data.get("filename", ""),
            type=data.get("type", ""),
            size=int(data.get("size") or 0),
            memo=data.get("memo"),
        )


@dataclass
class MemosUser:
    name: str                    # users/<id>
    username: str = ""
    display_name: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "MemosUser":
        return cls(
            name=data.get("name", ""),
            username=data.get("username", ""),
            display_name=data.get("displayName") or data.get("nickname") or "",
        )


@dataclass
class InstanceProfile:
    version: str = ""
    instance_url: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "InstanceProfile":
        return cls(
            version=data.get("version", ""),
            instance_url=data.get("instanceUrl", ""),
        )


def _raise_for_status(resp: httpx.Response, action: str):
    if resp.is_success:
        return
    try:
        detail = resp.json().get("message", "")
    except ValueError:
        detail = resp.text[:200]
    message = f"{action}: HTTP {resp.status_code}" + (f" — {detail}" if detail else "")
    if resp.status_code in (401, 403):
        raise MemosAuthError(message, status_code=resp.status_code)
    if resp.status_code == 404:
        raise MemosNotFoundError(message, status_code=resp.status_code)
    raise MemosError(message, status_code=resp.status_code)


class MemosClient:
    """Async client for the Memos v1 API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=f"{self.base_url}/api/v1",
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def close(self):
        await self._http.aclose()

    @staticmethod
    def _auth(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, path: str, action: str, token: Optional[str] = None, **kwargs) -> dict:
        headers = self._auth(token) if token else None
        resp = await self._http.request(method, path, headers=headers, **kwargs)
        _raise_for_status(resp, action)
        if not resp.content:
            return {}
        return resp.json()

    # ── Instance / auth ──────────────────────────────────────

    async def get_instance_profile(self) -> InstanceProfile:
        data = await self._request("GET", "/instance/profile", "get instance profile")
        return InstanceProfile.from_dict(data)

    async def get_current_user(self, token: str) -> MemosUser:
        """Validate ``token`` and return the user it belongs to."""
        data = await self._request("GET", "/auth/me", "get current user", token)
        # Newer servers wrap the user, older ones return it directly
        return MemosUser.from_dict(data.get("user", data))

    # ── Memos ────────────────────────────────────────────────

    async def create_memo(self, token: str, content: str, visibility: Optional[str] = None) -> Memo:
        body = {"content": content}
        if visibility:
            body["visibility"] = visibility
        data = await self._request("POST", "/memos", "create memo", token, json=body)
        memo = Memo.from_dict(data)
        logger.info(f"Created {memo.name} ({len(content)} chars)")
        return memo

    async def get_memo(self, token: str, name: str) -> Memo:
        data = await self._request("GET", f"/{name}", f"get {name}", token)
        return Memo.from_dict(data)

    async def update_memo(self, token: str, memo: Memo, update_mask: list[str]) -> Memo:
        body = {
            "name": memo.name,
            "content": memo.content,
            "visibility": memo.visibility,
            "pinned": memo.pinned,
        }
        data = await self._request(
            "PATCH",
            f"/{memo.name}",
            f"update {memo.name}",
            token,
            params={"updateMask": ",".join(update_mask)},
            json=body,
        )
        return Memo.from_dict(data) if data else memo

    async def list_memos(self, token: str, filter: str = "", page_size: int = 10) -> list[Memo]:
        params = {"pageSize": page_size}
        if filter:
            params["filter"] = filter
        data = await self._request("GET", "/memos", "list memos", token, params=params)
        return [Memo.from_dict(m) for m in data.get("memos", [])]

    # ── Attachments ──────────────────────────────────────────

    async def create_attachment(
        self,
        token: str,
        filename: str,
        content_type: str,
        content: bytes,
        memo_name: Optional[str] = None,
    ) -> Attachment:
        body = {
            "filename": filename,
            "type": content_type,
            "size": str(len(content)),
            "content": base64.b64encode(bytes(content)).decode("ascii"),
        }
        if memo_name:
            body["memo"] = memo_name
        data = await self._request("POST", "/attachments", "create attachment", token, json=body)
        attachment = Attachment.from_dict(data)
        logger.info(f"Attached {filename} ({content_type}, {len(content)} bytes) to {memo_name}")
        return attachment
