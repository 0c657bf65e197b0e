"""GitHub REST API adapter.

Reads file contents through ``/repos/{repo}/contents/{path}`` and listings through
the recursive git trees endpoint, both pinned to one branch.
"""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import quote

import httpx

from asset_cache.errors import AssetNotFound, AuthFailed, RateLimited, RemoteUnavailable
from asset_cache.models import RemoteAsset, is_under_prefix, normalize_asset_key, normalize_prefix

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
RAW_MEDIA_TYPE = "application/vnd.github.raw"


def _parse_last_modified(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


class GitHubAssetSource:
    def __init__(
        self,
        repository: str,
        token: str,
        branch: str = "main",
        api_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.repository = repository.strip().strip("/")
        self.token = token
        self.branch = branch
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.source_id = f"github:{self.repository}"
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def is_configured(self) -> bool:
        return bool(self.repository) and bool(self.token and self.token.strip())

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Accept": "application/vnd.github+json",
                    "Authorization": f"Bearer {self.token}",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch(self, key: str) -> RemoteAsset:
        key = normalize_asset_key(key)
        path = f"/repos/{self.repository}/contents/{quote(key)}"
        response = await self._get(path, params={"ref": self.branch}, key=key)
        payload = response.json()
        if not isinstance(payload, dict) or payload.get("type") != "file":
            raise AssetNotFound(key, f"Not a file: {key}")

        if payload.get("encoding") == "base64" and (payload.get("content") or not payload.get("size")):
            content = self._decode_content(key, payload)
        else:
            # files over 1 MB come back with encoding "none" and no inline content
            content = await self._fetch_raw(path, key)
        return RemoteAsset(
            key=key,
            content=content,
            revision_id=str(payload.get("sha", "")),
            size=int(payload.get("size", len(content.encode("utf-8")))),
            last_modified=_parse_last_modified(response.headers.get("Last-Modified")),
        )

    async def list_assets(self, prefix: str = "") -> list[str]:
        prefix = normalize_prefix(prefix)
        response = await self._get(
            f"/repos/{self.repository}/git/trees/{quote(self.branch, safe='')}",
            params={"recursive": "1"},
            key=prefix or "/",
        )
        payload = response.json()
        if payload.get("truncated"):
            logger.warning("Tree listing for %s@%s was truncated by GitHub", self.repository, self.branch)
        keys = [entry["path"] for entry in payload.get("tree", []) if entry.get("type") == "blob"]
        return sorted(k for k in keys if is_under_prefix(k, prefix))

    async def _fetch_raw(self, path: str, key: str) -> str:
        response = await self._get(path, params={"ref": self.branch}, key=key, headers={"Accept": RAW_MEDIA_TYPE})
        try:
            return response.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RemoteUnavailable(f"Undecodable content for {key}") from exc

    async def _get(
        self,
        path: str,
        params: dict[str, str],
        key: str,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.get(path, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            raise RemoteUnavailable(f"GitHub request timed out for {key}") from exc
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"GitHub request failed for {key}: {exc}") from exc
        self._raise_for_status(response, key)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, key: str) -> None:
        status = response.status_code
        if status < 400:
            return
        if status == 404:
            raise AssetNotFound(key)
        if status == 401:
            raise AuthFailed(f"GitHub rejected the credential ({status})")
        if status == 429 or (status == 403 and response.headers.get("X-RateLimit-Remaining") == "0"):
            reset = response.headers.get("X-RateLimit-Reset")
            raise RateLimited(
                f"GitHub rate limit exceeded ({status})",
                reset_at=int(reset) if reset and reset.isdigit() else None,
            )
        if status == 403:
            raise AuthFailed(f"GitHub denied access to {key} ({status})")
        raise RemoteUnavailable(f"GitHub returned {status} for {key}")

    @staticmethod
    def _decode_content(key: str, payload: dict[str, Any]) -> str:
        raw = payload.get("content") or ""
        try:
            return base64.b64decode(raw).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise RemoteUnavailable(f"Undecodable content for {key}") from exc
