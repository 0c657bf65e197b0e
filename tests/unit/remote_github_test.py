"""Tests for GitHubAssetSource with a mocked HTTP transport."""

from __future__ import annotations

import base64
from collections.abc import Callable

import httpx
import pytest

from asset_cache.errors import AssetNotFound, AuthFailed, RateLimited, RemoteUnavailable
from asset_cache.remote.github import GitHubAssetSource

Handler = Callable[[httpx.Request], httpx.Response]


def _source(handler: Handler, **kwargs: object) -> GitHubAssetSource:
    return GitHubAssetSource(
        "acme/assets",
        "ghp_test",
        transport=httpx.MockTransport(handler),
        **kwargs,  # type: ignore[arg-type]
    )


def _file_payload(content: str, sha: str = "abc123") -> dict[str, object]:
    return {
        "type": "file",
        "encoding": "base64",
        "size": len(content.encode("utf-8")),
        "sha": sha,
        "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
    }


class TestFetch:
    @pytest.mark.asyncio
    async def test_decodes_file_contents(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=_file_payload('{"flags": []}'),
                headers={"Last-Modified": "Wed, 21 Oct 2026 07:28:00 GMT"},
            )

        source = _source(handler, branch="release")
        asset = await source.fetch("settings/flags.json")
        await source.aclose()

        assert asset.content == '{"flags": []}'
        assert asset.revision_id == "abc123"
        assert asset.size == 13
        assert asset.last_modified is not None and asset.last_modified.year == 2026

        request = seen[0]
        assert request.url.path == "/repos/acme/assets/contents/settings/flags.json"
        assert request.url.params["ref"] == "release"
        assert request.headers["Authorization"] == "Bearer ghp_test"

    @pytest.mark.asyncio
    async def test_directory_listing_is_not_found(self) -> None:
        source = _source(lambda _: httpx.Response(200, json=[{"type": "file", "path": "settings/a.json"}]))
        with pytest.raises(AssetNotFound):
            await source.fetch("settings")

    @pytest.mark.asyncio
    async def test_undecodable_content_is_unavailable(self) -> None:
        payload = {"type": "file", "encoding": "base64", "content": base64.b64encode(b"\xff\xfe").decode()}
        source = _source(lambda _: httpx.Response(200, json=payload))
        with pytest.raises(RemoteUnavailable):
            await source.fetch("binary.bin")

    @pytest.mark.asyncio
    async def test_large_file_is_read_through_raw_media_type(self) -> None:
        body = '{"flags": [' + ", ".join('{"name": "f%d"}' % i for i in range(50)) + "]}"
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["Accept"])
            if request.headers["Accept"] == "application/vnd.github.raw":
                return httpx.Response(200, content=body.encode("utf-8"))
            return httpx.Response(
                200, json={"type": "file", "encoding": "none", "content": "", "size": 2000000, "sha": "big1"}
            )

        source = _source(handler)
        asset = await source.fetch("settings/flags.json")
        await source.aclose()

        assert asset.content == body
        assert asset.revision_id == "big1"
        assert asset.size == 2000000
        assert seen == ["application/vnd.github+json", "application/vnd.github.raw"]

    @pytest.mark.asyncio
    async def test_large_file_with_undecodable_raw_body_is_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.headers["Accept"] == "application/vnd.github.raw":
                return httpx.Response(200, content=b"\xff\xfe")
            return httpx.Response(200, json={"type": "file", "encoding": "none", "content": "", "size": 2000000})

        source = _source(handler)
        with pytest.raises(RemoteUnavailable):
            await source.fetch("settings/flags.json")

    @pytest.mark.asyncio
    async def test_large_file_raw_failure_is_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.headers["Accept"] == "application/vnd.github.raw":
                return httpx.Response(502)
            return httpx.Response(200, json={"type": "file", "encoding": "none", "content": "", "size": 2000000})

        source = _source(handler)
        with pytest.raises(RemoteUnavailable):
            await source.fetch("settings/flags.json")

    @pytest.mark.asyncio
    async def test_empty_file_is_served_inline(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=_file_payload(""))

        source = _source(handler)
        asset = await source.fetch("settings/empty.json")
        assert asset.content == ""
        assert len(calls) == 1


class TestStatusMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "headers", "expected"),
        [
            (404, {}, AssetNotFound),
            (401, {}, AuthFailed),
            (403, {}, AuthFailed),
            (403, {"X-RateLimit-Remaining": "0"}, RateLimited),
            (429, {}, RateLimited),
            (500, {}, RemoteUnavailable),
            (502, {}, RemoteUnavailable),
        ],
        ids=["404", "401", "403", "403-rate", "429", "500", "502"],
    )
    async def test_maps_status(self, status: int, headers: dict[str, str], expected: type[Exception]) -> None:
        source = _source(lambda _: httpx.Response(status, headers=headers, json={"message": "nope"}))
        with pytest.raises(expected):
            await source.fetch("settings/flags.json")

    @pytest.mark.asyncio
    async def test_rate_limit_carries_reset(self) -> None:
        headers = {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1790000000"}
        source = _source(lambda _: httpx.Response(403, headers=headers))
        with pytest.raises(RateLimited) as excinfo:
            await source.fetch("a.json")
        assert excinfo.value.reset_at == 1790000000

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RemoteUnavailable):
            await _source(handler).fetch("a.json")

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(RemoteUnavailable, match="timed out"):
            await _source(handler).fetch("a.json")


class TestListAssets:
    @pytest.mark.asyncio
    async def test_lists_blobs_under_prefix(self) -> None:
        tree = {
            "truncated": False,
            "tree": [
                {"path": "settings", "type": "tree"},
                {"path": "settings/limits.json", "type": "blob"},
                {"path": "settings/flags.json", "type": "blob"},
                {"path": "settings-old/flags.json", "type": "blob"},
                {"path": "README.md", "type": "blob"},
            ],
        }
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=tree)

        source = _source(handler)

        assert await source.list_assets("settings") == ["settings/flags.json", "settings/limits.json"]
        assert await source.list_assets() == [
            "README.md",
            "settings-old/flags.json",
            "settings/flags.json",
            "settings/limits.json",
        ]
        assert seen[0].url.path == "/repos/acme/assets/git/trees/main"
        assert seen[0].url.params["recursive"] == "1"


class TestConfiguration:
    def test_configured_with_repository_and_token(self) -> None:
        source = GitHubAssetSource("acme/assets", "ghp_test")
        assert source.is_configured() is True
        assert source.source_id == "github:acme/assets"

    @pytest.mark.parametrize(("repository", "token"), [("", "ghp_test"), ("acme/assets", ""), ("acme/assets", "  ")])
    def test_not_configured_without_credentials(self, repository: str, token: str) -> None:
        assert GitHubAssetSource(repository, token).is_configured() is False

    @pytest.mark.asyncio
    async def test_aclose_is_idempotent(self) -> None:
        source = _source(lambda _: httpx.Response(200, json=_file_payload("x")))
        await source.fetch("a.txt")
        await source.aclose()
        await source.aclose()
