from __future__ import annotations

import asyncio
import logging
import subprocess
from datetime import datetime
from pathlib import Path

from asset_cache.errors import AssetNotFound, RemoteUnavailable
from asset_cache.models import RemoteAsset, is_under_prefix, normalize_asset_key, normalize_prefix

logger = logging.getLogger(__name__)

# stderr fragments git prints when the path is absent at the ref
_MISSING_PATH_MARKERS = ("does not exist in", "exists on disk, but not in", "path '")


def _run_git(repo: Path, args: list[str], timeout: float | None) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        ["git", "-C", str(repo), *args],
        check=False,
        capture_output=True,
        encoding="utf-8",
        errors="replace",
        timeout=timeout,
    )


def get_git_repo_root(start_dir: Path) -> Path | None:
    result = subprocess.run(
        ["git", "-C", str(start_dir), "rev-parse", "--show-toplevel"],
        check=False,
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        return None
    root = result.stdout.strip()
    if not root:
        return None
    return Path(root)


class GitAssetSource:
    """Read assets from a git repository at a fixed ref through the ``git`` CLI.

    The repository is usually a local clone or mirror of the remote; fetching new
    commits into it is left to whoever maintains the clone.
    """

    def __init__(self, repository: str | Path, branch: str = "main", timeout: float | None = 10.0) -> None:
        self.repository = Path(repository) if repository else None
        self.branch = branch
        self.timeout = timeout
        self.source_id = f"git:{self.repository}" if self.repository else "git:"

    def is_configured(self) -> bool:
        return self.repository is not None and bool(str(self.repository).strip()) and bool(self.branch)

    async def fetch(self, key: str) -> RemoteAsset:
        return await asyncio.to_thread(self._fetch, normalize_asset_key(key))

    async def list_assets(self, prefix: str = "") -> list[str]:
        return await asyncio.to_thread(self._list, normalize_prefix(prefix))

    async def aclose(self) -> None:
        pass

    def _repo(self) -> Path:
        if self.repository is None or not self.repository.is_dir() or get_git_repo_root(self.repository) is None:
            raise RemoteUnavailable(f"Repository not reachable: {self.repository}")
        return self.repository

    def _git(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        try:
            return _run_git(self._repo(), args, self.timeout)
        except subprocess.TimeoutExpired as exc:
            raise RemoteUnavailable(f"git {args[0]} timed out after {self.timeout}s") from exc
        except OSError as exc:
            raise RemoteUnavailable(f"git not runnable: {exc}") from exc

    def _fetch(self, key: str) -> RemoteAsset:
        spec = f"{self.branch}:{key}"

        type_result = self._git(["cat-file", "-t", spec])
        if type_result.returncode != 0:
            self._raise_for_lookup(key, type_result)
        if type_result.stdout.strip() != "blob":
            raise AssetNotFound(key, f"Not a file: {key}")

        blob = self._git(["cat-file", "-p", spec])
        if blob.returncode != 0:
            self._raise_for_lookup(key, blob)

        revision = self._git(["rev-parse", spec])
        revision_id = revision.stdout.strip() if revision.returncode == 0 else ""

        last_modified: datetime | None = None
        log_result = self._git(["log", "-1", "--format=%aI", self.branch, "--", key])
        stamp = log_result.stdout.strip() if log_result.returncode == 0 else ""
        if stamp:
            last_modified = datetime.fromisoformat(stamp)

        content = blob.stdout
        return RemoteAsset(
            key=key,
            content=content,
            revision_id=revision_id,
            size=len(content.encode("utf-8")),
            last_modified=last_modified,
        )

    def _list(self, prefix: str) -> list[str]:
        args = ["ls-tree", "-r", "--name-only", self.branch]
        if prefix:
            args += ["--", prefix]
        result = self._git(args)
        if result.returncode != 0:
            raise RemoteUnavailable(f"Cannot list {self.branch}: {result.stderr.strip()}")
        keys = [line for line in result.stdout.splitlines() if line]
        return sorted(k for k in keys if is_under_prefix(k, prefix))

    def _raise_for_lookup(self, key: str, result: subprocess.CompletedProcess[str]) -> None:
        stderr = result.stderr.strip()
        if any(marker in stderr for marker in _MISSING_PATH_MARKERS):
            raise AssetNotFound(key)
        # unknown ref, corrupt repository and the like
        logger.warning("git lookup failed for %s: %s", key, stderr)
        raise RemoteUnavailable(f"git lookup failed for {key}: {stderr}")
