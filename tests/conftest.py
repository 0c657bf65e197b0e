"""Shared fixtures and helpers for tests."""

import logging
import subprocess
import warnings
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from testcontainers.core.container import DockerContainer
from testcontainers.core.waiting_utils import wait_for_logs

from alembic import command
from alembic.config import Config
from asset_cache.core.cache import VolatileCache
from asset_cache.core.service import AssetService
from asset_cache.db import InMemoryAssetStore, SqlAssetStore
from asset_cache.models import AssetResult
from asset_cache.remote import InMemoryAssetSource

logger = logging.getLogger(__name__)

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def run_git(args: list[str], cwd: Path) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def commit_file(repo: Path, rel_path: str, content: str, message: str = "update") -> str:
    file_path = repo / rel_path
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(content, encoding="utf-8")
    run_git(["add", rel_path], repo)
    run_git(
        ["-c", "user.name=Test Author", "-c", "user.email=author@example.com", "commit", "-m", message],
        repo,
    )
    return run_git(["rev-parse", "HEAD"], repo)


# ---------------------------------------------------------------------------
# PostgresTestBase: helpers for integration tests that need a Postgres container
# ---------------------------------------------------------------------------

_READY_LINE = "database system is ready to accept connections"


class PostgresTestBase:
    image = "postgres:16-alpine"

    @staticmethod
    def create_container() -> DockerContainer:
        return (
            DockerContainer(PostgresTestBase.image)
            .with_exposed_ports(5432)
            .with_env("POSTGRES_PASSWORD", "postgres")
        )

    @staticmethod
    def get_alembic_config() -> Config:
        ini_path = str(_REPO_ROOT / "alembic.ini")
        cfg = Config(ini_path)
        cfg.set_main_option("script_location", str(_REPO_ROOT / "alembic"))
        return cfg

    @staticmethod
    def run_migrations(connection_url: str) -> None:
        cfg = PostgresTestBase.get_alembic_config()
        cfg.set_main_option("sqlalchemy.url", connection_url)
        command.upgrade(cfg, "head")

    @staticmethod
    def cleanup_migrations(connection_url: str) -> None:
        cfg = PostgresTestBase.get_alembic_config()
        cfg.set_main_option("sqlalchemy.url", connection_url)
        command.downgrade(cfg, "base")

    @staticmethod
    def wait_for_postgres(container: DockerContainer) -> None:
        # the entrypoint starts a temporary server for initdb before the real one
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", DeprecationWarning)
            wait_for_logs(container, lambda logs: logs.count(_READY_LINE) >= 2, timeout=60)
        logger.info("Postgres container ready on port %s", container.get_exposed_port(5432))


# ---------------------------------------------------------------------------
# Shared unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def remote() -> InMemoryAssetSource:
    return InMemoryAssetSource({"settings/flags.json": '{"flags":[{"name":"x","enabled":true}]}'})


@pytest.fixture
def store() -> InMemoryAssetStore:
    return InMemoryAssetStore()


@pytest.fixture
def cache(clock: FakeClock) -> VolatileCache[AssetResult]:
    return VolatileCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def service(
    remote: InMemoryAssetSource,
    store: InMemoryAssetStore,
    cache: VolatileCache[AssetResult],
) -> AssetService:
    return AssetService(remote, store, cache, owner_category="application", owner_key="tenant-a")


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "repo"
    repo.mkdir()
    run_git(["init", "-b", "main"], repo)
    run_git(["config", "user.name", "Test Author"], repo)
    run_git(["config", "user.email", "author@example.com"], repo)
    return repo


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'assets.db'}", future=True)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def sql_store(sqlite_engine: AsyncEngine) -> AsyncGenerator[SqlAssetStore, None]:
    instance = SqlAssetStore(sqlite_engine, timeout=5.0)
    await instance.ensure_ready()
    yield instance
