"""
Shared pytest fixtures for all tests.
"""
import tempfile
from pathlib import Path
from typing import Iterator

import pytest

from gatekeeper.approvals import ApprovalEngine, ConfigStore


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def isolated_home(temp_dir: Path, monkeypatch) -> Path:
    """Point the global config directory at a temporary location."""
    home = temp_dir / "home" / ".gatekeeper"
    monkeypatch.setenv("GATEKEEPER_HOME", str(home))
    return home


@pytest.fixture
def project_root(temp_dir: Path) -> str:
    """An empty project directory."""
    root = temp_dir / "project"
    root.mkdir()
    return str(root)


@pytest.fixture
def global_path(isolated_home: Path) -> Path:
    return isolated_home / "approvals.json"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(project_root: str, global_path: Path) -> Iterator[ConfigStore]:
    """Config store with one open project."""
    config_store = ConfigStore([project_root], global_path=global_path)
    yield config_store
    config_store.close()


@pytest.fixture
def engine(store: ConfigStore, clock: FakeClock) -> Iterator[ApprovalEngine]:
    """Approval engine on the temporary store with a fake clock."""
    approval_engine = ApprovalEngine(store, clock=clock)
    yield approval_engine
    approval_engine.close()
