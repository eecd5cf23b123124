"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest

from devboot.adapters.mock import MockProvider
from devboot.adapters.registry import ProviderDispatch
from devboot.core.models.component import ProviderKind
from devboot.core.persistence.failure_log import FailureRecorder


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def recorder(tmp_state_dir: Path) -> FailureRecorder:
    return FailureRecorder(state_dir=tmp_state_dir)


@pytest.fixture
def mock_native() -> MockProvider:
    return MockProvider(kind=ProviderKind.NATIVE)


@pytest.fixture
def mock_dispatch(mock_native: MockProvider) -> ProviderDispatch:
    """Dispatch with mock native, gallery and custom providers."""
    dispatch = ProviderDispatch()
    dispatch.register(mock_native)
    dispatch.register(MockProvider(kind=ProviderKind.GALLERY))
    dispatch.register(MockProvider(kind=ProviderKind.CUSTOM))
    return dispatch


@pytest.fixture
def write_components(tmp_path: Path):
    """Write a components.yml into tmp_path and return its path."""

    def _write(content: str, name: str = "components.yml") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(content), encoding="utf-8")
        return path

    return _write
