"""Root-level pytest fixtures for the garmentqc test suite.

Provides shared configuration fixtures following the Pydantic-based
config architecture, plus fakes for the external collaborators (vision
backend, asset store, record store). No test touches the network.
"""

import pytest
from pathlib import Path
import tempfile
import shutil

from garmentqc.schemas import ParamConfig, UserConfig, resolve_config
from garmentqc.storage.asset_uploader import AssetUploader
from garmentqc.storage.record_store import SQLiteRecordStore

from tests.helpers.fakes import FakeAssetStore, FakeVisionClient


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults."""
    return ParamConfig()


@pytest.fixture
def internal_config(param_config, temp_dir):
    """Fully validated runtime configuration rooted in a temp directory."""
    return resolve_config(param_config, {"base_dir": str(temp_dir)}, None)


@pytest.fixture
def make_config(param_config, temp_dir):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_custom_factory(make_config):
    ...     config = make_config(factory_id="F-17")
    ...     assert config.factory.factory_id == "F-17"
    """
    def _make(**user_overrides):
        user_overrides.setdefault("base_dir", str(temp_dir))
        user = UserConfig(**user_overrides)
        return resolve_config(param_config, user, None)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def output_dirs(temp_dir):
    """Standard kiosk output directory structure.

    Returns dict with keys: base, db, logs, assets
    """
    dirs = {
        "base": temp_dir,
        "db": temp_dir / "db",
        "logs": temp_dir / "logs",
        "assets": temp_dir / "assets",
    }

    for d in dirs.values():
        d.mkdir(parents=True, exist_ok=True)

    return dirs


# =============================================================================
# Collaborator Fixtures
# =============================================================================

@pytest.fixture
def record_store(temp_dir):
    store = SQLiteRecordStore(temp_dir / "db" / "reports.db")
    yield store
    store.close()


@pytest.fixture
def asset_store():
    return FakeAssetStore()


@pytest.fixture
def uploader(asset_store):
    return AssetUploader(asset_store, key_prefix="garment")


@pytest.fixture
def vision_client():
    return FakeVisionClient()
