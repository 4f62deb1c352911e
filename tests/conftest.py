"""Test configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Ensure the src/ directory is on sys.path so `import market_resolver` works without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if SRC_PATH.exists():
    sys.path.insert(0, str(SRC_PATH))
# Shared fakes live next to this file.
sys.path.insert(0, str(Path(__file__).resolve().parent))

from resolver_fakes import MARKET_ID, NOW, FakeChain, FakeDataSource, make_market  # noqa: E402


@pytest.fixture
def market():
    """A resolvable SNAPSHOT_AT token-price market."""
    return make_market()


@pytest.fixture
def chain(market):
    return FakeChain(market)


@pytest.fixture
def data_source():
    return FakeDataSource(value=150)


__all__ = ["MARKET_ID", "NOW"]
