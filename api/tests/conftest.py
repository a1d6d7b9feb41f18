"""
QuantFlow API Test Configuration
================================
Shared pytest fixtures and configuration for all tests.

This file is automatically loaded by pytest and provides:
- sys.path setup so tests import the app modules directly
- Sample bar fixtures (uptrend, downtrend, sideways, flat, rising)
- Test client fixtures for FastAPI testing
- Settings reset between tests
"""
import pytest
import sys
import os
from typing import List

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient
from main import app

from config import reset_backtest_settings
from services.backtesting.data_loader import Bar, generate_sample_data
from tests.mocks.fixtures import (
    PriceDataset,
    generate_uptrend_data,
    generate_downtrend_data,
    generate_sideways_data,
    generate_flat_bars,
    generate_linear_bars,
)


# ============================================================
# Pytest Configuration
# ============================================================

def pytest_configure(config):
    """Configure custom pytest markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture(autouse=True)
def fresh_settings():
    """Re-read BACKTEST_* settings for every test."""
    reset_backtest_settings()
    yield
    reset_backtest_settings()


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture(scope="session")
def test_client() -> TestClient:
    """TestClient shared by the whole session"""
    return TestClient(app)


@pytest.fixture(scope="function")
def client() -> TestClient:
    """Fresh TestClient for each test function"""
    return TestClient(app)


# ============================================================
# Price Data Fixtures
# ============================================================

@pytest.fixture
def uptrend_data() -> PriceDataset:
    return generate_uptrend_data(start_price=100.0, bars=300, seed=11)


@pytest.fixture
def downtrend_data() -> PriceDataset:
    return generate_downtrend_data(start_price=100.0, bars=300, seed=12)


@pytest.fixture
def sideways_data() -> PriceDataset:
    return generate_sideways_data(center_price=100.0, bars=300, seed=13)


@pytest.fixture
def sample_bars() -> List[Bar]:
    """The built-in 1000-bar sample dataset"""
    return generate_sample_data(bars=1000, seed=12345)


@pytest.fixture
def flat_bars() -> List[Bar]:
    return generate_flat_bars(count=120, price=100.0)


@pytest.fixture
def rising_bars() -> List[Bar]:
    """300 bars with closes rising by exactly 1 per bar"""
    return generate_linear_bars(count=300, start_price=100.0, step=1.0)


# ============================================================
# Indicator Service Fixture
# ============================================================

@pytest.fixture
def indicator_service():
    from services.indicators import IndicatorService
    return IndicatorService()
