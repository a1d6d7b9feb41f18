"""
API Endpoint Tests for QuantFlow
Tests the backtest endpoints end to end through the FastAPI app
"""
import pytest
from fastapi.testclient import TestClient
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from main import app
from tests.mocks.fixtures import generate_uptrend_data

client = TestClient(app)


def bars_payload(count=200, seed=3):
    """Uptrend bars in the request body format"""
    data = generate_uptrend_data(bars=count, seed=seed)
    return [
        {
            "timestamp": bar.timestamp.isoformat(),
            "open": bar.open,
            "high": bar.high,
            "low": bar.low,
            "close": bar.close,
            "volume": bar.volume,
        }
        for bar in data.to_bars()
    ]


class TestHealthEndpoints:
    """Test health and status endpoints"""

    def test_root_endpoint(self):
        """Test root endpoint returns API info"""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "QuantFlow API"
        assert "version" in data
        assert "features" in data
        assert len(data["strategies"]) == 9

    def test_health_endpoint(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_backtest_health(self):
        response = client.get("/api/backtest/health")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "backtest"
        assert data["strategies"] == 9

    def test_run_id_header(self):
        response = client.get("/health", headers={"x-run-id": "abc123"})
        assert response.headers["x-run-id"] == "abc123"

    def test_run_id_generated(self):
        response = client.get("/health")
        assert len(response.headers["x-run-id"]) == 12


class TestStrategyCatalogue:
    """Test strategy listing endpoints"""

    def test_list_strategies(self):
        response = client.get("/api/backtest/strategies")
        assert response.status_code == 200
        data = response.json()
        assert len(data) == 9
        ids = [s["id"] for s in data]
        assert "mean-reversion" in ids
        assert "atr-trailing" in ids
        for strategy in data:
            assert "default_params" in strategy
            assert "category" in strategy

    def test_get_strategy(self):
        response = client.get("/api/backtest/strategies/ema-crossover")
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "EMA Crossover"
        assert data["default_params"]["fast_period"] == 9

    def test_get_unknown_strategy(self):
        response = client.get("/api/backtest/strategies/coin-flip")
        assert response.status_code == 422


class TestRunBacktest:
    """Test the single backtest endpoint"""

    def test_run_on_sample_data(self):
        response = client.post("/api/backtest/run", json={
            "strategy": "atr-trailing",
            "sample_bars": 500,
            "seed": 12345,
        })
        assert response.status_code == 200
        data = response.json()
        assert data["bars_processed"] == 500
        assert len(data["equity_curve"]) == 500
        assert data["config"]["strategy"] == "atr-trailing"
        assert data["metrics"]["total_trades"] == len(data["trades"])

    def test_run_on_supplied_bars(self):
        response = client.post("/api/backtest/run", json={
            "strategy": "ema-crossover",
            "strategy_params": {"fast_period": 5, "slow_period": 15},
            "bars": bars_payload(),
            "initial_capital": 5000,
        })
        assert response.status_code == 200
        data = response.json()
        assert data["bars_processed"] == 200
        assert data["config"]["initial_capital"] == 5000
        assert data["config"]["params"]["fast_period"] == 5

    def test_run_is_deterministic(self):
        body = {"strategy": "rsi", "sample_bars": 400, "seed": 99}
        first = client.post("/api/backtest/run", json=body).json()
        second = client.post("/api/backtest/run", json=body).json()
        assert first["trades"] == second["trades"]
        assert first["metrics"] == second["metrics"]

    def test_run_empty_bars(self):
        response = client.post("/api/backtest/run", json={"strategy": "momentum", "bars": []})
        assert response.status_code == 200
        data = response.json()
        assert data["trades"] == []
        assert data["metrics"]["total_trades"] == 0

    def test_invalid_param_is_400(self):
        response = client.post("/api/backtest/run", json={
            "strategy": "breakout",
            "strategy_params": {"lookback_period": 0},
            "sample_bars": 100,
        })
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error_code"] == "INVALID_PARAMETER"
        assert detail["details"]["parameter"] == "lookback_period"

    def test_unknown_strategy_is_422(self):
        response = client.post("/api/backtest/run", json={"strategy": "coin-flip"})
        assert response.status_code == 422

    def test_negative_capital_is_422(self):
        response = client.post("/api/backtest/run", json={"strategy": "rsi", "initial_capital": -1})
        assert response.status_code == 422


class TestCompare:

    @pytest.mark.slow
    def test_compare_all_strategies_by_default(self):
        response = client.post("/api/backtest/compare", json={"sample_bars": 500})
        assert response.status_code == 200
        data = response.json()
        assert len(data) == 9
        sharpes = [row["metrics"]["sharpe_ratio"] for row in data]
        assert sharpes == sorted(sharpes, reverse=True)

    def test_compare_named_candidates(self):
        response = client.post("/api/backtest/compare", json={
            "sample_bars": 500,
            "candidates": [
                {"strategy": "rsi"},
                {"strategy": "rsi", "name": "Loose RSI", "params": {"rsi_oversold": 40}},
            ],
        })
        assert response.status_code == 200
        names = {row["strategy_name"] for row in response.json()}
        assert names == {"RSI Strategy", "Loose RSI"}


class TestOptimize:

    def test_optimize(self):
        response = client.post("/api/backtest/optimize", json={
            "strategy": "ema-crossover",
            "param_ranges": {"fast_period": [5, 9], "slow_period": [21, 30]},
            "metric": "total_return",
            "sample_bars": 500,
        })
        assert response.status_code == 200
        data = response.json()
        assert data["metric"] == "total_return"
        assert data["combinations_tested"] == 4
        assert set(data["params"]) == {"fast_period", "slow_period"}

    def test_optimize_unknown_metric_is_400(self):
        response = client.post("/api/backtest/optimize", json={
            "strategy": "rsi",
            "param_ranges": {"rsi_oversold": [25, 30]},
            "metric": "luck",
            "sample_bars": 100,
        })
        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "INVALID_METRIC"


class TestExport:

    @pytest.mark.parametrize("export_format, media_type", [
        ("json", "application/json"),
        ("trades_csv", "text/csv"),
        ("equity_csv", "text/csv"),
        ("signals_csv", "text/csv"),
        ("trade_log", "text/plain"),
        ("summary", "text/plain"),
    ])
    def test_export_formats(self, export_format, media_type):
        response = client.post(
            f"/api/backtest/export?format={export_format}",
            json={"strategy": "atr-trailing", "sample_bars": 300},
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(media_type)
        assert response.text

    def test_json_export_document(self):
        response = client.post("/api/backtest/export", json={"strategy": "rsi", "sample_bars": 300})
        assert response.status_code == 200
        data = response.json()
        assert data["metadata"]["platform"] == "QuantFlow"
        assert data["bars_processed"] == 300

    def test_unknown_format_is_422(self):
        response = client.post("/api/backtest/export?format=xlsx", json={"strategy": "rsi"})
        assert response.status_code == 422
