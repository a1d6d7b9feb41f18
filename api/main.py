"""
QuantFlow API - FastAPI Backend
Rule-based strategy backtesting: indicators, strategies, metrics and parameter sweeps
"""
import os
from contextlib import asynccontextmanager
from dotenv import load_dotenv

# Load environment variables BEFORE other imports
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import get_backtest_settings
from models.backtest import StrategyType
from routes import backtest

# Configure structured logging with run IDs
from services.logging_config import (
    setup_logging,
    get_logger,
    RunIdMiddleware
)

# LOG_FORMAT=json switches to one JSON object per line
use_json_logging = os.getenv("LOG_FORMAT", "console").lower() == "json"
setup_logging(use_json=use_json_logging)
logger = get_logger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events"""
    settings = get_backtest_settings()
    logger.info(f"QuantFlow API starting up with settings {settings.to_dict()}")
    yield
    logger.info("QuantFlow API shutting down")


app = FastAPI(
    title="QuantFlow API",
    description="Backtest rule-based trading strategies against OHLCV data",
    version=VERSION,
    lifespan=lifespan,
)

# CORS middleware - supports env var ALLOWED_ORIGINS for production
default_origins = [
    "http://localhost:5173",
    "http://localhost:3000",
]
custom_origins = os.getenv("ALLOWED_ORIGINS", "")
if custom_origins:
    default_origins.extend([o.strip() for o in custom_origins.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=default_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Run ID middleware for request tracing
app.add_middleware(RunIdMiddleware)

# Include routers - Backtesting
app.include_router(backtest.router)


@app.get("/")
async def root():
    return {
        "message": "QuantFlow API",
        "version": VERSION,
        "strategies": [s.value for s in StrategyType],
        "features": [
            "Technical Indicators",
            "Strategy Backtesting",
            "Strategy Comparison",
            "Parameter Optimization",
            "Result Export",
        ],
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
