"""
QuantFlow Custom Exception Classes

This module provides a hierarchical exception structure for the backtesting
services, enabling callers to catch specific exception types.

Exception Hierarchy:
    QuantFlowError (base)
    |-- BacktestError
    |   |-- UnknownStrategyError
    |   |-- InvalidParameterError
    |   +-- InvalidMetricError
    |
    |-- ConfigurationError
    +-- ExportFormatError

Numerical degeneracies (zero variance, zero range, empty input) are never
raised; they resolve to documented fallback values inside the core. These
exceptions cover caller mistakes only.

Usage:
    from exceptions import UnknownStrategyError, BacktestError

    try:
        result = run_backtest(bars, "not-a-strategy")
    except UnknownStrategyError as e:
        return e.to_dict()
"""

from typing import Optional, Any, Dict, List


class QuantFlowError(Exception):
    """
    Base exception for all QuantFlow errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code for logging/diagnostics
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or "QUANTFLOW_ERROR"
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Backtest Exceptions
# =============================================================================

class BacktestError(QuantFlowError):
    """
    Base exception for backtest pipeline errors.

    Catch this to handle any error raised while preparing or running a backtest.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code or "BACKTEST_ERROR",
            details=details
        )


class UnknownStrategyError(BacktestError):
    """
    Raised when a strategy id is not in the strategy registry.

    Attributes:
        strategy: The id that was requested
        available: Ids that are registered
    """

    def __init__(self, strategy: str, available: Optional[List[str]] = None):
        self.strategy = strategy
        self.available = available or []
        super().__init__(
            message=f"Unknown strategy: {strategy}",
            error_code="UNKNOWN_STRATEGY",
            details={"strategy": strategy, "available": self.available}
        )


class InvalidParameterError(BacktestError):
    """
    Raised when a strategy parameter cannot be used.

    Examples: a non-numeric value, or a period that is not a positive integer.

    Attributes:
        name: Parameter name
        value: The rejected value
    """

    def __init__(self, name: str, value: Any, reason: str):
        self.name = name
        self.value = value
        super().__init__(
            message=f"Invalid parameter {name}={value!r}: {reason}",
            error_code="INVALID_PARAMETER",
            details={"parameter": name, "value": repr(value), "reason": reason}
        )


class InvalidMetricError(BacktestError):
    """Raised when an optimizer is asked to rank by a field that is not a metric."""

    def __init__(self, metric: str, available: Optional[List[str]] = None):
        self.metric = metric
        super().__init__(
            message=f"Unknown metric: {metric}",
            error_code="INVALID_METRIC",
            details={"metric": metric, "available": available or []}
        )


# =============================================================================
# Configuration / Export Exceptions
# =============================================================================

class ConfigurationError(QuantFlowError):
    """Raised when backtest settings fail validation."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(
            message=f"Invalid backtest configuration: {'; '.join(errors)}",
            error_code="CONFIGURATION_ERROR",
            details={"errors": errors}
        )


class ExportFormatError(QuantFlowError):
    """
    Raised when an export document cannot be produced or parsed.

    Attributes:
        format: The export format involved
    """

    def __init__(self, message: str, format: Optional[str] = None):
        self.format = format
        super().__init__(
            message=message,
            error_code="EXPORT_FORMAT_ERROR",
            details={"format": format}
        )
