"""
Exception hierarchy for the two-pool arbitrage engine.

Every error carries a short ``kind`` so that non-fatal failures can be
recorded in the report's ``failure_reason`` without losing their category.
"""

from typing import Any, Dict, Optional


class ArbitrageError(Exception):
    """Base exception for all arbitrage related errors."""

    kind = "ArbitrageError"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}

    @property
    def reason(self) -> str:
        """Render as ``"<Kind>: <message>"`` for the report."""
        return f"{self.kind}: {self}"


class ConfigValidationError(ArbitrageError):
    """Raised when configuration is missing or invalid before analysis begins."""

    kind = "ConfigValidationError"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.field = field


class MintMismatch(ArbitrageError):
    """Raised when a pool's asset pair differs from the configured pair."""

    kind = "MintMismatch"

    def __init__(
        self,
        message: str,
        pool_id: Optional[str] = None,
        expected: Optional[tuple] = None,
        actual: Optional[tuple] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.pool_id = pool_id
        self.expected = expected
        self.actual = actual


class InvalidPoolData(ArbitrageError):
    """Raised when pool data cannot be used (non-positive reserves, bad layout)."""

    kind = "InvalidPoolData"

    def __init__(
        self,
        message: str,
        pool_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.pool_id = pool_id


class SlippageExceeded(ArbitrageError):
    """Raised when the re-quoted output falls below the minimum acceptable output."""

    kind = "SlippageExceeded"

    def __init__(
        self,
        message: str,
        expected: Optional[Any] = None,
        minimum: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.expected = expected
        self.minimum = minimum


class RpcUnavailable(ArbitrageError):
    """Raised when a fetch or submit cannot reach the node."""

    kind = "RpcUnavailable"

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint


class ExecutionError(ArbitrageError):
    """Raised when the execution adapter rejects, or a simulation reports an error."""

    kind = "ExecutionError"

    def __init__(
        self,
        message: str,
        signature: Optional[str] = None,
        logs: Optional[list] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.signature = signature
        self.logs = logs or []
