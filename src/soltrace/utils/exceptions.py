"""
Custom exceptions for soltrace.

This module provides a hierarchy of exceptions for the tracing pipeline,
along with utilities for formatting errors consistently.
"""

import json
from typing import Any, Dict, Optional


class SoltraceError(Exception):
    """
    Base exception for all soltrace errors.

    Attributes:
        message: Human-readable error message
        details: Additional context as key-value pairs
        error_code: Optional error code for programmatic handling
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.details = details or {}
        self.error_code = error_code or self.__class__.__name__
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error": True,
            "type": self.error_code,
            "message": self.message,
            **self.details
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


# ============================================================================
# Connection / RPC Errors
# ============================================================================

class RPCConnectionError(SoltraceError):
    """Raised when RPC connection fails."""

    def __init__(self, message: str, rpc_url: Optional[str] = None, **kwargs):
        details = {"rpc_url": rpc_url} if rpc_url else {}
        details.update(kwargs)
        super().__init__(message, details, "RPCConnectionError")


class TraceUnavailableError(SoltraceError):
    """Raised when the node cannot serve a debug_traceCall request."""

    def __init__(self, reason: Optional[str] = None, **kwargs):
        message = "debug_traceCall unavailable"
        if reason:
            message += f": {reason}"
        super().__init__(message, dict(kwargs), "TraceUnavailable")


class SignatureLookupError(SoltraceError):
    """Raised when the remote signature database cannot be queried."""

    def __init__(self, message: str, url: Optional[str] = None, **kwargs):
        details = {"url": url} if url else {}
        details.update(kwargs)
        super().__init__(message, details, "SignatureLookupFailed")


# ============================================================================
# Transaction Errors
# ============================================================================

class TransactionError(SoltraceError):
    """Raised when transaction operations fail."""

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        **kwargs
    ):
        details = {}
        if tx_hash:
            details["tx_hash"] = tx_hash
        details.update(kwargs)
        super().__init__(message, details, "TransactionError")


class ExecutionRevertedTraceError(TransactionError):
    """
    Raised in place of a failing transaction when tracing policy asks for it.

    The rendered call trace is the primary payload: it is appended to the
    message and kept on ``trace``. The error that triggered tracing, if any,
    is chained as ``__cause__`` by the middleware.
    """

    code = 3

    def __init__(self, trace: str, reason: Optional[str] = None, **kwargs):
        if reason:
            summary = f"Execution reverted with reason: {reason}."
        else:
            summary = "Execution reverted for an unknown reason."
        super().__init__(f"{summary}\n\n{trace}", **kwargs)
        self.error_code = "ExecutionRevertedError"
        self.summary = summary
        self.trace = trace
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": True,
            "type": self.error_code,
            "message": self.summary,
            "reason": self.reason,
            "trace": self.trace,
            **self.details
        }


class TransactionReceiptTimeoutError(TransactionError):
    """Raised when no receipt shows up before the polling ceiling."""

    def __init__(self, tx_hash: str, attempts: Optional[int] = None, **kwargs):
        message = f"Timed out while waiting for transaction with hash {tx_hash} to be confirmed"
        if attempts is not None:
            kwargs["attempts"] = attempts
        super().__init__(message, tx_hash=tx_hash, **kwargs)
        self.error_code = "WaitForTransactionReceiptTimeoutError"
        self.tx_hash = tx_hash


# ============================================================================
# Parsing Errors
# ============================================================================

class ParseError(SoltraceError):
    """Raised when parsing fails."""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        details = {"source": source} if source else {}
        details.update(kwargs)
        super().__init__(message, details, "ParseError")


class ABIParseError(ParseError):
    """Raised when a human-readable signature cannot be parsed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.error_code = "ABIParseError"


# ============================================================================
# Error Formatting Utilities
# ============================================================================

def format_error(e: Exception, json_mode: bool = False) -> str:
    """
    Format an exception for display.

    Args:
        e: The exception to format
        json_mode: If True, output as JSON; otherwise use colored text

    Returns:
        Formatted error string
    """
    from soltrace.utils.colors import error

    if isinstance(e, SoltraceError):
        if json_mode:
            return e.to_json()
        if isinstance(e, ExecutionRevertedTraceError):
            return f"{error(e.summary)}\n\n{e.trace}"
        return error(e.message)
    if json_mode:
        return json.dumps(format_error_json(format_exception_message(e), type(e).__name__), indent=2)
    return error(format_exception_message(e))


def format_error_json(
    message: str,
    error_type: str = "Error",
    **kwargs
) -> Dict[str, Any]:
    """
    Create a standardized error JSON structure.

    Args:
        message: Error message
        error_type: Error type/code
        **kwargs: Additional fields to include

    Returns:
        Dictionary suitable for JSON output
    """
    return {
        "error": True,
        "type": error_type,
        "message": message,
        **kwargs
    }


def format_exception_message(e: Exception) -> str:
    """
    Extract a clean, user-friendly error message from any exception.

    Web3RPCError and friends carry the node's error dict as ``args[0]``.
    """
    if hasattr(e, 'args') and e.args:
        first_arg = e.args[0]

        if isinstance(first_arg, dict):
            # RPC error format: {'code': -32003, 'message': '...'}
            return first_arg.get('message', str(e))
        elif isinstance(first_arg, str):
            return first_arg
        else:
            return str(first_arg)

    return str(e)
