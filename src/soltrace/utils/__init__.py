"""
Utilities module for soltrace.

Provides exception handling, logging and colors.
"""

from .exceptions import (
    SoltraceError,
    RPCConnectionError,
    TraceUnavailableError,
    SignatureLookupError,
    TransactionError,
    ExecutionRevertedTraceError,
    TransactionReceiptTimeoutError,
    ParseError,
    ABIParseError,
    format_error,
    format_error_json,
    format_exception_message,
)
from .logging import TRACE, ensure_console_output, get_logger, logger, setup_logging
from .colors import (
    Colors,
    SUPPORTS_COLOR,
    set_colors_enabled,
    colors_enabled,
    error, success, warning, info,
)

__all__ = [
    # Exceptions
    'SoltraceError',
    'RPCConnectionError',
    'TraceUnavailableError',
    'SignatureLookupError',
    'TransactionError',
    'ExecutionRevertedTraceError',
    'TransactionReceiptTimeoutError',
    'ParseError',
    'ABIParseError',
    # Formatting
    'format_error',
    'format_error_json',
    'format_exception_message',
    # Logging
    'TRACE',
    'ensure_console_output',
    'setup_logging',
    'get_logger',
    'logger',
    # Colors
    'Colors',
    'SUPPORTS_COLOR',
    'set_colors_enabled',
    'colors_enabled',
    'error', 'success', 'warning', 'info',
]
