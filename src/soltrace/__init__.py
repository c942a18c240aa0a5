"""
soltrace - call traces for EVM transactions
"""

__version__ = "0.1.0"

# Main entry point
from .cli.main import main

# Core components
from .core import (
    CallFrame,
    CallType,
    LogEntry,
    TraceFormatConfig,
    TracerConfig,
    SignaturesCache,
    TracerMiddleware,
    TraceActions,
    format_call_trace,
    format_full_trace,
    resolve_signatures,
    trace_call,
    traced,
)

# Utilities
from .utils import (
    SoltraceError,
    ExecutionRevertedTraceError,
    TransactionReceiptTimeoutError,
    TraceUnavailableError,
    SignatureLookupError,
    setup_logging,
)

__all__ = [
    # Version
    '__version__',
    # Main
    'main',
    # Core
    'CallFrame',
    'CallType',
    'LogEntry',
    'TraceFormatConfig',
    'TracerConfig',
    'SignaturesCache',
    'TracerMiddleware',
    'TraceActions',
    'format_call_trace',
    'format_full_trace',
    'resolve_signatures',
    'trace_call',
    'traced',
    # Utils
    'SoltraceError',
    'ExecutionRevertedTraceError',
    'TransactionReceiptTimeoutError',
    'TraceUnavailableError',
    'SignatureLookupError',
    'setup_logging',
]
