"""
Core module for soltrace.

This module contains the tracing pipeline:
- models: CallFrame / LogEntry call tree and tracing configs
- signatures: selector and topic resolution with a persistent cache
- formatter: text rendering of call trees
- middleware: web3.py middleware tracing transactions on failure or on demand
- actions: direct debug_traceCall queries
"""

from .models import (
    CallFrame,
    CallType,
    LogEntry,
    TraceFormatConfig,
    TracerConfig,
)
from .signatures import (
    SignaturesCache,
    collect_unknown_selectors,
    get_signatures_cache_path,
    lookup_signatures,
    merge_signatures,
    resolve_signatures,
)
from .formatter import (
    format_arg,
    format_call_trace,
    format_full_trace,
    format_int,
)
from .actions import TraceActions, trace_call
from .middleware import TracerMiddleware, traced

__all__ = [
    'CallFrame',
    'CallType',
    'LogEntry',
    'TraceFormatConfig',
    'TracerConfig',
    'SignaturesCache',
    'collect_unknown_selectors',
    'get_signatures_cache_path',
    'lookup_signatures',
    'merge_signatures',
    'resolve_signatures',
    'format_arg',
    'format_call_trace',
    'format_full_trace',
    'format_int',
    'TraceActions',
    'trace_call',
    'TracerMiddleware',
    'traced',
]
