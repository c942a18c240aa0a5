"""
Direct trace queries.

``trace_call`` issues ``debug_traceCall`` with the call tracer and returns
the parsed call tree. It goes through the regular request path of the
``Web3`` instance and has none of the interception side effects of
``TracerMiddleware``.
"""

from typing import Any, Dict, List, Optional, Union

from eth_utils import to_hex
from hexbytes import HexBytes
from web3 import Web3

from soltrace.core.formatter import format_full_trace
from soltrace.core.models import CallFrame, TraceFormatConfig
from soltrace.core.signatures import SignaturesCache
from soltrace.utils.exceptions import TraceUnavailableError, format_exception_message
from soltrace.utils.logging import get_logger

logger = get_logger('actions')

TRACE_CALL_METHOD = "debug_traceCall"

CALL_TRACER_CONFIG = {
    "onlyTopCall": False,
    "withLog": True,
}

# Transaction fields sent as hex quantities
QUANTITY_FIELDS = (
    'value', 'gas', 'gasPrice', 'maxFeePerGas', 'maxPriorityFeePerGas', 'nonce', 'chainId', 'type',
)

BlockIdentifier = Union[str, int]


def normalize_transaction(transaction: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a call object to its JSON-RPC shape (hex quantities, hex data)."""
    normalized: Dict[str, Any] = {}
    for key, value in transaction.items():
        if value is None:
            continue
        if key in QUANTITY_FIELDS and isinstance(value, int):
            normalized[key] = to_hex(value)
        elif key in ('data', 'input') and isinstance(value, (bytes, bytearray)):
            normalized[key] = HexBytes(value).to_0x_hex()
        else:
            normalized[key] = value
    return normalized


def build_trace_call_params(
    transaction: Dict[str, Any],
    block_identifier: Optional[BlockIdentifier] = "latest",
    state_overrides: Optional[Dict[str, Any]] = None,
) -> List[Any]:
    """Parameters of a ``debug_traceCall`` request using the call tracer with logs."""
    if isinstance(block_identifier, int):
        block_identifier = to_hex(block_identifier)

    options: Dict[str, Any] = {
        "tracer": "callTracer",
        "tracerConfig": dict(CALL_TRACER_CONFIG),
    }
    if state_overrides:
        options["stateOverrides"] = state_overrides

    return [transaction, block_identifier or "latest", options]


def trace_call(
    w3: Web3,
    transaction: Dict[str, Any],
    block_identifier: Optional[BlockIdentifier] = "latest",
    state_overrides: Optional[Dict[str, Any]] = None,
) -> CallFrame:
    """
    Trace a call against the node's state without committing anything.

    Raises:
        TraceUnavailableError: the node rejected or could not serve the request
    """
    params = build_trace_call_params(normalize_transaction(transaction), block_identifier, state_overrides)
    logger.debug(f"{TRACE_CALL_METHOD} {params[0].get('to')} at {params[1]}")

    try:
        result = w3.manager.request_blocking(TRACE_CALL_METHOD, params)
    except Exception as e:
        raise TraceUnavailableError(format_exception_message(e)) from e

    if not result:
        raise TraceUnavailableError("empty trace result")

    return CallFrame.from_rpc(result)


class TraceActions:
    """
    Trace helpers bound to a ``Web3`` instance.

    Keeps one signatures cache for all renders done through it.
    """

    def __init__(self, w3: Web3, signatures: Optional[SignaturesCache] = None):
        self.w3 = w3
        self.signatures = signatures

    def trace_call(
        self,
        transaction: Dict[str, Any],
        block_identifier: Optional[BlockIdentifier] = "latest",
        state_overrides: Optional[Dict[str, Any]] = None,
    ) -> CallFrame:
        return trace_call(self.w3, transaction, block_identifier, state_overrides)

    def format_trace(
        self,
        frame: CallFrame,
        config: Optional[TraceFormatConfig] = None,
        lookup: bool = True,
    ) -> str:
        if self.signatures is None:
            self.signatures = SignaturesCache.load()
        return format_full_trace(frame, config, self.signatures, lookup=lookup)
