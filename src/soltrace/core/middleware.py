"""
Transaction tracing middleware for web3.py.

``TracerMiddleware`` sits in a ``Web3`` middleware onion and watches
gas estimations and transaction submissions. Depending on the
``TracerConfig`` attached to the provider it:

- traces the call before sending it and logs the rendered tree
  (``all``, or ``next=True`` for a single request);
- replaces a failing request's error with an ``ExecutionRevertedTraceError``
  carrying the rendered tree (``failed``, or ``next=True``);
- waits for the receipt of submitted transactions and traces them the same
  way when they were mined but reverted.

Usage::

    w3 = Web3(HTTPProvider("http://localhost:8545"))
    tracer = traced(w3)
    tracer.next = True  # pre-trace the next transaction only
"""

import time
from typing import Any, Callable, Dict, Optional

from eth_utils.toolz import curry
from web3 import AsyncWeb3, Web3
from web3.middleware.base import Web3MiddlewareBuilder
from web3.types import RPCEndpoint, RPCResponse

from soltrace.core.actions import TRACE_CALL_METHOD, build_trace_call_params
from soltrace.core.formatter import format_full_trace
from soltrace.core.models import CallFrame, TracerConfig
from soltrace.core.signatures import SignaturesCache
from soltrace.utils.exceptions import (
    ExecutionRevertedTraceError,
    TraceUnavailableError,
    TransactionReceiptTimeoutError,
)
from soltrace.utils.logging import TRACE, ensure_console_output, get_logger

logger = get_logger('middleware')

ESTIMATE_GAS_METHOD = "eth_estimateGas"
TRACED_METHODS = frozenset({
    ESTIMATE_GAS_METHOD,
    "eth_sendTransaction",
    "wallet_sendTransaction",
})

RECEIPT_POLL_INTERVAL = 0.25
RECEIPT_POLL_ATTEMPTS = 720

MakeRequestFn = Callable[[RPCEndpoint, Any], RPCResponse]


def _is_reverted(receipt: Dict[str, Any]) -> bool:
    status = receipt.get("status")
    if isinstance(status, str):
        return int(status, 16) == 0
    return status == 0


class TracerMiddleware(Web3MiddlewareBuilder):
    """Intercepts transaction-like requests and surfaces their call traces."""

    tracer: TracerConfig = None
    signatures: Optional[SignaturesCache] = None

    @staticmethod
    @curry
    def build(
        tracer: TracerConfig,
        w3: Web3,
        signatures: Optional[SignaturesCache] = None,
    ) -> "TracerMiddleware":
        middleware = TracerMiddleware(w3)
        middleware.tracer = tracer
        middleware.signatures = signatures
        return middleware

    def _signatures(self) -> SignaturesCache:
        if self.signatures is None:
            self.signatures = SignaturesCache.load()
        return self.signatures

    def wrap_make_request(self, make_request: MakeRequestFn) -> MakeRequestFn:
        def middleware(method: RPCEndpoint, params: Any) -> RPCResponse:
            if method not in TRACED_METHODS:
                return make_request(method, params)
            return self._request(make_request, method, params)

        return middleware

    def _trace(self, make_request: MakeRequestFn, params: Any) -> ExecutionRevertedTraceError:
        """Trace the request's transaction and wrap the rendered tree in an error."""
        transaction = params[0]
        block_identifier = params[1] if len(params) > 1 and params[1] else "latest"
        state_overrides = params[2] if len(params) > 2 else None

        # debug_* methods are outside web3's retry allowlist: a flaky node fails fast here
        response = make_request(
            RPCEndpoint(TRACE_CALL_METHOD),
            build_trace_call_params(transaction, block_identifier, state_overrides),
        )
        if response.get("error"):
            error = response["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise TraceUnavailableError(message)
        if not response.get("result"):
            raise TraceUnavailableError("empty trace result")

        frame = CallFrame.from_rpc(response["result"])
        rendered = format_full_trace(frame, self.tracer, self._signatures())

        return ExecutionRevertedTraceError(rendered, frame.reason)

    def _raise_traced(
        self,
        make_request: MakeRequestFn,
        params: Any,
        cause: Optional[BaseException] = None,
        rpc_error: Any = None,
    ) -> None:
        """
        Raise the trace-bearing error for a failed transaction.

        Returns without raising when tracing itself fails, so the caller
        can fall back to the original outcome.
        """
        try:
            traced_error = self._trace(make_request, params)
        except Exception as e:
            logger.warning(f"Failed to trace transaction: {e}")
            return

        if rpc_error is not None:
            traced_error.details["rpc_error"] = rpc_error
        raise traced_error from cause

    def _request(self, make_request: MakeRequestFn, method: RPCEndpoint, params: Any) -> RPCResponse:
        tracer = self.tracer
        pre_trace = tracer.next or (tracer.next is None and tracer.all)
        trace_failures = tracer.next or (tracer.next is None and tracer.failed)
        logger.log(TRACE, f"Intercepted {method} (pre_trace={pre_trace}, trace_failures={trace_failures})")

        if pre_trace:
            try:
                logger.info(self._trace(make_request, params).trace)
            except Exception as e:
                logger.warning(f"Failed to trace transaction: {e}")

        try:
            response = make_request(method, params)
        except Exception as e:
            if trace_failures:
                self._raise_traced(make_request, params, cause=e)
            raise
        finally:
            tracer.next = None

        if response.get("error"):
            if trace_failures:
                self._raise_traced(make_request, params, rpc_error=response["error"])
            return response

        if method != ESTIMATE_GAS_METHOD and response.get("result"):
            receipt = self._wait_for_receipt(make_request, response["result"])
            if _is_reverted(receipt) and trace_failures:
                self._raise_traced(make_request, params)

        return response

    def _wait_for_receipt(self, make_request: MakeRequestFn, tx_hash: Any) -> Dict[str, Any]:
        """
        Poll for a transaction receipt.

        Raises:
            TransactionReceiptTimeoutError: no receipt after RECEIPT_POLL_ATTEMPTS polls
        """
        tx_hash = tx_hash.to_0x_hex() if hasattr(tx_hash, "to_0x_hex") else str(tx_hash)

        for _ in range(RECEIPT_POLL_ATTEMPTS):
            try:
                response = make_request(RPCEndpoint("eth_getTransactionReceipt"), [tx_hash])
            except Exception as e:
                logger.warning(f"Failed to fetch receipt of {tx_hash}: {e}")
            else:
                if response.get("error"):
                    logger.warning(f"Failed to fetch receipt of {tx_hash}: {response['error']}")
                elif response.get("result"):
                    return response["result"]

            time.sleep(RECEIPT_POLL_INTERVAL)

        raise TransactionReceiptTimeoutError(tx_hash, attempts=RECEIPT_POLL_ATTEMPTS)


def traced(
    w3: Web3,
    all: bool = False,
    next: Optional[bool] = None,
    failed: bool = True,
    gas: bool = False,
    raw: bool = False,
    full_args: bool = False,
    signatures: Optional[SignaturesCache] = None,
) -> TracerConfig:
    """
    Install ``TracerMiddleware`` as the outermost layer of ``w3``.

    The returned config is also reachable as ``w3.provider.tracer``; flip its
    fields between requests to change the tracing policy. Pre-traces are
    logged at INFO on ``soltrace.middleware``; when that logger has nowhere
    to send them they go to stderr.

    Raises:
        TypeError: ``w3`` is an ``AsyncWeb3``
    """
    if isinstance(w3, AsyncWeb3):
        raise TypeError("traced() supports synchronous Web3 instances only")

    ensure_console_output('middleware')

    tracer = TracerConfig(gas=gas, raw=raw, full_args=full_args, all=all, next=next, failed=failed)
    w3.middleware_onion.inject(TracerMiddleware.build(tracer, signatures=signatures), name="tracer", layer=0)
    w3.provider.tracer = tracer
    return tracer
