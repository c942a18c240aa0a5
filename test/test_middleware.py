import logging
from unittest.mock import MagicMock

import pytest
from web3 import AsyncWeb3, Web3
from web3.providers.base import BaseProvider

from soltrace.core import middleware as middleware_module
from soltrace.core.middleware import RECEIPT_POLL_ATTEMPTS, TracerMiddleware, traced
from soltrace.core.models import TracerConfig
from soltrace.utils.exceptions import ExecutionRevertedTraceError, TransactionReceiptTimeoutError
from soltrace.utils.logging import setup_logging

from trace_helpers import SENDER, USDC, known_signatures, reverting_tree, transfer_input

TX = {"from": SENDER, "to": USDC, "data": transfer_input()}
TX_HASH = "0x" + "12" * 32
REVERT_ERROR = {"code": 3, "message": "execution reverted: X"}


def rpc(result=None, error=None):
    response = {"jsonrpc": "2.0", "id": 1}
    if error is not None:
        response["error"] = error
    else:
        response["result"] = result
    return response


def fail(exc):
    def handler(params):
        raise exc
    return handler


class FakeNode:
    """Downstream make_request answering from per-method handlers."""

    def __init__(self, **handlers):
        self.trace = reverting_tree("X").to_rpc()
        self.handlers = {"debug_traceCall": lambda params: rpc(self.trace)}
        self.handlers.update(handlers)
        self.calls = []

    def __call__(self, method, params):
        self.calls.append((method, params))
        if method not in self.handlers:
            raise AssertionError(f"unexpected request {method}")
        handler = self.handlers[method]
        return handler(params) if callable(handler) else handler

    @property
    def methods(self):
        return [method for method, _ in self.calls]

    def params_of(self, method):
        return [params for called, params in self.calls if called == method]


@pytest.fixture
def sleeps(monkeypatch):
    calls = []
    monkeypatch.setattr(middleware_module.time, "sleep", calls.append)
    return calls


def make_request(node, **policy):
    tracer = TracerConfig(**policy)
    middleware = TracerMiddleware.build(tracer, signatures=known_signatures())(None)
    return middleware.wrap_make_request(node), tracer


class TestPassThrough:
    def test_untraced_methods_are_forwarded(self):
        node = FakeNode(eth_call=rpc("0x01"))
        request, _ = make_request(node, all=True)

        assert request("eth_call", [TX, "latest"]) == rpc("0x01")
        assert node.methods == ["eth_call"]

    def test_successful_estimate(self):
        node = FakeNode(eth_estimateGas=rpc("0x5208"))
        request, _ = make_request(node)

        assert request("eth_estimateGas", [TX]) == rpc("0x5208")
        assert node.methods == ["eth_estimateGas"]


class TestFailures:
    def test_raised_error_is_replaced_by_trace(self):
        cause = RuntimeError("execution reverted")
        node = FakeNode(eth_estimateGas=fail(cause))
        request, _ = make_request(node)

        with pytest.raises(ExecutionRevertedTraceError) as excinfo:
            request("eth_estimateGas", [TX])

        error = excinfo.value
        assert error.__cause__ is cause
        assert error.reason == "X"
        assert error.summary == "Execution reverted with reason: X."
        assert f"({USDC}).transfer(0xf39Fd6e5…2266, 100000000) -> X" in error.trace
        assert str(error).startswith("Execution reverted with reason: X.\n\n")
        assert node.methods == ["eth_estimateGas", "debug_traceCall"]

    def test_error_response_is_replaced_by_trace(self):
        node = FakeNode(eth_estimateGas=rpc(error=REVERT_ERROR))
        request, _ = make_request(node)

        with pytest.raises(ExecutionRevertedTraceError) as excinfo:
            request("eth_estimateGas", [TX])

        assert excinfo.value.details["rpc_error"] == REVERT_ERROR

    def test_trace_request_shape(self):
        overrides = {USDC: {"balance": "0x1"}}
        node = FakeNode(eth_estimateGas=rpc(error=REVERT_ERROR))
        request, _ = make_request(node)

        with pytest.raises(ExecutionRevertedTraceError):
            request("eth_estimateGas", [TX, "0x10", overrides])

        (params,) = node.params_of("debug_traceCall")
        assert params[0] == TX
        assert params[1] == "0x10"
        assert params[2]["tracer"] == "callTracer"
        assert params[2]["tracerConfig"] == {"onlyTopCall": False, "withLog": True}
        assert params[2]["stateOverrides"] == overrides

    def test_failed_disabled_keeps_original_error(self):
        cause = RuntimeError("execution reverted")
        node = FakeNode(eth_estimateGas=fail(cause))
        request, _ = make_request(node, failed=False)

        with pytest.raises(RuntimeError) as excinfo:
            request("eth_estimateGas", [TX])

        assert excinfo.value is cause
        assert node.methods == ["eth_estimateGas"]

    def test_failed_disabled_returns_error_response(self):
        node = FakeNode(eth_estimateGas=rpc(error=REVERT_ERROR))
        request, _ = make_request(node, failed=False)

        assert request("eth_estimateGas", [TX]) == rpc(error=REVERT_ERROR)
        assert "debug_traceCall" not in node.methods

    def test_trace_failure_falls_back_to_original_error(self, caplog):
        cause = RuntimeError("execution reverted")
        node = FakeNode(eth_estimateGas=fail(cause), debug_traceCall=rpc(error={"message": "method not found"}))
        request, _ = make_request(node)

        with caplog.at_level("WARNING", logger="soltrace"):
            with pytest.raises(RuntimeError) as excinfo:
                request("eth_estimateGas", [TX])

        assert excinfo.value is cause
        assert "method not found" in caplog.text

    def test_trace_failure_on_error_response_returns_it(self, caplog):
        node = FakeNode(eth_estimateGas=rpc(error=REVERT_ERROR), debug_traceCall=fail(ConnectionError("reset")))
        request, _ = make_request(node)

        with caplog.at_level("WARNING", logger="soltrace"):
            assert request("eth_estimateGas", [TX]) == rpc(error=REVERT_ERROR)

        assert "Failed to trace transaction" in caplog.text


class TestPolicy:
    def test_next_true_pre_traces_once(self, caplog):
        node = FakeNode(eth_estimateGas=rpc("0x5208"))
        request, tracer = make_request(node, failed=False, next=True)

        with caplog.at_level("INFO", logger="soltrace"):
            request("eth_estimateGas", [TX])

        assert node.methods == ["debug_traceCall", "eth_estimateGas"]
        assert "DELEGATECALL" in caplog.text
        assert tracer.next is None

        request("eth_estimateGas", [TX])
        assert node.methods[2:] == ["eth_estimateGas"]

    def test_next_true_traces_failures_when_failed_disabled(self):
        node = FakeNode(eth_estimateGas=rpc(error=REVERT_ERROR))
        request, tracer = make_request(node, failed=False, next=True)

        with pytest.raises(ExecutionRevertedTraceError):
            request("eth_estimateGas", [TX])

        assert tracer.next is None

    def test_next_false_suppresses_once(self):
        node = FakeNode(eth_estimateGas=rpc(error=REVERT_ERROR))
        request, tracer = make_request(node, all=True, next=False)

        assert request("eth_estimateGas", [TX]) == rpc(error=REVERT_ERROR)
        assert node.methods == ["eth_estimateGas"]
        assert tracer.next is None

        with pytest.raises(ExecutionRevertedTraceError):
            request("eth_estimateGas", [TX])

    def test_next_is_reset_when_request_raises(self):
        node = FakeNode(eth_estimateGas=fail(RuntimeError("boom")))
        request, tracer = make_request(node, failed=False, next=False)

        with pytest.raises(RuntimeError):
            request("eth_estimateGas", [TX])

        assert tracer.next is None

    def test_all_pre_traces_every_request(self, caplog):
        node = FakeNode(eth_estimateGas=rpc("0x5208"))
        request, _ = make_request(node, all=True)

        with caplog.at_level("INFO", logger="soltrace"):
            request("eth_estimateGas", [TX])
            request("eth_estimateGas", [TX])

        assert node.methods == ["debug_traceCall", "eth_estimateGas"] * 2

    def test_pre_trace_failure_does_not_block_request(self, caplog):
        node = FakeNode(eth_estimateGas=rpc("0x5208"), debug_traceCall=rpc(None))
        request, _ = make_request(node, all=True)

        with caplog.at_level("WARNING", logger="soltrace"):
            assert request("eth_estimateGas", [TX]) == rpc("0x5208")

        assert "empty trace result" in caplog.text

    def test_policy_changes_between_requests(self):
        node = FakeNode(eth_estimateGas=rpc(error=REVERT_ERROR))
        request, tracer = make_request(node, failed=False)

        assert request("eth_estimateGas", [TX]) == rpc(error=REVERT_ERROR)

        tracer.failed = True
        with pytest.raises(ExecutionRevertedTraceError):
            request("eth_estimateGas", [TX])


class TestReceipts:
    def test_waits_for_receipt(self, sleeps):
        receipts = iter([rpc(None), rpc(None), rpc({"status": "0x1"})])
        node = FakeNode(eth_sendTransaction=rpc(TX_HASH), eth_getTransactionReceipt=lambda params: next(receipts))
        request, _ = make_request(node)

        assert request("eth_sendTransaction", [TX]) == rpc(TX_HASH)
        assert node.params_of("eth_getTransactionReceipt") == [[TX_HASH]] * 3
        assert len(sleeps) == 2

    def test_reverted_receipt_is_traced(self, sleeps):
        node = FakeNode(eth_sendTransaction=rpc(TX_HASH), eth_getTransactionReceipt=rpc({"status": "0x0"}))
        request, _ = make_request(node)

        with pytest.raises(ExecutionRevertedTraceError) as excinfo:
            request("eth_sendTransaction", [TX])

        assert excinfo.value.__cause__ is None
        assert node.methods == ["eth_sendTransaction", "eth_getTransactionReceipt", "debug_traceCall"]

    def test_reverted_receipt_with_integer_status(self, sleeps):
        node = FakeNode(wallet_sendTransaction=rpc(TX_HASH), eth_getTransactionReceipt=rpc({"status": 0}))
        request, _ = make_request(node)

        with pytest.raises(ExecutionRevertedTraceError):
            request("wallet_sendTransaction", [TX])

    def test_reverted_receipt_untraced_when_failed_disabled(self, sleeps):
        node = FakeNode(eth_sendTransaction=rpc(TX_HASH), eth_getTransactionReceipt=rpc({"status": "0x0"}))
        request, _ = make_request(node, failed=False)

        assert request("eth_sendTransaction", [TX]) == rpc(TX_HASH)
        assert "debug_traceCall" not in node.methods

    def test_receipt_timeout(self, sleeps):
        node = FakeNode(eth_sendTransaction=rpc(TX_HASH), eth_getTransactionReceipt=rpc(None))
        request, _ = make_request(node)

        with pytest.raises(TransactionReceiptTimeoutError) as excinfo:
            request("eth_sendTransaction", [TX])

        assert excinfo.value.tx_hash == TX_HASH
        assert RECEIPT_POLL_ATTEMPTS == 720
        assert len(node.params_of("eth_getTransactionReceipt")) == 720
        assert len(sleeps) == 720
        assert TX_HASH in str(excinfo.value)

    def test_receipt_poll_errors_are_retried(self, sleeps, caplog):
        responses = iter([
            ConnectionError("reset"),
            rpc(error={"code": -32000, "message": "busy"}),
            rpc({"status": "0x1"}),
        ])

        def receipt(params):
            response = next(responses)
            if isinstance(response, Exception):
                raise response
            return response

        node = FakeNode(eth_sendTransaction=rpc(TX_HASH), eth_getTransactionReceipt=receipt)
        request, _ = make_request(node)

        with caplog.at_level("WARNING", logger="soltrace"):
            assert request("eth_sendTransaction", [TX]) == rpc(TX_HASH)

        assert "reset" in caplog.text
        assert "busy" in caplog.text
        assert len(sleeps) == 2


class FakeProvider(BaseProvider):
    def __init__(self, node):
        super().__init__()
        self.node = node

    def make_request(self, method, params):
        return self.node(method, params)


class TestTraced:
    def test_installs_outermost_middleware(self):
        node = FakeNode(eth_chainId=rpc("0x1"), eth_estimateGas=rpc(error=REVERT_ERROR))
        w3 = Web3(FakeProvider(node))

        tracer = traced(w3, gas=True, signatures=known_signatures())

        assert w3.provider.tracer is tracer
        assert tracer.gas and tracer.failed and tracer.next is None
        assert "tracer" in w3.middleware_onion

        with pytest.raises(ExecutionRevertedTraceError) as excinfo:
            w3.eth.estimate_gas({"from": Web3.to_checksum_address(SENDER), "to": Web3.to_checksum_address(USDC)})

        assert "[ 34,265 / 29,978,404 ]" in excinfo.value.trace

    def test_pre_trace_reaches_stderr_without_logging_setup(self, capsys):
        traced(MagicMock(), signatures=known_signatures())
        node = FakeNode(eth_estimateGas=rpc("0x5208"))
        request, _ = make_request(node, next=True)

        assert request("eth_estimateGas", [TX]) == rpc("0x5208")

        err = capsys.readouterr().err
        assert f"({USDC}).transfer(0xf39Fd6e5…2266, 100000000) -> X" in err

    def test_configured_logging_is_left_alone(self):
        setup_logging(level=logging.INFO)
        traced(MagicMock())

        assert logging.getLogger("soltrace.middleware").handlers == []

    def test_rejects_async_web3(self):
        w3 = MagicMock(spec=AsyncWeb3)

        with pytest.raises(TypeError):
            traced(w3)

        w3.middleware_onion.inject.assert_not_called()
