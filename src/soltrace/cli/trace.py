"""
Trace command implementations.

``call`` traces a call through ``debug_traceCall`` on a live node;
``format`` renders a callTracer result saved as JSON.
"""

import json
import sys
from typing import Any, Dict, Optional

from soltrace.core.actions import trace_call
from soltrace.core.formatter import format_full_trace
from soltrace.core.models import CallFrame
from soltrace.utils.colors import error
from soltrace.utils.exceptions import ParseError, SoltraceError
from soltrace.utils.logging import logger
from soltrace.cli.common import (
    create_web3,
    format_config_from_args,
    handle_command_error,
    load_signatures,
    normalize_address,
    parse_value_arg,
    print_connection_info,
)


def call_command(args) -> int:
    """
    Execute the call command.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    json_mode = getattr(args, 'json', False)

    try:
        transaction = _build_transaction(args)
    except ValueError as e:
        return handle_command_error(e, json_mode)

    print_connection_info(args.rpc, json_mode)

    try:
        w3 = create_web3(args.rpc)
        frame = trace_call(w3, transaction, _parse_block(args.block))
    except SoltraceError as e:
        return handle_command_error(e, json_mode)

    return _print_trace(frame, args, json_mode)


def format_command(args) -> int:
    """
    Execute the format command.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    json_mode = getattr(args, 'json', False)

    try:
        frame = _load_trace_file(args.trace_file)
    except SoltraceError as e:
        return handle_command_error(e, json_mode)

    return _print_trace(frame, args, json_mode)


def _build_transaction(args) -> Dict[str, Any]:
    transaction: Dict[str, Any] = {'to': normalize_address(args.to)}
    if args.from_addr:
        transaction['from'] = normalize_address(args.from_addr)
    if args.data:
        transaction['data'] = args.data if args.data.startswith('0x') else '0x' + args.data
    value = parse_value_arg(args.value)
    if value:
        transaction['value'] = value
    if args.gas_limit:
        transaction['gas'] = args.gas_limit
    return transaction


def _parse_block(block: Optional[str]):
    if not block:
        return "latest"
    if block.isdigit():
        return int(block)
    return block


def _load_trace_file(path: str) -> CallFrame:
    """Read a callTracer result (bare, or wrapped in a JSON-RPC response)."""
    try:
        if path == '-':
            raw = json.load(sys.stdin)
        else:
            with open(path, encoding='utf8') as f:
                raw = json.load(f)
    except OSError as e:
        raise ParseError(f"Cannot read trace file: {e}", source=path)
    except ValueError as e:
        raise ParseError(f"Invalid JSON in trace file: {e}", source=path)

    if isinstance(raw, dict) and 'result' in raw and 'jsonrpc' in raw:
        raw = raw['result']

    if not isinstance(raw, dict):
        raise ParseError("Trace file does not contain a call frame", source=path)

    try:
        return CallFrame.from_rpc(raw)
    except (AttributeError, TypeError, ValueError) as e:
        raise ParseError(f"Malformed call frame: {e}", source=path)


def _print_trace(frame: CallFrame, args, json_mode: bool) -> int:
    if json_mode:
        print(json.dumps(frame.to_rpc(), indent=2))
        return 0

    signatures = load_signatures(args)
    lookup = not getattr(args, 'no_lookup', False)
    logger.debug(
        f"Rendering trace with {len(signatures.functions)} cached functions, "
        f"{len(signatures.events)} cached events (lookup={'on' if lookup else 'off'})"
    )

    rendered = format_full_trace(
        frame,
        format_config_from_args(args),
        signatures,
        lookup=lookup,
        path=getattr(args, 'cache', None),
    )
    print(rendered)

    if frame.failed:
        print(error(f"Call reverted: {frame.reason}"), file=sys.stderr)
        return 1
    return 0
