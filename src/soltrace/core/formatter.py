"""
Call trace rendering.

Turns a ``CallFrame`` tree into an indented, colorized text tree:

    0 ↳ FROM 0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266
    0 ↳ CALL (0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48).transfer(0xf39Fd6e5…2266, 100000000) -> true
      1 ↳ DELEGATECALL (0x43506849d7c04f9138d1a2050bbf3a0c054402dd).transfer(0xf39Fd6e5…2266, 100000000) -> true
        2 ↳ LOG Transfer(0xf39Fd6e5…2266, 0xf39Fd6e5…2266, 100000000)

Everything except ``format_full_trace`` is a pure function of its inputs.
"""

import json
from typing import Any, List, Optional

import requests
from eth_utils import from_wei, is_hex_address, to_checksum_address

from soltrace.core.abi import (
    DECODE_ERRORS,
    decode_event,
    decode_function_input,
    decode_output,
)
from soltrace.core.models import CallFrame, LogEntry, TraceFormatConfig
from soltrace.core.signatures import PathLike, SignaturesCache, resolve_signatures
from soltrace.utils.colors import bold, cyan, dim, green, grey, magenta, red, white, yellow

ZERO_HASH = '0x' + '00' * 32

# Sequences longer than this are printed one element per line
ARRAY_WRAP_THRESHOLD = 5


def get_indent_level(level: int, index: bool = False) -> str:
    """Indentation for a line at the given depth, with the ``<depth> ↳`` marker if requested."""
    return f"{'  ' * (level - 1)}{cyan(f'{level - 1} ↳ ') if index else '    '}"


def format_address(address: str) -> str:
    """Checksum an address and elide it to its first 4 and last 2 bytes."""
    address = to_checksum_address(address)
    return f"{address[:10]}…{address[-4:]}"


def format_hex(value: str) -> str:
    """Elide hex blobs longer than 8 bytes to their first 4 and last byte."""
    if value.lower() == ZERO_HASH:
        return "bytes(0)"

    size = (len(value) - 2) // 2
    if size > 8:
        return f"{value[:10]}…{value[-2:]}"
    return value


def format_int(value: int) -> str:
    """Render ``2 ** n - 1`` constants symbolically for n in [32, 256], else the exact decimal."""
    value = int(value)
    if value > 0 and value & (value + 1) == 0:
        bits = value.bit_length()
        if 32 <= bits <= 256:
            return f"2 ** {bits} - 1"
    return str(value)


def format_ether(value: int) -> str:
    """Exact decimal ether amount of a wei value."""
    return format(from_wei(value, 'ether'), 'f')


def _is_hex_string(value: str) -> bool:
    if not value.startswith(('0x', '0X')):
        return False
    try:
        int(value[2:] or '0', 16)
    except ValueError:
        return False
    return True


def format_arg(arg: Any, level: int, config: TraceFormatConfig) -> str:
    """Format one decoded argument according to its shape."""
    if isinstance(arg, (list, tuple)):
        length = len(arg)
        wrap_lines = length > ARRAY_WRAP_THRESHOLD or any(isinstance(item, (list, tuple)) for item in arg)

        parts = []
        for i, item in enumerate(arg):
            prefix = f"\n{get_indent_level(level + 1)}" if wrap_lines else ""
            separator = "," if i != length - 1 or wrap_lines else ""
            parts.append(f"{prefix}{grey(format_arg(item, level + 1, config))}{separator}")

        if not wrap_lines:
            return f"[{' '.join(parts)}]"

        body = "".join(parts)
        if body:
            body += "\n"
        return f"[{body}{get_indent_level(level)}]"

    if isinstance(arg, dict):
        body = "".join(
            f"\n{get_indent_level(level + 1)}{key}: {grey(format_arg(value, level + 1, config))},"
            for key, value in arg.items()
        )
        if body:
            body += "\n"
        return "{" + body + get_indent_level(level) + "}"

    if arg is None:
        return ""

    if isinstance(arg, bool):
        return grey("true" if arg else "false")

    if isinstance(arg, (bytes, bytearray)):
        value = '0x' + bytes(arg).hex()
        return grey(value if config.full_args else format_hex(value))

    if isinstance(arg, str):
        if not _is_hex_string(arg):
            return grey(arg)
        if is_hex_address(arg):
            return grey(to_checksum_address(arg) if config.full_args else format_address(arg))
        if not config.full_args and len(arg) % 2 == 0:
            return grey(format_hex(arg))
        return grey(arg)

    if isinstance(arg, int):
        return grey(str(arg) if config.full_args else format_int(arg))

    return grey(str(arg))


def _format_gas(value: Optional[int]) -> str:
    return f"{value:,}" if value is not None else "?"


def _decode_call(frame: CallFrame, signatures: SignaturesCache):
    """Function name and arguments of a frame, or (None, None) when unresolved."""
    selector = frame.selector
    signature = signatures.functions.get(selector) if selector else None
    if not signature:
        return None, None

    try:
        return decode_function_input(signature, frame.input)
    except DECODE_ERRORS:
        return None, None


def format_call_signature(
    frame: CallFrame,
    config: TraceFormatConfig,
    level: int,
    signatures: SignaturesCache,
) -> str:
    """Render ``name{ value }[ gas ](args) -> result`` for a frame."""
    function_name, args = _decode_call(frame, signatures)
    reason = frame.reason

    if function_name is None:
        head = frame.input
        formatted_args = None
    else:
        head = bold((red if frame.failed else green)(function_name))
        formatted_args = ", ".join(format_arg(arg, level, config) for arg in args)

    value_suffix = grey(f"{{ {white(format_ether(frame.value))} ETH }}") if frame.value else ""

    gas_suffix = ""
    if config.gas:
        gas_suffix = grey(
            f"[ {dim(magenta(_format_gas(frame.gas_used)))} / {dim(magenta(_format_gas(frame.gas)))} ]"
        )

    return_value: Optional[str]
    if frame.failed:
        return_value = reason
    else:
        return_value = frame.output if frame.output not in (None, "0x") else None
        if function_name is not None and return_value:
            outputs = decode_output(function_name, frame.output)
            if outputs is not None:
                return_value = ", ".join(format_arg(output, level, config) for output in outputs)

    return_suffix = (red if frame.failed else grey)(f" -> {return_value}") if return_value else ""
    call_args = f"({formatted_args})" if formatted_args is not None else ""

    return f"{head}{value_suffix}{gas_suffix}{call_args}{return_suffix}"


def _raw_log_hex(log: LogEntry) -> str:
    return '0x' + ''.join(topic[2:] for topic in log.topics) + (log.data or '0x')[2:]


def format_call_log(
    log: LogEntry,
    level: int,
    signatures: SignaturesCache,
    config: TraceFormatConfig,
) -> str:
    """Render one log line beneath the frame at ``level``."""
    prefix = f"{get_indent_level(level + 1, True)}{yellow('LOG')} "

    selector = log.selector
    signature = signatures.events.get(selector) if selector else None
    if signature:
        try:
            event_name, args = decode_event(signature, log.topics, log.data)
        except DECODE_ERRORS:
            pass
        else:
            formatted_args = ", ".join(format_arg(arg, level, config) for arg in args)
            return f"{prefix}{event_name}({formatted_args})"

    return f"{prefix}{grey(_raw_log_hex(log))}"


def format_call_trace(
    frame: CallFrame,
    config: Optional[TraceFormatConfig] = None,
    signatures: Optional[SignaturesCache] = None,
    level: int = 1,
) -> str:
    """Render a call tree using only the signatures already in ``signatures``."""
    config = config or TraceFormatConfig()
    signatures = signatures if signatures is not None else SignaturesCache()

    indent_level = get_indent_level(level, True)
    lines: List[str] = []

    if level == 1:
        lines.append(f"{indent_level}{cyan('FROM')} {grey(frame.from_)}")

    target = grey("self") if frame.from_ == frame.to else f"({white(frame.to or '')})"
    lines.append(
        f"{indent_level}{yellow(frame.type)} {target}.{format_call_signature(frame, config, level, signatures)}"
    )
    lines.extend(format_call_log(log, level, signatures, config) for log in frame.logs)

    if config.raw:
        lines.append(grey(json.dumps(frame.to_rpc(), separators=(',', ':'))))

    lines.extend(format_call_trace(call, config, signatures, level + 1) for call in frame.calls)

    return "\n".join(lines)


def format_full_trace(
    frame: CallFrame,
    config: Optional[TraceFormatConfig] = None,
    signatures: Optional[SignaturesCache] = None,
    lookup: bool = True,
    persist: bool = True,
    path: Optional[PathLike] = None,
    session: Optional[requests.Session] = None,
) -> str:
    """
    Resolve unknown signatures of a call tree, then render it.

    Loads the on-disk cache when no ``signatures`` are given. With
    ``lookup=False`` nothing leaves the process.
    """
    if signatures is None:
        signatures = SignaturesCache.load()

    if lookup:
        resolve_signatures(frame, signatures, persist=persist, path=path, session=session)

    return white(format_call_trace(frame, config, signatures))
