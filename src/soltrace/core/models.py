"""
Data model for callTracer results.

A ``debug_traceCall`` request with ``{"tracer": "callTracer",
"tracerConfig": {"withLog": true}}`` returns a tree of call frames. The
classes here give that tree a typed shape; they hold no rendering or
resolution logic.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from eth_utils import to_hex
from hexbytes import HexBytes

from soltrace.core.abi import decode_revert_reason


class CallType(str, Enum):
    """EVM call kinds reported by callTracer."""
    CALL = "CALL"
    CALLCODE = "CALLCODE"
    DELEGATECALL = "DELEGATECALL"
    STATICCALL = "STATICCALL"
    CREATE = "CREATE"
    CREATE2 = "CREATE2"
    SELFDESTRUCT = "SELFDESTRUCT"


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith(('0x', '0X')) else int(value)
    raise TypeError(f"Cannot convert {value!r} to int")


def _to_hex_str(value: Any) -> Optional[str]:
    """Normalize bytes / HexBytes / hex strings to a lowercase 0x-prefixed string."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return '0x' + bytes(value).hex()
    value = str(value)
    if not value.startswith(('0x', '0X')):
        value = '0x' + value
    return '0x' + value[2:].lower()


@dataclass
class LogEntry:
    """An event emitted directly by a call frame."""
    topics: List[str] = field(default_factory=list)
    data: str = "0x"
    address: Optional[str] = None

    @property
    def selector(self) -> Optional[str]:
        """Event topic hash (``topics[0]``), if any."""
        return self.topics[0] if self.topics else None

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "LogEntry":
        return cls(
            topics=[_to_hex_str(topic) for topic in (raw.get('topics') or [])],
            data=_to_hex_str(raw.get('data')) or "0x",
            address=_to_hex_str(raw.get('address')),
        )

    def to_rpc(self) -> Dict[str, Any]:
        raw: Dict[str, Any] = {}
        if self.address is not None:
            raw['address'] = self.address
        raw['topics'] = list(self.topics)
        raw['data'] = self.data
        return raw


@dataclass
class CallFrame:
    """One node of a call tree."""
    type: str
    from_: str
    to: Optional[str]
    input: str = "0x"
    output: Optional[str] = None
    value: int = 0
    gas: Optional[int] = None
    gas_used: Optional[int] = None
    error: Optional[str] = None
    revert_reason: Optional[str] = None
    logs: List[LogEntry] = field(default_factory=list)
    calls: List["CallFrame"] = field(default_factory=list)

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "CallFrame":
        """Build a frame tree from a raw callTracer result."""
        return cls(
            type=str(raw.get('type') or CallType.CALL.value).upper(),
            from_=_to_hex_str(raw.get('from')),
            to=_to_hex_str(raw.get('to')),
            input=_to_hex_str(raw.get('input')) or "0x",
            output=_to_hex_str(raw.get('output')),
            value=_to_int(raw.get('value')) or 0,
            gas=_to_int(raw.get('gas')),
            gas_used=_to_int(raw.get('gasUsed')),
            error=raw.get('error'),
            revert_reason=raw.get('revertReason'),
            logs=[LogEntry.from_rpc(log) for log in (raw.get('logs') or [])],
            calls=[cls.from_rpc(call) for call in (raw.get('calls') or [])],
        )

    def to_rpc(self) -> Dict[str, Any]:
        """Serialize back to the callTracer wire shape."""
        raw: Dict[str, Any] = {'from': self.from_}
        if self.gas is not None:
            raw['gas'] = to_hex(self.gas)
        if self.gas_used is not None:
            raw['gasUsed'] = to_hex(self.gas_used)
        if self.to is not None:
            raw['to'] = self.to
        raw['input'] = self.input
        if self.output is not None:
            raw['output'] = self.output
        if self.error is not None:
            raw['error'] = self.error
        if self.revert_reason is not None:
            raw['revertReason'] = self.revert_reason
        if self.logs:
            raw['logs'] = [log.to_rpc() for log in self.logs]
        if self.calls:
            raw['calls'] = [call.to_rpc() for call in self.calls]
        raw['value'] = to_hex(self.value)
        raw['type'] = self.type
        return raw

    @property
    def selector(self) -> Optional[str]:
        """Leading 4 bytes of the call input, or None for plain transfers."""
        data = HexBytes(self.input or "0x")
        if len(data) < 4:
            return None
        return '0x' + bytes(data[:4]).hex()

    @property
    def failed(self) -> bool:
        return bool(self.error or self.revert_reason)

    @property
    def reason(self) -> Optional[str]:
        """Best available failure description for this frame."""
        if self.revert_reason:
            return self.revert_reason
        if not self.failed:
            return None
        return decode_revert_reason(self.output) or self.error

    def walk(self) -> Iterator["CallFrame"]:
        """Yield this frame and its descendants depth-first, pre-order."""
        stack = [self]
        while stack:
            frame = stack.pop()
            yield frame
            stack.extend(reversed(frame.calls))


@dataclass
class TraceFormatConfig:
    """Rendering options for a call trace."""
    gas: bool = False  # show gasUsed / gas per frame
    raw: bool = False  # dump each frame as JSON under its line
    full_args: bool = False  # disable eliding of addresses, hex blobs and max-int constants


@dataclass
class TracerConfig(TraceFormatConfig):
    """
    Mutable tracing policy attached to a traced provider.

    ``next`` is tri-state: None defers to ``all`` / ``failed``, True forces
    tracing of the next intercepted request, False suppresses it. It is
    cleared after every intercepted request.
    """
    all: bool = False
    next: Optional[bool] = None
    failed: bool = True
