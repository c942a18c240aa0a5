"""
ABI decoding helpers for call traces.

Signatures coming from the signature database are human-readable and
canonical (``transfer(address,uint256)``) with no parameter names and no
``indexed`` markers, so everything here decodes positionally with eth_abi.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import decode
from eth_abi.exceptions import DecodingError, ParseError as ABIGrammarError
from eth_abi.grammar import TupleType, parse
from eth_utils.abi import collapse_if_tuple
from hexbytes import HexBytes

from soltrace.utils.exceptions import ABIParseError

# Anything eth_abi may raise on a stale or mismatching signature
DECODE_ERRORS = (DecodingError, ABIGrammarError, ABIParseError, ValueError, TypeError, OverflowError)

ERROR_STRING_SELECTOR = '0x08c379a0'
PANIC_SELECTOR = '0x4e487b71'

PANIC_CODES = {
    0x00: "generic compiler panic",
    0x01: "assert(false)",
    0x11: "arithmetic underflow or overflow",
    0x12: "division or modulo by zero",
    0x21: "invalid enum value",
    0x22: "invalid storage byte array encoding",
    0x31: "pop() on empty array",
    0x32: "array index out of bounds",
    0x41: "out of memory",
    0x51: "call to zero-initialized internal function",
}


def _param(type_str: str, name: str = "", components: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    param: Dict[str, Any] = {"name": name, "type": type_str}
    if components is not None:
        param["components"] = components
    return param


_MULTICALL_RESULT = [_param("bool", "success"), _param("bytes", "returnData")]

# Function outputs of well-known interfaces, looked up by function name.
# Earlier interfaces win on name clashes: ERC-20, ERC-721, ERC-1155, ERC-4626, Multicall3.
STANDARD_FUNCTION_OUTPUTS: Dict[str, List[Dict[str, Any]]] = {}

_STANDARD_INTERFACES: List[Dict[str, List[Dict[str, Any]]]] = [
    # ERC-20
    {
        "allowance": [_param("uint256")],
        "approve": [_param("bool")],
        "balanceOf": [_param("uint256")],
        "decimals": [_param("uint8")],
        "name": [_param("string")],
        "symbol": [_param("string")],
        "totalSupply": [_param("uint256")],
        "transfer": [_param("bool")],
        "transferFrom": [_param("bool")],
    },
    # ERC-721
    {
        "getApproved": [_param("address")],
        "isApprovedForAll": [_param("bool")],
        "ownerOf": [_param("address", "owner")],
        "tokenURI": [_param("string")],
        "safeTransferFrom": [],
        "setApprovalForAll": [],
    },
    # ERC-1155
    {
        "balanceOfBatch": [_param("uint256[]")],
        "uri": [_param("string")],
        "safeBatchTransferFrom": [],
    },
    # ERC-4626
    {
        "asset": [_param("address", "assetTokenAddress")],
        "convertToAssets": [_param("uint256", "assets")],
        "convertToShares": [_param("uint256", "shares")],
        "deposit": [_param("uint256", "shares")],
        "maxDeposit": [_param("uint256", "maxAssets")],
        "maxMint": [_param("uint256", "maxShares")],
        "maxRedeem": [_param("uint256", "maxShares")],
        "maxWithdraw": [_param("uint256", "maxAssets")],
        "mint": [_param("uint256", "assets")],
        "previewDeposit": [_param("uint256", "shares")],
        "previewMint": [_param("uint256", "assets")],
        "previewRedeem": [_param("uint256", "assets")],
        "previewWithdraw": [_param("uint256", "shares")],
        "redeem": [_param("uint256", "assets")],
        "totalAssets": [_param("uint256", "totalManagedAssets")],
        "withdraw": [_param("uint256", "shares")],
    },
    # Multicall3
    {
        "aggregate": [_param("uint256", "blockNumber"), _param("bytes[]", "returnData")],
        "aggregate3": [_param("tuple[]", "returnData", _MULTICALL_RESULT)],
        "aggregate3Value": [_param("tuple[]", "returnData", _MULTICALL_RESULT)],
        "blockAndAggregate": [
            _param("uint256", "blockNumber"),
            _param("bytes32", "blockHash"),
            _param("tuple[]", "returnData", _MULTICALL_RESULT),
        ],
        "getBasefee": [_param("uint256", "basefee")],
        "getBlockHash": [_param("bytes32", "blockHash")],
        "getBlockNumber": [_param("uint256", "blockNumber")],
        "getChainId": [_param("uint256", "chainid")],
        "getCurrentBlockCoinbase": [_param("address", "coinbase")],
        "getCurrentBlockDifficulty": [_param("uint256", "difficulty")],
        "getCurrentBlockGasLimit": [_param("uint256", "gaslimit")],
        "getCurrentBlockTimestamp": [_param("uint256", "timestamp")],
        "getEthBalance": [_param("uint256", "balance")],
        "getLastBlockHash": [_param("bytes32", "blockHash")],
        "tryAggregate": [_param("tuple[]", "returnData", _MULTICALL_RESULT)],
        "tryBlockAndAggregate": [
            _param("uint256", "blockNumber"),
            _param("bytes32", "blockHash"),
            _param("tuple[]", "returnData", _MULTICALL_RESULT),
        ],
    },
]

for _interface in _STANDARD_INTERFACES:
    for _name, _outputs in _interface.items():
        STANDARD_FUNCTION_OUTPUTS.setdefault(_name, _outputs)


def parse_signature(signature: str) -> Tuple[str, List[str]]:
    """
    Split a human-readable signature into its name and parameter types.

    >>> parse_signature("transfer(address,uint256)")
    ('transfer', ['address', 'uint256'])
    """
    signature = signature.strip()
    paren = signature.find('(')
    if paren <= 0 or not signature.endswith(')'):
        raise ABIParseError(f"Invalid signature: {signature}", source=signature)

    name = signature[:paren]
    try:
        parsed = parse(signature[paren:])
    except ABIGrammarError as e:
        raise ABIParseError(f"Invalid signature: {signature}", source=signature, reason=str(e))

    if not isinstance(parsed, TupleType) or parsed.arrlist:
        raise ABIParseError(f"Invalid signature: {signature}", source=signature)

    return name, [component.to_type_str() for component in parsed.components]


def signature_name(signature: str) -> str:
    return signature.split('(', 1)[0]


def decode_function_input(signature: str, data: str) -> Tuple[str, Tuple[Any, ...]]:
    """Decode call input (selector included) against a function signature."""
    name, types = parse_signature(signature)
    payload = bytes(HexBytes(data))[4:]
    return name, decode(types, payload)


def decode_event(signature: str, topics: Sequence[str], data: str) -> Tuple[str, Tuple[Any, ...]]:
    """
    Decode a log against an event signature.

    Looked-up signatures do not say which parameters are indexed, so the
    indexed topics and the data payload are decoded as one contiguous
    parameter block.
    """
    name, types = parse_signature(signature)
    payload = b''.join(bytes(HexBytes(topic)) for topic in topics[1:]) + bytes(HexBytes(data or '0x'))
    return name, decode(types, payload)


def _name_values(param: Dict[str, Any], value: Any) -> Any:
    """Turn decoded tuples with named components into dicts."""
    type_str = param["type"]
    if not type_str.startswith("tuple"):
        return value

    if type_str.endswith(']'):
        element = dict(param, type=type_str[:type_str.rindex('[')])
        return [_name_values(element, item) for item in value]

    components = param.get("components", [])
    if components and all(component.get("name") for component in components):
        return {
            component["name"]: _name_values(component, item)
            for component, item in zip(components, value)
        }
    return tuple(_name_values(component, item) for component, item in zip(components, value))


def decode_output(function_name: str, output: Optional[str]) -> Optional[List[Any]]:
    """
    Decode return data using the standard interface with a matching function name.

    Returns None when no standard interface declares the function or the
    data does not decode.
    """
    outputs = STANDARD_FUNCTION_OUTPUTS.get(function_name)
    if outputs is None or not output:
        return None

    try:
        values = decode([collapse_if_tuple(param) for param in outputs], bytes(HexBytes(output)))
    except DECODE_ERRORS:
        return None

    return [_name_values(param, value) for param, value in zip(outputs, values)]


def decode_revert_reason(output: Optional[str]) -> Optional[str]:
    """Extract the message of an ``Error(string)`` or ``Panic(uint256)`` payload."""
    if not output:
        return None

    data = bytes(HexBytes(output))
    selector = '0x' + data[:4].hex()
    try:
        if selector == ERROR_STRING_SELECTOR:
            (message,) = decode(['string'], data[4:])
            return message
        if selector == PANIC_SELECTOR:
            (code,) = decode(['uint256'], data[4:])
            description = PANIC_CODES.get(code, "unknown panic code")
            return f"panic: {description} ({hex(code)})"
    except DECODE_ERRORS:
        return None
    return None
