"""
Signatures command implementation.

Resolves 4-byte function selectors and 32-byte event topics through the
local cache and the signature database.
"""

import json
from typing import Dict, List, Optional

from soltrace.core.signatures import lookup_signatures, merge_signatures
from soltrace.utils.colors import dim, warning
from soltrace.utils.exceptions import SignatureLookupError
from soltrace.utils.logging import logger
from soltrace.cli.common import handle_command_error, load_signatures


def signatures_command(args) -> int:
    """
    Execute the signatures command.

    Returns:
        Exit code (0 when every selector resolved, 1 otherwise)
    """
    json_mode = getattr(args, 'json', False)
    signatures = load_signatures(args)

    try:
        functions, events = _split_selectors(args.selectors)
    except ValueError as e:
        return handle_command_error(e, json_mode)

    unknown_functions = [s for s in functions if s not in signatures.functions]
    unknown_events = [t for t in events if t not in signatures.events]

    if (unknown_functions or unknown_events) and not getattr(args, 'no_lookup', False):
        try:
            result = lookup_signatures(unknown_functions, unknown_events)
        except SignatureLookupError as e:
            logger.warning(e.message)
        else:
            merge_signatures(signatures, result)
            signatures.save(getattr(args, 'cache', None))

    resolved: Dict[str, Optional[str]] = {}
    for selector in functions:
        resolved[selector] = signatures.functions.get(selector)
    for topic in events:
        resolved[topic] = signatures.events.get(topic)

    if json_mode:
        print(json.dumps(resolved, indent=2))
    else:
        for selector, signature in resolved.items():
            print(f"{dim(selector)} {signature if signature else warning('unknown')}")

    return 0 if all(resolved.values()) else 1


def _split_selectors(selectors: List[str]):
    """Sort raw arguments into 4-byte selectors and 32-byte topics."""
    functions: List[str] = []
    events: List[str] = []
    for selector in selectors:
        value = selector.lower()
        if not value.startswith('0x'):
            value = '0x' + value
        if len(value) == 10:
            functions.append(value)
        elif len(value) == 66:
            events.append(value)
        else:
            raise ValueError(f"Not a 4-byte selector or 32-byte topic: {selector}")
    return functions, events
