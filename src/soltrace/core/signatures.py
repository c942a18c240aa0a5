"""
Function and event signature resolution.

Selectors and topics found in a call tree are resolved against a local
cache shared with Foundry (``~/.foundry/cache/signatures``) and, for the
ones still unknown, against the OpenChain signature database in one
batched request. The cache is advisory: losing it, failing to read it or
failing to write it only means more lookups later.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import requests
from eth_utils import event_signature_to_log_topic, function_signature_to_4byte_selector

from soltrace.core.models import CallFrame
from soltrace.utils.exceptions import SignatureLookupError
from soltrace.utils.logging import get_logger

logger = get_logger('signatures')

SIGNATURE_LOOKUP_URL = "https://api.openchain.xyz/signature-database/v1/lookup"
SIGNATURE_LOOKUP_TIMEOUT = 10

PathLike = Union[str, Path]


def get_signatures_cache_path() -> Path:
    """Location of the signatures cache shared with Foundry."""
    return Path.home() / ".foundry" / "cache" / "signatures"


@dataclass
class SignaturesCache:
    """Selector -> function signature and topic -> event signature mappings."""
    events: Dict[str, str] = field(default_factory=dict)
    functions: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Optional[PathLike] = None) -> "SignaturesCache":
        """Load the cache from disk; a missing or corrupt file yields an empty cache."""
        path = Path(path) if path else get_signatures_cache_path()
        try:
            raw = json.loads(path.read_text(encoding="utf8"))
        except (OSError, ValueError) as e:
            logger.debug(f"Signatures cache not loaded from {path}: {e}")
            return cls()

        if not isinstance(raw, dict):
            return cls()

        return cls(
            events=_normalize_keys(raw.get("events")),
            functions=_normalize_keys(raw.get("functions")),
        )

    def save(self, path: Optional[PathLike] = None) -> bool:
        """
        Persist the cache, creating the directory on demand.

        Best-effort: write failures are logged and reported through the
        return value, never raised. Concurrent writers simply overwrite
        each other.
        """
        path = Path(path) if path else get_signatures_cache_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(self.to_dict()), encoding="utf8")
        except OSError as e:
            logger.debug(f"Could not persist signatures cache to {path}: {e}")
            return False
        return True

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {"events": dict(self.events), "functions": dict(self.functions)}


def _normalize_keys(mapping: Any) -> Dict[str, str]:
    if not isinstance(mapping, dict):
        return {}
    return {
        str(key).lower(): value
        for key, value in mapping.items()
        if isinstance(value, str) and value
    }


def collect_unknown_selectors(frame: CallFrame, signatures: SignaturesCache) -> Tuple[List[str], List[str]]:
    """
    Collect function selectors and event topics missing from the cache.

    Both lists are de-duplicated and keep depth-first, first-encounter order.
    """
    functions: Dict[str, None] = {}
    events: Dict[str, None] = {}

    for call in frame.walk():
        selector = call.selector
        if selector and selector not in signatures.functions:
            functions.setdefault(selector)

        for log in call.logs:
            topic = log.selector
            if topic and topic not in signatures.events:
                events.setdefault(topic)

    return list(functions), list(events)


def lookup_signatures(
    functions: List[str],
    events: List[str],
    session: Optional[requests.Session] = None,
    timeout: float = SIGNATURE_LOOKUP_TIMEOUT,
) -> Dict[str, Any]:
    """
    Query the signature database for the given selectors and topics.

    Returns the ``result`` member of the response:
    ``{"function": {selector: [{"name", "filtered"}]}, "event": {...}}``.

    Raises:
        SignatureLookupError: network failure, bad status or ``ok: false``
    """
    params = {"filter": "false"}
    if functions:
        params["function"] = ",".join(functions)
    if events:
        params["event"] = ",".join(events)

    http = session or requests
    try:
        response = http.get(SIGNATURE_LOOKUP_URL, params=params, timeout=timeout)
        response.raise_for_status()
        lookup = response.json()
    except (requests.RequestException, ValueError) as e:
        raise SignatureLookupError(f"Signature lookup failed: {e}", url=SIGNATURE_LOOKUP_URL)

    if not isinstance(lookup, dict) or not lookup.get("ok"):
        reason = lookup.get("error") if isinstance(lookup, dict) else None
        raise SignatureLookupError(
            f"Signature lookup returned an error: {reason or 'unknown error'}",
            url=SIGNATURE_LOOKUP_URL,
        )

    return lookup.get("result") or {}


def _selector_of(signature: str) -> str:
    return '0x' + function_signature_to_4byte_selector(signature).hex()


def _topic_of(signature: str) -> str:
    return '0x' + event_signature_to_log_topic(signature).hex()


def _pick_candidate(candidates: Any, key: str, hasher) -> Optional[str]:
    """First unfiltered candidate whose hash matches the key."""
    for candidate in candidates or []:
        if not isinstance(candidate, dict) or candidate.get("filtered"):
            continue
        name = candidate.get("name")
        if not name:
            continue
        try:
            if hasher(name) != key:
                continue
        except (TypeError, ValueError):
            continue
        return name
    return None


def merge_signatures(signatures: SignaturesCache, result: Dict[str, Any]) -> SignaturesCache:
    """Merge a lookup result into the cache in place and return it."""
    for selector, candidates in (result.get("function") or {}).items():
        key = selector.lower()
        match = _pick_candidate(candidates, key, _selector_of)
        if match:
            signatures.functions[key] = match

    for topic, candidates in (result.get("event") or {}).items():
        key = topic.lower()
        match = _pick_candidate(candidates, key, _topic_of)
        if match:
            signatures.events[key] = match

    return signatures


def resolve_signatures(
    frame: CallFrame,
    signatures: SignaturesCache,
    persist: bool = True,
    path: Optional[PathLike] = None,
    session: Optional[requests.Session] = None,
) -> SignaturesCache:
    """
    Resolve every unknown selector and topic of a call tree.

    No request is made when the cache already covers the whole tree. A
    failed lookup is logged and leaves the cache untouched.
    """
    functions, events = collect_unknown_selectors(frame, signatures)
    if not functions and not events:
        return signatures

    logger.debug(f"Looking up {len(functions)} function selector(s) and {len(events)} event topic(s)")
    try:
        result = lookup_signatures(functions, events, session=session)
    except SignatureLookupError as e:
        logger.warning(
            f"Failed to fetch signatures for unknown selectors: {','.join(functions + events)}: {e.message}"
        )
        return signatures

    merge_signatures(signatures, result)

    if persist:
        signatures.save(path)

    return signatures
