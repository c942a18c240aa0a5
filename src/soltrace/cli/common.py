"""
Common utilities for CLI commands.

This module provides shared functionality used across multiple CLI commands
to reduce code duplication and ensure consistent behavior.
"""

import logging
import sys
from typing import Any, Optional

from eth_utils import to_checksum_address
from eth_utils.address import is_address
from web3 import HTTPProvider, Web3

from soltrace.core.models import TraceFormatConfig
from soltrace.core.signatures import SignaturesCache
from soltrace.utils.colors import info, set_colors_enabled
from soltrace.utils.exceptions import RPCConnectionError, format_error
from soltrace.utils.logging import logger, setup_logging


def configure_output(args: Any) -> None:
    """Apply --no-color / --debug / --quiet before a command runs."""
    if getattr(args, 'no_color', False):
        set_colors_enabled(False)
    setup_logging(
        level=logging.INFO,
        quiet=getattr(args, 'quiet', False),
        debug=getattr(args, 'debug', False),
        verbose=getattr(args, 'verbose', False),
        use_colors=not getattr(args, 'no_color', False),
    )


def create_web3(rpc_url: str, timeout: int = 30) -> Web3:
    """
    Create a Web3 instance and check that the endpoint answers.

    Raises:
        RPCConnectionError: If connection to RPC fails
    """
    logger.debug(f"Connecting to RPC: {rpc_url}")
    w3 = Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
    try:
        # A real request is more reliable than is_connected()
        w3.eth.chain_id
    except Exception as e:
        raise RPCConnectionError(f"Failed to connect to RPC {rpc_url}: {e}", rpc_url=rpc_url)
    return w3


def normalize_address(address: str) -> str:
    """
    Normalize an Ethereum address to checksum format.

    Raises:
        ValueError: If address is invalid
    """
    if not address:
        raise ValueError("Address cannot be empty")

    if not address.startswith('0x'):
        address = '0x' + address

    if not is_address(address):
        raise ValueError(f"Invalid Ethereum address: {address}")

    return to_checksum_address(address)


def parse_value_arg(value_str: Optional[str]) -> int:
    """
    Parse a value argument given in wei or with an ``ether`` suffix.

    Raises:
        ValueError: If value is invalid
    """
    if not value_str:
        return 0

    try:
        if value_str.endswith('ether'):
            return Web3.to_wei(value_str[:-len('ether')].strip(), 'ether')
        return int(value_str, 0)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid value: {value_str}. Error: {e}")


def format_config_from_args(args: Any) -> TraceFormatConfig:
    return TraceFormatConfig(
        gas=getattr(args, 'gas', False),
        raw=getattr(args, 'raw', False),
        full_args=getattr(args, 'full_args', False),
    )


def load_signatures(args: Any) -> SignaturesCache:
    return SignaturesCache.load(getattr(args, 'cache', None))


def handle_command_error(
    e: Exception,
    json_mode: bool = False,
    exit_code: int = 1
) -> int:
    """
    Handle command errors uniformly.

    Returns:
        Exit code
    """
    error_output = format_error(e, json_mode)
    if json_mode:
        print(error_output)
    else:
        print(error_output, file=sys.stderr)
    return exit_code


def print_connection_info(rpc_url: str, json_mode: bool = False) -> None:
    if not json_mode:
        print(f"Connecting to RPC: {info(rpc_url)}", file=sys.stderr)
