#!/usr/bin/env python3
"""
Main entry point for soltrace

This module serves as the CLI entry point, handling argument parsing
and routing to the appropriate command implementations in the cli/ module.
"""

import argparse
import sys

from soltrace import __version__
from soltrace.cli.common import configure_output
from soltrace.cli.signatures import signatures_command
from soltrace.cli.trace import call_command, format_command


def _add_render_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--gas', action='store_true', help='Show gas used / gas limit for every call')
    parser.add_argument('--raw', action='store_true', help='Dump every call frame as JSON under its line')
    parser.add_argument('--full-args', action='store_true', help='Do not elide addresses, hex values and max-int constants')
    _add_cache_options(parser)
    parser.add_argument('--json', action='store_true', help='Output the raw call tree as JSON')


def _add_cache_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--no-lookup', action='store_true', help='Do not query the signature database, use cached signatures only')
    parser.add_argument('--cache', default=None, help='Signatures cache file (default: ~/.foundry/cache/signatures)')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='soltrace - call traces for EVM transactions')
    parser.add_argument('--version', '-v', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--verbose', action='store_true', help='Enable trace logging (more detailed than --debug)')
    parser.add_argument('--quiet', '-q', action='store_true', help='Suppress log output')

    subparsers = parser.add_subparsers(dest='command', help='Commands')
    subparsers.required = True

    # call command
    call_parser = subparsers.add_parser('call', help='Trace a call with debug_traceCall')
    call_parser.add_argument('--to', required=True, help='Target address')
    call_parser.add_argument('--from', dest='from_addr', default=None, help='Sender address')
    call_parser.add_argument('--data', '-d', default=None, help='Calldata (hex string, 0x...)')
    call_parser.add_argument('--value', default=None, help='Value to send, in wei or with an "ether" suffix')
    call_parser.add_argument('--gas-limit', type=int, default=None, help='Gas limit of the call')
    call_parser.add_argument('--block', '-b', default='latest', help='Block number or tag (default: latest)')
    call_parser.add_argument('--rpc', '-r', default='http://localhost:8545', help='RPC URL')
    _add_render_options(call_parser)

    # format command
    format_parser = subparsers.add_parser('format', help='Render a saved callTracer result')
    format_parser.add_argument('trace_file', help='JSON file with a callTracer result ("-" for stdin)')
    _add_render_options(format_parser)

    # signatures command
    signatures_parser = subparsers.add_parser('signatures', help='Resolve function selectors and event topics')
    signatures_parser.add_argument('selectors', nargs='+', help='4-byte selectors or 32-byte event topics')
    signatures_parser.add_argument('--json', action='store_true', help='Output as JSON')
    _add_cache_options(signatures_parser)

    return parser


def main(argv=None) -> int:
    """Main entry point for soltrace CLI."""
    args = build_parser().parse_args(argv)
    configure_output(args)

    if args.command == 'call':
        return call_command(args)
    elif args.command == 'format':
        return format_command(args)
    elif args.command == 'signatures':
        return signatures_command(args)

    return 0


if __name__ == '__main__':
    sys.exit(main())
