"""
Terminal color helpers for soltrace.

ANSI escape sequences are emitted only when the terminal supports them.
Colors can be switched off globally (tests, ``--no-color``, ``NO_COLOR``).
"""

import os
import sys


class Colors:
    """ANSI escape codes used across soltrace."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'
    UNDERLINE = '\033[4m'

    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    BLUE = '\033[34m'
    MAGENTA = '\033[35m'
    CYAN = '\033[36m'
    WHITE = '\033[37m'
    GREY = '\033[90m'

    BRIGHT_RED = '\033[91m'
    BRIGHT_GREEN = '\033[92m'
    BRIGHT_YELLOW = '\033[93m'
    BRIGHT_CYAN = '\033[96m'


def _detect_color_support() -> bool:
    if os.environ.get('NO_COLOR'):
        return False
    if os.environ.get('FORCE_COLOR'):
        return True
    return hasattr(sys.stdout, 'isatty') and sys.stdout.isatty()


SUPPORTS_COLOR = _detect_color_support()

_enabled = SUPPORTS_COLOR


def set_colors_enabled(enabled: bool) -> None:
    """Enable or disable colored output for every helper in this module."""
    global _enabled
    _enabled = enabled


def colors_enabled() -> bool:
    return _enabled


def colorize(text: str, *codes: str) -> str:
    """Wrap text in the given ANSI codes, or return it untouched when colors are off."""
    if not _enabled or not codes:
        return text
    return f"{''.join(codes)}{text}{Colors.RESET}"


def red(text: str) -> str:
    return colorize(text, Colors.RED)


def green(text: str) -> str:
    return colorize(text, Colors.GREEN)


def yellow(text: str) -> str:
    return colorize(text, Colors.YELLOW)


def magenta(text: str) -> str:
    return colorize(text, Colors.MAGENTA)


def cyan(text: str) -> str:
    return colorize(text, Colors.CYAN)


def white(text: str) -> str:
    return colorize(text, Colors.WHITE)


def grey(text: str) -> str:
    return colorize(text, Colors.GREY)


def bold(text: str) -> str:
    return colorize(text, Colors.BOLD)


def dim(text: str) -> str:
    return colorize(text, Colors.DIM)


# Semantic helpers

def error(text: str) -> str:
    return colorize(text, Colors.BRIGHT_RED)


def success(text: str) -> str:
    return colorize(text, Colors.BRIGHT_GREEN)


def warning(text: str) -> str:
    return colorize(text, Colors.BRIGHT_YELLOW)


def info(text: str) -> str:
    return colorize(text, Colors.BRIGHT_CYAN)
