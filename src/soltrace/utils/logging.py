"""
Logging configuration for soltrace.

Library code only asks for child loggers (``soltrace.middleware``,
``soltrace.signatures``). The CLI configures the whole tree through
``setup_logging``; ``traced()`` makes sure pre-traces reach stderr when
nothing else is listening.
"""

import logging
import sys

from soltrace.utils.colors import Colors

# More detailed than DEBUG: every intercepted request
TRACE = 5
logging.addLevelName(TRACE, 'TRACE')


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when ``use_colors`` is set."""

    LEVEL_COLORS = {
        TRACE: Colors.DIM,
        logging.DEBUG: Colors.DIM,
        logging.INFO: Colors.BRIGHT_CYAN,
        logging.WARNING: Colors.BRIGHT_YELLOW,
        logging.ERROR: Colors.BRIGHT_RED,
        logging.CRITICAL: Colors.BOLD + Colors.BRIGHT_RED,
    }

    def __init__(self, fmt: str = '%(levelname)s: %(message)s', use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)

        levelname = record.levelname
        color = self.LEVEL_COLORS.get(record.levelno, '')
        record.levelname = f"{color}{levelname}{Colors.RESET}" if color else levelname
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def _stderr_handler(level: int, fmt: str, use_colors: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(fmt, use_colors=use_colors and sys.stderr.isatty()))
    return handler


def setup_logging(
    level: int = logging.INFO,
    quiet: bool = False,
    debug: bool = False,
    verbose: bool = False,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the ``soltrace`` logger tree for console use.

    ``verbose`` wins over ``debug``, which wins over ``level``. With
    ``quiet`` no handler is installed and nothing reaches the console.
    """
    if verbose:
        level = TRACE
    elif debug:
        level = logging.DEBUG

    root = get_logger()
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    if not quiet:
        root.addHandler(_stderr_handler(level, '%(levelname)s: %(message)s', use_colors))

    return root


def ensure_console_output(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Route ``soltrace.<name>`` records at ``level`` to stderr unless they already go somewhere.

    A record counts as routed when the logger is enabled for ``level`` and
    some handler sits on its propagation path.
    """
    target = get_logger(name)
    if target.isEnabledFor(level) and target.hasHandlers():
        return target

    if not any(isinstance(handler, logging.StreamHandler) for handler in target.handlers):
        target.addHandler(_stderr_handler(level, '%(message)s', use_colors=False))
    if target.level == logging.NOTSET or target.level > level:
        target.setLevel(level)
    return target


def get_logger(name: str = None) -> logging.Logger:
    """``soltrace`` itself, or the child logger ``soltrace.<name>``."""
    if name:
        return logging.getLogger(f'soltrace.{name}')
    return logging.getLogger('soltrace')


logger = get_logger()
