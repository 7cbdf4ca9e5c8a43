"""Process-wide interruption flag.

The flag is checked by the repository acquisition stage so that an operator
abort stops an in-progress clone instead of letting a large transfer finish.
Compilation and archiving have no checkpoints; Cargo receives the terminal's
SIGINT directly and exits on its own.
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from types import FrameType
from typing import Optional

logger = logging.getLogger(__name__)

IS_INTERRUPTED = threading.Event()


def request_interrupt() -> None:
    """Mark the current run as interrupted."""
    IS_INTERRUPTED.set()


def reset() -> None:
    """Clear the interruption flag."""
    IS_INTERRUPTED.clear()


def is_interrupted() -> bool:
    return IS_INTERRUPTED.is_set()


def _signal_handler(sig: int, frame: Optional[FrameType]) -> None:
    if IS_INTERRUPTED.is_set():
        # Second signal: stop waiting for the graceful path
        signal.signal(signal.SIGINT, signal.default_int_handler)
        raise KeyboardInterrupt
    logger.warning(f"Received signal {sig}, aborting")
    request_interrupt()


def install_signal_handlers() -> None:
    """Route SIGINT (and SIGTERM where available) to the interruption flag."""
    if sys.platform != 'win32':
        signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)
