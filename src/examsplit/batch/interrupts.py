"""
Module: batch.interrupts

Purpose:
    Two-stage Ctrl+C handling for batch runs. The first SIGINT asks the
    scheduler to stop dispatching; jobs already running finish and their
    outcome is saved. A second SIGINT exits the process at once.

Key Functions:
    - make_interrupt_handler(): Build the signal handler
    - install_interrupt_handler(): Register it for SIGINT
"""

from __future__ import annotations

import logging
import os
import signal
import threading
from typing import Callable

logger = logging.getLogger(__name__)


def make_interrupt_handler(
    stop_event: threading.Event,
    force_exit: Callable[[int], None] = os._exit,
) -> Callable:
    """Return a SIGINT handler bound to stop_event."""

    def handle(signum, frame):
        if stop_event.is_set():
            logger.warning("Force exit...")
            force_exit(1)
            return
        stop_event.set()
        logger.warning("Gracefully stopping... (press Ctrl+C again to force exit)")
        logger.info("Current progress has been saved. Run again to resume.")

    return handle


def install_interrupt_handler(stop_event: threading.Event):
    """
    Install the two-stage handler for SIGINT.

    Must be called from the main thread.

    Returns:
        The previously installed handler.
    """
    return signal.signal(signal.SIGINT, make_interrupt_handler(stop_event))
