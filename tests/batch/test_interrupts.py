"""
Tests for batch.interrupts
"""

import signal
import threading
from unittest.mock import Mock

from examsplit.batch.interrupts import install_interrupt_handler, make_interrupt_handler


class TestInterruptHandler:
    """Tests for the two-stage SIGINT handler."""

    def test_handler_when_first_signal_then_sets_stop_flag(self):
        stop = threading.Event()
        force_exit = Mock()
        handler = make_interrupt_handler(stop, force_exit=force_exit)

        handler(signal.SIGINT, None)

        assert stop.is_set()
        force_exit.assert_not_called()

    def test_handler_when_second_signal_then_forces_exit(self):
        stop = threading.Event()
        force_exit = Mock()
        handler = make_interrupt_handler(stop, force_exit=force_exit)

        handler(signal.SIGINT, None)
        handler(signal.SIGINT, None)

        force_exit.assert_called_once_with(1)

    def test_install_when_called_then_registers_for_sigint(self):
        previous = install_interrupt_handler(threading.Event())
        try:
            assert signal.getsignal(signal.SIGINT) is not previous
        finally:
            signal.signal(signal.SIGINT, previous)
