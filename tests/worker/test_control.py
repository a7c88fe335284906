"""Tests for spine_delayed.worker.control."""

import os
import signal
import threading
import time

import pytest

from spine_delayed.worker.control import (
    SIGNAL_CONTROLS,
    Control,
    ControlChannel,
    install_signal_handlers,
    restore_signal_handlers,
)


class TestControlChannel:
    def test_drain_in_order(self):
        channel = ControlChannel()
        channel.send(Control.PAUSE)
        channel.send("resume")
        channel.send(Control.SHUTDOWN)

        assert channel.drain() == [Control.PAUSE, Control.RESUME, Control.SHUTDOWN]
        assert channel.drain() == []

    def test_unknown_message_rejected(self):
        with pytest.raises(ValueError):
            ControlChannel().send("explode")

    def test_wait_times_out(self):
        channel = ControlChannel()
        started = time.monotonic()
        assert channel.wait(0.05) is False
        assert time.monotonic() - started >= 0.04

    def test_wait_keeps_message_for_drain(self):
        channel = ControlChannel()
        channel.send(Control.RECONNECT)

        assert channel.wait(1.0) is True
        assert channel.drain() == [Control.RECONNECT]
        assert channel.wait(0) is False

    def test_wait_wakes_on_send_from_other_thread(self):
        channel = ControlChannel()
        timer = threading.Timer(0.05, channel.send, args=(Control.SHUTDOWN,))
        timer.start()
        try:
            started = time.monotonic()
            assert channel.wait(5.0) is True
            assert time.monotonic() - started < 4.0
        finally:
            timer.cancel()

    def test_wait_with_zero_timeout(self):
        assert ControlChannel().wait(0) is False


class TestSignalMapping:
    def test_mapping(self):
        assert SIGNAL_CONTROLS["SIGTERM"] is Control.SHUTDOWN
        assert SIGNAL_CONTROLS["SIGINT"] is Control.SHUTDOWN
        assert SIGNAL_CONTROLS["SIGQUIT"] is Control.SHUTDOWN
        assert SIGNAL_CONTROLS["SIGUSR2"] is Control.PAUSE
        assert SIGNAL_CONTROLS["SIGCONT"] is Control.RESUME
        assert SIGNAL_CONTROLS["SIGPIPE"] is Control.RECONNECT


@pytest.mark.skipif(not hasattr(signal, "SIGUSR2"), reason="POSIX signals required")
class TestSignalHandlers:
    def test_signal_becomes_control_message(self):
        channel = ControlChannel()
        previous = install_signal_handlers(channel)
        try:
            os.kill(os.getpid(), signal.SIGUSR2)
            assert channel.wait(2.0) is True
            assert channel.drain() == [Control.PAUSE]
        finally:
            restore_signal_handlers(previous)

    def test_restore_puts_back_previous_handlers(self):
        before = signal.getsignal(signal.SIGTERM)
        previous = install_signal_handlers(ControlChannel())
        assert signal.getsignal(signal.SIGTERM) is not before

        restore_signal_handlers(previous)
        assert signal.getsignal(signal.SIGTERM) is before

    def test_nothing_installed_outside_main_thread(self):
        result = {}
        before = signal.getsignal(signal.SIGTERM)

        def install():
            result["previous"] = install_signal_handlers(ControlChannel())

        thread = threading.Thread(target=install)
        thread.start()
        thread.join()

        assert result["previous"] == {}
        assert signal.getsignal(signal.SIGTERM) is before
