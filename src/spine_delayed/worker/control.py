"""Control channel between the outside world and a worker loop.

Pause, resume, shutdown and reconnect requests arrive asynchronously: from
an OS signal handler, from another thread, or from code embedding the
worker. They are queued here and consumed by the loop at its poll points,
never acted on from inside the signal handler.

Signal mapping installed by :func:`install_signal_handlers` (where the
platform defines the signal):

=============================  ===========
SIGTERM, SIGINT, SIGQUIT       shutdown
SIGUSR2                        pause
SIGCONT                        resume
SIGPIPE                        reconnect
=============================  ===========
"""

from __future__ import annotations

import queue
import signal
from collections import deque
from enum import Enum
from typing import Any

from spine_delayed.core.logging import get_logger

logger = get_logger(__name__)


class Control(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    SHUTDOWN = "shutdown"
    RECONNECT = "reconnect"


SIGNAL_CONTROLS: dict[str, Control] = {
    "SIGTERM": Control.SHUTDOWN,
    "SIGINT": Control.SHUTDOWN,
    "SIGQUIT": Control.SHUTDOWN,
    "SIGUSR2": Control.PAUSE,
    "SIGCONT": Control.RESUME,
    "SIGPIPE": Control.RECONNECT,
}


class ControlChannel:
    """Thread-safe and signal-handler-safe mailbox of :class:`Control` messages.

    :meth:`send` only performs a ``SimpleQueue.put``, which is reentrant, so
    it may be called from a signal handler that interrupted the loop.
    :meth:`wait` and :meth:`drain` belong to the loop's thread.
    """

    def __init__(self) -> None:
        self._messages: queue.SimpleQueue[Control] = queue.SimpleQueue()
        self._held: deque[Control] = deque()

    def send(self, message: Control | str) -> None:
        self._messages.put(Control(message))

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds. ``True`` if a message arrived."""
        if self._held:
            return True
        try:
            message = self._messages.get(timeout=max(0.0, timeout))
        except queue.Empty:
            return False
        self._held.append(message)
        return True

    def drain(self) -> list[Control]:
        """Return and remove every pending message, oldest first."""
        messages = list(self._held)
        self._held.clear()
        while True:
            try:
                messages.append(self._messages.get_nowait())
            except queue.Empty:
                return messages


def install_signal_handlers(channel: ControlChannel) -> dict[int, Any]:
    """Route OS signals into ``channel``.

    Only possible from the main thread; elsewhere nothing is installed.

    Returns:
        The previous handlers, for :func:`restore_signal_handlers`.
    """
    previous: dict[int, Any] = {}

    for name, control in SIGNAL_CONTROLS.items():
        signum = getattr(signal, name, None)
        if signum is None:
            continue

        def _handler(received: int, frame: Any, control: Control = control) -> None:
            channel.send(control)

        try:
            previous[signum] = signal.signal(signum, _handler)
        except (ValueError, OSError):
            # not the main thread
            logger.debug("signal_handler_skipped", signal=name)
            restore_signal_handlers(previous)
            return {}

    return previous


def restore_signal_handlers(previous: dict[int, Any]) -> None:
    for signum, handler in previous.items():
        try:
            signal.signal(signum, handler)
        except (ValueError, OSError, TypeError):
            logger.debug("signal_handler_restore_failed", signal=signum)


__all__ = [
    "Control",
    "ControlChannel",
    "SIGNAL_CONTROLS",
    "install_signal_handlers",
    "restore_signal_handlers",
]
