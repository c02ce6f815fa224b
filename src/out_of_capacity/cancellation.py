"""Termination handling.

Signal handlers only set a plain flag; no locks are taken in the handler.
The run loop reads it after each terraform invocation and while the
retry delay elapses.
"""

import atexit
import signal
import time

# SIGKILL cannot be caught; skip it.
TERMINATION_SIGNALS = ("SIGHUP", "SIGINT", "SIGQUIT", "SIGABRT", "SIGTERM")

POLL_INTERVAL_SECONDS = 0.1


class CancelToken:
    """Cancellation flag with an interruptible sleep."""

    def __init__(self, poll_interval: float = POLL_INTERVAL_SECONDS):
        self._cancelled = False
        self.poll_interval = poll_interval

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def sleep(self, seconds: float) -> bool:
        """Wait up to seconds. Returns True if cancelled while waiting."""
        deadline = time.monotonic() + seconds
        while not self._cancelled:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            time.sleep(min(remaining, self.poll_interval))
        return True


def install_signal_handlers(token: CancelToken) -> list[int]:
    """
    Route termination signals to token.cancel().

    Also cancels at interpreter exit. Returns the signal numbers installed.
    """
    def _handle_signal(signum, frame):
        token.cancel()

    installed = []
    for name in TERMINATION_SIGNALS:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        signal.signal(signum, _handle_signal)
        installed.append(signum)

    atexit.register(token.cancel)

    return installed
