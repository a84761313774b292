"""Turn termination signals into an exception in the main thread.

The handler never touches the store. It raises ShutdownRequested, which
unwinds the shell loop and lets the store's owner release it on the way out.
"""

import signal
from contextlib import contextmanager
from typing import Iterator, Sequence


class ShutdownRequested(KeyboardInterrupt):
    """Raised in the main thread when SIGINT or SIGTERM arrives."""

    def __init__(self, signum: int):
        self.signum = signum
        super().__init__(signal.Signals(signum).name)


def _raise_shutdown(signum, frame):
    raise ShutdownRequested(signum)


@contextmanager
def shutdown_on_signals(
    signums: Sequence[int] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[None]:
    """Install the handler for ``signums`` and restore the previous handlers on exit."""
    previous = {}
    for signum in signums:
        previous[signum] = signal.signal(signum, _raise_shutdown)
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
