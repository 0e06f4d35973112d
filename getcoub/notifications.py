"""Progress, completion and error notifications for a coub run."""

import logging
from typing import Callable, Optional

LOG = logging.getLogger(__name__)


def _noop(_message) -> None:
    return None


class Notifier:
    """Fan out run notifications to caller callbacks and to the log.

    Three channels: progress (many per run), completion (once, on success,
    carrying the output path) and error (once, on failure). A callback that
    raises is logged and otherwise ignored so a listener cannot break a run.
    """

    def __init__(
        self,
        on_progress: Optional[Callable[[str], None]] = None,
        on_complete: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self.on_progress = on_progress if callable(on_progress) else _noop
        self.on_complete = on_complete if callable(on_complete) else _noop
        self.on_error = on_error if callable(on_error) else _noop

    def _deliver(self, callback, message, channel):
        try:
            callback(message)
        except Exception as e:
            LOG.warning("%s callback raised: %s", channel, e)

    def progress(self, message: str) -> None:
        LOG.info(message)
        self._deliver(self.on_progress, message, "progress")

    def complete(self, output_path: str) -> None:
        LOG.info("Completed: %s", output_path)
        self._deliver(self.on_complete, output_path, "complete")

    def error(self, message: str) -> None:
        LOG.error(message)
        self._deliver(self.on_error, message, "error")
