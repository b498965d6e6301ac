import logging
import threading
import time
from typing import Optional

from transferguard.exceptions import ScanCancelledError

logger = logging.getLogger("transferguard.runtime")


class CancellationToken:
    """
    Caller-supplied cancellation flag with an optional deadline.

    Long-running traversals check the token before every store lookup and
    abort with ScanCancelledError; they never return a partial result.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def deadline_exceeded(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set() or self.deadline_exceeded

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            logger.info("Scan cancelled by caller")
            raise ScanCancelledError("Operation cancelled by caller")
        if self.deadline_exceeded:
            logger.info("Scan deadline exceeded")
            raise ScanCancelledError("Operation deadline exceeded")


def check_cancelled(token: Optional[CancellationToken]) -> None:
    if token is not None:
        token.raise_if_cancelled()
