import threading

import pytest

from transferguard.exceptions import ScanCancelledError
from transferguard.runtime.cancellation import CancellationToken, check_cancelled


def test_fresh_token_is_not_cancelled():
    token = CancellationToken()

    assert not token.is_cancelled
    token.raise_if_cancelled()


def test_cancel_from_another_thread():
    token = CancellationToken()
    worker = threading.Thread(target=token.cancel)
    worker.start()
    worker.join()

    with pytest.raises(ScanCancelledError, match="cancelled by caller"):
        token.raise_if_cancelled()


def test_deadline(mocker):
    clock = mocker.patch("transferguard.runtime.cancellation.time.monotonic", return_value=100.0)
    token = CancellationToken(timeout=2.0)

    clock.return_value = 101.0
    assert not token.is_cancelled

    clock.return_value = 102.5
    assert token.deadline_exceeded
    with pytest.raises(ScanCancelledError, match="deadline exceeded"):
        token.raise_if_cancelled()


def test_missing_token_is_a_no_op():
    check_cancelled(None)
