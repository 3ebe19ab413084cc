"""Tests for the cooperative cancellation token."""

import threading

from GuardrailPolicies.PolicyDeploy.cancellation import CancellationToken


def test_first_reason_wins() -> None:
    token = CancellationToken()

    token.cancel("interrupted")
    token.cancel("second")

    assert token.is_cancelled()
    assert token.reason == "interrupted"


def test_wait_times_out_when_not_cancelled() -> None:
    assert CancellationToken().wait(timeout=0.01) is False


def test_wait_wakes_on_cancel_from_another_thread() -> None:
    token = CancellationToken()
    timer = threading.Timer(0.01, token.cancel)
    timer.start()
    try:
        assert token.wait(timeout=5)
    finally:
        timer.cancel()

    assert token.reason == "cancelled"
