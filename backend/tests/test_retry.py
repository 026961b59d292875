"""call_with_retry: bounded backoff for transient failures only."""

import pytest

from washbook.errors import ConflictError, InvalidInputError, UnavailableError
from washbook.services.retry import call_with_retry


class Flaky:
    def __init__(self, failures, error=UnavailableError):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error("boom")
        return "ok"


def test_returns_after_transient_failures():
    sleeps = []
    fn = Flaky(2)

    assert call_with_retry(fn, "op", attempts=3, base_delay=0.1, sleep=sleeps.append) == "ok"

    assert fn.calls == 3
    assert sleeps == [0.1, 0.2]


def test_backoff_is_capped():
    sleeps = []
    call_with_retry(Flaky(4), "op", attempts=5, base_delay=0.5, max_delay=1.0, sleep=sleeps.append)
    assert sleeps == [0.5, 1.0, 1.0, 1.0]


def test_gives_up_after_attempts():
    fn = Flaky(10)
    with pytest.raises(UnavailableError):
        call_with_retry(fn, "op", attempts=3, sleep=lambda _: None)
    assert fn.calls == 3


@pytest.mark.parametrize("error", [ConflictError, InvalidInputError])
def test_permanent_errors_are_not_retried(error):
    fn = Flaky(1, error)
    with pytest.raises(error):
        call_with_retry(fn, "op", attempts=3, sleep=lambda _: None)
    assert fn.calls == 1
