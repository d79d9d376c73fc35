import pytest

from q4_migration.retrying import backoff, retry_until
from tests.fakes import RecordingSleep


class TestRetryUntil:
    def test_stops_on_first_accepted_result(self):
        values = iter([0, 1, 2, 3])
        sleep = RecordingSleep()
        outcome = retry_until(lambda: next(values), stop=lambda v: v >= 2, attempts=5, delay=1.5, sleep=sleep)
        assert outcome.ok
        assert outcome.value == 2
        assert outcome.attempts == 3
        assert sleep.calls == [1.5, 1.5]

    def test_exhaustion_reports_last_value(self):
        sleep = RecordingSleep()
        outcome = retry_until(lambda: 0, stop=bool, attempts=3, delay=1, sleep=sleep)
        assert not outcome.ok
        assert outcome.value == 0
        assert outcome.attempts == 3
        assert len(sleep.calls) == 2

    def test_listed_exceptions_are_retried(self):
        calls = []
        errors = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ValueError("not yet")
            return "done"

        outcome = retry_until(
            flaky,
            attempts=3,
            sleep=RecordingSleep(),
            exceptions=(ValueError,),
            on_error=lambda attempt, exc: errors.append(attempt),
        )
        assert outcome.ok and outcome.value == "done"
        assert errors == [1, 2]

    def test_last_error_is_kept_when_every_attempt_raises(self):
        def broken():
            raise ValueError("boom")

        outcome = retry_until(broken, attempts=2, sleep=RecordingSleep(), exceptions=(ValueError,))
        assert not outcome.ok
        assert isinstance(outcome.error, ValueError)

    def test_unlisted_exceptions_propagate(self):
        def broken():
            raise KeyError("x")

        with pytest.raises(KeyError):
            retry_until(broken, attempts=3, sleep=RecordingSleep(), exceptions=(ValueError,))

    def test_delay_for_overrides_fixed_delay(self):
        sleep = RecordingSleep()
        retry_until(lambda: False, stop=bool, attempts=3, delay=9, delay_for=lambda n: backoff(5, n), sleep=sleep)
        assert sleep.calls == [5, 10]

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            retry_until(lambda: 1, attempts=0)
