import pytest
from playwright.sync_api import Error as PlaywrightError

from q4_migration.bulk_delete import MAX_STUCK_ITERATIONS, DeleteCapability, run_bulk_delete
from q4_migration.errors import NavigationError
from tests.fakes import FakePage


class Listing:
    """Remaining-row counter driven by a scripted sequence of deletions."""

    def __init__(self, remaining, removes=None):
        self.remaining = remaining
        self.removes = list(removes or [])
        self.opens = 0
        self.deletes = 0

    def open_list(self, page):
        self.opens += 1

    def count(self, page):
        return self.remaining

    def delete_one(self, page):
        self.deletes += 1
        removed = self.removes.pop(0) if self.removes else 1
        if isinstance(removed, Exception):
            raise removed
        self.remaining = max(0, self.remaining - removed)

    def capability(self, **kwargs):
        return DeleteCapability("Rows", self.open_list, self.count, self.delete_one, **kwargs)


class TestRunBulkDelete:
    def test_deletes_until_empty(self):
        listing = Listing(3)
        result = run_bulk_delete(FakePage(), listing.capability())
        assert result.ok
        assert result.deleted == 3
        assert result.attempts == 3
        assert listing.opens == 1

    def test_nothing_to_delete(self):
        result = run_bulk_delete(FakePage(), Listing(0).capability())
        assert result.ok and result.attempts == 0

    def test_never_decreasing_fails_after_exactly_ten_attempts(self):
        listing = Listing(4, removes=[0] * 50)
        result = run_bulk_delete(FakePage(), listing.capability())
        assert not result.ok
        assert result.attempts == MAX_STUCK_ITERATIONS == 10
        assert listing.deletes == 10
        assert result.remaining == 4
        assert "No progress" in result.reason

    def test_slow_progress_within_the_limit_succeeds(self):
        # one row goes every ninth attempt
        removes = ([0] * 8 + [1]) * 3
        listing = Listing(3, removes=removes)
        result = run_bulk_delete(FakePage(), listing.capability())
        assert result.ok
        assert result.deleted == 3
        assert listing.deletes == 27

    def test_stuck_iterations_reopen_the_list(self):
        listing = Listing(1, removes=[0, 0, 1])
        run_bulk_delete(FakePage(), listing.capability())
        assert listing.opens == 3

    def test_failed_delete_reopens_and_continues(self):
        listing = Listing(2, removes=[PlaywrightError("detached"), 1, 1])
        result = run_bulk_delete(FakePage(), listing.capability())
        assert result.ok
        assert listing.deletes == 3
        assert listing.opens >= 2

    def test_custom_stuck_limit(self):
        listing = Listing(2, removes=[0] * 10)
        result = run_bulk_delete(FakePage(), listing.capability(max_stuck=3))
        assert not result.ok
        assert result.attempts == 3

    def test_navigation_failure_is_fatal(self):
        def open_list(page):
            raise NavigationError("list did not load")

        capability = DeleteCapability("Rows", open_list, lambda page: 1, lambda page: None)
        with pytest.raises(NavigationError):
            run_bulk_delete(FakePage(), capability)

    def test_count_error_reopens_and_recovers(self):
        listing = Listing(2)
        calls = []

        def count(page):
            calls.append(listing.remaining)
            if len(calls) == 2:
                raise PlaywrightError("Execution context was destroyed")
            return listing.remaining

        capability = DeleteCapability("Rows", listing.open_list, count, listing.delete_one)
        result = run_bulk_delete(FakePage(), capability)
        assert result.ok
        assert result.deleted == 2
        assert listing.deletes == 2
        assert listing.opens == 2

    def test_count_that_keeps_failing_is_bounded(self):
        listing = Listing(2)

        def count(page):
            raise PlaywrightError("Execution context was destroyed")

        capability = DeleteCapability("Rows", listing.open_list, count, listing.delete_one, max_stuck=4)
        result = run_bulk_delete(FakePage(), capability)
        assert not result.ok
        assert listing.deletes == 0
        assert listing.opens == 4
        assert "Could not count" in result.reason
