import pytest
from playwright.sync_api import Error as PlaywrightError

from q4_migration.errors import NavigationError
from q4_migration.page_state import (
    ANALYST_ADD_NEW,
    ANALYST_EDIT,
    ANALYST_GROUPS,
    ANALYST_LIST,
    ANALYST_RULES,
    ANALYST_TABLE,
    GROUP_EDIT_BUTTON,
    LANDING,
    StateRule,
    detect_state,
    navigate_to,
)
from tests.fakes import FakePage, RecordingSleep

EDIT_SELECTORS = (
    "#AnalystGroupsAnalystFormNameFieldInput",
    "#AnalystGroupsAnalystFormFirmFieldInput",
    "#AnalystGroupsAnalystFormWorkflowActionSubmit",
)


def page_with(*selectors):
    return FakePage({selector: ["x"] for selector in selectors})


class TestDetectState:
    def test_each_state_is_recognised(self):
        assert detect_state(page_with(*EDIT_SELECTORS), ANALYST_RULES, LANDING) == ANALYST_EDIT
        assert detect_state(page_with(ANALYST_TABLE, ANALYST_ADD_NEW), ANALYST_RULES, LANDING) == ANALYST_LIST
        assert detect_state(page_with(GROUP_EDIT_BUTTON), ANALYST_RULES, LANDING) == ANALYST_GROUPS

    def test_partial_match_falls_through_to_default(self):
        assert detect_state(page_with(ANALYST_TABLE), ANALYST_RULES, LANDING) == LANDING
        assert detect_state(FakePage(), ANALYST_RULES, LANDING) == LANDING

    def test_first_matching_rule_wins(self):
        rules = (StateRule("a", ("#x",)), StateRule("b", ("#x",)))
        assert detect_state(page_with("#x"), rules, "none") == "a"


class TestNavigateTo:
    rules = (StateRule("list", ("#table",)), StateRule("groups", ("#groups",)))

    def test_follows_transitions_hop_by_hop(self):
        page = FakePage()
        calls = []

        def to_groups(p):
            calls.append("groups")
            p.set("#groups", "x")

        def to_list(p):
            calls.append("list")
            p.remove("#groups")
            p.set("#table", "x")

        transitions = {("landing", "list"): to_groups, ("groups", "list"): to_list}
        state = navigate_to(page, "list", self.rules, transitions, default="landing", sleep=RecordingSleep())
        assert state == "list"
        assert calls == ["groups", "list"]

    def test_already_there_does_nothing(self):
        page = page_with("#table")
        assert navigate_to(page, "list", self.rules, {}, default="landing") == "list"

    def test_undefined_transition_fails_immediately(self):
        with pytest.raises(NavigationError, match="No transition"):
            navigate_to(FakePage(), "list", self.rules, {}, default="landing")

    def test_retries_a_hop_then_gives_up(self):
        attempts = []
        sleep = RecordingSleep()

        def broken(p):
            attempts.append(1)
            raise PlaywrightError("timeout")

        with pytest.raises(NavigationError, match="after 3 attempts"):
            navigate_to(FakePage(), "list", self.rules, {("landing", "list"): broken},
                        default="landing", delay=2.0, sleep=sleep)
        assert len(attempts) == 3
        assert sleep.calls == [2.0, 2.0]

    def test_recovers_on_a_later_attempt(self):
        attempts = []

        def flaky(p):
            attempts.append(1)
            if len(attempts) == 2:
                p.set("#table", "x")

        state = navigate_to(FakePage(), "list", self.rules, {("landing", "list"): flaky},
                            default="landing", sleep=RecordingSleep())
        assert state == "list"
        assert len(attempts) == 2

    def test_loops_are_detected(self):
        def to_groups(p):
            p.set("#groups", "x")

        def back_to_landing(p):
            p.remove("#groups")

        transitions = {("landing", "list"): to_groups, ("groups", "list"): back_to_landing}
        with pytest.raises(NavigationError, match="looping"):
            navigate_to(FakePage(), "list", self.rules, transitions, default="landing", sleep=RecordingSleep())
