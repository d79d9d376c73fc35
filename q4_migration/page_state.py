"""Screen-state detection and table-driven navigation for admin screens.

A screen family is a closed set of states. Each state is recognised by a
set of selectors that must all be present; rules are checked in priority
order and the first full match wins. Moving between states only follows
transitions that are listed explicitly::

    state = detect_state(page, ANALYST_RULES, default=LANDING)
    navigate_to(page, ANALYST_LIST, ANALYST_RULES, analyst_transitions(url))
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Sequence, Tuple

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from .errors import NavigationError
from .retrying import retry_until

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateRule:
    state: str
    selectors: Tuple[str, ...]


TransitionAction = Callable[[Page], None]
Transitions = Mapping[Tuple[str, str], TransitionAction]


def selector_present(page: Page, selector: str) -> bool:
    return page.locator(selector).count() > 0


def detect_state(page: Page, rules: Sequence[StateRule], default: str) -> str:
    """Return the state of the first rule whose selectors are all present."""

    for rule in rules:
        if all(selector_present(page, selector) for selector in rule.selectors):
            return rule.state
    return default


def _lookup(transitions: Transitions, current: str, target: str) -> TransitionAction:
    action = transitions.get((current, target))
    if action is None:
        raise NavigationError(f"No transition defined from {current!r} to {target!r}")
    return action


def navigate_to(
    page: Page,
    target: str,
    rules: Sequence[StateRule],
    transitions: Transitions,
    *,
    default: str,
    attempts: int = 3,
    delay: float = 2.0,
    sleep: Callable[[float], Any] = time.sleep,
) -> str:
    """Drive ``page`` into ``target`` one hop at a time.

    Each hop is retried up to ``attempts`` times with a fixed ``delay`` and
    the state is re-detected after every attempt. Undefined hops and
    exhausted retries raise :class:`NavigationError`.
    """

    current = detect_state(page, rules, default)
    hops = 0
    while current != target:
        action = _lookup(transitions, current, target)
        origin = current

        def attempt() -> str:
            action(page)
            return detect_state(page, rules, default)

        outcome = retry_until(
            attempt,
            stop=lambda state: state != origin,
            attempts=attempts,
            delay=delay,
            sleep=sleep,
            exceptions=(PlaywrightError,),
            label=f"transition {origin} -> {target}",
        )
        if not outcome.ok or outcome.value is None:
            raise NavigationError(
                f"Could not leave {origin!r} towards {target!r} after {attempts} attempts"
            ) from outcome.error
        current = outcome.value
        logger.debug("Screen moved %s -> %s", origin, current)
        hops += 1
        if hops > len(rules) + 1:
            raise NavigationError(f"Navigation towards {target!r} is looping (last state {current!r})")
    return current


# ---- analyst screen family ---------------------------------------------

LANDING = "landing"
ANALYST_GROUPS = "analystGroups"
ANALYST_LIST = "list"
ANALYST_EDIT = "edit"

GROUP_EDIT_BUTTON = "button#AnalystGroupsTableBodyTableItemsItem0EditIcon"
ANALYST_TABLE = "table#AnalystGroupsFormAnalystTableTable"
ANALYST_ADD_NEW = "#AnalystGroupsFormAnalystTableHeaderAddNew"

ANALYST_RULES: Tuple[StateRule, ...] = (
    StateRule(
        ANALYST_EDIT,
        (
            "#AnalystGroupsAnalystFormNameFieldInput",
            "#AnalystGroupsAnalystFormFirmFieldInput",
            "#AnalystGroupsAnalystFormWorkflowActionSubmit",
        ),
    ),
    StateRule(ANALYST_LIST, (ANALYST_TABLE, ANALYST_ADD_NEW)),
    StateRule(ANALYST_GROUPS, (GROUP_EDIT_BUTTON,)),
)


def analyst_transitions(groups_url: str, timeout_ms: int = 10000) -> Dict[Tuple[str, str], TransitionAction]:
    def open_groups(page: Page) -> None:
        page.goto(groups_url, wait_until="networkidle")
        page.wait_for_selector(GROUP_EDIT_BUTTON, timeout=timeout_ms)

    def open_list(page: Page) -> None:
        page.click(GROUP_EDIT_BUTTON)
        page.wait_for_selector(ANALYST_TABLE, timeout=timeout_ms)

    return {
        (LANDING, ANALYST_GROUPS): open_groups,
        (LANDING, ANALYST_LIST): open_groups,
        (ANALYST_EDIT, ANALYST_GROUPS): open_groups,
        (ANALYST_EDIT, ANALYST_LIST): open_groups,
        (ANALYST_LIST, ANALYST_GROUPS): open_groups,
        (ANALYST_GROUPS, ANALYST_LIST): open_list,
    }
