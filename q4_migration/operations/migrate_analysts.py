"""Create the curated analysts in the destination's first analyst group.

Analyst form fields are hidden until enabled in the platform field
configuration, so every field that carries a value in the curated file is
switched on first.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .. import sites
from ..context import OperationContext, site_logger
from ..errors import MigrationError, NavigationError
from ..page_state import (
    ANALYST_ADD_NEW,
    ANALYST_LIST,
    ANALYST_RULES,
    ANALYST_TABLE,
    LANDING,
    analyst_transitions,
    navigate_to,
)
from ..retrying import retry_until
from ..snapshots import ANALYST_COMMITTEE_LLM, load_snapshot

logger = logging.getLogger(__name__)

MAX_RETRIES = 5
FORM_OPEN_ATTEMPTS = 3
CONFIRMATION_COMMENT = "Automated migration"

FIELD_LABEL_MAP = {
    "title": "Title and Professional Designation",
    "email": "Email",
    "url": "Url",
    "phone": "Phone Number",
    "location": "Location",
    "address": "Location",
    "targetPrice": "Target Price",
    "reportingDate": "Report Date",
    "rating": "Rating",
}

FIELD_INPUTS = {
    "analyst": "#AnalystGroupsAnalystFormNameFieldInput",
    "firm": "#AnalystGroupsAnalystFormFirmFieldInput",
    "title": "#AnalystGroupsAnalystFormTitleFieldInput",
    "url": "#AnalystGroupsAnalystFormUrlFieldInput",
    "email": "#AnalystGroupsAnalystFormEmailFieldInput",
    "phone": "#AnalystGroupsAnalystFormPhoneFieldInput",
    "location": "#AnalystGroupsAnalystFormLocationFieldInput",
    "targetPrice": "#AnalystGroupsAnalystFormTargetPriceFieldInput",
    "reportingDate": "#AnalystGroupsAnalystFormReportingDateFieldInput",
    "rating": "#AnalystGroupsAnalystFormRatingFieldInput",
}

SETTINGS_TAB = "#CapabilitiesFieldConfigurationTab"
SETTINGS_ACCORDION = "#CapabilitiesFieldConfigurationAnalystAccordionHeader"
SETTINGS_WRAPPER = ".field-configuration_checkbox-list-wrapper"
TOGGLE_LABEL = ".nui-toggle-input-base_label-text"
TOGGLE = ".nui-toggle-input-base"
TOGGLE_CHECKED = "nui-toggle-input-base--checked"
SETTINGS_SAVE = "#CapabilitiesFieldConfigurationActionsSaveButton"

ANALYST_NAMES = "span.analyst-table_col_analyst-name-label"
SUBMIT = "#AnalystGroupsAnalystFormWorkflowActionSubmit"
CONFIRM_MODAL = "#ConfimationModal"
CONFIRM_COMMENT = "#ConfimationModalCommentTextArea"
CONFIRM_ACTION = "#ConfimationModalActionButton"


def analyst_name(analyst: Dict[str, Any]) -> str:
    return analyst.get("analyst") or analyst.get("firm") or "[MISSING NAME]"


def labels_to_enable(analysts: Iterable[Dict[str, Any]]) -> List[str]:
    """Field configuration labels for every field that has a value somewhere."""

    labels: List[str] = []
    for analyst in analysts:
        for key, value in analyst.items():
            label = FIELD_LABEL_MAP.get(key)
            if label and isinstance(value, str) and value.strip() and label not in labels:
                labels.append(label)
    return labels


# ---- field configuration ------------------------------------------------


def _open_field_configuration(page: Page, url: str) -> None:
    page.goto(url, wait_until="domcontentloaded")
    page.wait_for_selector(SETTINGS_TAB, state="visible", timeout=15000)
    page.click(SETTINGS_TAB)
    page.wait_for_selector(SETTINGS_ACCORDION, state="visible", timeout=15000)
    if page.locator(SETTINGS_WRAPPER).count() == 0:
        page.click(SETTINGS_ACCORDION)
    page.wait_for_selector(SETTINGS_WRAPPER, state="visible", timeout=15000)


def enable_fields(page: Page, labels: List[str]) -> List[str]:
    """Switch on the toggles named by ``labels``; return those switched."""

    switched: List[str] = []
    toggles = page.locator(f"{SETTINGS_WRAPPER} {TOGGLE}")
    for idx in range(toggles.count()):
        toggle = toggles.nth(idx)
        label = toggle.locator(TOGGLE_LABEL).inner_text().strip()
        if label not in labels:
            continue
        if TOGGLE_CHECKED in (toggle.get_attribute("class") or ""):
            continue
        toggle.click()
        page.wait_for_timeout(500)
        if TOGGLE_CHECKED in (toggle.get_attribute("class") or ""):
            switched.append(label)
        else:
            logger.warning("Toggle %r did not switch on", label)
    return switched


def configure_fields(page: Page, subdomain: str, labels: List[str], sleep: Callable[[float], Any] = time.sleep) -> None:
    url = sites.studio_url(subdomain, "platform-settings")

    def attempt() -> List[str]:
        _open_field_configuration(page, url)
        switched = enable_fields(page, labels)
        page.wait_for_selector(SETTINGS_SAVE, state="visible", timeout=15000)
        page.wait_for_timeout(1000)
        page.click(SETTINGS_SAVE)
        page.wait_for_timeout(1000)
        return switched

    outcome = retry_until(
        attempt, attempts=3, delay=2, sleep=sleep, exceptions=(PlaywrightError,), label="field configuration"
    )
    if not outcome.ok:
        raise NavigationError("Analyst field configuration could not be saved") from outcome.error
    logger.info("Enabled analyst fields: %s", ", ".join(outcome.value or []) or "none needed")


# ---- analyst creation ---------------------------------------------------


def read_analyst_names(page: Page) -> List[str]:
    return [name.strip() for name in page.locator(ANALYST_NAMES).all_inner_texts() if name.strip()]


def open_analyst_form(page: Page) -> None:
    for attempt in range(1, FORM_OPEN_ATTEMPTS + 1):
        page.click(ANALYST_ADD_NEW)
        try:
            page.wait_for_selector(FIELD_INPUTS["analyst"], state="visible", timeout=4000)
            page.wait_for_selector(FIELD_INPUTS["firm"], state="visible", timeout=4000)
            return
        except PlaywrightTimeoutError:
            logger.debug("Analyst form not open after attempt %d", attempt)
            page.wait_for_timeout(1000)
    raise MigrationError(f"Analyst form did not open after {FORM_OPEN_ATTEMPTS} attempts")


def fill_analyst(page: Page, analyst: Dict[str, Any]) -> None:
    values = dict(analyst)
    values["location"] = analyst.get("location") or analyst.get("address") or ""
    for key, selector in FIELD_INPUTS.items():
        value = values.get(key)
        if not value:
            continue
        page.wait_for_selector(selector, state="visible", timeout=5000)
        page.fill(selector, str(value))


def submit_analyst(page: Page) -> None:
    page.wait_for_selector(SUBMIT, state="visible", timeout=10000)
    page.click(SUBMIT)
    try:
        page.wait_for_selector(CONFIRM_MODAL, state="visible", timeout=2000)
    except PlaywrightTimeoutError:
        pass
    else:
        page.fill(CONFIRM_COMMENT, CONFIRMATION_COMMENT)
        page.click(CONFIRM_ACTION)
        page.wait_for_selector(CONFIRM_MODAL, state="hidden", timeout=5000)
    page.wait_for_selector(ANALYST_TABLE, state="visible", timeout=15000)


def create_analysts(page: Page, subdomain: str, analysts: List[Dict[str, Any]], sleep: Callable[[float], Any] = time.sleep) -> int:
    """Add analysts in file order; return how many could not be added."""

    transitions = analyst_transitions(sites.studio_url(subdomain, "analyst-groups"))

    def to_list() -> None:
        navigate_to(page, ANALYST_LIST, ANALYST_RULES, transitions, default=LANDING, sleep=sleep)

    missing = 0
    for position, analyst in enumerate(analysts):
        name = analyst_name(analyst)
        for attempt in range(1, MAX_RETRIES + 1):
            to_list()
            names = read_analyst_names(page)
            if position < len(names) and names[position] == name:
                break
            if name in names:
                logger.warning("Analyst %r exists but not at position %d", name, position)
                break
            logger.info("Adding analyst %r at position %d (attempt %d)", name, position, attempt)
            try:
                open_analyst_form(page)
                fill_analyst(page, analyst)
                submit_analyst(page)
            except (PlaywrightError, MigrationError) as exc:
                logger.warning("Adding analyst %r failed: %s", name, exc)
        else:
            to_list()
            if name in read_analyst_names(page):
                continue
            logger.error("Could not add analyst %r after %d attempts", name, MAX_RETRIES)
            missing += 1

    to_list()
    table = read_analyst_names(page)
    expected = [analyst_name(analyst) for analyst in analysts]
    if table[: len(expected)] != expected:
        logger.warning("Analyst table order differs from the curated order: %s", table)
    return missing


def migrate_analysts(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    analysts = load_snapshot(ctx.data_dir, ctx.site.name, ANALYST_COMMITTEE_LLM)["analysts"]
    if not analysts:
        log.info("No analysts to migrate")
        return True

    page = ctx.destination_page()
    configure_fields(page, ctx.site.destination, labels_to_enable(analysts))
    missing = create_analysts(page, ctx.site.destination, analysts)
    if missing:
        log.error("%d analysts could not be added", missing)
    return missing == 0
