"""Bulk deletion of content on the destination site.

Each content type contributes a :class:`DeleteCapability`; the loop itself
lives in :mod:`q4_migration.bulk_delete`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from .. import sites
from ..bulk_delete import (
    DELETE_COMMENT,
    FOR_APPROVAL,
    DeleteCapability,
    aspx_capability,
    confirm_and_click,
    delete_from_edit_page,
    open_aspx_listing,
    run_bulk_delete,
)
from ..context import OperationContext, site_logger
from ..errors import MigrationError, NavigationError
from ..page_state import (
    ANALYST_LIST,
    ANALYST_RULES,
    LANDING,
    analyst_transitions,
    navigate_to,
)
from ..session import wait_for_page_ready

logger = logging.getLogger(__name__)

# persons
PERSON_DEPARTMENT_SELECT = "#_ctrl0_ctl19_ddlDepartment"
PERSON_TABLE = "#_ctrl0_ctl19_UCPersons_dataGrid"
PERSON_ROWS = "#_ctrl0_ctl19_UCPersons_dataGrid tr:not(:first-child)"
PERSON_EDIT_LINK = ".grid-list-action-icon.grid-list-action-edit"
PERSON_STATUS = ".ToDoListLabel"
PERSON_COMMENT = 'textarea[id*="_txtComments"]'
PERSON_DELETE = 'a[id*="_btnDelete"]'

# faq
FAQ_LIST_TABLE = "table.grid-list#_ctrl0_ctl19_UCFaq_dataGrid"
FAQ_LIST_ROWS = "table.grid-list#_ctrl0_ctl19_UCFaq_dataGrid tr:not(.DataGridHeader):not(.DataGridPager)"
FAQ_LIST_NAME = "td.DataGridItemBorder:nth-child(2)"
FAQ_QUESTION_ROW = "tr.question"
FAQ_QUESTION_EDIT = 'input[type="image"][id*="btnEdit"]'
FAQ_QUESTION_DELETE = "input#_ctrl0_ctl19_btnDelete"

# downloads
DOWNLOAD_TYPE_SELECT = "#_ctrl0_ctl19_ddlReportType"
DOWNLOAD_TABLE = "#_ctrl0_ctl19_UCReports2_dataGrid"
DOWNLOAD_ROWS = "#_ctrl0_ctl19_UCReports2_dataGrid tr:not(.DataGridHeader):not(.DataGridPager)"
DOWNLOAD_EDIT_LINK = "a.grid-list-action-icon.grid-list-action-edit"
DOWNLOAD_TITLE = "td.DataGridItemBorder:nth-child(3)"
DOWNLOAD_STATUS = "span.ToDoListLabel"
DOWNLOAD_COMMENT = "#_ctrl0_ctl19_ctl00_txtComments"
DOWNLOAD_DELETE = "#_ctrl0_ctl19_ctl00_btnDelete"

# studio tables
COMMITTEE_TABLE_BODY = "#CommitteeListTableBody"
COMMITTEE_ROW = ".committee-page-table_body_row"
ANALYST_ROW = ".analyst-table_body_row"
STUDIO_STATUS = 'span[id*="StatusValue"]'
STUDIO_EDIT_BUTTON = 'button[id*="EditIcon"]'
COMMITTEE_DELETE = "#CommitteeListEditWorkflowActionDelete"
ANALYST_DELETE = "#AnalystGroupsAnalystFormWorkflowActionDelete"
MODAL_COMMENT = "#ConfimationModalCommentTextArea"
MODAL_CONFIRM = "#ConfimationModalActionButton"


@dataclass(frozen=True)
class RowLink:
    name: str
    url: str
    status: str


def _row_links(page: Page, rows: str, link: str, name: str, status: str, skip_class: str = "") -> List[RowLink]:
    found = page.evaluate(
        """(s) => Array.from(document.querySelectorAll(s.rows)).map(row => {
            const nameCell = row.querySelector(s.name);
            if (!nameCell || (s.skipClass && nameCell.classList.contains(s.skipClass))) { return null; }
            const edit = row.querySelector(s.link);
            const status = row.querySelector(s.status);
            return {
                name: (nameCell.textContent || '').trim(),
                url: edit ? edit.href : '',
                status: status ? (status.textContent || '').trim() : '',
            };
        }).filter(Boolean)""",
        {"rows": rows, "link": link, "name": name, "status": status, "skipClass": skip_class},
    )
    return [
        RowLink(row["name"], row["url"], row["status"])
        for row in found
        if row["url"] and row["name"] and FOR_APPROVAL not in row["status"]
    ]


# ---- ASPX sections ----------------------------------------------------------


def press_release_capability(subdomain: str) -> DeleteCapability:
    return aspx_capability("Press Releases", subdomain, sites.SECTION_PRESS_RELEASES)


def events_capability(subdomain: str) -> DeleteCapability:
    return aspx_capability("Events", subdomain, sites.SECTION_EVENTS)


def financials_capability(subdomain: str) -> DeleteCapability:
    return aspx_capability("Financials", subdomain, sites.SECTION_FINANCIALS)


def presentations_capability(subdomain: str) -> DeleteCapability:
    return aspx_capability("Presentations", subdomain, sites.SECTION_PRESENTATIONS)


def downloads_capability(subdomain: str) -> DeleteCapability:
    """Governance documents in the download lists section."""

    def select_governance(page: Page) -> None:
        page.wait_for_selector(DOWNLOAD_TYPE_SELECT)
        page.select_option(DOWNLOAD_TYPE_SELECT, sites.GOVERNANCE_REPORT_TYPE)
        wait_for_page_ready(page)

    open_list = open_aspx_listing(
        sites.aspx_section_url(subdomain, sites.SECTION_DOWNLOADS),
        table_selector=DOWNLOAD_TABLE,
        prepare=select_governance,
    )

    def items(page: Page) -> List[RowLink]:
        return _row_links(page, DOWNLOAD_ROWS, DOWNLOAD_EDIT_LINK, DOWNLOAD_TITLE, DOWNLOAD_STATUS)

    def delete_one(page: Page) -> None:
        remaining = items(page)
        if remaining:
            delete_from_edit_page(page, remaining[0].url, DOWNLOAD_COMMENT, DOWNLOAD_DELETE)
            open_list(page)

    return DeleteCapability("Downloads", open_list, lambda page: len(items(page)), delete_one)


# ---- persons, one capability per department --------------------------------


def person_departments(page: Page) -> List[Tuple[str, str]]:
    page.wait_for_selector(PERSON_DEPARTMENT_SELECT)
    options = page.evaluate(
        """(selector) => Array.from(document.querySelector(selector).options)
            .filter(option => option.value !== '')
            .map(option => [option.value, (option.textContent || '').trim()])""",
        PERSON_DEPARTMENT_SELECT,
    )
    return [(value, name) for value, name in options]


def person_capability(subdomain: str, department_id: str, department_name: str) -> DeleteCapability:
    listing = sites.aspx_section_url(subdomain, sites.SECTION_PERSONS)

    def choose_department(page: Page) -> None:
        page.select_option(PERSON_DEPARTMENT_SELECT, department_id)
        wait_for_page_ready(page)

    open_list = open_aspx_listing(listing, table_selector=PERSON_TABLE, prepare=choose_department)

    def items(page: Page) -> List[RowLink]:
        return _row_links(
            page,
            PERSON_ROWS,
            PERSON_EDIT_LINK,
            "td.DataGridItemBorder",
            PERSON_STATUS,
            skip_class="badge-content--delete",
        )

    def delete_one(page: Page) -> None:
        remaining = items(page)
        if remaining:
            delete_from_edit_page(page, remaining[0].url, PERSON_COMMENT, PERSON_DELETE)
            open_list(page)

    return DeleteCapability(f"Persons/{department_name}", open_list, lambda page: len(items(page)), delete_one)


def delete_persons(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    page = ctx.destination_page()
    open_aspx_listing(sites.aspx_section_url(ctx.site.destination, sites.SECTION_PERSONS), PERSON_TABLE)(page)
    departments = person_departments(page)
    log.info("Deleting persons in %d departments", len(departments))
    ok = True
    for department_id, department_name in departments:
        result = run_bulk_delete(page, person_capability(ctx.site.destination, department_id, department_name))
        ok = ok and result.ok
    return ok


# ---- FAQs, one capability per list ------------------------------------------


def faq_lists(page: Page) -> List[RowLink]:
    return _row_links(page, FAQ_LIST_ROWS, "a", FAQ_LIST_NAME, 'span[id*="lblStatus"]')


def faq_question_capability(list_name: str, list_url: str) -> DeleteCapability:
    def open_list(page: Page) -> None:
        try:
            page.goto(list_url, wait_until="domcontentloaded")
            wait_for_page_ready(page)
        except PlaywrightError as exc:
            raise NavigationError(f"FAQ list {list_name!r} did not load") from exc

    def delete_one(page: Page) -> None:
        page.wait_for_selector(FAQ_QUESTION_EDIT, timeout=5000)
        page.click(FAQ_QUESTION_EDIT)
        wait_for_page_ready(page)
        page.wait_for_selector(FAQ_QUESTION_DELETE, timeout=5000)
        confirm_and_click(page, FAQ_QUESTION_DELETE)
        wait_for_page_ready(page, extra_wait=1)

    return DeleteCapability(
        f"FAQ/{list_name}",
        open_list,
        lambda page: page.locator(FAQ_QUESTION_ROW).count(),
        delete_one,
    )


def delete_faqs(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    page = ctx.destination_page()
    open_aspx_listing(sites.aspx_section_url(ctx.site.destination, sites.SECTION_FAQ), FAQ_LIST_TABLE)(page)
    lists = faq_lists(page)
    if not lists:
        log.info("No FAQ lists found")
        return True
    ok = True
    for faq_list in lists:
        result = run_bulk_delete(page, faq_question_capability(faq_list.name, faq_list.url))
        ok = ok and result.ok
    return ok


# ---- studio screens ----------------------------------------------------------


def count_studio_rows(page: Page, row_selector: str) -> int:
    return page.evaluate(
        """(s) => Array.from(document.querySelectorAll(s.row)).filter(row => {
            const status = row.querySelector(s.status);
            return status && (status.textContent || '').trim() !== s.skip;
        }).length""",
        {"row": row_selector, "status": STUDIO_STATUS, "skip": FOR_APPROVAL},
    )


def delete_studio_row(page: Page, row_selector: str, delete_selector: str, wait_for: str) -> None:
    """Open the first deletable row, delete it and confirm the comment modal."""

    button_id = page.evaluate(
        """(s) => {
            for (const row of document.querySelectorAll(s.row)) {
                const status = row.querySelector(s.status);
                if (status && (status.textContent || '').trim() !== s.skip) {
                    const edit = row.querySelector(s.edit);
                    return edit ? edit.id : null;
                }
            }
            return null;
        }""",
        {"row": row_selector, "status": STUDIO_STATUS, "edit": STUDIO_EDIT_BUTTON, "skip": FOR_APPROVAL},
    )
    if not button_id:
        raise MigrationError("No deletable row with an edit button")
    page.click(f"#{button_id}")
    page.wait_for_selector(delete_selector, timeout=5000)
    page.click(delete_selector)
    page.wait_for_selector(MODAL_COMMENT, timeout=5000)
    page.fill(MODAL_COMMENT, DELETE_COMMENT)
    page.click(MODAL_CONFIRM)
    page.wait_for_timeout(1000)
    page.wait_for_selector(wait_for, timeout=3000)


def committee_capability(subdomain: str) -> DeleteCapability:
    url = sites.studio_url(subdomain, "committee-list")

    def open_list(page: Page) -> None:
        try:
            page.goto(url, wait_until="domcontentloaded")
            page.wait_for_selector(COMMITTEE_TABLE_BODY, timeout=5000)
            page.wait_for_timeout(1000)
        except PlaywrightError as exc:
            raise NavigationError("Committee list did not load") from exc

    return DeleteCapability(
        "Committees",
        open_list,
        lambda page: count_studio_rows(page, COMMITTEE_ROW),
        lambda page: delete_studio_row(page, COMMITTEE_ROW, COMMITTEE_DELETE, COMMITTEE_TABLE_BODY),
    )


def analyst_capability(subdomain: str, sleep: Optional[Callable[[float], None]] = None) -> DeleteCapability:
    transitions = analyst_transitions(sites.studio_url(subdomain, "analyst-groups"))
    extra = {"sleep": sleep} if sleep is not None else {}

    def open_list(page: Page) -> None:
        navigate_to(page, ANALYST_LIST, ANALYST_RULES, transitions, default=LANDING, **extra)

    return DeleteCapability(
        "Analysts",
        open_list,
        lambda page: count_studio_rows(page, ANALYST_ROW),
        lambda page: delete_studio_row(page, ANALYST_ROW, ANALYST_DELETE, ANALYST_ROW),
    )


# ---- operation entry points ----------------------------------------------------


def _run(ctx: OperationContext, capability: DeleteCapability) -> bool:
    log = site_logger(logger, ctx.site)
    try:
        result = run_bulk_delete(ctx.destination_page(), capability)
    except NavigationError as exc:
        log.error("%s: %s", capability.label, exc)
        return False
    if not result.ok:
        log.error("%s: %s (%d remaining)", capability.label, result.reason, result.remaining)
    else:
        log.info("%s: deleted %d items", capability.label, result.deleted)
    return result.ok


def delete_analysts(ctx: OperationContext) -> bool:
    return _run(ctx, analyst_capability(ctx.site.destination))


def delete_committees(ctx: OperationContext) -> bool:
    return _run(ctx, committee_capability(ctx.site.destination))


def delete_downloads(ctx: OperationContext) -> bool:
    return _run(ctx, downloads_capability(ctx.site.destination))


def delete_financials(ctx: OperationContext) -> bool:
    return _run(ctx, financials_capability(ctx.site.destination))


def delete_presentations(ctx: OperationContext) -> bool:
    return _run(ctx, presentations_capability(ctx.site.destination))


def delete_events(ctx: OperationContext) -> bool:
    return _run(ctx, events_capability(ctx.site.destination))


def delete_press_releases(ctx: OperationContext) -> bool:
    return _run(ctx, press_release_capability(ctx.site.destination))


DELETE_ALL_SEQUENCE = (
    ("Persons", delete_persons),
    ("FAQs", delete_faqs),
    ("Analysts", delete_analysts),
    ("Downloads", delete_downloads),
    ("Financials", delete_financials),
    ("Presentations", delete_presentations),
    ("Events", delete_events),
    ("Press Releases", delete_press_releases),
)


def delete_all(ctx: OperationContext, steps=DELETE_ALL_SEQUENCE) -> bool:
    """Run every deletion in order on one session; succeed if any step did."""

    log = site_logger(logger, ctx.site)
    succeeded: List[str] = []
    for label, step in steps:
        log.info("Starting %s deletion", label)
        try:
            ok = step(ctx)
        except (PlaywrightError, MigrationError) as exc:
            log.error("%s deletion failed: %s", label, exc)
            ok = False
        if ok:
            succeeded.append(label)
        else:
            log.warning("%s deletion did not complete, continuing", label)
    log.info("Delete all finished: %d/%d steps succeeded", len(succeeded), len(steps))
    return bool(succeeded)
