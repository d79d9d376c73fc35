"""Generic bulk deletion loop and the ASPX listing capability.

Every deletable content type is described by a :class:`DeleteCapability`:
how to reach its list, how many deletable rows remain, and how to delete
one. :func:`run_bulk_delete` drives any capability until nothing is left
or progress stalls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .errors import MigrationError, NavigationError
from .session import wait_for_page_ready
from .sites import aspx_section_url

logger = logging.getLogger(__name__)

MAX_STUCK_ITERATIONS = 10
DELETE_COMMENT = "Deleted as part of content cleanup"
FOR_APPROVAL = "For Approval"


@dataclass(frozen=True)
class DeleteCapability:
    label: str
    open_list: Callable[[Page], None]
    count_remaining: Callable[[Page], int]
    delete_one: Callable[[Page], None]
    max_stuck: int = MAX_STUCK_ITERATIONS


@dataclass(frozen=True)
class BulkDeleteResult:
    label: str
    ok: bool
    attempts: int
    deleted: int
    remaining: int
    reason: str = ""


def run_bulk_delete(page: Page, capability: DeleteCapability) -> BulkDeleteResult:
    """Delete rows one at a time until none remain or progress stalls.

    An iteration whose remaining count did not drop since the previous one
    counts as no progress and re-opens the list; ``max_stuck`` consecutive
    such iterations end the loop with a failed result. Any error from a
    single deletion also re-opens the list, and so does an error while
    counting, which counts as no progress. Failing to open the list raises
    :class:`NavigationError`.
    """

    label = capability.label
    capability.open_list(page)

    initial: Optional[int] = None
    previous: Optional[int] = None
    remaining = 0
    stuck = 0
    attempts = 0
    while True:
        try:
            remaining = capability.count_remaining(page)
        except (PlaywrightError, MigrationError) as exc:
            stuck += 1
            logger.warning("[%s] counting failed (%d/%d): %s", label, stuck, capability.max_stuck, exc)
            if stuck >= capability.max_stuck:
                return BulkDeleteResult(
                    label,
                    False,
                    attempts,
                    max(0, (initial or 0) - (previous or 0)),
                    previous or 0,
                    f"Could not count remaining items after {capability.max_stuck} attempts",
                )
            capability.open_list(page)
            continue
        if initial is None:
            initial = remaining
            logger.info("[%s] %d deletable items found", label, remaining)
        if remaining == 0:
            logger.info("[%s] nothing left to delete after %d attempts", label, attempts)
            return BulkDeleteResult(label, True, attempts, initial - remaining, 0)

        if previous is not None and remaining >= previous:
            stuck += 1
            logger.warning("[%s] no progress (%d/%d), %d remaining", label, stuck, capability.max_stuck, remaining)
            if stuck >= capability.max_stuck:
                return BulkDeleteResult(
                    label,
                    False,
                    attempts,
                    max(0, initial - remaining),
                    remaining,
                    f"No progress after {capability.max_stuck} attempts",
                )
            capability.open_list(page)
        else:
            stuck = 0
        previous = remaining

        attempts += 1
        try:
            capability.delete_one(page)
        except (PlaywrightError, MigrationError) as exc:
            logger.warning("[%s] delete attempt %d failed: %s", label, attempts, exc)
            capability.open_list(page)


# ---- ASPX listings -------------------------------------------------------

GRID_TABLE = "table.grid-list"
GRID_ROWS = "table.grid-list tr:not(.DataGridHeader):not(.DataGridPager)"
GRID_EDIT_LINK = "a.grid-list-action-edit"
GRID_STATUS = 'span[id*="lblStatus"]'
EDIT_COMMENT = 'textarea[id$="txtComments"]'
EDIT_DELETE = 'a[id$="btnDelete"]'
BUCKET_INPUTS = 'input[id*="BucketSelection"]'


@dataclass(frozen=True)
class GridItem:
    title: str
    url: str
    status: str


def read_grid_items(page: Page) -> List[GridItem]:
    """Rows with an edit link and a status that is not awaiting approval."""

    rows = page.evaluate(
        """(selectors) => Array.from(document.querySelectorAll(selectors.rows)).map(row => {
            const edit = row.querySelector(selectors.edit);
            const status = row.querySelector(selectors.status);
            if (!edit || !status) { return null; }
            const cell = row.cells[2];
            return {
                title: cell ? (cell.textContent || '').trim() : '',
                url: edit.href,
                status: (status.textContent || '').trim(),
            };
        }).filter(Boolean)""",
        {"rows": GRID_ROWS, "edit": GRID_EDIT_LINK, "status": GRID_STATUS},
    )
    return [
        GridItem(row["title"] or "Unknown Title", row["url"], row["status"])
        for row in rows
        if FOR_APPROVAL not in row["status"]
    ]


def confirm_and_click(page: Page, selector: str, timeout_ms: int = 10000) -> None:
    """Click ``selector`` while accepting the browser confirm dialog it opens."""

    page.once("dialog", lambda dialog: dialog.accept())
    try:
        with page.expect_navigation(wait_until="domcontentloaded", timeout=timeout_ms):
            page.click(selector)
    except PlaywrightTimeoutError:
        logger.debug("No navigation after clicking %s", selector)


def delete_from_edit_page(page: Page, url: str, comment_selector: str, delete_selector: str) -> None:
    page.goto(url, wait_until="domcontentloaded")
    wait_for_page_ready(page)
    page.wait_for_selector(comment_selector, timeout=5000)
    page.fill(comment_selector, DELETE_COMMENT)
    page.evaluate(
        "(selector) => document.querySelectorAll(selector).forEach(input => { input.value = ''; })",
        BUCKET_INPUTS,
    )
    page.wait_for_selector(delete_selector, timeout=5000)
    confirm_and_click(page, delete_selector)
    wait_for_page_ready(page)


def open_aspx_listing(
    url: str,
    table_selector: str = GRID_TABLE,
    prepare: Optional[Callable[[Page], None]] = None,
) -> Callable[[Page], None]:
    def open_list(page: Page) -> None:
        try:
            page.goto(url, wait_until="domcontentloaded")
            wait_for_page_ready(page)
            if prepare is not None:
                prepare(page)
            page.wait_for_selector(table_selector, timeout=10000)
        except PlaywrightError as exc:
            raise NavigationError(f"Listing did not load: {url}") from exc

    return open_list


def aspx_capability(
    label: str,
    subdomain: str,
    section_id: str,
    prepare: Optional[Callable[[Page], None]] = None,
) -> DeleteCapability:
    """Capability for the standard ``table.grid-list`` content listings."""

    open_list = open_aspx_listing(aspx_section_url(subdomain, section_id), prepare=prepare)

    def count_remaining(page: Page) -> int:
        return len(read_grid_items(page))

    def delete_one(page: Page) -> None:
        items = read_grid_items(page)
        if not items:
            return
        item = items[0]
        logger.info("[%s] deleting %r (%s)", label, item.title, item.status)
        delete_from_edit_page(page, item.url, EDIT_COMMENT, EDIT_DELETE)
        open_list(page)

    return DeleteCapability(
        label=label,
        open_list=open_list,
        count_remaining=count_remaining,
        delete_one=delete_one,
    )
