"""Replay scraped FAQs and document categories on the destination site."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from .. import sites
from ..context import OperationContext, site_logger
from ..errors import MigrationError, NavigationError
from ..retrying import retry_until
from ..session import wait_for_page_ready
from ..snapshots import FAQ, LOOKUP_LIST, load_snapshot
from .editor import set_editor_html
from .scrape import LOOKUP_TYPE, read_lookup_rows

logger = logging.getLogger(__name__)

FAQ_ROWS = "#_ctrl0_ctl19_UCFaq_dataGrid tr"
ADD_NEW = "#_ctrl0_ctl19_btnAddNew_submitButton"
FAQ_LIST_NAME_INPUT = "#_ctrl0_ctl19_UCNames_rtrNames_ctl00_txtName"
FAQ_LIST_SAVE = "#_ctrl0_ctl19_ctl00_btnSave"
FAQ_QUESTION_INPUT = "#_ctrl0_ctl19_txtQuestion"
FAQ_QUESTION_SAVE = "#_ctrl0_ctl19_btnSave"

LOOKUP_TABLE = "table.grid-list"
LOOKUP_ADD_NEW = 'input[id="_ctrl0_ctl19_btnAddNew_submitButton"]'
LOOKUP_TYPE_INPUT = "#_ctrl0_ctl19_txtLookupType"
LOOKUP_TEXT_INPUT = "#_ctrl0_ctl19_txtLookupText"
LOOKUP_VALUE_INPUT = "#_ctrl0_ctl19_txtLookupValue"
LOOKUP_ACTIVE = "#_ctrl0_ctl19_chkActive"
LOOKUP_COMMENTS = "#_ctrl0_ctl19_ctl00_txtComments"
LOOKUP_SAVE = "#_ctrl0_ctl19_ctl00_btnSaveAndSubmit"
LOOKUP_COMMENT_TEXT = "Migrated from source site"
ADD_NEW_TIMEOUTS = (5, 10, 15)


def _open(page: Page, url: str, selector: str) -> None:
    try:
        page.goto(url, wait_until="domcontentloaded")
        wait_for_page_ready(page)
        page.wait_for_selector(selector, timeout=10000)
    except PlaywrightError as exc:
        raise NavigationError(f"Page did not load: {url}") from exc


# ---- FAQs -------------------------------------------------------------------


def read_grid_pairs(page: Page) -> List[Dict[str, str]]:
    """Rows of the FAQ grid as ``{name, href}``; ``href`` is empty for questions."""

    return page.evaluate(
        """(selector) => Array.from(document.querySelectorAll(selector)).map(row => {
            if (row.classList.contains('DataGridHeader') || row.classList.contains('DataGridPager')) { return null; }
            const cells = row.querySelectorAll('td');
            if (cells.length < 2) { return null; }
            const edit = cells[0].querySelector('a[id*="linkEdit"]');
            return {name: (cells[1].textContent || '').trim(), href: edit ? edit.href : ''};
        }).filter(Boolean)""",
        FAQ_ROWS,
    )


def missing_faq_lists(scraped: Sequence[Dict[str, Any]], existing_names: Sequence[str]) -> List[str]:
    present = {name.lower() for name in existing_names}
    return [item["listName"] for item in scraped if item["listName"].lower() not in present]


def questions_to_create(questions: Sequence[Dict[str, str]], existing: Sequence[str]) -> List[Dict[str, str]]:
    """Questions absent from the list (case-insensitive) that have an answer."""

    present = {text.lower() for text in existing}
    return [
        question
        for question in questions
        if question["question"].strip().lower() not in present and question.get("answer", "").strip()
    ]


def create_faq_list(page: Page, name: str) -> None:
    page.click(ADD_NEW)
    wait_for_page_ready(page)
    page.fill(FAQ_LIST_NAME_INPUT, name)
    page.click(FAQ_LIST_SAVE)
    wait_for_page_ready(page, extra_wait=2)


def create_faq_question(page: Page, question: Dict[str, str]) -> None:
    page.click(ADD_NEW)
    wait_for_page_ready(page)
    page.fill(FAQ_QUESTION_INPUT, question["question"].strip())
    set_editor_html(page, question["answer"])
    page.click(FAQ_QUESTION_SAVE)
    wait_for_page_ready(page, extra_wait=1)


def migrate_faqs(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    snapshot = load_snapshot(ctx.data_dir, ctx.site.name, FAQ)
    scraped = snapshot["faqLists"]
    if not scraped:
        raise MigrationError("FAQ snapshot has no lists; run scrape-faqs first")

    page = ctx.destination_page()
    listing = sites.aspx_section_url(ctx.site.destination, sites.SECTION_FAQ)
    _open(page, listing, ADD_NEW)

    # one list at a time, re-reading the grid after every creation
    for _ in range(len(scraped) + 1):
        missing = missing_faq_lists(scraped, [row["name"] for row in read_grid_pairs(page)])
        if not missing:
            break
        log.info("Creating FAQ list %r", missing[0])
        create_faq_list(page, missing[0])
        _open(page, listing, ADD_NEW)
    else:
        raise MigrationError(f"FAQ lists still missing after creation: {', '.join(missing)}")

    lists = {row["name"].lower(): row["href"] for row in read_grid_pairs(page) if row["href"]}
    created = failed = 0
    for scraped_list in scraped:
        href = lists.get(scraped_list["listName"].lower())
        if not href:
            log.warning("FAQ list %r not found after creation", scraped_list["listName"])
            continue
        _open(page, href, ADD_NEW)
        existing = [row["name"] for row in read_grid_pairs(page)]
        pending = questions_to_create(scraped_list["questions"], existing)
        skipped = sum(1 for q in scraped_list["questions"] if not q.get("answer", "").strip())
        if skipped:
            log.warning("Skipping %d questions with empty answers in %r", skipped, scraped_list["listName"])
        for question in pending:
            log.info("Creating question %r", question["question"][:60])
            try:
                create_faq_question(page, question)
            except (PlaywrightError, MigrationError) as exc:
                failed += 1
                log.error("Could not create question %r: %s", question["question"][:60], exc)
            else:
                created += 1
            _open(page, href, ADD_NEW)
    log.info("Created %d FAQ questions, %d failed", created, failed)
    return failed == 0


# ---- document categories ----------------------------------------------------


def missing_categories(source: Sequence[Dict[str, str]], destination: Sequence[Dict[str, str]]) -> List[Dict[str, str]]:
    values = {category["lookupValue"] for category in destination}
    return [category for category in source if category["lookupValue"] not in values]


def open_category_form(page: Page) -> None:
    """Click "Add New", allowing longer waits on each retry."""

    def attempt(timeout: int) -> None:
        page.wait_for_selector(LOOKUP_ADD_NEW, timeout=timeout * 1000, state="visible")
        with page.expect_navigation(wait_until="networkidle", timeout=30000):
            page.click(LOOKUP_ADD_NEW)
        wait_for_page_ready(page)
        page.wait_for_selector(LOOKUP_TYPE_INPUT, timeout=20000)

    timeouts = iter(ADD_NEW_TIMEOUTS)
    outcome = retry_until(
        lambda: attempt(next(timeouts)),
        attempts=len(ADD_NEW_TIMEOUTS),
        exceptions=(PlaywrightError,),
        label="open category form",
    )
    if not outcome.ok:
        raise NavigationError("Could not open the document category form") from outcome.error


def create_category(page: Page, category: Dict[str, str]) -> None:
    open_category_form(page)
    page.fill(LOOKUP_TYPE_INPUT, LOOKUP_TYPE)
    page.fill(LOOKUP_TEXT_INPUT, category["lookupText"])
    page.fill(LOOKUP_VALUE_INPUT, category["lookupValue"])
    page.check(LOOKUP_ACTIVE)
    page.fill(LOOKUP_COMMENTS, LOOKUP_COMMENT_TEXT)
    with page.expect_navigation(wait_until="networkidle", timeout=30000):
        page.click(LOOKUP_SAVE)
    wait_for_page_ready(page)


def migrate_document_categories(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    source = load_snapshot(ctx.data_dir, ctx.site.name, LOOKUP_LIST)["categories"]
    if not source:
        log.warning("Document category snapshot is empty")
        return False

    page = ctx.destination_page()
    url = sites.aspx_section_url(ctx.site.destination, sites.SECTION_LOOKUPS, LookupType=LOOKUP_TYPE)
    _open(page, url, LOOKUP_TABLE)
    missing = missing_categories(source, read_lookup_rows(page))
    log.info("%d of %d document categories missing", len(missing), len(source))

    failures = 0
    for category in missing:
        try:
            create_category(page, category)
            log.info("Created category %r", category["lookupText"])
        except (PlaywrightError, MigrationError) as exc:
            failures += 1
            log.error("Could not create category %r: %s", category["lookupText"], exc)
        _open(page, url, LOOKUP_TABLE)
    return failures == 0
