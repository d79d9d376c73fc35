"""Scrape operations: read content from the *source* site into snapshots."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .. import sites
from ..context import OperationContext, site_logger
from ..errors import NavigationError
from ..pagination import iterate_pages
from ..retrying import retry_until
from ..session import wait_for_page_ready
from ..snapshots import FAQ, LOOKUP_LIST, PERSONS, write_snapshot

logger = logging.getLogger(__name__)

SINGLE_FAQ_LIST_NAME = "Frequently Asked Questions"
ANSWER_ATTEMPTS = 3
ANSWER_RETRY_WAIT = 7.0

FAQ_LIST_TABLE = "table#_ctrl0_ctl19_UCFaq_dataGrid"
FAQ_LIST_ROWS = FAQ_LIST_TABLE + " tr:not(.DataGridHeader):not(.DataGridPager)"
FAQ_LIST_NAME = "td.DataGridItemBorder:nth-child(2)"
QUESTION_ROWS = "table.questions tr"
QUESTION_TEXT = 'span[id*="lblQuestion"]'
QUESTION_EDIT = 'input[id*="btnEdit"]'
QUESTION_INPUT = "#_ctrl0_ctl19_txtQuestion"
ANSWER_IFRAME = "#_ctrl0_ctl19_RADeditor1_contentIframe"
ANSWER_BODY = "body.RadEContentBordered"

PERSON_DEPARTMENT_SELECT = "#_ctrl0_ctl19_ddlDepartment"
PERSON_ROWS = "#_ctrl0_ctl19_UCPersons_dataGrid tr:not(:first-child)"
PERSON_EDIT_LINK = ".grid-list-action-icon.grid-list-action-edit"
PERSON_FIELDS = {
    "firstName": "#_ctrl0_ctl19_txtFirstName",
    "lastName": "#_ctrl0_ctl19_txtLastName",
    "suffix": "#_ctrl0_ctl19_txtSuffix",
    "title": "#_ctrl0_ctl19_txtTitle",
    "description": "#_ctrl0_ctl19_txtDescription",
    "careerHighlights": "#_ctrl0_ctl19_txtCareerHighlights",
    "tags": "#_ctrl0_ctl19_TagSelection_txtTags",
    "photoPath": "#_ctrl0_ctl19_UCPhotoPath_txtImage",
}
PERSON_PHOTO = "#_ctrl0_ctl19_UCPhotoPath_imgImage"

LOOKUP_ROWS = "table.grid-list tr:not(.DataGridHeader)"
LOOKUP_TYPE = "DocumentCategory"


def _goto_listing(page: Page, url: str, ready_selector: str) -> None:
    try:
        page.goto(url, wait_until="domcontentloaded")
        wait_for_page_ready(page)
        page.wait_for_selector(ready_selector, timeout=10000)
    except PlaywrightError as exc:
        raise NavigationError(f"Listing did not load: {url}") from exc


# ---- FAQs -------------------------------------------------------------------


def list_id_from_href(href: str) -> str:
    match = re.search(r"ListId=([\w-]+)", href, re.IGNORECASE)
    return match.group(1) if match else ""


def read_faq_lists(page: Page) -> List[Dict[str, str]]:
    rows = page.evaluate(
        """(s) => Array.from(document.querySelectorAll(s.rows)).map(row => {
            const name = row.querySelector(s.name);
            const link = row.querySelector('a');
            return name && link ? {listName: (name.textContent || '').trim(), href: link.href} : null;
        }).filter(Boolean)""",
        {"rows": FAQ_LIST_ROWS, "name": FAQ_LIST_NAME},
    )
    return [
        {"listId": list_id_from_href(row["href"]), "listName": row["listName"], "href": row["href"]}
        for row in rows
    ]


def read_questions(page: Page) -> List[Dict[str, str]]:
    return page.evaluate(
        """(s) => Array.from(document.querySelectorAll(s.rows)).map(row => {
            const text = row.querySelector(s.text);
            const edit = row.querySelector(s.edit);
            return text && edit ? {questionId: edit.id, question: text.textContent || '', answer: ''} : null;
        }).filter(Boolean)""",
        {"rows": QUESTION_ROWS, "text": QUESTION_TEXT, "edit": QUESTION_EDIT},
    )


def read_answer(page: Page, list_href: str, question_id: str, wait: float, settle: float = 0) -> str:
    """Open the question editor from its list and return the answer HTML."""

    page.goto(list_href, wait_until="domcontentloaded")
    wait_for_page_ready(page)
    page.evaluate("(id) => { const b = document.getElementById(id); if (b) { b.click(); } }", question_id)
    try:
        page.wait_for_selector(QUESTION_INPUT, timeout=wait * 1000)
    except PlaywrightTimeoutError:
        logger.debug("Question editor for %s did not appear", question_id)
    if settle > 0:
        page.wait_for_timeout(int(settle * 1000))
    return page.evaluate(
        """(s) => {
            const frame = document.querySelector(s.iframe);
            const doc = frame && frame.contentDocument;
            const body = doc && doc.querySelector(s.body);
            return body ? body.innerHTML : '';
        }""",
        {"iframe": ANSWER_IFRAME, "body": ANSWER_BODY},
    ) or ""


def scrape_faqs(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    page = ctx.source_page()
    _goto_listing(page, sites.aspx_section_url(ctx.site.source, sites.SECTION_FAQ), FAQ_LIST_TABLE)

    lists = read_faq_lists(page)
    if not lists:
        log.warning("No FAQ lists found on %s", ctx.site.source)
        return False
    if len(lists) == 1:
        lists[0]["listName"] = SINGLE_FAQ_LIST_NAME

    faq_lists: List[Dict[str, Any]] = []
    for faq_list in lists:
        page.goto(faq_list["href"], wait_until="domcontentloaded")
        wait_for_page_ready(page)
        questions = read_questions(page)
        log.info("List %r has %d questions", faq_list["listName"], len(questions))

        for question in questions:
            question["answer"] = read_answer(page, faq_list["href"], question["questionId"], 5)

        for question in [q for q in questions if not q["answer"].strip()]:
            outcome = retry_until(
                lambda q=question: read_answer(page, faq_list["href"], q["questionId"], ANSWER_RETRY_WAIT, settle=2),
                stop=lambda answer: bool(answer.strip()),
                attempts=ANSWER_ATTEMPTS,
                exceptions=(PlaywrightError,),
                label=f"answer for {question['question'][:40]!r}",
            )
            if outcome.ok:
                question["answer"] = outcome.value
            else:
                log.warning("Answer still empty for %r", question["question"])

        faq_lists.append(
            {
                "listId": faq_list["listId"],
                "listName": faq_list["listName"],
                "questionCount": len(questions),
                "questions": questions,
            }
        )

    write_snapshot(ctx.data_dir, ctx.site.name, FAQ, {"faqLists": faq_lists})
    empty = sum(1 for faq_list in faq_lists for q in faq_list["questions"] if not q["answer"].strip())
    log.info("Scraped %d FAQ lists (%d empty answers)", len(faq_lists), empty)
    return True


# ---- persons ----------------------------------------------------------------


def photo_file_name(first_name: str, last_name: str) -> str:
    return re.sub(r"[^a-z0-9-]", "_", f"{first_name}_{last_name}", flags=re.IGNORECASE).lower() + ".jpg"


def simplify_person(details: Dict[str, str]) -> Dict[str, str]:
    """Shape one edit form into the persons snapshot record."""

    description = details.get("description", "")
    highlights = details.get("careerHighlights", "")
    person = {
        "firstName": details.get("firstName", ""),
        "lastName": details.get("lastName", ""),
        "title": details.get("title", ""),
        "description": f"{description}\n\n{highlights}" if highlights else description,
    }
    if details.get("suffix"):
        person["suffix"] = details["suffix"]
    tags = [tag.strip() for tag in details.get("tags", "").split(",") if tag.strip()]
    if tags:
        person["tags"] = tags
    return person


def read_person_rows(page: Page) -> List[str]:
    """Edit URLs of the active persons in the selected department."""

    return page.evaluate(
        """(s) => Array.from(document.querySelectorAll(s.rows)).map(row => {
            const name = row.querySelector('.DataGridItemBorder');
            const edit = row.querySelector(s.edit);
            if (!name || !edit || name.classList.contains('badge-content--inactive')) { return null; }
            return edit.href;
        }).filter(Boolean)""",
        {"rows": PERSON_ROWS, "edit": PERSON_EDIT_LINK},
    )


def read_person_form(page: Page) -> Dict[str, str]:
    return page.evaluate(
        """(fields) => Object.fromEntries(Object.entries(fields).map(([key, selector]) => {
            const el = document.querySelector(selector);
            return [key, el ? el.value : ''];
        }))""",
        PERSON_FIELDS,
    )


def scrape_persons(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    page = ctx.source_page()
    listing = sites.aspx_section_url(ctx.site.source, sites.SECTION_PERSONS)
    _goto_listing(page, listing, PERSON_DEPARTMENT_SELECT)

    departments = page.evaluate(
        """(selector) => Array.from(document.querySelector(selector).options)
            .map(option => [option.value, (option.textContent || '').trim()])""",
        PERSON_DEPARTMENT_SELECT,
    )
    if not departments:
        log.warning("No departments found on %s", ctx.site.source)
        return False

    edit_urls: Dict[str, List[str]] = {}
    for department_id, department_name in departments:
        page.select_option(PERSON_DEPARTMENT_SELECT, department_id)
        wait_for_page_ready(page, extra_wait=1)
        urls = read_person_rows(page)
        if urls:
            edit_urls[department_name] = urls

    images_dir = ctx.site_dir / "images"
    output: List[Dict[str, Any]] = []
    for department_name, urls in edit_urls.items():
        persons: List[Dict[str, str]] = []
        for url in urls:
            try:
                page.goto(url, wait_until="domcontentloaded")
                wait_for_page_ready(page)
                details = read_person_form(page)
                if details.get("photoPath"):
                    capture_photo(page, images_dir / sites.safe_dir_name(department_name), details)
            except PlaywrightError as exc:
                log.error("Could not read person at %s: %s", url, exc)
                continue
            persons.append(simplify_person(details))
        if persons:
            output.append({"name": department_name, "persons": persons})
        log.info("Department %r: %d persons", department_name, len(persons))

    if not output:
        log.warning("No persons found on %s", ctx.site.source)
        return True
    write_snapshot(ctx.data_dir, ctx.site.name, PERSONS, {"departments": output})
    return True


def capture_photo(page: Page, directory: Path, details: Dict[str, str]) -> Optional[str]:
    photo = page.locator(PERSON_PHOTO)
    if photo.count() == 0:
        return None
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / photo_file_name(details.get("firstName", ""), details.get("lastName", ""))
    photo.first.screenshot(path=str(target), type="jpeg", quality=100)
    return str(target)


# ---- document categories ----------------------------------------------------


def read_lookup_rows(page: Page) -> List[Dict[str, str]]:
    rows = page.evaluate(
        """(selector) => Array.from(document.querySelectorAll(selector)).map(row => {
            const text = row.querySelector('td:nth-child(2)');
            const value = row.querySelector('td:nth-child(3)');
            return text && value ? {
                lookupText: (text.textContent || '').trim(),
                lookupValue: (value.textContent || '').trim(),
            } : null;
        }).filter(Boolean)""",
        LOOKUP_ROWS,
    )
    return [
        row
        for row in rows
        if not (row["lookupText"] == "Lookup Text" and row["lookupValue"] == "Lookup Value")
    ]


def scrape_document_categories(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    page = ctx.source_page()
    url = sites.aspx_section_url(ctx.site.source, sites.SECTION_LOOKUPS, LookupType=LOOKUP_TYPE)
    _goto_listing(page, url, "table.grid-list")

    categories: List[Dict[str, str]] = []
    iterate_pages(
        page,
        lambda number: categories.extend(read_lookup_rows(page)),
        wait_after_click=lambda p: wait_for_page_ready(p, extra_wait=1),
    )
    if not categories:
        log.warning("No document categories found on %s", ctx.site.source)
        return False
    write_snapshot(ctx.data_dir, ctx.site.name, LOOKUP_LIST, {"categories": categories})
    log.info("Scraped %d document categories", len(categories))
    return True
