"""Rewrite document links inside press release bodies.

Link updates come from a ``link-updates`` snapshot::

    {"schemaVersion": 1, "kind": "link-updates", "name": "2024 move",
     "updates": [{"oldPath": "annual-report.pdf", "newPath": "/files/doc/annual-report.pdf"}]}

An ``href`` or ``src`` whose value ends in ``oldPath`` (with any leading
directory) is replaced by ``newPath``. ``-`` and ``@`` are interchangeable in
``oldPath`` because the CMS rewrites one into the other on upload.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from .. import sites
from ..context import OperationContext, site_logger
from ..errors import MigrationError, NavigationError
from ..pagination import iterate_pages
from ..session import wait_for_page_ready
from ..snapshots import LINK_UPDATES, load_snapshot, load_snapshot_file
from .editor import CONTENT_IFRAME, read_editor_html, set_editor_html

logger = logging.getLogger(__name__)

PR_TABLE = "table.grid-list"
PR_ROWS = "table.grid-list tr:not(.DataGridHeader):not(.DataGridPager)"
PR_EDIT_LINK = "a.grid-list-action-edit"
SAVE_BUTTON = 'a.form-button.action-button.action-button--primary[title*="Shortcut: Alt + S"]'


@dataclass(frozen=True)
class LinkUpdate:
    old_path: str
    new_path: str


@dataclass(frozen=True)
class PressReleaseItem:
    title: str
    edit_link: str


def old_path_pattern(old_path: str) -> str:
    """Regex source for ``old_path`` with ``-`` and ``@`` matching each other."""

    return "".join("[-@]" if ch in "-@" else re.escape(ch) for ch in old_path)


def link_pattern(old_path: str) -> "re.Pattern[str]":
    """Match an ``href``/``src`` attribute whose value ends in ``old_path``."""

    return re.compile(
        r"""((?:href|src)=)(["'])((?:[^"']*[/\\])?""" + old_path_pattern(old_path) + r""")(["'])"""
    )


def rewrite_links(content: str, updates: Sequence[LinkUpdate]) -> Tuple[str, Dict[LinkUpdate, int]]:
    """Apply every update to ``content``; return it with per-update counts.

    Links that already point at the new path are left alone.
    """

    counts: Dict[LinkUpdate, int] = {}
    for update in updates:
        replaced = 0

        def substitute(match: "re.Match[str]") -> str:
            nonlocal replaced
            if match.group(3) == update.new_path:
                return match.group(0)
            replaced += 1
            return f"{match.group(1)}{match.group(2)}{update.new_path}{match.group(4)}"

        content = link_pattern(update.old_path).sub(substitute, content)
        if replaced:
            counts[update] = replaced
    return content, counts


def verify_rewrite(content: str, applied: Sequence[LinkUpdate]) -> bool:
    """No link may still point at an old path and every new path must be present."""

    for update in applied:
        if any(match.group(3) != update.new_path for match in link_pattern(update.old_path).finditer(content)):
            return False
        if update.new_path not in content:
            return False
    return True


def parse_updates(document: Dict) -> List[LinkUpdate]:
    return [LinkUpdate(entry["oldPath"], entry["newPath"]) for entry in document["updates"] if entry["oldPath"]]


def load_updates(ctx: OperationContext) -> List[LinkUpdate]:
    if ctx.link_updates_path is not None:
        document = load_snapshot_file(ctx.link_updates_path, LINK_UPDATES)
    else:
        document = load_snapshot(ctx.data_dir, ctx.site.name, LINK_UPDATES)
    return parse_updates(document)


def read_press_release_items(page: Page) -> List[PressReleaseItem]:
    rows = page.evaluate(
        """([rows, edit]) => Array.from(document.querySelectorAll(rows)).map(row => {
            const title = row.querySelector('td:first-child');
            const link = row.querySelector(edit);
            return [title ? (title.textContent || '').trim() : 'No Title', link ? link.href : ''];
        })""",
        [PR_ROWS, PR_EDIT_LINK],
    )
    return [PressReleaseItem(title, href) for title, href in rows if href]


def _open_editor(page: Page, url: str) -> str:
    page.goto(url, wait_until="networkidle")
    page.wait_for_selector(CONTENT_IFRAME)
    return read_editor_html(page)


def update_item(page: Page, item: PressReleaseItem, updates: Sequence[LinkUpdate]) -> bool:
    """Rewrite one press release; return True when it was changed and verified."""

    content = _open_editor(page, item.edit_link)
    if not content:
        return False
    rewritten, counts = rewrite_links(content, updates)
    if not counts:
        return False

    set_editor_html(page, rewritten)
    with page.expect_navigation(wait_until="networkidle"):
        page.click(SAVE_BUTTON)

    saved = _open_editor(page, item.edit_link)
    if not verify_rewrite(saved, list(counts)):
        raise MigrationError(f"Link changes on {item.title!r} were not saved")
    return True


def update_pr_links(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    updates = load_updates(ctx)
    if not updates:
        log.warning("No link updates to apply")
        return False

    page = ctx.destination_page()
    url = sites.aspx_section_url(ctx.site.destination, sites.SECTION_PRESS_RELEASES)
    try:
        page.goto(url, wait_until="networkidle")
        page.wait_for_selector(PR_TABLE, state="visible")
    except PlaywrightError as exc:
        raise NavigationError("Press release list did not load") from exc

    items: List[PressReleaseItem] = []
    iterate_pages(page, lambda _number: items.extend(read_press_release_items(page)), wait_after_click=wait_for_page_ready)
    log.info("Found %d press releases", len(items))

    changed = failed = 0
    for item in items:
        try:
            if update_item(page, item, updates):
                changed += 1
                log.info("Updated links in %r", item.title)
        except (PlaywrightError, MigrationError) as exc:
            failed += 1
            log.error("Could not update %r: %s", item.title, exc)
    log.info("Press releases: %d changed, %d failed, %d checked", changed, failed, len(items))
    return failed == 0
