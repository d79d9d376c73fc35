"""Traversal of the numbered pager under ASPX grid listings.

The pager shows a window of page numbers; the current page is a ``span`` and
the others are links. When every numbered link in the window has been
visited, a trailing ``...`` link opens the next window.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Set

from playwright.sync_api import Page

logger = logging.getLogger(__name__)

PAGER_LINKS = 'td[colspan="6"] a'
PAGER_CURRENT = 'td[colspan="6"] span'
ELLIPSIS = "..."


@dataclass(frozen=True)
class PagerStep:
    """Index into the pager links to click next, with its label."""

    index: int
    label: str


def _page_number(text: str) -> Optional[int]:
    try:
        return int(text.strip())
    except ValueError:
        return None


def next_page(link_texts: Sequence[str], visited: Set[int]) -> Optional[PagerStep]:
    """Pick the next pager link to follow, or ``None`` when traversal is done."""

    texts = [text.strip() for text in link_texts]
    numbered = [(idx, _page_number(text)) for idx, text in enumerate(texts)]
    numbered = [(idx, number) for idx, number in numbered if number is not None]

    for idx, number in numbered:
        if number not in visited:
            return PagerStep(idx, texts[idx])

    if texts and texts[-1] == ELLIPSIS:
        return PagerStep(len(texts) - 1, ELLIPSIS)
    return None


def iterate_pages(
    page: Page,
    visit: Callable[[int], None],
    *,
    wait_after_click: Callable[[Page], None],
    max_pages: int = 1000,
) -> List[int]:
    """Call ``visit`` once per distinct page number; return them in order.

    A listing without a pager is a single page numbered 1. Following an
    ellipsis that lands on an already visited page ends the traversal, since
    the last window only offers a link back to the previous one.
    """

    visited: Set[int] = set()
    order: List[int] = []
    followed_ellipsis = False
    for _ in range(max_pages):
        current_locator = page.locator(PAGER_CURRENT)
        current = 1
        if current_locator.count():
            current = _page_number(current_locator.first.inner_text()) or 1
        if current in visited and followed_ellipsis:
            break
        if current not in visited:
            logger.info("Processing page %d", current)
            visit(current)
            visited.add(current)
            order.append(current)

        links = page.locator(PAGER_LINKS)
        texts = [links.nth(idx).inner_text() for idx in range(links.count())]
        step = next_page(texts, visited)
        if step is None:
            break
        logger.debug("Following pager link %r", step.label)
        followed_ellipsis = step.label == ELLIPSIS
        links.nth(step.index).click()
        wait_after_click(page)
    return order
