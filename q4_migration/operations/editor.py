"""Helpers for the Telerik RadEditor used on FAQ and press release forms."""

from __future__ import annotations

from playwright.sync_api import Page

from ..errors import MigrationError

HTML_MODE = "a.reMode_html"
DESIGN_MODE = "a.reMode_design"
HTML_TEXTAREA = "textarea.reTextArea"
CONTENT_IFRAME = "#_ctrl0_ctl19_RADeditor1_contentIframe"
CONTENT_BODY = "body.RadEContentBordered"


def _switch_mode(page: Page, selector: str, name: str) -> None:
    page.wait_for_selector(selector)
    page.click(selector)
    page.wait_for_timeout(500)
    selected = page.evaluate(
        "(selector) => { const b = document.querySelector(selector); return !!b && b.classList.contains('reMode_selected'); }",
        selector,
    )
    if not selected:
        raise MigrationError(f"Editor did not switch to {name} mode")


def set_editor_html(page: Page, html: str) -> None:
    """Replace the editor content through its HTML source view.

    Raises :class:`MigrationError` when the design view is empty afterwards.
    """

    _switch_mode(page, HTML_MODE, "HTML")
    page.wait_for_selector(HTML_TEXTAREA)
    page.evaluate(
        """([selector, value]) => {
            const area = document.querySelector(selector);
            area.value = value;
            area.dispatchEvent(new Event('input', { bubbles: true }));
            area.dispatchEvent(new Event('change', { bubbles: true }));
        }""",
        [HTML_TEXTAREA, html],
    )
    _switch_mode(page, DESIGN_MODE, "Design")
    if not read_editor_html(page).strip():
        raise MigrationError("Editor content is empty after switching back to Design mode")


def read_editor_html(page: Page) -> str:
    page.wait_for_selector(CONTENT_IFRAME)
    return page.evaluate(
        """([iframe, body]) => {
            const frame = document.querySelector(iframe);
            const doc = frame && frame.contentDocument;
            const el = doc && doc.querySelector(body);
            return el ? el.innerHTML : '';
        }""",
        [CONTENT_IFRAME, CONTENT_BODY],
    ) or ""
