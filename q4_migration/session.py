"""Authenticated browser sessions against the Q4 admin panel.

Each site gets one Chromium browser and one page. Login is verified by the
dashboard title, never by HTTP status, and is attempted a bounded number of
times before the site is marked ``login-failed``::

    with sync_playwright() as playwright:
        pool = SessionPool(playwright, settings, store)
        try:
            page = pool.page_for(site.destination, site)
            ...
        finally:
            pool.close_all()
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from playwright.sync_api import Browser, BrowserContext
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, Playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .errors import LoginError
from .retrying import retry_until
from .settings import Credentials, Settings
from .sites import LOGIN_PATH, Site, admin_url
from .state import LOGGED_IN, LOGGING_IN, LOGIN_FAILED, StateStore

logger = logging.getLogger(__name__)

MAX_LOGIN_ATTEMPTS = 3
LOGIN_RETRY_DELAY = 2.0

USERNAME_INPUT = "#txtUserName"
PASSWORD_INPUT = "#txtPassword"
SUBMIT_BUTTON = "#btnSubmit"
DASHBOARD_TITLE = "h1.page-title span.ModuleTitle"
DASHBOARD_TEXT = "Dashboard"


def wait_for_page_ready(page: Page, timeout: float = 30, extra_wait: float = 0.5) -> None:
    try:
        page.wait_for_load_state("networkidle", timeout=timeout * 1000)
    except PlaywrightTimeoutError:
        logger.debug("Network did not go idle within %ss on %s", timeout, page.url)
    if extra_wait > 0:
        page.wait_for_timeout(int(extra_wait * 1000))


def sanitize_filename(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "_", value).strip("_") or "page"


def save_debug_artifacts(page: Page, debug_dir: Path, slug: str, reason: str) -> None:
    debug_dir.mkdir(parents=True, exist_ok=True)
    stem = f"{sanitize_filename(slug)}_{sanitize_filename(reason)}"
    try:
        page.screenshot(path=str(debug_dir / f"{stem}.png"), full_page=True)
        (debug_dir / f"{stem}.html").write_text(page.content(), encoding="utf-8")
    except PlaywrightError as exc:
        logger.warning("Could not save debug artifacts for %s: %s", slug, exc)


def dashboard_verified(page: Page) -> bool:
    title = page.locator(DASHBOARD_TITLE)
    if title.count() == 0:
        return False
    return title.first.inner_text().strip() == DASHBOARD_TEXT


def perform_login(page: Page, base_url: str, credentials: Credentials, timeout: float) -> bool:
    """Submit the login form once; return whether the dashboard appeared."""

    page.goto(base_url + LOGIN_PATH, wait_until="domcontentloaded")
    try:
        page.wait_for_selector(USERNAME_INPUT, timeout=timeout * 1000)
    except PlaywrightTimeoutError as exc:
        raise LoginError(f"Login form not found at {base_url}{LOGIN_PATH}") from exc

    page.fill(USERNAME_INPUT, credentials.username)
    page.fill(PASSWORD_INPUT, credentials.password)
    page.click(SUBMIT_BUTTON)
    wait_for_page_ready(page, timeout, extra_wait=1)
    try:
        page.wait_for_selector(DASHBOARD_TITLE, timeout=timeout * 1000)
    except PlaywrightTimeoutError:
        return False
    return dashboard_verified(page)


def login(
    page: Page,
    subdomain: str,
    credentials: Credentials,
    store: Optional[StateStore],
    state_key: str,
    *,
    timeout: float = 30,
    attempts: int = MAX_LOGIN_ATTEMPTS,
    sleep: Optional[Callable[[float], Any]] = None,
) -> None:
    """Log ``page`` into ``subdomain`` or raise :class:`LoginError`.

    The login status under ``state_key`` is tracked only when ``store`` is given.
    """

    base_url = admin_url(subdomain)
    if store is not None:
        store.set_login_status(state_key, LOGGING_IN)
    logger.info("Logging in to %s", base_url)

    kwargs: Dict[str, Any] = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    outcome = retry_until(
        lambda: perform_login(page, base_url, credentials, timeout),
        stop=bool,
        attempts=attempts,
        delay=LOGIN_RETRY_DELAY,
        exceptions=(PlaywrightError, LoginError),
        label=f"login to {subdomain}",
        **kwargs,
    )
    if not outcome.ok:
        message = f"Login failed after {attempts} attempts"
        if store is not None:
            store.set_login_status(state_key, LOGIN_FAILED, message)
        raise LoginError(f"{subdomain}: {message}") from outcome.error

    if store is not None:
        store.set_login_status(state_key, LOGGED_IN)
    logger.info("Dashboard verified for %s", subdomain)


@dataclass
class SiteSession:
    subdomain: str
    browser: Browser
    context: BrowserContext
    page: Page

    @property
    def base_url(self) -> str:
        return admin_url(self.subdomain)

    def close(self) -> None:
        try:
            self.context.close()
        finally:
            self.browser.close()


@dataclass
class SessionPool:
    """Logged-in sessions shared by every operation run in one batch.

    Only destination logins update the site's login status.
    """

    playwright: Playwright
    settings: Settings
    store: StateStore
    sessions: Dict[str, SiteSession] = field(default_factory=dict)

    def session_for(self, subdomain: str, site: Site) -> SiteSession:
        existing = self.sessions.get(subdomain)
        if existing is not None:
            return existing

        self.store.ensure_site(site.destination, site.as_config())
        browser = self.playwright.chromium.launch(headless=self.settings.headless)
        context = browser.new_context(viewport={"width": 1400, "height": 1000})
        page = context.new_page()
        page.set_default_timeout(self.settings.timeout * 1000)
        session = SiteSession(subdomain, browser, context, page)
        try:
            login(
                page,
                subdomain,
                self.settings.credentials,
                self.store if subdomain == site.destination else None,
                site.destination,
                timeout=self.settings.timeout,
            )
        except LoginError:
            save_debug_artifacts(page, self.settings.data_dir / "debug", subdomain, "login_failed")
            session.close()
            raise
        self.sessions[subdomain] = session
        return session

    def page_for(self, subdomain: str, site: Site) -> Page:
        return self.session_for(subdomain, site).page

    def close_all(self) -> None:
        while self.sessions:
            _, session = self.sessions.popitem()
            try:
                session.close()
            except PlaywrightError as exc:
                logger.warning("Error closing browser for %s: %s", session.subdomain, exc)
