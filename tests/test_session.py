import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from q4_migration import session
from q4_migration.errors import LoginError
from q4_migration.session import (
    DASHBOARD_TITLE,
    PASSWORD_INPUT,
    SUBMIT_BUTTON,
    USERNAME_INPUT,
    SessionPool,
    dashboard_verified,
    login,
    sanitize_filename,
)
from q4_migration.settings import Credentials, Settings
from q4_migration.sites import Site
from q4_migration.state import LOGGED_IN, LOGGED_OUT, LOGIN_FAILED, MemoryStatePort, StateStore
from tests.fakes import FakePage, RecordingSleep


class LoginPage(FakePage):
    def __init__(self, accept_after=1, dashboard_text="Dashboard"):
        super().__init__({USERNAME_INPUT: [""], PASSWORD_INPUT: [""]})
        self.accept_after = accept_after
        self.dashboard_text = dashboard_text
        self.submits = 0
        self.filled = {}

    def wait_for_selector(self, selector, **_):
        if self.locator(selector).count() == 0:
            raise PlaywrightTimeoutError(f"waiting for {selector}")

    def fill(self, selector, value):
        self.filled[selector] = value

    def click(self, selector):
        assert selector == SUBMIT_BUTTON
        self.submits += 1
        if self.submits >= self.accept_after:
            self.set(DASHBOARD_TITLE, self.dashboard_text)

    def set_default_timeout(self, _ms):
        return None


def make_store():
    store = StateStore(MemoryStatePort())
    store.ensure_site("acme25")
    return store


class TestLogin:
    credentials = Credentials("bot@example.com", "secret")

    def test_successful_login_marks_dashboard_verified(self):
        page = LoginPage()
        store = make_store()
        login(page, "acme25", self.credentials, store, "acme25", timeout=1, sleep=RecordingSleep())
        state = store.get_site("acme25")
        assert state.login_status == LOGGED_IN
        assert state.dashboard_verified
        assert page.visits == ["https://acme25.s4.q4web.com/admin/login.aspx"]
        assert page.filled[USERNAME_INPUT] == "bot@example.com"

    def test_retries_until_dashboard_appears(self):
        page = LoginPage(accept_after=3)
        sleep = RecordingSleep()
        login(page, "acme25", self.credentials, make_store(), "acme25", timeout=1, sleep=sleep)
        assert page.submits == 3
        assert len(sleep.calls) == 2

    def test_gives_up_after_three_attempts(self):
        page = LoginPage(accept_after=99)
        store = make_store()
        with pytest.raises(LoginError, match="Login failed after 3 attempts"):
            login(page, "acme25", self.credentials, store, "acme25", timeout=1, sleep=RecordingSleep())
        state = store.get_site("acme25")
        assert page.submits == 3
        assert state.login_status == LOGIN_FAILED
        assert state.last_error == "Login failed after 3 attempts"

    def test_wrong_marker_text_is_not_a_login(self):
        page = LoginPage(dashboard_text="Login")
        with pytest.raises(LoginError):
            login(page, "acme25", self.credentials, make_store(), "acme25", timeout=1, sleep=RecordingSleep())


class FakeBrowser:
    """Browser, context and playwright in one; every launch hands out the next page."""

    def __init__(self, pages):
        self.pages = list(pages)
        self.closed = 0
        self.chromium = self

    def launch(self, **_):
        return self

    def new_context(self, **_):
        return self

    def new_page(self):
        return self.pages.pop(0)

    def close(self):
        self.closed += 1


class TestSessionPool:
    site = Site("Acme Corp", "acme20", "acme25")

    def make_pool(self, tmp_path, pages):
        settings = Settings(Credentials("bot@example.com", "secret"), data_dir=tmp_path, timeout=1)
        return SessionPool(FakeBrowser(pages), settings, StateStore(MemoryStatePort()))

    def test_source_login_leaves_destination_status_alone(self, tmp_path):
        pool = self.make_pool(tmp_path, [LoginPage()])
        pool.page_for("acme20", self.site)
        state = pool.store.get_site("acme25")
        assert state.login_status == LOGGED_OUT
        assert not state.dashboard_verified

    def test_failed_source_login_does_not_mark_destination_failed(self, tmp_path, monkeypatch):
        monkeypatch.setattr(session, "LOGIN_RETRY_DELAY", 0)
        monkeypatch.setattr(session, "save_debug_artifacts", lambda *args: None)
        pool = self.make_pool(tmp_path, [LoginPage(), LoginPage(accept_after=99)])

        pool.page_for("acme25", self.site)
        with pytest.raises(LoginError):
            pool.page_for("acme20", self.site)

        state = pool.store.get_site("acme25")
        assert state.login_status == LOGGED_IN
        assert state.last_error is None
        assert list(pool.sessions) == ["acme25"]

    def test_sessions_are_reused_per_subdomain(self, tmp_path):
        first = LoginPage()
        pool = self.make_pool(tmp_path, [first])
        assert pool.page_for("acme25", self.site) is first
        assert pool.page_for("acme25", self.site) is first
        assert pool.store.get_site("acme25").login_status == LOGGED_IN


class TestHelpers:
    def test_dashboard_verified(self):
        assert not dashboard_verified(FakePage())
        assert dashboard_verified(FakePage({DASHBOARD_TITLE: [" Dashboard "]}))

    def test_sanitize_filename(self):
        assert sanitize_filename("acme 25/login failed") == "acme_25_login_failed"
        assert sanitize_filename("///") == "page"
