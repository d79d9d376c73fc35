"""Small stand-ins for the parts of the Playwright page API the helpers use."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from q4_migration.context import OperationContext
from q4_migration.matching import MatchThresholds
from q4_migration.settings import Credentials, Settings
from q4_migration.sites import Site
from q4_migration.state import MemoryStatePort, StateStore


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str, index: Optional[int] = None) -> None:
        self.page = page
        self.selector = selector
        self.index = index

    def _texts(self) -> List[str]:
        texts = self.page.elements.get(self.selector, [])
        if self.index is None:
            return texts
        return texts[self.index : self.index + 1]

    def count(self) -> int:
        return len(self._texts())

    @property
    def first(self) -> "FakeLocator":
        return self.nth(0)

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self.page, self.selector, index)

    def inner_text(self) -> str:
        return self._texts()[0]

    def all_inner_texts(self) -> List[str]:
        return list(self._texts())

    def click(self) -> None:
        self.page.clicks.append((self.selector, self.inner_text()))
        handler = self.page.on_click.get(self.selector)
        if handler is not None:
            handler(self.inner_text())


class FakePage:
    """Elements are ``{selector: [text, ...]}``; presence means a non-empty list."""

    def __init__(self, elements: Optional[Dict[str, List[str]]] = None) -> None:
        self.elements: Dict[str, List[str]] = dict(elements or {})
        self.clicks: List[tuple] = []
        self.visits: List[str] = []
        self.on_click: Dict[str, Callable[[str], None]] = {}
        self.url = "about:blank"

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def set(self, selector: str, *texts: str) -> None:
        self.elements[selector] = list(texts)

    def remove(self, selector: str) -> None:
        self.elements.pop(selector, None)

    def goto(self, url: str, **_: object) -> None:
        self.visits.append(url)
        self.url = url

    def wait_for_load_state(self, *_: object, **__: object) -> None:
        return None

    def wait_for_timeout(self, _ms: float) -> None:
        return None


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_context(data_dir, pages=None, site=None, all_sites=(), link_updates_path=None, thresholds=None):
    site = site or Site("Acme Corp", "acme20", "acme25")
    settings = Settings(
        Credentials("bot@example.com", "secret"),
        data_dir=data_dir,
        thresholds=thresholds or MatchThresholds(),
    )
    store = StateStore(MemoryStatePort())
    store.ensure_site(site.destination, site.as_config())
    return OperationContext(site, settings, store, pages, all_sites, link_updates_path)


class StubPages:
    """Hands out one page for every subdomain and records the requests."""

    def __init__(self, page) -> None:
        self.page = page
        self.requested: List[str] = []

    def page_for(self, subdomain: str, site) -> object:
        self.requested.append(subdomain)
        return self.page
