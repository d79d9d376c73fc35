"""Per-site context handed to every operation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence

from playwright.sync_api import Page

from .errors import MigrationError
from .settings import Settings
from .sites import Site
from .snapshots import site_dir
from .state import StateStore


class PageProvider(Protocol):
    def page_for(self, subdomain: str, site: Site) -> Page:
        ...


class SiteLogger(logging.LoggerAdapter):
    """Prefix records with the site name so concurrent output stays readable."""

    def process(self, msg: Any, kwargs: Any):
        return f"[{self.extra['site']}] {msg}", kwargs


def site_logger(logger: logging.Logger, site: Site) -> SiteLogger:
    return SiteLogger(logger, {"site": site.name})


@dataclass
class OperationContext:
    site: Site
    settings: Settings
    store: StateStore
    pages: Optional[PageProvider] = None
    all_sites: Sequence[Site] = field(default_factory=tuple)
    link_updates_path: Optional[Path] = None

    @property
    def data_dir(self) -> Path:
        return self.settings.data_dir

    @property
    def site_dir(self) -> Path:
        return site_dir(self.settings.data_dir, self.site.name)

    def destination_page(self) -> Page:
        if self.pages is None:
            raise MigrationError("No browser session available for this operation")
        return self.pages.page_for(self.site.destination, self.site)

    def source_page(self) -> Page:
        if self.pages is None:
            raise MigrationError("No browser session available for this operation")
        return self.pages.page_for(self.site.source, self.site)
