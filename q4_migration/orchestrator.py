"""Run one operation across the selected sites with bounded concurrency.

Every worker thread owns its own Playwright driver and browser sessions;
the sync API is not shared across threads. Sites are submitted in
registration order and a free worker picks up the next one.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, ContextManager, Dict, Iterator, List, Optional, Sequence

from playwright.sync_api import sync_playwright

from .catalog import GLOBAL_SCOPE, OperationKind, run_operation
from .context import OperationContext, PageProvider, site_logger
from .session import SessionPool
from .settings import Settings
from .sites import Site
from .state import StateStore

logger = logging.getLogger(__name__)

Runner = Callable[[OperationKind, OperationContext], bool]
PagesFactory = Callable[[Settings, StateStore], ContextManager[Optional[PageProvider]]]


@contextmanager
def browser_sessions(settings: Settings, store: StateStore) -> Iterator[PageProvider]:
    with sync_playwright() as playwright:
        pool = SessionPool(playwright, settings, store)
        try:
            yield pool
        finally:
            pool.close_all()


@dataclass
class BatchResult:
    """Outcomes and errors keyed by destination subdomain."""

    operation: str
    outcomes: Dict[str, bool] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return bool(self.outcomes) and all(self.outcomes.values())

    @property
    def failed(self) -> List[str]:
        return [destination for destination, ok in self.outcomes.items() if not ok]


def run_site(
    kind: OperationKind,
    site: Site,
    settings: Settings,
    store: StateStore,
    *,
    runner: Runner = run_operation,
    pages_factory: PagesFactory = browser_sessions,
    all_sites: Sequence[Site] = (),
    link_updates_path: Optional[Path] = None,
) -> bool:
    """Run ``kind`` against one site and record the outcome; never raises."""

    log = site_logger(logger, site)
    store.adjust_active_sites(1)
    store.start_operation(site.destination, kind.key)
    error: Optional[str] = None
    ok = False
    try:
        with pages_factory(settings, store) as pages:
            ctx = OperationContext(site, settings, store, pages, all_sites, link_updates_path)
            ok = runner(kind, ctx)
        if not ok:
            error = f"{kind.key} reported failure"
    except Exception as exc:
        log.exception("%s failed", kind.key)
        error = str(exc) or exc.__class__.__name__
    finally:
        store.finish_operation(site.destination, ok, error)
        store.adjust_active_sites(-1)
    log.info("%s %s", kind.key, "completed" if ok else "failed")
    return ok


@contextmanager
def no_sessions(settings: Settings, store: StateStore) -> Iterator[None]:
    yield None


def run_batch(
    kind: OperationKind,
    sites: Sequence[Site],
    settings: Settings,
    store: StateStore,
    *,
    runner: Runner = run_operation,
    pages_factory: PagesFactory = browser_sessions,
    link_updates_path: Optional[Path] = None,
) -> BatchResult:
    result = BatchResult(kind.key)
    if not sites:
        logger.warning("No sites selected")
        return result

    for site in sites:
        store.ensure_site(site.destination, site.as_config())
        store.mark_pending(site.destination, kind.key)
    store.set_max_concurrent_sites(settings.max_concurrent_sites)

    if kind.spec.scope == GLOBAL_SCOPE:
        first = sites[0]
        ok = run_site(
            kind,
            first,
            settings,
            store,
            runner=runner,
            pages_factory=no_sessions,
            all_sites=sites,
            link_updates_path=link_updates_path,
        )
        for site in sites:
            if site is not first:
                store.finish_operation(site.destination, ok, None if ok else f"{kind.key} reported failure")
            result.outcomes[site.destination] = ok
    else:
        _run_concurrently(kind, sites, settings, store, result, runner, pages_factory, link_updates_path)

    for site in sites:
        state = store.get_site(site.destination)
        if state is not None and state.last_error:
            result.errors[site.destination] = state.last_error
    return result


def _run_concurrently(
    kind: OperationKind,
    sites: Sequence[Site],
    settings: Settings,
    store: StateStore,
    result: BatchResult,
    runner: Runner,
    pages_factory: PagesFactory,
    link_updates_path: Optional[Path],
) -> None:
    workers = max(1, min(settings.max_concurrent_sites, len(sites)))
    logger.info("Running %s on %d sites (%d at a time)", kind.key, len(sites), workers)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="site") as executor:
        futures = {
            site.destination: executor.submit(
                run_site,
                kind,
                site,
                settings,
                store,
                runner=runner,
                pages_factory=pages_factory,
                all_sites=sites,
                link_updates_path=link_updates_path,
            )
            for site in sites
        }
        for destination, future in futures.items():
            result.outcomes[destination] = future.result()
