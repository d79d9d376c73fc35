import threading
from contextlib import contextmanager

from q4_migration.catalog import OperationKind
from q4_migration.orchestrator import BatchResult, run_batch, run_site
from q4_migration.settings import Credentials, Settings
from q4_migration.sites import Site
from q4_migration.state import COMPLETED, FAILED, MemoryStatePort, StateStore

SITES = [Site("Alpha", "a20", "a25"), Site("Beta", "b20", "b25"), Site("Gamma", "g20", "g25")]


@contextmanager
def fake_pages(settings, store):
    yield "pages"


def _setup(tmp_path, max_concurrent=2):
    settings = Settings(Credentials("u", "p"), data_dir=tmp_path, max_concurrent_sites=max_concurrent)
    return settings, StateStore(MemoryStatePort())


def test_batch_records_outcomes_and_errors(tmp_path):
    settings, store = _setup(tmp_path)
    seen = []

    def runner(kind, ctx):
        seen.append((ctx.site.name, ctx.pages))
        if ctx.site.name == "Gamma":
            raise RuntimeError("login page never loaded")
        return ctx.site.name == "Alpha"

    result = run_batch(OperationKind.DELETE_FAQS, SITES, settings, store, runner=runner, pages_factory=fake_pages)

    assert result.outcomes == {"a25": True, "b25": False, "g25": False}
    assert not result.ok
    assert result.failed == ["b25", "g25"]
    assert result.errors == {"b25": "delete-faqs reported failure", "g25": "login page never loaded"}
    assert sorted(seen) == [("Alpha", "pages"), ("Beta", "pages"), ("Gamma", "pages")]
    assert store.get_site("a25").operation_status == COMPLETED
    assert store.get_site("g25").operation_status == FAILED
    assert store.global_state.active_sites == 0
    assert store.global_state.max_concurrent_sites == 2


def test_concurrency_is_bounded(tmp_path):
    settings, store = _setup(tmp_path, max_concurrent=2)
    lock = threading.Lock()
    running = peak = 0
    release = threading.Barrier(2, timeout=5)

    def runner(kind, ctx):
        nonlocal running, peak
        with lock:
            running += 1
            peak = max(peak, running)
        if ctx.site.name != "Gamma":
            release.wait()
        with lock:
            running -= 1
        return True

    result = run_batch(OperationKind.DELETE_EVENTS, SITES, settings, store, runner=runner, pages_factory=fake_pages)
    assert result.ok
    assert peak == 2


def test_global_operation_runs_once_without_browser(tmp_path):
    settings, store = _setup(tmp_path)
    calls = []

    def runner(kind, ctx):
        calls.append((ctx.site.name, ctx.pages, tuple(s.name for s in ctx.all_sites)))
        return True

    result = run_batch(OperationKind.VERIFY_FAQS, SITES, settings, store, runner=runner, pages_factory=fake_pages)
    assert calls == [("Alpha", None, ("Alpha", "Beta", "Gamma"))]
    assert result.ok
    assert store.get_site("g25").operation_status == COMPLETED


def test_run_site_catches_factory_errors(tmp_path):
    settings, store = _setup(tmp_path)

    @contextmanager
    def broken(settings, store):
        raise OSError("browser executable missing")
        yield

    store.ensure_site("a25")
    assert not run_site(OperationKind.SCRAPE_FAQS, SITES[0], settings, store, runner=lambda k, c: True, pages_factory=broken)
    state = store.get_site("a25")
    assert state.operation_status == FAILED
    assert state.last_error == "browser executable missing"


def test_empty_batch_is_not_ok(tmp_path):
    settings, store = _setup(tmp_path)
    result = run_batch(OperationKind.DELETE_FAQS, [], settings, store)
    assert result == BatchResult("delete-faqs")
    assert not result.ok


def test_sites_sharing_a_name_keep_separate_outcomes(tmp_path):
    settings, store = _setup(tmp_path)
    twins = [Site("Acme", "acme20", "acme25"), Site("Acme", "acme20", "acme26")]

    def runner(kind, ctx):
        if ctx.site.destination == "acme26":
            raise RuntimeError("dashboard never loaded")
        return True

    result = run_batch(OperationKind.DELETE_FAQS, twins, settings, store, runner=runner, pages_factory=fake_pages)

    assert result.outcomes == {"acme25": True, "acme26": False}
    assert result.failed == ["acme26"]
    assert result.errors == {"acme26": "dashboard never loaded"}


def test_global_operation_outcomes_cover_every_destination(tmp_path):
    settings, store = _setup(tmp_path)
    result = run_batch(
        OperationKind.VERIFY_FAQS, SITES, settings, store, runner=lambda kind, ctx: False, pages_factory=fake_pages
    )
    assert result.outcomes == {"a25": False, "b25": False, "g25": False}
    assert set(result.errors) == {"a25", "b25", "g25"}
