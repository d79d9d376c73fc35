from q4_migration.pagination import ELLIPSIS, PAGER_CURRENT, PAGER_LINKS, PagerStep, iterate_pages, next_page
from tests.fakes import FakePage


class PagerSite(FakePage):
    """A grid pager showing ``window`` page numbers at a time."""

    def __init__(self, total, window=3):
        super().__init__()
        self.total = total
        self.window = window
        self.on_click[PAGER_LINKS] = self._follow
        self.show(1)

    def show(self, number):
        self.current = number
        start = (number - 1) // self.window * self.window + 1
        end = min(start + self.window - 1, self.total)
        links = [ELLIPSIS] if start > 1 else []
        links += [str(n) for n in range(start, end + 1) if n != number]
        if end < self.total:
            links.append(ELLIPSIS)
        self.set(PAGER_CURRENT, str(number))
        self.set(PAGER_LINKS, *links)

    def _follow(self, text):
        if text != ELLIPSIS:
            self.show(int(text))
            return
        start = (self.current - 1) // self.window * self.window + 1
        links = self.elements[PAGER_LINKS]
        # a trailing ellipsis goes forward, a lone leading one goes back
        if links[-1] == ELLIPSIS and start + self.window <= self.total and not (start > 1 and len(links) == 1):
            self.show(start + self.window)
        else:
            self.show(start - 1)


class TestNextPage:
    def test_first_unvisited_number_wins(self):
        assert next_page(["1", "3", ELLIPSIS], {1, 2}) == PagerStep(1, "3")

    def test_ellipsis_when_window_is_exhausted(self):
        assert next_page(["1", "2", ELLIPSIS], {1, 2, 3}) == PagerStep(2, ELLIPSIS)

    def test_done_without_more_links(self):
        assert next_page(["1", "2"], {1, 2, 3}) is None
        assert next_page([], set()) is None


class TestIteratePages:
    def test_visits_every_page_once_across_windows(self):
        site = PagerSite(total=7)
        seen = []
        order = iterate_pages(site, seen.append, wait_after_click=lambda page: None)
        assert order == [1, 2, 3, 4, 5, 6, 7]
        assert seen == order

    def test_single_window(self):
        site = PagerSite(total=2)
        assert iterate_pages(site, lambda n: None, wait_after_click=lambda page: None) == [1, 2]

    def test_listing_without_pager_is_one_page(self):
        page = FakePage()
        seen = []
        assert iterate_pages(page, seen.append, wait_after_click=lambda p: None) == [1]
        assert seen == [1]

    def test_max_pages_bounds_the_walk(self):
        site = PagerSite(total=50, window=10)
        assert len(iterate_pages(site, lambda n: None, wait_after_click=lambda p: None, max_pages=5)) == 5
