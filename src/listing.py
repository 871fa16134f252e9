"""
Lazy, restartable paginated listings.

A Pager fetches nothing until it is iterated. Iterating it (or calling
iterate_all) walks every page the server returns, following page tokens
until none is left; each new iteration starts again from the first page.
"""

import logging
from typing import Callable, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

PageFetcher = Callable[[Dict, Optional[str]], Tuple[List[Dict], Optional[str]]]


class Page(Generic[T]):
    """One page of a listing."""

    def __init__(
        self,
        pager: "Pager[T]",
        items: List[T],
        next_page_token: Optional[str],
    ):
        self._pager = pager
        self.items = items
        self.next_page_token = next_page_token

    def has_next_page(self) -> bool:
        return bool(self.next_page_token)

    def next_page(self) -> Optional["Page[T]"]:
        """Fetch the page after this one, or None if this is the last."""
        if not self.has_next_page():
            return None
        return self._pager._fetch_page(self.next_page_token)

    def iterate_all(self) -> Iterator[T]:
        """Yield the items of this page and of every page after it."""
        page: Optional[Page[T]] = self
        while page is not None:
            yield from page.items
            page = page.next_page()

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


class Pager(Generic[T]):
    """
    Lazy sequence over a paginated list RPC.

    Args:
        fetch: Callable taking (request, page_token) and returning
            (raw_items, next_page_token)
        request: List request; filter and page size are already set in it
        convert: Turns a raw item into the exposed entity
    """

    def __init__(self, fetch: PageFetcher, request: Dict, convert: Callable[[Dict], T]):
        self._fetch = fetch
        self._request = dict(request)
        self._convert = convert

    @property
    def request(self) -> Dict:
        return dict(self._request)

    def _fetch_page(self, page_token: Optional[str]) -> Page[T]:
        raw_items, next_token = self._fetch(dict(self._request), page_token)
        logger.debug(
            f"Fetched page of {len(raw_items)} item(s) (token={page_token!r}, next={next_token!r})"
        )
        return Page(self, [self._convert(item) for item in raw_items], next_token or None)

    def first_page(self) -> Page[T]:
        """Fetch only the first page."""
        return self._fetch_page(None)

    def pages(self) -> Iterator[Page[T]]:
        page: Optional[Page[T]] = self.first_page()
        while page is not None:
            yield page
            page = page.next_page()

    def iterate_all(self) -> Iterator[T]:
        for page in self.pages():
            yield from page.items

    def __iter__(self) -> Iterator[T]:
        return self.iterate_all()
