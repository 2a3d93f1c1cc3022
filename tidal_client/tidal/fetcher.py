"""
Multi-page fetching for tidal-client.

TIDAL listings (playlist tracks, favorites, album tracks, ...) are paged.
These helpers walk a listing page by page, starting at offset 0, until
Page.num_left() reports nothing left.

Rate limiting:
    Walking a large playlist issues many requests back to back. Pass an
    asyncio_throttle.Throttler (or use make_throttler()) to bound the
    request rate.

Usage:
    from functools import partial

    fetch = partial(client.playlist_tracks, playlist_uuid)
    tracks = await collect_all(fetch, page_size=100,
                               throttler=make_throttler(5))
"""

from typing import AsyncIterator, Awaitable, Callable, TypeVar

from asyncio_throttle import Throttler

from tidal_client.core.logger import get_logger
from tidal_client.tidal.models import Page

logger = get_logger(__name__)

T = TypeVar("T")

# fetch_page(offset=..., limit=...) -> Page
PageFetcher = Callable[..., Awaitable[Page[T]]]

DEFAULT_PAGE_SIZE = 100


def make_throttler(requests_per_second: float) -> Throttler:
    """
    Build a Throttler allowing the given number of requests per second.

    Fractional rates (e.g. 0.5) are expressed as one request per period.
    """
    if requests_per_second >= 1:
        return Throttler(rate_limit=int(requests_per_second), period=1.0)
    return Throttler(rate_limit=1, period=1.0 / requests_per_second)


async def iter_pages(
    fetch_page: PageFetcher,
    page_size: int = DEFAULT_PAGE_SIZE,
    throttler: Throttler | None = None
) -> AsyncIterator[Page[T]]:
    """
    Yield every page of a listing.

    Args:
        fetch_page: Coroutine function called with offset= and limit=.
        page_size: Items requested per page.
        throttler: Optional rate limiter applied to every page request.

    Yields:
        Pages in order. Errors from fetch_page propagate unchanged.
    """
    offset = 0
    while True:
        if throttler is not None:
            async with throttler:
                page = await fetch_page(offset=offset, limit=page_size)
        else:
            page = await fetch_page(offset=offset, limit=page_size)

        yield page

        if not page.items or page.num_left() == 0:
            return
        offset += len(page.items)
        logger.debug(f"Fetched {offset}/{page.total} items")


async def collect_all(
    fetch_page: PageFetcher,
    page_size: int = DEFAULT_PAGE_SIZE,
    throttler: Throttler | None = None
) -> list[T]:
    """Fetch every page and return all items as one list."""
    items: list[T] = []
    async for page in iter_pages(fetch_page, page_size, throttler):
        items.extend(page.items)
    return items
