"""
Page Stream - Background producer of normalized market pages.

One task fetches pages sequentially with a fixed pause between requests and
hands each batch over through a one-slot queue. The producer waits until
the consumer has taken a batch before requesting the next page, so at most
one request is made ahead of what has been consumed.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Optional

from src.domain.entities.coin import CoinRecord
from src.domain.ports.market_data_port import PageStreamPort
from src.infrastructure.logging import get_logger

logger = get_logger(__name__)

PageFetcher = Callable[[int], Awaitable[list[CoinRecord]]]
Sleeper = Callable[[float], Awaitable[None]]

_END = object()


class PageStream(PageStreamPort):
    """
    Lazy, finite, non-restartable stream of CoinRecord batches.
    
    The producer stops when the ceiling is reached, the provider returns an
    empty or short page, a request fails, or the consumer abandons the
    stream. A failure ends iteration without raising; the cause is kept in
    ``error``.
    """
    
    def __init__(
        self,
        fetch_page: PageFetcher,
        max_pages: int,
        per_page: int,
        page_delay: float,
        sleep: Sleeper = asyncio.sleep,
    ):
        """
        Initialize the stream. Call start() from a running event loop.
        
        Args:
            fetch_page: Coroutine returning the normalized records of a 1-based page
            max_pages: Ceiling on the number of pages requested
            per_page: Page size; a shorter page means the provider is exhausted
            page_delay: Seconds to pause between successive requests
            sleep: Sleep coroutine, replaceable for tests
        """
        self._fetch_page = fetch_page
        self._max_pages = max_pages
        self._per_page = per_page
        self._page_delay = page_delay
        self._sleep = sleep
        
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._task: Optional[asyncio.Task] = None
        self._abandoned = False
        self._exhausted = False
        self._pages_emitted = 0
        self._pages_fetched = 0
        self._error: Optional[BaseException] = None
    
    def start(self) -> "PageStream":
        """Launch the producer task."""
        if self._task is None:
            self._task = asyncio.create_task(self._produce())
        return self
    
    @property
    def pages_emitted(self) -> int:
        """Batches handed to the consumer so far."""
        return self._pages_emitted
    
    @property
    def error(self) -> Optional[BaseException]:
        """Failure that ended the stream early, if any."""
        return self._error
    
    async def _produce(self) -> None:
        try:
            for index in range(self._max_pages):
                if index > 0:
                    await self._sleep(self._page_delay)
                if self._abandoned:
                    break
                
                page = index + 1
                try:
                    records = await self._fetch_page(page)
                except Exception as e:
                    self._error = e
                    logger.warning(
                        "Page fetch failed, ending stream",
                        page=page,
                        error=str(e),
                    )
                    break
                
                self._pages_fetched += 1
                if not records or self._abandoned:
                    break
                
                await self._queue.put(records)
                # Hand-off completes only once the consumer has taken the batch
                await self._queue.join()
                if len(records) < self._per_page:
                    break
        finally:
            logger.debug(
                "Page producer finished",
                pages=self._pages_fetched,
                abandoned=self._abandoned,
                failed=self._error is not None,
            )
            if not self._abandoned:
                await self._queue.put(_END)
    
    def __aiter__(self) -> "PageStream":
        return self
    
    async def __anext__(self) -> list[CoinRecord]:
        if self._exhausted or self._abandoned:
            raise StopAsyncIteration
        if self._task is None:
            self.start()
        
        item = await self._queue.get()
        self._queue.task_done()
        if item is _END:
            self._exhausted = True
            raise StopAsyncIteration
        
        self._pages_emitted += 1
        return item
    
    async def aclose(self) -> None:
        """
        Abandon the stream.
        
        Unblocks a producer waiting on the handoff. A request already in
        flight is allowed to finish, after which the producer exits.
        """
        if self._exhausted or self._abandoned:
            return
        self._abandoned = True
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
        logger.debug("Page stream abandoned", pages_emitted=self._pages_emitted)
    
    async def wait_closed(self) -> None:
        """Wait for the producer task to exit."""
        if self._task is not None:
            await self._task
    
    async def collect(self) -> list[list[CoinRecord]]:
        """Consume the remaining pages into a list."""
        return [batch async for batch in self]
