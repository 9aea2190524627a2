"""
Rate-limited task queue for URL requests.
Implements a global concurrency cap, a per-host concurrency cap and a minimum
delay between dispatches.
"""

import asyncio
import itertools
import logging
import time
from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from yarl import URL

from .errors import InvalidUrlError


@dataclass
class QueueItem:
    """Represents a queued URL task."""
    id: int
    url: URL
    data: Any = None
    enqueued_time: float = field(default_factory=time.time)

    @property
    def host_key(self) -> str:
        """Key used for per-host limiting."""
        return f"{self.url.host or ''}:{self.url.port or ''}"


ItemHandler = Callable[[URL, Any], Awaitable[Any]]


class RequestQueue:
    """
    Dispatches queued items to an async handler while respecting
    politeness policies.

    Items are started in FIFO order, skipping over items whose host is at
    its concurrency limit. ``end_handler`` is called every time the queue
    drains (no active and no queued items).
    """

    def __init__(self, item_handler: ItemHandler,
                 end_handler: Optional[Callable[[], Any]] = None,
                 max_sockets: Optional[int] = None,
                 max_sockets_per_host: Optional[int] = None,
                 rate_limit: float = 0.0):
        self.item_handler = item_handler
        self.end_handler = end_handler
        self.max_sockets = max_sockets
        self.max_sockets_per_host = max_sockets_per_host
        self.rate_limit = rate_limit
        self.logger = logging.getLogger(__name__)

        self._ids = itertools.count()
        self._queued: 'OrderedDict[int, QueueItem]' = OrderedDict()
        self._active_per_host: Dict[str, int] = defaultdict(int)
        self._active = 0
        self._paused = False
        self._last_dispatch: Optional[float] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks = set()

        self.stats = {
            'total_enqueued': 0,
            'total_dequeued': 0,
            'total_completed': 0,
            'total_failed': 0
        }

    def enqueue(self, url: Union[str, URL], data: Any = None) -> int:
        """
        Add a URL to the queue.

        Returns:
            The id of the queued item

        Raises:
            InvalidUrlError: If ``url`` is not an absolute URL
        """
        try:
            parsed = url if isinstance(url, URL) else URL(str(url))
        except (TypeError, ValueError):
            raise InvalidUrlError(url) from None

        if not parsed.scheme:
            raise InvalidUrlError(url)

        item = QueueItem(id=next(self._ids), url=parsed, data=data)
        self._queued[item.id] = item
        self.stats['total_enqueued'] += 1

        self.logger.debug(f"Enqueued {parsed} (id={item.id})")
        self._maybe_start()
        return item.id

    def dequeue(self, item_id: int) -> bool:
        """Remove an item that has not started yet."""
        if self._queued.pop(item_id, None) is None:
            return False

        self.stats['total_dequeued'] += 1

        if self._active == 0 and not self._queued:
            self._end()
        return True

    def pause(self):
        """Stop dispatching new items. Active items keep running."""
        self._paused = True

    def resume(self):
        """Resume dispatching."""
        self._paused = False
        self._maybe_start()

    @property
    def paused(self) -> bool:
        return self._paused

    def num_active(self) -> int:
        return self._active

    def num_queued(self) -> int:
        return len(self._queued)

    def __len__(self) -> int:
        return self._active + len(self._queued)

    def _host_available(self, item: QueueItem) -> bool:
        if self.max_sockets_per_host is None:
            return True
        return self._active_per_host[item.host_key] < self.max_sockets_per_host

    def _maybe_start(self):
        """Start as many queued items as the limits allow."""
        if self._paused or self._timer is not None:
            return

        loop = asyncio.get_running_loop()

        while self._queued:
            if self.max_sockets is not None and self._active >= self.max_sockets:
                return

            item = next((i for i in self._queued.values() if self._host_available(i)), None)
            if item is None:
                return

            if self.rate_limit > 0 and self._last_dispatch is not None:
                wait = self._last_dispatch + self.rate_limit - loop.time()
                if wait > 0:
                    self._timer = loop.call_later(wait, self._on_timer)
                    return

            del self._queued[item.id]
            self._start(item, loop)

    def _on_timer(self):
        self._timer = None
        if self._queued:
            self._maybe_start()

    def _start(self, item: QueueItem, loop: asyncio.AbstractEventLoop):
        self._active += 1
        self._active_per_host[item.host_key] += 1
        self._last_dispatch = loop.time()

        task = loop.create_task(self._run(item))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, item: QueueItem):
        cancelled = False
        try:
            await self.item_handler(item.url, item.data)
            self.stats['total_completed'] += 1
        except asyncio.CancelledError:
            cancelled = True
            raise
        except Exception as e:
            self.stats['total_failed'] += 1
            self.logger.exception(f"Error processing queue item {item.url}: {e}")
        finally:
            self._active -= 1
            self._active_per_host[item.host_key] -= 1
            if self._active_per_host[item.host_key] <= 0:
                del self._active_per_host[item.host_key]

            if not cancelled:
                self._maybe_start()

                if self._active == 0 and not self._queued:
                    self._end()

    def _end(self):
        if self.end_handler is None:
            return
        try:
            self.end_handler()
        except Exception as e:
            self.logger.exception(f"Error in queue end handler: {e}")

    async def cancel(self):
        """Cancel active tasks and forget queued items."""
        self._queued.clear()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        tasks = list(self._tasks)
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def get_stats(self) -> Dict[str, int]:
        """Get queue statistics."""
        return {
            **self.stats,
            'active': self._active,
            'queued': len(self._queued),
            'hosts_active': len(self._active_per_host)
        }
