import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import websockets

logger = logging.getLogger(__name__)


async def call_handler(handler: Optional[Callable], *args) -> None:
    """Invoke a sync or async callback."""
    if handler is None:
        return
    result = handler(*args)
    if inspect.isawaitable(result):
        await result


class Poller:
    """Runs ``fetch`` every ``interval`` seconds until stopped.

    Fixed interval, no backoff. A failing tick is logged and the loop keeps
    going; visibility lags by at most one interval.
    """

    def __init__(self, fetch: Callable[[], Awaitable[Any]], interval: float):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._fetch = fetch
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "Poller":
        if not self.running:
            self._task = asyncio.create_task(self._run())
        return self

    async def _run(self) -> None:
        while True:
            try:
                await self._fetch()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Polling tick failed")
            await asyncio.sleep(self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


class PushSubscription:
    """Consumes server-pushed JSON events over a WebSocket.

    When the connection ends by itself, failed or closed by the server,
    ``on_closed(exc)`` runs once with the error or None. stop() never calls it.
    """

    def __init__(self,
                 url: str,
                 on_event: Callable[[dict], Any],
                 on_closed: Optional[Callable[[Optional[BaseException]], Any]] = None):
        self.url = url
        self._on_event = on_event
        self._on_closed = on_closed
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "PushSubscription":
        if not self.running:
            self._task = asyncio.create_task(self._run())
            self._task.add_done_callback(self._finished)
        return self

    async def _run(self) -> None:
        async with websockets.connect(self.url) as ws:
            async for raw in ws:
                try:
                    event = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring malformed push event: %r", raw)
                    continue
                await call_handler(self._on_event, event)

    def _finished(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Push subscription to %s failed: %r", self.url, error)
        else:
            logger.info("Push subscription to %s closed by the server", self.url)
        if self._on_closed is not None:
            self._on_closed(error)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
