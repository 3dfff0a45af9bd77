"""Recent blockhash cache owned by a single actor task.

Every transaction must embed a recent blockhash, and every buy/sell request
needs one. Rather than asking the RPC node per request, one actor task keeps
the latest known value and refreshes it on a timer. Readers talk to the
actor through a bounded mailbox and get their answer on a one-shot future;
nothing else ever touches the cached value, so no locks are involved.

Freshness is best-effort: a reader always gets the latest value the actor
managed to fetch, however old. A failed refresh is logged and retried on the
next tick. Until the first successful refresh the mailbox is not drained,
so waiting readers stay in the bounded queue and later ones block on it.

Usage:
    fresh_hash = FreshBlockhash.start(ledger, interval=15.0)
    blockhash = await fresh_hash.get(timeout=10.0)
    ...
    await fresh_hash.stop()
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from solders.hash import Hash

from xlink.errors import ActorUnavailable
from xlink.solana.constants import HASH_EXPIRATION_SECONDS
from xlink.solana.ledger import LedgerClient

logger = logging.getLogger(__name__)

DEFAULT_MAILBOX_SIZE = 1024


@dataclass(frozen=True)
class CachedBlockhash:
    """Snapshot of the last successfully fetched blockhash."""

    value: Hash
    fetched_at: float  # time.monotonic()

    @property
    def age(self) -> float:
        """Seconds since the value was fetched."""
        return time.monotonic() - self.fetched_at


class _BlockhashActor:
    """Owns the cached blockhash. Only run() and its callees mutate it."""

    def __init__(
        self,
        ledger: LedgerClient,
        inbox: asyncio.Queue,
        interval: float,
        refresh_timeout: Optional[float],
    ):
        self._ledger = ledger
        self._inbox = inbox
        self._interval = interval
        self._refresh_timeout = refresh_timeout
        self._cached: Optional[CachedBlockhash] = None

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        refresh: Optional[asyncio.Task] = None
        receive: Optional[asyncio.Future] = None

        try:
            while True:
                # Nothing to answer with yet: leave readers in the mailbox
                if receive is None and self._cached is not None:
                    receive = asyncio.ensure_future(self._inbox.get())

                waiting = {task for task in (receive, refresh) if task is not None}
                delay = max(0.0, next_tick - loop.time())
                if waiting:
                    done, _ = await asyncio.wait(
                        waiting, timeout=delay, return_when=asyncio.FIRST_COMPLETED
                    )
                else:
                    await asyncio.sleep(delay)
                    done = set()

                if refresh is not None and refresh.done():
                    self._finish_refresh(refresh)
                    refresh = None

                if receive is not None and receive in done:
                    self._reply(receive.result())
                    receive = None

                now = loop.time()
                if now >= next_tick:
                    while next_tick <= now:
                        next_tick += self._interval
                    if refresh is None:
                        refresh = asyncio.create_task(self._fetch())
                    else:
                        logger.debug("Blockhash refresh still in flight, skipping tick")
        finally:
            pending = []
            if receive is not None:
                if receive.done() and not receive.cancelled():
                    pending.append(receive.result())
                receive.cancel()
            if refresh is not None:
                refresh.cancel()
            self._fail_pending(pending)

    async def _fetch(self) -> Hash:
        return await asyncio.wait_for(
            self._ledger.get_latest_blockhash(), timeout=self._refresh_timeout
        )

    def _finish_refresh(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            reason = str(error) or type(error).__name__
            if self._cached is None:
                logger.error(f"Failed to refresh blockhash, none cached yet: {reason}")
            else:
                logger.warning(
                    f"Failed to refresh blockhash, keeping value "
                    f"{self._cached.age:.1f}s old: {reason}"
                )
            return

        self._cached = CachedBlockhash(task.result(), time.monotonic())
        logger.debug(f"Blockhash refreshed: {self._cached.value}")

    def _reply(self, reply: asyncio.Future) -> None:
        if reply.done():
            # Reader stopped waiting
            return
        reply.set_result(self._cached.value)

    def _fail_pending(self, pending: list) -> None:
        while True:
            try:
                pending.append(self._inbox.get_nowait())
            except asyncio.QueueEmpty:
                break

        for reply in pending:
            if not reply.done():
                reply.set_exception(ActorUnavailable("blockhash actor stopped"))


class FreshBlockhash:
    """Handle to the blockhash actor.

    Handles are cheap: they hold the mailbox and the actor task only, and any
    number of concurrent requests may share or clone one.
    """

    def __init__(self, inbox: asyncio.Queue, task: asyncio.Task):
        self._inbox = inbox
        self._task = task

    @classmethod
    def start(
        cls,
        ledger: LedgerClient,
        interval: float = HASH_EXPIRATION_SECONDS,
        mailbox_size: int = DEFAULT_MAILBOX_SIZE,
        refresh_timeout: Optional[float] = None,
    ) -> "FreshBlockhash":
        """Spawn the actor on the running loop.

        Args:
            ledger: Source of fresh blockhashes
            interval: Seconds between refreshes; the first one runs at once
            mailbox_size: Reads queued before further readers wait
            refresh_timeout: Limit on one refresh call (defaults to interval)
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        if mailbox_size < 2:
            raise ValueError("mailbox_size must be at least 2")

        inbox: asyncio.Queue = asyncio.Queue(maxsize=mailbox_size)
        actor = _BlockhashActor(ledger, inbox, interval, refresh_timeout or interval)
        task = asyncio.create_task(actor.run(), name="blockhash-actor")
        task.add_done_callback(_log_exit)
        logger.info(f"Blockhash actor started (interval={interval}s, mailbox={mailbox_size})")
        return cls(inbox, task)

    def clone(self) -> "FreshBlockhash":
        """Another handle to the same actor."""
        return FreshBlockhash(self._inbox, self._task)

    @property
    def running(self) -> bool:
        return not self._task.done()

    async def get(self, timeout: Optional[float] = None) -> Hash:
        """Get the most recent blockhash known to the actor.

        Args:
            timeout: Max seconds to wait, including time spent on a full
                mailbox (None = wait as long as the actor lives)

        Raises:
            ActorUnavailable: If the actor is gone or the timeout elapsed
        """
        if self._task.done():
            raise ActorUnavailable("blockhash actor is not running")

        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        reply = loop.create_future()
        try:
            await self._race(self._inbox.put(reply), deadline)
            return await self._race(reply, deadline)
        finally:
            if not reply.done():
                reply.cancel()

    async def _race(self, awaitable, deadline: Optional[float]):
        """Await while watching the actor task and the deadline."""
        waiter = asyncio.ensure_future(awaitable)
        timeout = None
        if deadline is not None:
            timeout = max(0.0, deadline - asyncio.get_running_loop().time())

        try:
            done, _ = await asyncio.wait(
                {waiter, self._task}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if not waiter.done():
                waiter.cancel()

        if waiter in done:
            return waiter.result()
        if self._task.done():
            raise ActorUnavailable("blockhash actor stopped")
        raise ActorUnavailable("timed out waiting for a recent blockhash")

    async def stop(self) -> None:
        """Stop the actor; pending and future reads fail with ActorUnavailable."""
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)


def _log_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        logger.info("Blockhash actor stopped")
    elif task.exception() is not None:
        logger.error(f"Blockhash actor crashed: {task.exception()!r}")
