"""Bounded, cancellable message consumption.

Reading stops at whichever comes first: the message limit, the caller's
cancel event, or the timeout. The lease is closed exactly once on every
path and the messages collected so far are returned.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from kafka_explorer.kafka.registry import ConsumerLease
from kafka_explorer.models import ConsumedMessage

logger = logging.getLogger(__name__)

DEFAULT_CONSUME_TIMEOUT = 30.0

OnMessage = Callable[[ConsumedMessage, int], None]


async def consume_bounded(
    lease: ConsumerLease,
    topics: list[str],
    *,
    limit: int,
    from_beginning: bool = False,
    timeout: float = DEFAULT_CONSUME_TIMEOUT,
    cancel: asyncio.Event | None = None,
    on_message: OnMessage | None = None,
) -> list[ConsumedMessage]:
    """Consume up to *limit* messages from *topics* through *lease*.

    *on_message* is called with each message and the running count as
    messages arrive. Errors raised by the message stream propagate after
    the lease is closed.
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    messages: list[ConsumedMessage] = []
    limit_reached = asyncio.Event()
    cancel = cancel or asyncio.Event()

    async def handle(message: ConsumedMessage) -> None:
        if limit_reached.is_set():
            return
        messages.append(message)
        if on_message is not None:
            on_message(message, len(messages))
        if len(messages) >= limit:
            limit_reached.set()

    async def pump() -> None:
        await lease.consumer.subscribe(topics, from_beginning=from_beginning)
        await lease.consumer.run(handle)

    pump_task = asyncio.create_task(pump())
    limit_task = asyncio.create_task(limit_reached.wait())
    cancel_task = asyncio.create_task(cancel.wait())
    tasks = (pump_task, limit_task, cancel_task)

    try:
        await asyncio.wait(tasks, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await lease.close()

    if limit_reached.is_set():
        reason = "limit"
    elif cancel.is_set():
        reason = "cancelled"
    elif pump_task.cancelled():
        reason = "timeout"
    else:
        reason = "stream ended"
    logger.info(
        "Consumed %d message(s) from %s on %s (%s)",
        len(messages), ", ".join(topics), lease.cluster_name, reason,
    )

    error = None if pump_task.cancelled() else pump_task.exception()
    if error is not None:
        raise error
    return messages
