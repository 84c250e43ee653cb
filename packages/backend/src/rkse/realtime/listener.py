"""Bus listener — Redis SUBSCRIBE → stream of raw payloads.

Learn: The listener holds two Redis connections:
1. subscriber — put into pub/sub mode on the selection channel. A
   connection in subscribe mode can't run normal commands anymore.
2. counter — a regular connection used by the stats aggregator for INCR.

Both share the same address, password and database.

There is no reconnect logic. If Redis goes away the payload stream
raises BusConnectionError and the whole relay process shuts down; a
supervisor (systemd, docker restart policy) is expected to bring it back.
"""

from typing import Any, AsyncIterator, Optional, Union

import redis.asyncio as aioredis
import structlog
from redis.asyncio.connection import parse_url
from redis.exceptions import RedisError

from rkse.config import BusConnection
from rkse.errors import BusConnectionError

logger = structlog.get_logger()


def create_client(bus: BusConnection, **kwargs: Any) -> aioredis.Redis:
    """Redis client for the bus address.

    The configured database always wins over one in the URL, and a
    configured password wins over one in the URL.
    """
    options: dict[str, Any] = dict(parse_url(bus.address))
    options["db"] = bus.db
    if bus.password is not None:
        options["password"] = bus.password
    options["decode_responses"] = True
    options.update(kwargs)
    pool = aioredis.ConnectionPool(**options)
    return aioredis.Redis.from_pool(pool)


class BusListener:
    """One subscription to the selection channel.

    Usage:
        async with BusListener(bus) as listener:
            async for raw in listener.payloads():
                ...
    """

    def __init__(
        self,
        bus: BusConnection,
        subscriber: Optional[aioredis.Redis] = None,
        counter: Optional[aioredis.Redis] = None,
    ):
        self.bus = bus
        try:
            # Payloads stay bytes so a non-UTF-8 message is rejected by the parser
            # instead of breaking the subscription
            self._subscriber = subscriber or create_client(bus, decode_responses=False)
            self._counter = counter or create_client(bus)
        except ValueError as e:
            raise BusConnectionError(f"Invalid Redis address: {e}") from e
        self._pubsub = None
        self._consumed = False
        self._closed = False

    @property
    def counter(self) -> aioredis.Redis:
        """Connection for counter writes (not in pub/sub mode)."""
        return self._counter

    async def connect(self) -> None:
        """Verify both connections and subscribe to the channel."""
        try:
            await self._counter.ping()
            await self._subscriber.ping()
            self._pubsub = self._subscriber.pubsub()
            await self._pubsub.subscribe(self.bus.channel)
        except RedisError as e:
            raise BusConnectionError(
                f"Failed to subscribe to {self.bus.channel!r}: {e}"
            ) from e

        logger.info("relay.subscribed", channel=self.bus.channel, db=self.bus.db)

    async def payloads(self) -> AsyncIterator[Union[str, bytes]]:
        """Raw body of every message published on the channel.

        Runs until the subscription ends. Can only be consumed once.
        """
        if self._pubsub is None:
            raise RuntimeError("BusListener.connect() must be awaited first")
        if self._consumed:
            raise RuntimeError("payload stream was already consumed")
        self._consumed = True

        try:
            async for message in self._pubsub.listen():
                # Skip subscribe/unsubscribe confirmations
                if message["type"] == "message":
                    yield message["data"]
        except RedisError as e:
            raise BusConnectionError(f"Subscription to {self.bus.channel!r} broke: {e}") from e

        logger.warning("relay.subscription_ended", channel=self.bus.channel)

    async def close(self) -> None:
        """Unsubscribe and close both connections. Idempotent."""
        if self._closed:
            return
        self._closed = True

        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe()
            except RedisError as e:
                logger.debug("relay.unsubscribe_failed", error=str(e))
            await self._pubsub.aclose()
            self._pubsub = None

        await self._subscriber.aclose()
        await self._counter.aclose()

    async def __aenter__(self) -> "BusListener":
        try:
            await self.connect()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
