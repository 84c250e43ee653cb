"""Relay pipeline — bus payloads → parse → count → broadcast.

Learn: This is the producer side of the hub. For every payload:

    raw ──parse──> SelectionEvent ──INCR──> StatisticsSnapshot
                        │                          │
                        └──── hub.publish ─────────┴──── hub.publish

Rejected payloads are skipped (the parser already logged why). Counter
store failures propagate and end the pipeline. However the pipeline
ends, the hub is closed so every WebSocket session finishes too.
"""

from dataclasses import dataclass
from typing import AsyncIterable, Optional, Union

import structlog

from rkse.config import BusConnection
from rkse.realtime.hub import BroadcastHub
from rkse.realtime.listener import BusListener
from rkse.services.parser import parse_selection
from rkse.services.stats import StatsAggregator

logger = structlog.get_logger()


@dataclass
class RelayStats:
    """Runtime counters for the end-of-service summary."""
    received: int = 0
    relayed: int = 0
    rejected: int = 0


class RelayPipeline:
    """Moves payloads from a source into the broadcast hub."""

    def __init__(
        self,
        source: AsyncIterable[Union[str, bytes]],
        aggregator: StatsAggregator,
        hub: BroadcastHub,
    ):
        self._source = source
        self._aggregator = aggregator
        self._hub = hub
        self.stats = RelayStats()

    async def run(self) -> RelayStats:
        """Relay until the source ends or fails. Always closes the hub."""
        try:
            async for raw in self._source:
                self.stats.received += 1

                event = parse_selection(raw)
                if event is None:
                    self.stats.rejected += 1
                    continue

                snapshot = await self._aggregator.record(event)

                self._hub.publish(event)
                receivers = self._hub.publish(snapshot)
                self.stats.relayed += 1

                logger.debug(
                    "relay.published",
                    model=event.category,
                    count=snapshot.count,
                    receivers=receivers,
                )
        finally:
            self._hub.close()

        return self.stats


async def run_relay(
    bus: BusConnection,
    hub: BroadcastHub,
    listener: Optional[BusListener] = None,
) -> RelayStats:
    """Connect to Redis and relay until the subscription ends.

    Connection failures raise BusConnectionError before anything is relayed.
    """
    listener = listener or BusListener(bus)
    try:
        async with listener:
            logger.info(
                "relay.started",
                channel=bus.channel,
                stats_prefix=bus.stats_prefix,
                capacity=hub.capacity,
            )
            aggregator = StatsAggregator(listener.counter, bus.stats_prefix)
            pipeline = RelayPipeline(listener.payloads(), aggregator, hub)
            stats = await pipeline.run()
    finally:
        hub.close()

    logger.info(
        "relay.stopped",
        received=stats.received,
        relayed=stats.relayed,
        rejected=stats.rejected,
    )
    return stats
