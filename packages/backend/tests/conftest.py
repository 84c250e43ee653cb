"""Test fixtures — an app around its own hub, plus in-memory Redis fakes.

Learn: Nothing here needs a running Redis. The relay only uses a handful
of Redis calls (PING, SUBSCRIBE, INCR), so small fakes that record what
happened are enough:

- FakeCounter   — INCR into a dict, optionally failing
- FakeRedis     — PING + pubsub() for the bus listener
- FakePubSub    — replays a scripted list of pub/sub frames

Redis is pointed at port 1 so the health check fails fast instead of
finding a developer's local Redis.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from rkse.config import Settings
from rkse.main import create_app
from rkse.realtime.hub import BroadcastHub

UNREACHABLE_REDIS = "redis://127.0.0.1:1"


class FakeCounter:
    """Stands in for the counter connection (INCR only)."""

    def __init__(self, fail: bool = False):
        self.values: dict[str, int] = {}
        self.fail = fail

    async def incr(self, name: str, amount: int = 1) -> int:
        if self.fail:
            raise RedisConnectionError("Connection reset by peer")
        self.values[name] = self.values.get(name, 0) + amount
        return self.values[name]


class FakePubSub:
    def __init__(self, frames: list[dict], fail_listen: bool = False):
        self.frames = frames
        self.fail_listen = fail_listen
        self.channels: list[str] = []
        self.unsubscribed = False
        self.closed = False

    async def subscribe(self, channel: str) -> None:
        self.channels.append(channel)

    async def listen(self):
        for frame in self.frames:
            yield frame
        if self.fail_listen:
            raise RedisConnectionError("Connection closed by server.")

    async def unsubscribe(self) -> None:
        self.unsubscribed = True

    async def aclose(self) -> None:
        self.closed = True


class FakeRedis(FakeCounter):
    """PING / pubsub() / INCR / aclose() — enough for BusListener."""

    def __init__(self, frames=None, fail_ping: bool = False, fail_listen: bool = False):
        super().__init__()
        self.fail_ping = fail_ping
        self.closed = False
        self.pubsub_instance = FakePubSub(frames or [], fail_listen=fail_listen)

    async def ping(self) -> bool:
        if self.fail_ping:
            raise RedisConnectionError("Error 111 connecting to 127.0.0.1:6379. Connection refused.")
        return True

    def pubsub(self) -> FakePubSub:
        return self.pubsub_instance

    async def aclose(self) -> None:
        self.closed = True


def message_frame(data, channel: str = "on_model_selection") -> dict:
    """A pub/sub "message" frame as redis-py yields it."""
    return {"type": "message", "pattern": None, "channel": channel, "data": data}


async def source_of(payloads):
    """Async payload source for the pipeline, like BusListener.payloads()."""
    for payload in payloads:
        yield payload


@pytest.fixture()
def static_dir(tmp_path):
    directory = tmp_path / "static"
    directory.mkdir()
    (directory / "index.html").write_text("<html><body>rkse</body></html>")
    return directory


@pytest.fixture()
def settings(static_dir):
    return Settings(static_path=str(static_dir), redis_addr=UNREACHABLE_REDIS)


@pytest.fixture()
def hub():
    return BroadcastHub()


@pytest.fixture()
def counter():
    return FakeCounter()


@pytest.fixture()
def app(settings, hub):
    return create_app(settings, hub)


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client talking to the app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
