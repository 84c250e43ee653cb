"""Process runner tests — whichever top-level task ends first stops both.

Learn: uvicorn.Server.serve is swapped for a stand-in that behaves like
the real one at shutdown: it runs until `should_exit` is set. run_relay
is swapped for scripted versions, so no socket or Redis is involved.
"""

import asyncio

import pytest
import uvicorn

from rkse import server as runner
from rkse.errors import BusConnectionError


async def serve_until_told_to_exit(self, sockets=None):
    while not self.should_exit:
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_relay_failure_stops_web_server(monkeypatch, settings):
    seen = {}

    async def failing_relay(bus, hub):
        seen["hub"] = hub
        raise BusConnectionError("Connection refused")

    async def recording_serve(self, sockets=None):
        seen["server"] = self
        await serve_until_told_to_exit(self)

    monkeypatch.setattr(runner, "run_relay", failing_relay)
    monkeypatch.setattr(uvicorn.Server, "serve", recording_serve)

    ok = await asyncio.wait_for(runner.serve(settings), timeout=5)

    assert ok is False
    assert seen["hub"].closed
    assert seen["server"].should_exit


@pytest.mark.asyncio
async def test_web_exit_cancels_relay(monkeypatch, settings):
    seen = {"cancelled": False}

    async def endless_relay(bus, hub):
        seen["hub"] = hub
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            seen["cancelled"] = True
            raise

    async def quick_serve(self, sockets=None):
        await asyncio.sleep(0.01)

    monkeypatch.setattr(runner, "run_relay", endless_relay)
    monkeypatch.setattr(uvicorn.Server, "serve", quick_serve)

    ok = await asyncio.wait_for(runner.serve(settings), timeout=5)

    assert ok is True
    assert seen["cancelled"]
    assert seen["hub"].closed


@pytest.mark.asyncio
async def test_bind_failure_is_reported_not_raised(monkeypatch, settings):
    """uvicorn's sys.exit(1) on a taken port ends serve() with a failure."""
    seen = {"cancelled": False}

    async def endless_relay(bus, hub):
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            seen["cancelled"] = True
            raise

    async def bind_failure(self, sockets=None):
        raise SystemExit(1)

    monkeypatch.setattr(runner, "run_relay", endless_relay)
    monkeypatch.setattr(uvicorn.Server, "serve", bind_failure)

    ok = await asyncio.wait_for(runner.serve(settings), timeout=5)

    assert ok is False
    assert seen["cancelled"]
