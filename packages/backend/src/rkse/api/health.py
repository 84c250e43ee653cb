"""Health check endpoint.

Learn: Reports whether the relay is still producing (hub open), how many
WebSocket clients are attached, and whether Redis answers a PING.
"""

from fastapi import APIRouter, Request

from rkse import __version__
from rkse.realtime.listener import create_client

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    hub = request.app.state.hub
    settings = request.app.state.settings

    checks = {
        "server": "ok",
        "version": __version__,
        "relay": "closed" if hub.closed else "ok",
        "consumers": hub.consumer_count,
    }

    # Check Redis
    try:
        r = create_client(settings.bus, socket_connect_timeout=2.0)
        try:
            await r.ping()
        finally:
            await r.aclose()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    status = "healthy" if all(
        checks[k] == "ok" for k in ("server", "relay", "redis")
    ) else "degraded"

    return {"status": status, **checks}
