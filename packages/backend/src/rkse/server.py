"""Process runner — the relay and the web server, side by side.

Learn: The process runs exactly two long-lived tasks:
1. relay — Redis subscription → hub (rkse.realtime.pipeline)
2. web   — uvicorn serving the FastAPI app (WebSockets + static files)

Whichever exits first, for any reason, takes the whole process down.
There is no restart logic: if Redis drops, the relay ends, the hub
closes, every WebSocket session ends, and the web server is told to exit.
"""

import asyncio

import structlog
import uvicorn

from rkse.config import Settings
from rkse.errors import WebServerError
from rkse.main import create_app
from rkse.realtime.hub import BroadcastHub
from rkse.realtime.pipeline import run_relay

logger = structlog.get_logger()


async def _serve_web(server: uvicorn.Server) -> None:
    """Run uvicorn, turning its startup sys.exit() into a normal error.

    uvicorn calls sys.exit(1) when it can't bind. As WebServerError it ends
    the web task like any other failure and gets summarized.
    """
    try:
        await server.serve()
    except SystemExit as e:
        raise WebServerError(
            f"web server failed to start on {server.config.host}:{server.config.port} "
            f"(exit code {e.code})"
        ) from e


def _summarize(task: asyncio.Task) -> bool:
    """Log how a top-level task ended. True if it ended cleanly."""
    unit = task.get_name()
    if task.cancelled():
        logger.warning("rkse.service_cancelled", unit=unit)
        return False

    error = task.exception()
    if error is not None:
        logger.error(
            "rkse.service_failed",
            unit=unit,
            error=str(error),
            exc_info=error,
        )
        return False

    logger.info("rkse.service_ended", unit=unit)
    return True


async def serve(settings: Settings) -> bool:
    """Run relay + web server until either stops. True on clean exit."""
    hub = BroadcastHub(settings.hub_capacity)
    app = create_app(settings, hub)

    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=settings.host,
            port=settings.port,
            log_config=None,  # keep our logging setup
        )
    )

    relay_task = asyncio.create_task(run_relay(settings.bus, hub), name="relay")
    web_task = asyncio.create_task(_serve_web(server), name="web")

    done, pending = await asyncio.wait(
        {relay_task, web_task},
        return_when=asyncio.FIRST_COMPLETED,
    )

    ok = True
    for task in done:
        logger.info("rkse.exiting", reason=f"{task.get_name()} exited")
        ok = _summarize(task) and ok

    # Closing the hub ends all sessions, which lets uvicorn shut down
    hub.close()
    server.should_exit = True
    if relay_task in pending:
        relay_task.cancel()

    for task in pending:
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("rkse.shutdown_error", unit=task.get_name())
            ok = False

    return ok
