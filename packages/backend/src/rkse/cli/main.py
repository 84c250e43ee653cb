"""RKSE command line — start the relay server.

Usage:
    rkse                                         # everything from RKSE_* env / defaults
    rkse --bind 0.0.0.0:3000 --redis redis://cache:6379 --chan on_model_selection
    rkse --pass secret --db 2 --stats-prefix selector_stat

Every flag overrides the matching RKSE_* environment variable, which in
turn overrides the built-in default.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Optional

import click
from pydantic import ValidationError

from rkse import __version__
from rkse.config import load_settings
from rkse.log import configure_logging
from rkse.server import serve


@click.command()
@click.version_option(version=__version__, prog_name="rkse")
@click.option("--bind", "-b", help="Bind address host:port [env RKSE_BIND, default 127.0.0.1:3000]")
@click.option("--static-path", "-s", help="Static file directory [env RKSE_STATIC_PATH, default static]")
@click.option("--redis", "-r", "redis_addr", help="Redis URL [env RKSE_REDIS_ADDR, default redis://127.0.0.1:6379]")
@click.option("--pass", "redis_password", help="Redis password [env RKSE_REDIS_PASSWORD]")
@click.option("--db", "redis_db", type=int, help="Redis database [env RKSE_REDIS_DB, default 0]")
@click.option("--chan", "redis_channel", help="Pub/sub channel [env RKSE_REDIS_CHANNEL, default on_model_selection]")
@click.option("--stats-prefix", "redis_stats_prefix", help="Counter key prefix [env RKSE_REDIS_STATS_PREFIX, default selector_stat]")
def main(
    bind: Optional[str],
    static_path: Optional[str],
    redis_addr: Optional[str],
    redis_password: Optional[str],
    redis_db: Optional[int],
    redis_channel: Optional[str],
    redis_stats_prefix: Optional[str],
):
    """Relay model selection events from Redis to WebSocket clients."""
    try:
        settings = load_settings(
            bind=bind,
            static_path=static_path,
            redis_addr=redis_addr,
            redis_password=redis_password,
            redis_db=redis_db,
            redis_channel=redis_channel,
            redis_stats_prefix=redis_stats_prefix,
        )
    except ValidationError as e:
        click.secho(f"Error: invalid configuration\n{e}", fg="red", err=True)
        sys.exit(2)

    configure_logging(settings.log_level, settings.log_json)

    ok = asyncio.run(serve(settings))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
