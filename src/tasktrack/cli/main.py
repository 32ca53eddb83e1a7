# src/tasktrack/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts the engine and the periodic
refresh loop, then runs the console REPL (optional).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..tasks.refresh import run_refresh_loop

logger = logging.getLogger(__name__)


async def _run(state: AppState) -> None:
    settings = state.settings
    await state.engine.start()

    refresher = asyncio.create_task(
        run_refresh_loop(state.engine.view, interval_seconds=settings.refresh_interval_seconds)
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not supported on every platform (e.g. Windows event loops).
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)

    try:
        if settings.console_enabled:
            console = asyncio.create_task(run_console_loop(state))
            stopper = asyncio.create_task(stop.wait())
            await asyncio.wait({console, stopper}, return_when=asyncio.FIRST_COMPLETED)
            for t in (console, stopper):
                t.cancel()
        else:
            logger.info("Console disabled. Refreshing views only. Press Ctrl+C to stop.")
            await stop.wait()
    finally:
        refresher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await refresher
        await state.engine.close()


def main() -> None:
    settings = get_settings()

    level_name = settings.log_level.upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
