# src/sd_workflow/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts the store (poll loop in remote
mode), then runs the console REPL until /exit.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.store.stop()
    except Exception:
        logger.exception("Failed to stop the store.")

    try:
        gateway = getattr(state.store, "gateway", None)
        if gateway is not None and hasattr(gateway, "aclose"):
            await gateway.aclose()
    except Exception:
        logger.debug("Gateway close failed.", exc_info=True)


async def run(state: AppState) -> None:
    await state.store.start()
    try:
        await run_console_loop(state)
    finally:
        await _shutdown(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/sd_workflow")
    log_file = setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s (log file %s)...", getattr(settings, "app_name", "sd-workflow"), log_file)

    state = create_initial_state(settings=settings)

    try:
        asyncio.run(run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
