# src/todo_app/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads the todo list, then runs the console REPL.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import TodoError
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(state: AppState) -> None:
    warning = await state.controller.initialize()
    if warning is not None:
        print(
            "[WARN] Stored todos could not be read and the list starts empty. "
            "The old data will be overwritten by the next change."
        )
    await run_console_loop(state)


def _shutdown(state: AppState) -> None:
    # KeyValueStore uses short-lived sqlite connections per call; close() is a hook only.
    close = getattr(state.kv_store, "close", None)
    if close is not None:
        try:
            close()
        except Exception:
            logger.debug("KeyValueStore close failed.", exc_info=True)


def main() -> int:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    exit_code = 0
    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    except TodoError:
        logger.exception("Could not start the todo list.")
        exit_code = 1
    finally:
        _shutdown(state)
        logger.info("Bye.")
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
