"""Command-line entry point for the live voice assistant."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
import signal
import sys

from ai import LoggingObserver, SessionManager
from config import ConfigController, SessionConfig
from core.logging import enable_file_logging, logger
from interaction.state import InteractionState


def configure_logging(level_name: str) -> None:
    """Configure application logging."""

    level = logging._nameToLevel.get(level_name.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.setLevel(level)


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Raw command-line arguments.

    Returns:
        Parsed arguments namespace.
    """

    parser = argparse.ArgumentParser(
        description="Talk to a Gemini Live voice assistant from the terminal."
    )
    parser.add_argument(
        "--wake-word",
        type=str,
        default=None,
        help="Only act on speech containing this phrase (empty disables gating).",
    )
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Run diagnostics probes and exit.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override the configured logging level.",
    )
    return parser.parse_args(argv)


def run_diagnostics_report() -> int:
    from diagnostics.run import main as diagnostics_main

    return diagnostics_main([])


async def run_session(config: SessionConfig) -> int:
    """Run one session until it ends or a stop signal arrives."""

    manager = SessionManager(config)
    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_requested.set)
        except NotImplementedError:
            logger.debug("Signal handlers unavailable; use Ctrl+C")

    session = await manager.start(LoggingObserver())
    stop_task = asyncio.create_task(stop_requested.wait())
    closed_task = asyncio.create_task(session.wait_closed())
    try:
        await asyncio.wait({stop_task, closed_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop_task.cancel()
        closed_task.cancel()

    ended_in_error = session.state.state is InteractionState.ERROR
    if stop_requested.is_set():
        logger.info("Stop requested by user")
    await manager.stop()
    return 1 if ended_in_error else 0


def main(argv: list[str] | None = None) -> int:
    """Application entry point.

    Args:
        argv: Optional list of command-line arguments.

    Returns:
        Process exit code.
    """

    if argv is None:
        argv = sys.argv[1:]

    args = parse_args(argv)
    config_controller = ConfigController.get_instance()
    config = config_controller.get_config()
    configure_logging(args.log_level or config.get("logging_level", "INFO"))

    if args.diagnostics:
        return run_diagnostics_report()

    if config.get("file_logging_enabled", False):
        log_file_path = Path(config.get("log_file", "log/live_assistant.log"))
        enable_file_logging(log_file_path)
        logger.info("Writing logs to %s", log_file_path)

    session_config = SessionConfig.from_config(config, wake_word=args.wake_word)
    if session_config.wake_word_enabled:
        logger.info("Wake word gating enabled: %r", session_config.wake_word)

    try:
        return asyncio.run(run_session(session_config))
    except KeyboardInterrupt:
        logger.info("Program terminated by user")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
