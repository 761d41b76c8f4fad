"""Console entry point: ``dialogwire`` (or ``python -m dialogwire.main``).

Logging comes up with defaults first so config loading can log, then
again from the loaded Config. The bot then runs until its transport
closes or SIGTERM/SIGINT arrives, and in-flight turns are drained
before exit.
"""

import asyncio
import signal
import sys

import structlog

from .logging_config import setup_logging

logger = structlog.get_logger("dialogwire.bot")


def _install_shutdown_handlers(stop_requested: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def request_stop(signum: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=signum.name)
        stop_requested.set()

    for signum in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(signum, request_stop, signum)
        except NotImplementedError:
            # No loop signal support on Windows; SIGINT via signal.signal still works
            if signum is signal.SIGINT:
                signal.signal(signum, lambda *_: loop.call_soon_threadsafe(request_stop, signum))


async def _serve(bot, stop_requested: asyncio.Event) -> None:
    """Run ``bot`` until it finishes on its own or a stop is requested."""
    running = asyncio.create_task(bot.run())
    stop_wait = asyncio.create_task(stop_requested.wait())
    await asyncio.wait({running, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
    stop_wait.cancel()
    if not running.done():
        running.cancel()
    try:
        await running
    except asyncio.CancelledError:
        pass


async def main():
    setup_logging()

    # Deferred so nothing logs before the first setup_logging() call
    from .bot import Bot
    from .config import get_config

    config = get_config()
    config.validate()
    setup_logging(config)
    logger.info("dialogwire_starting", version="0.3.0")

    bot = Bot(config)
    stop_requested = asyncio.Event()
    _install_shutdown_handlers(stop_requested)
    try:
        await _serve(bot, stop_requested)
    except Exception as e:
        logger.error("bot_error", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        await bot.stop()
        logger.info("dialogwire_stopped")


def run():
    """Synchronous wrapper used by the console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except SystemExit as e:
        sys.exit(e.code)


if __name__ == "__main__":
    run()
