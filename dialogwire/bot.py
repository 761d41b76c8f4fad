"""Bot assembly for dialogwire.

Wires a Catalog (filled from the configured command modules), a
Transport (from the configured factory unless one is passed in) and a
Dispatcher, and owns their lifecycle.

Key classes:
    Bot: start / run / stop around the dispatcher's polling loop.
"""

from typing import Optional

import structlog

from .catalog import Catalog
from .config import Config, get_config
from .dispatcher import Dispatcher
from .exceptions import ConfigurationError
from .transport import BotIdentity, Transport

logger = structlog.get_logger("dialogwire.bot")


class Bot:
    """A configured dispatch engine bound to one transport.

    Args:
        config: Configuration. Defaults to the global Config.
        transport: Transport to use. Defaults to calling the configured
            ``transport`` factory with the config.
        catalog: Pre-filled catalog. Configured command modules are
            registered into it either way.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        transport: Optional[Transport] = None,
        catalog: Optional[Catalog] = None,
    ):
        self.config = config or get_config()
        self.catalog = catalog or Catalog()
        self.catalog.import_modules(self.config.command_modules)

        if transport is None:
            factory = self.config.load_transport_factory()
            transport = factory(self.config)
            if not isinstance(transport, Transport):
                raise ConfigurationError(
                    f"transport factory returned {type(transport).__name__}, not a Transport",
                    setting_name="transport",
                )
        self.transport = transport

        self.dispatcher = Dispatcher(
            self.catalog,
            self.transport,
            compiled=self.config.resolver_compiled,
            max_concurrent_updates=self.config.max_concurrent_updates,
            notify_errors=self.config.notify_errors,
        )
        self.identity: Optional[BotIdentity] = None
        self.running = False

    async def start(self):
        """Fetch the bot identity and log what was registered."""
        self.identity = await self.transport.get_me()
        self.running = True
        logger.info(
            "bot_started",
            username=self.identity.username,
            commands=len(self.catalog),
            compiled=self.dispatcher.resolver.compiled,
        )

    async def stop(self):
        """Stop pulling updates and wait for in-flight work."""
        if not self.running:
            return
        self.running = False
        self.dispatcher.stop()
        await self.dispatcher.drain()
        logger.info("bot_stopped")

    async def run(self):
        """Main run loop: start, dispatch updates, stop on exit."""
        await self.start()
        try:
            await self.dispatcher.run()
        finally:
            await self.stop()
