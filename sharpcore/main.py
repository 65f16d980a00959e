"""Main entry point for SharpCore.

Initializes logging in two phases (defaults then config-driven),
validates the config, loads commands before connecting, then runs the
Discord client until it stops or a shutdown signal arrives.

Exit codes: 0 normal, 1 fatal configuration or command-load error.

Key functions:
    build_app: Construct the application context, router and client.
    main: Async entry point, returns the process exit code.
    run: Synchronous wrapper for the ``sharpcore`` console script.
"""

import asyncio
import signal
import sys
from typing import Tuple

import discord

from . import __version__ as VERSION
from .bot import SharpCoreClient
from .commands.base import BotContext, CommandRegistry
from .config import Config, get_config
from .events import EventRouter
from .exceptions import CommandLoadError, ConfigurationError
from .logging_config import SeverityLogger, install_exception_hooks, setup_logging
from .moderation import ModeratorRelay
from .stats import StatsRecorder
from .store import open_store


def build_app(
    config: Config, logger: SeverityLogger
) -> Tuple[BotContext, EventRouter, SharpCoreClient]:
    """Wire the application context, router, relay and client together."""
    client = SharpCoreClient()
    app = BotContext(
        config=config,
        logger=logger,
        stats=StatsRecorder(),
        registry=CommandRegistry(),
        store=open_store(config.data_dir),
        send_direct=client.send_direct,
        set_presence=client.set_presence,
    )
    router = EventRouter(app)
    ModeratorRelay(app).attach(router)
    client.attach(router)
    return app, router, client


async def main() -> int:
    """Main async entry point. Returns the process exit code."""
    # Phase 1: defaults, cache_logger_on_first_use=False
    setup_logging()
    logger = SeverityLogger("sharpcore")
    logger.info("sharpcore_starting", version=VERSION)

    try:
        config = get_config()
        config.validate()
    except ConfigurationError as e:
        logger.severe("config_error", error=e.message, setting=getattr(e, "setting_name", None))
        return 1

    # Phase 2: reconfigure with real config
    setup_logging(config)

    app, router, client = build_app(config, logger)

    try:
        router.load_commands()
    except CommandLoadError as e:
        logger.severe("command_load_failed", error=e.message, source=e.source)
        await app.store.close()
        return 1

    loop = asyncio.get_running_loop()
    install_exception_hooks(logger, loop)
    shutdown_event = asyncio.Event()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: add_signal_handler not supported
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: handle_shutdown(signal.SIGINT),
                )

    exit_code = 0
    client_task = asyncio.create_task(client.start(config.bot_token))
    shutdown_task = asyncio.create_task(shutdown_event.wait())
    try:
        done, _ = await asyncio.wait(
            {client_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if client_task in done:
            client_task.result()
    except discord.LoginFailure as e:
        logger.severe("login_failed", error=str(e))
        exit_code = 1
    except Exception as e:
        logger.severe("bot_error", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        shutdown_task.cancel()
        if not client.is_closed():
            await client.close()
        if not client_task.done():
            client_task.cancel()
            try:
                await client_task
            except asyncio.CancelledError:
                pass
        await app.store.close()
        logger.info("sharpcore_stopped", stats=app.stats.snapshot())

    return exit_code or client.exit_code


def run():
    """Synchronous entry point for the ``sharpcore`` console script."""
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    run()
