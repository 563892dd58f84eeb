"""
main.py

This is the primary entry point for Abacus. Its responsibilities are:

1.  Performing initial setup: logging, configuration validation from `info.env`.
2.  Instantiating the custom `AbacusBot` class from `utils.bot_class`.
3.  Defining console and signal handlers for graceful startup and shutdown.
4.  Orchestrating the bot's asynchronous startup sequence via the `main()` function,
    which loads cogs and connects to Discord.

The calculator itself lives in `utils.math_parser` and is exposed through the
`Math` cog in `cogs/math.py`.
"""
import logging
import asyncio
import os
import signal
import sys

import config
from utils.logging_config import setup_logging
from utils.bot_class import AbacusBot
from utils.lifecycle import shutdown_handler

# Set up logging immediately to capture any issues during startup.
setup_logging()

# --- Configuration Validation ---
config.check_and_create_env_file()

if not config.TOKEN or not config.BOT_PREFIX:
    logging.critical(
        f"DISCORD_TOKEN or BOT_PREFIX is missing from '{os.path.basename(config.ENV_PATH)}'. "
        "Both are required for the bot to run."
    )
    print(f"Error: DISCORD_TOKEN and BOT_PREFIX must be set in {config.ENV_PATH}.")
    sys.exit("Critical error: DISCORD_TOKEN or BOT_PREFIX not configured.")

# Warn if the owner ID is missing, as owner-only behaviour will be unavailable.
if not config.OWNER_ID:
    logging.warning(
        f"OWNER_ID not found or invalid in '{os.path.basename(config.ENV_PATH)}'. "
        "The bot will run, but developer mode will ignore everyone."
    )

# Warn if the system channel ID is missing.
if not config.SYSTEM_CHANNEL_ID:
    logging.warning(
        f"SYSTEM_CHANNEL_ID not found in '{os.path.basename(config.ENV_PATH)}'. "
        "The bot will run, but startup/shutdown messages will not be sent."
    )

bot = AbacusBot()
logging.info(f"Bot initialized with prefixes: {config.BOT_PREFIX}")


async def _handle_console_line(line: str, bot: AbacusBot) -> bool:
    """Acts on one console command. Returns True when the listener should stop."""
    loop = asyncio.get_running_loop()
    command = line.strip().lower()
    if command == 'exit':
        logging.info("'exit' command received from console. Initiating shutdown.")
        loop.create_task(shutdown_handler(signal.SIGINT, bot))
        return True
    if command == 'reload':
        logging.info("'reload' command received from console. Reloading cogs...")
        loop.create_task(bot.reload_all_cogs())
    return False


async def console_input_handler(bot: AbacusBot):
    """
    Listens for console input: 'exit' shuts the bot down, 'reload' reloads all cogs.
    """
    loop = asyncio.get_running_loop()
    try:
        if sys.platform == "win32":
            # On Windows, run_in_executor is a reliable way to read from stdin.
            while True:
                line = await loop.run_in_executor(None, sys.stdin.readline)
                if await _handle_console_line(line, bot):
                    break
        else:
            # On Linux/macOS, use a non-blocking StreamReader for stdin.
            reader = asyncio.StreamReader()
            protocol = asyncio.StreamReaderProtocol(reader)
            await loop.connect_read_pipe(lambda: protocol, sys.stdin)
            while True:
                line_bytes = await reader.readline()
                if not line_bytes: # Reached EOF
                    break
                if await _handle_console_line(line_bytes.decode(), bot):
                    break
    except asyncio.CancelledError:
        logging.info("Console input handler cancelled.")
    except OSError as e:
        # stdin can be closed or redirected unexpectedly.
        logging.error(f"Error in console input handler: {e}", exc_info=False)

async def main() -> None:
    """
    The main asynchronous entry point for initializing and running the bot.
    """
    logging.info("Abacus is starting...")

    async with bot:
        await bot.load_all_cogs()

        if config.TOKEN is None:
            # Already validated above; this narrows the type for checkers.
            raise ValueError("TOKEN cannot be None.")

        await bot.start(config.TOKEN)

async def run_bot_with_handlers():
    """
    Wraps the main bot logic with signal and console handlers for graceful shutdown.
    """
    loop = asyncio.get_running_loop()

    # Add signal handlers for SIGINT/SIGTERM on Linux for systemd integration.
    if sys.platform != "win32":
        for s in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(
                s, lambda s=s: asyncio.create_task(shutdown_handler(s, bot))
            )

    # Start the console listener for the 'exit' and 'reload' commands.
    if sys.stdin and sys.stdin.isatty():
        bot.console_task = loop.create_task(console_input_handler(bot))

    await main()

if __name__ == '__main__':
    try:
        asyncio.run(run_bot_with_handlers())
    finally:
        logging.info("Abacus has shutdown properly!")
