"""
lifecycle.py

Startup and shutdown handling for the bot: logging who we are connected as,
announcing start and stop in the configured system channel, and closing the
connection cleanly when a signal or the console asks for it.
"""
import logging
import signal
from typing import TYPE_CHECKING
import discord
import config

if TYPE_CHECKING:
    from .bot_class import AbacusBot


async def _announce(bot: "AbacusBot", title: str) -> None:
    """Posts a one-line embed to the system channel, if one is configured."""
    if not config.SYSTEM_CHANNEL_ID:
        return

    channel = bot.get_channel(config.SYSTEM_CHANNEL_ID)
    if not isinstance(channel, discord.TextChannel):
        logging.warning(
            f"System channel ID {config.SYSTEM_CHANNEL_ID} is not a valid text channel or could not be found."
        )
        return

    try:
        await channel.send(embed=discord.Embed(title=title))
        logging.info(f"Sent '{title}' to channel ID: {config.SYSTEM_CHANNEL_ID}")
    except discord.HTTPException as e:
        logging.error(f"Failed to send message to channel {config.SYSTEM_CHANNEL_ID}: {e}")


async def startup_handler(bot: "AbacusBot"):
    """
    Handles the bot's startup sequence, including logging and sending a startup message.
    """
    if bot.user:
        logging.info(f'Logged in as {bot.user} (ID: {bot.user.id})')
    else:
        logging.error("Bot user information not available on ready.")

    logging.info("Connected to the following guilds:")
    for guild in bot.guilds:
        logging.info(f"- {guild.name} (ID: {guild.id})")

    await _announce(bot, "Abacus is online and ready to count!")


async def shutdown_handler(sig: signal.Signals, bot: "AbacusBot"):
    """
    Handles the graceful shutdown of the bot when a signal is received.
    """
    logging.info(f"Received exit signal {sig.name}...")

    await _announce(bot, "Abacus is shutting down. Goodnight!")

    logging.info("Closing connections...")
    await bot.close()
    logging.info("Discord connection has been shut down gracefully.")
