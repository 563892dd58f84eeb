"""
Defines the custom bot class, `AbacusBot`, which extends `discord.ext.commands.Bot`.

This class is responsible for:
- Storing shared application state (start time, the console listener task).
- Handling core Discord events (`on_ready`, `on_message`, `on_command_error`).
- Resolving the configured prefixes case-insensitively.
- Reloading cogs on request from the console.
"""
from __future__ import annotations
import discord
from discord.ext import commands
from typing import Optional
import asyncio
import logging
import config
import time
from utils.lifecycle import startup_handler
from utils.extensions import discover_cogs

class AbacusBot(commands.Bot):
    """
    The main bot class, extending `discord.ext.commands.Bot` to integrate
    custom functionality and centralize event handling.
    """
    def __init__(self, **kwargs):
        # Message content is needed to read prefix commands.
        intents = discord.Intents.default()
        intents.messages = True
        intents.message_content = True

        super().__init__(
            command_prefix=self._get_case_insensitive_prefix,
            intents=intents,
            case_insensitive=True,
            owner_id=config.OWNER_ID,
            **kwargs
        )

        self.console_task: Optional[asyncio.Task] = None
        self.start_time: float = time.time()

    async def on_ready(self):
        """Called when the bot is ready; triggers the startup handler."""
        await startup_handler(self)

    async def on_command_error(self, ctx: commands.Context, error: commands.CommandError) -> None:
        """
        Global error handler for all standard `discord.ext.commands`.
        """
        # Unknown commands are common in shared channels; stay quiet.
        if isinstance(error, commands.CommandNotFound):
            return

        # For user input errors (e.g., missing arguments), show the command's help
        # to guide the user on correct usage.
        if isinstance(error, (commands.BadArgument, commands.MissingRequiredArgument)):
            await ctx.send_help(ctx.command)
            return

        # Handle permission errors gracefully. `NotOwner` is a subclass of `CheckFailure`.
        if isinstance(error, commands.CheckFailure):
            logging.warning(f"User '{ctx.author}' failed check for command '{ctx.command}': {error}")
            try:
                await ctx.send("Sorry, you don't have permission to use this command.", delete_after=8)
            except discord.HTTPException:
                pass # Ignore if we can't send the message
            return

        # For all other errors, log the full traceback for debugging purposes.
        logging.error(f"Unhandled error in command '{ctx.command}'", exc_info=error)

        try:
            await ctx.send("Sorry, an unexpected error occurred. The issue has been logged.")
        except discord.HTTPException:
            logging.error(f"Failed to send error message to channel {ctx.channel.id}")

    async def on_message(self, message: discord.Message) -> None:
        """Filters incoming messages before handing them to the command processor."""
        # Ignore messages from bots, including ourselves, to prevent loops.
        if message.author.bot:
            return

        # If in developer mode, only respond to the owner.
        if config.DEV_MODE and message.author.id != config.OWNER_ID:
            return

        await self.process_commands(message)

    def _get_case_insensitive_prefix(self, bot: "AbacusBot", message: discord.Message) -> list[str]:
        """
        A callable that returns a list of prefixes, making them case-insensitive.
        """
        content_lower = message.content.lower()

        # Find all prefixes that match the start of the message.
        matching_prefixes = [p for p in config.BOT_PREFIX if content_lower.startswith(p.lower())]

        if matching_prefixes:
            # Sort by length descending to handle overlapping prefixes (e.g., '!' and '!!')
            matching_prefixes.sort(key=len, reverse=True)
            longest_match = matching_prefixes[0]
            # Return the slice of the original message that corresponds to the prefix length.
            return [message.content[:len(longest_match)]]

        # `when_mentioned` will handle mentions if no other prefix matches.
        return commands.when_mentioned(bot, message)

    async def close(self) -> None:
        """
        Overrides the default close method to ensure a clean shutdown.
        Shutdown announcements are handled by `utils.lifecycle.shutdown_handler`.
        """
        # Cancel the console listener task if it's running
        if self.console_task and not self.console_task.done():
            self.console_task.cancel()

        logging.info("Closing bot connection...")
        await super().close()
        logging.info("Connection closed.")

    async def load_all_cogs(self) -> None:
        """Loads every cog found in the cogs directory, logging failures individually."""
        cogs_to_load = discover_cogs(config.COGS_PATH)
        logging.info(f"Found {len(cogs_to_load)} cogs to load.")
        for extension in cogs_to_load:
            try:
                await self.load_extension(extension)
                logging.info(f"Successfully loaded extension: {extension}")
            except commands.ExtensionError:
                logging.error(f'Failed to load extension {extension}.', exc_info=True)

    async def reload_all_cogs(self):
        """
        Asynchronously discovers and reloads all cogs, handling new, removed,
        and updated extensions.
        """
        logging.info("Starting cog reload process...")

        loaded_cogs = set(self.extensions.keys())
        discovered_cogs = set(discover_cogs(config.COGS_PATH))
        logging.info(f"Currently loaded cogs: {loaded_cogs or 'None'}")
        logging.info(f"Discovered cogs in filesystem: {discovered_cogs or 'None'}")

        # 1. Unload cogs that have been removed.
        for extension in loaded_cogs - discovered_cogs:
            try:
                await self.unload_extension(extension)
                logging.info(f"Successfully unloaded removed extension: {extension}")
            except commands.ExtensionError:
                logging.error(f'Failed to unload extension {extension}.', exc_info=True)

        # 2. Load new cogs that have been added.
        for extension in discovered_cogs - loaded_cogs:
            try:
                await self.load_extension(extension)
                logging.info(f"Successfully loaded new extension: {extension}")
            except commands.ExtensionError:
                logging.error(f'Failed to load new extension {extension}.', exc_info=True)

        # 3. Reload existing cogs to apply any changes.
        for extension in loaded_cogs & discovered_cogs:
            try:
                await self.reload_extension(extension)
                logging.info(f"Successfully reloaded extension: {extension}")
            except commands.ExtensionError:
                logging.error(f'Failed to reload extension {extension}.', exc_info=True)

        logging.info("Finished reloading cogs.")
