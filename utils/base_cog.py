"""
Defines a base class for all of Abacus's cogs to inherit from.
"""
import logging
from discord.ext import commands
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .bot_class import AbacusBot

class BaseCog(commands.Cog):
    """
    A base cog that all other cogs should inherit from.
    It keeps a reference to the bot and provides a logger named after the cog.
    """
    def __init__(self, bot: "AbacusBot"):
        self.bot: "AbacusBot" = bot
        self.logger = logging.getLogger(self.__class__.__name__)
        self.logger.info(f"Cog '{self.__class__.__name__}' initialized.")
