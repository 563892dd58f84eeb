"""
cogs/math.py

This cog exposes the expression evaluator (`utils.math_parser`) to Discord.
It includes:
- `math` (aliases `calc`, `calculate`): evaluates an expression such as
  `2d6 + 3`, `sqrt(2)^2` or `log(2, 1024)` and replies with an embed holding
  the value and, for uppercase `D` rolls, the individual dice.
- `mathsteps` (alias `explain`): the same, but always shows every reduction
  step the evaluator took.
- `math help`: lists the operators, constants and functions.

Evaluation runs in a worker thread so a large roll never stalls the bot.
"""
import discord
from discord.ext import commands
import asyncio
import math as _math

import config
from utils.base_cog import BaseCog
from utils.bot_class import AbacusBot
from utils.math_parser import evaluate_expression
from utils.math_result import MathResult
from utils.math_symbols import constants, functions

# Discord rejects embeds whose parts exceed these lengths.
EMBED_TITLE_LIMIT = 256
EMBED_DESCRIPTION_LIMIT = 4096
EMBED_FIELD_LIMIT = 1024


def truncate(text: str, limit: int) -> str:
    """Shortens `text` to at most `limit` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


def format_result(value: float) -> str:
    """Formats a result for display: integers without decimals, floats without trailing zeros."""
    if _math.isnan(value):
        return "NaN"
    if _math.isinf(value):
        return "∞" if value > 0 else "-∞"
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    if abs(value) >= 1e15 or abs(value) < 1e-6:
        return f"{value:.15g}"
    return f"{value:.15f}".rstrip('0').rstrip('.')


class Math(BaseCog):
    """A cog for evaluating mathematical expressions and dice rolls."""
    def __init__(self, bot: AbacusBot):
        super().__init__(bot)

    def evaluate(self, expression: str) -> MathResult:
        """Runs the evaluator with the limits from the bot's configuration."""
        return evaluate_expression(
            expression,
            max_rolls=config.MATH_MAX_ROLLS,
            max_rolls_verbose_dice=config.MATH_MAX_ROLLS_VERBOSE_DICE,
            max_rolls_verbose_chars=config.MATH_MAX_ROLLS_VERBOSE_CHARS,
            max_steps=config.MATH_MAX_TRACE_STEPS,
        )

    def build_result_embed(self, expression: str, result: MathResult, show_steps: bool = False) -> discord.Embed:
        """Builds the reply for an evaluated expression, successful or not."""
        if not result.error_flag:
            embed = discord.Embed(
                title=truncate(f"Evaluating: **{expression}**.", EMBED_TITLE_LIMIT),
                description=format_result(result.value),
                color=discord.Color.green()
            )
            if result.roll_summary:
                embed.add_field(name="Rolls:", value=truncate(result.roll_summary, EMBED_FIELD_LIMIT), inline=False)
            if show_steps and result.trace_text:
                embed.add_field(name="Steps:", value=truncate(f"```{result.trace_text}```", EMBED_FIELD_LIMIT), inline=False)
            return embed

        # On failure the trace is only shown when the error asked for it, or the user did.
        trace = result.trace_text if show_steps else result.verbose_trace
        description = result.error_text if not trace else f"{result.error_text}\n{trace}"
        return discord.Embed(
            title=truncate(f"ERROR! Received: `{expression}`.", EMBED_TITLE_LIMIT),
            description=truncate(description, EMBED_DESCRIPTION_LIMIT),
            color=discord.Color.red()
        )

    async def send_calc_help(self, ctx: commands.Context):
        """Sends a detailed help message for the calculator command."""
        embed = discord.Embed(
            title="Calculator Help",
            description="Evaluates a mathematical expression. Spaces are ignored.",
            color=discord.Color.blue()
        )

        embed.add_field(
            name="Operators",
            value=(
                "`+` `-` add/subtract, `*` `×` `/` `÷` multiply/divide, `^` or `**` power, "
                "`%` remainder, `!` factorial.\n"
                "`AdB` rolls A dice with B faces and adds them up (`1d20`, `4d6`). "
                "Use an uppercase `D` to list the individual rolls.\n"
                "Operators of the same kind are evaluated left to right, `^` included: "
                "`2^3^2` is `(2^3)^2`."
            ),
            inline=False
        )

        functions_list = ", ".join(f"`{f.identifier}`" for f in functions())
        embed.add_field(name="Functions", value=functions_list, inline=False)

        constants_list = ", ".join(f"`{c.identifier}`" for c in constants())
        embed.add_field(name="Constants", value=constants_list, inline=False)

        embed.add_field(
            name="Usage Examples",
            value=(
                "`5 * (3 + 2)`\n"
                "`2(3 + 4)` - Implicit multiplication\n"
                "`3d6 + 2`, `4D6` - Dice rolls\n"
                "`sqrt(64)`, `2sqrt(9)`\n"
                "`log(2, 1024)` - Logarithm of 1024 in base 2\n"
                "`max(1, 5, 3)`\n"
                "`sin(pi / 2)` - Angles are in radians\n"
                "`1.5E-3 * c` - Scientific notation uses an uppercase `E`"
            ),
            inline=False
        )

        embed.set_footer(text="Use `mathsteps <expression>` to see every step of the evaluation.")
        await ctx.send(embed=embed)

    async def _evaluate_and_reply(self, ctx: commands.Context, expression: str, show_steps: bool) -> None:
        if not expression.strip() or expression.strip().lower() == 'help':
            await self.send_calc_help(ctx)
            return

        result = await asyncio.to_thread(self.evaluate, expression)

        if result.error_flag:
            self.logger.warning(f"Handled error in calculator for query '{expression}': {result.error_text}")
        else:
            self.logger.info(f"Calculator used by {ctx.author}: '{expression}' = {result.value}")

        await ctx.send(embed=self.build_result_embed(expression, result, show_steps=show_steps))

    @commands.command(name='math', aliases=['calc', 'calculate'], help="Evaluates a mathematical expression, dice included.")
    async def math_command(self, ctx: commands.Context, *, expression: str = ""):
        await self._evaluate_and_reply(ctx, expression, show_steps=False)

    @commands.command(name='mathsteps', aliases=['explain'], help="Evaluates an expression and shows every step.")
    async def math_steps(self, ctx: commands.Context, *, expression: str = ""):
        await self._evaluate_and_reply(ctx, expression, show_steps=True)

async def setup(bot: AbacusBot) -> None:
    """Standard setup function for the cog."""
    await bot.add_cog(Math(bot))
