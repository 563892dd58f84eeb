"""
math_result.py

This module contains the MathResult class, the diagnostic sink shared by every
step of one evaluation. It collects three things:

- Errors: human-readable messages. Recording one sets `error_flag`, after which
  `value` must not be trusted.
- Trace steps: one `(message, source)` pair per reduction, recorded regardless
  of errors so a caller can see how far evaluation got.
- Roll summary: the per-die listing produced by the verbose `D` operator.

It also carries the limits of the evaluation (dice caps, trace caps) and an
optional random generator, so the recursive evaluator only has one object to
pass around.
"""
import math
import random
from typing import Optional

DEFAULT_MAX_ROLLS = 999999
DEFAULT_MAX_ROLLS_VERBOSE_DICE = 8
DEFAULT_MAX_ROLLS_VERBOSE_CHARS = 80
DEFAULT_MAX_STEPS = 250

# Returned in place of a value whenever an error is recorded.
ERROR_SENTINEL = 1.0


def format_number(value: float) -> str:
    """Formats a value for traces and replies: `4` rather than `4.0`."""
    value = float(value)
    if math.isfinite(value) and value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


class MathResult:
    """The outcome of evaluating one expression."""

    def __init__(
        self,
        max_rolls: int = DEFAULT_MAX_ROLLS,
        max_rolls_verbose_dice: int = DEFAULT_MAX_ROLLS_VERBOSE_DICE,
        max_rolls_verbose_chars: int = DEFAULT_MAX_ROLLS_VERBOSE_CHARS,
        max_steps: int = DEFAULT_MAX_STEPS,
        rng: Optional[random.Random] = None,
    ):
        self.max_rolls = max_rolls
        self.max_rolls_verbose_dice = max_rolls_verbose_dice
        self.max_rolls_verbose_chars = max_rolls_verbose_chars
        self.max_steps = max_steps
        self.rng = rng

        self.value: float = 0.0
        self.error_flag = False
        self.verbose_flag = False
        self.errors: list[str] = []
        self.steps: list[tuple[str, str]] = []
        self.dropped_steps = 0
        self.rolls = ""
        self._dice_count = 0

    # --- Error Channel ---

    def throw_error(self, message: str) -> float:
        """Records an error and returns the sentinel value."""
        self.errors.append(message)
        self.error_flag = True
        return ERROR_SENTINEL

    def throw_verbose_error(self, message: str) -> float:
        """Records an error that forces the trace to be shown to the user."""
        self.verbose_flag = True
        return self.throw_error(message)

    @property
    def error_text(self) -> str:
        return "\n".join(self.errors)

    # --- Trace Channel ---

    def echo(self, message: str, source: str) -> None:
        """Records one reduction step, or counts it once the step cap is reached."""
        if len(self.steps) >= self.max_steps:
            self.dropped_steps += 1
            return
        self.steps.append((message, source))

    @property
    def trace_text(self) -> str:
        lines = [f" v: {message} with arg = {source}" for message, source in self.steps]
        if self.dropped_steps:
            lines.append(f" ... ({self.dropped_steps} more steps)")
        return "\n".join(lines)

    @property
    def verbose_trace(self) -> str:
        """The trace, but only when something asked for it to be shown."""
        return self.trace_text if self.verbose_flag else ""

    # --- Roll Summary ---

    @property
    def roll_summary(self) -> str:
        return self.rolls

    def new_dice(self, faces: int) -> None:
        """Starts a summary line for a verbose dice expression."""
        self._dice_count += 1
        if self._dice_count > self.max_rolls_verbose_dice:
            if self._dice_count == self.max_rolls_verbose_dice + 1:
                self.rolls += "..."
            return
        self.rolls += f"d{faces}:"

    def new_roll(self, value: int) -> None:
        if self._dice_count > self.max_rolls_verbose_dice:
            return
        self.rolls += f" {value},"

    def end_dice(self, truncated: bool = False) -> None:
        """Closes the current summary line, dropping the trailing comma."""
        if self._dice_count > self.max_rolls_verbose_dice:
            return
        self.rolls = f"{self.rolls[:-1]}{'...' if truncated else ''}\n"

    def __str__(self) -> str:
        return self.verbose_trace
