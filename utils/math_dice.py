"""
math_dice.py

Stateless numeric routines used by the expression evaluator for its two
integer-flavoured operators: the dice operator (`AdB` / `ADB`) and the
factorial (`n!`). Both report problems through the shared MathResult and
never raise.
"""
import math
import random

from utils.math_result import MathResult, format_number


def roll(count: float, faces: float, result: MathResult, verbose: bool = False) -> float:
    """
    Rolls `count` dice with `faces` faces each and returns the sum.

    Both operands are rounded to the nearest integer. A negative count rolls
    the same number of dice but negates every roll. In verbose mode the
    individual rolls are appended to the result's roll summary, within the
    configured caps.
    """
    source = f"{format_number(count)}d{format_number(faces)}"
    if not (math.isfinite(count) and math.isfinite(faces)):
        return result.throw_error(f"Dice operands must be finite numbers, found `{source}`.")

    dice_count = round(count)
    if abs(dice_count) > result.max_rolls:
        return result.throw_error(
            f"Exceeded maximum allowed random operations ({abs(dice_count)} > {result.max_rolls})"
        )

    if dice_count == 0:
        result.echo("Rolled 0 dice.", source)
        return 0.0

    dice_type = round(faces)
    if dice_type < 1:
        return result.throw_error("Attempt to roll a die with less than one face.")

    sign = -1 if dice_count < 0 else 1
    dice_count = abs(dice_count)

    if verbose:
        result.new_dice(dice_type)

    # A fresh generator per call unless a seeded one was injected.
    rng = result.rng or random.Random()
    total = 0
    shown: list[str] = []
    trace_chars = 0

    for _ in range(dice_count):
        value = rng.randint(1, dice_type) * sign
        total += value
        if trace_chars < result.max_rolls_verbose_chars:
            shown.append(str(value))
            trace_chars += len(str(value)) + 2
            if verbose:
                result.new_roll(value)

    truncated = len(shown) < dice_count
    if verbose:
        result.end_dice(truncated)

    listing = ", ".join(shown) + (", ..." if truncated else "")
    result.echo(f"Rolled values: {listing} on {'-' if sign < 0 else ''}{dice_count}d{dice_type}.", source)
    return float(total)


def factorial(operand: float, result: MathResult) -> float:
    """
    Rounds `operand` and multiplies down from it to 2. Values below 2 give 1.
    Overflow is reported as a verbose error so the user sees where it happened.
    """
    if not math.isfinite(operand):
        return result.throw_verbose_error(f"Cannot take the factorial of {format_number(operand)}.")

    n = round(operand)
    value = 1.0
    for i in range(n, 1, -1):
        value *= i
        if math.isinf(value):
            return result.throw_verbose_error(
                "Overflow in factorial operation, result of local expression is infinity."
            )

    result.echo(f"Calculated the factorial of {format_number(operand)}, rounded to {n}!", f"{format_number(operand)}!")
    return value
