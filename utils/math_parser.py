"""
math_parser.py

The expression evaluator behind the `math` command. It works directly on the
expression string, without a tokenizer:

1.  `resolve_parentheses` collapses the innermost `(...)` group, one at a time,
    into a literal (or into a `[a;b;c]` argument list when the group holds
    commas) until no parentheses remain.
2.  `process_math` then looks for the rightmost operator of the lowest
    precedence tier, splits the string there and recurses on both halves.
    Tiers, lowest first: `+ -`, `* × / ÷`, `^`, `d D %`, trailing `!`,
    function/constant application, and finally a plain number.

Because the rightmost operator is always the split point, every binary operator
is left-associative, including `^` (`2^3^2` is `(2^3)^2`).

Nothing here raises for bad input. Problems are recorded on the MathResult
passed through every call, the failing step yields 1.0, and evaluation carries
on so that one call can report every error it runs into.
"""
import logging
import math
import random
import re
from typing import Optional

from utils.math_dice import factorial, roll
from utils.math_result import (
    DEFAULT_MAX_ROLLS, DEFAULT_MAX_ROLLS_VERBOSE_CHARS, DEFAULT_MAX_ROLLS_VERBOSE_DICE,
    DEFAULT_MAX_STEPS, ERROR_SENTINEL, MathResult, format_number,
)
from utils.math_symbols import Symbol, match_symbol

logger = logging.getLogger(__name__)

# --- Grammar ---

ADDITIVE_OPERATORS = "+-"
MULTIPLICATIVE_OPERATORS = "*×/÷"
POWER_OPERATORS = "^"
RANDOM_OPERATORS = "dD%"
BINARY_OPERATORS = ADDITIVE_OPERATORS + MULTIPLICATIVE_OPERATORS + POWER_OPERATORS + RANDOM_OPERATORS

# Stands in for a leading minus in resolved literals so it is never read as subtraction.
NEGATIVE_MARKER = "_"

_NUMBER = r'(?:\d+\.?\d*|\.\d+)(?:E[+-]?\d+)?'
# Optional numeric multiplier in front of a function or constant, e.g. "2" in "2sqrt9".
COEFFICIENT_REGEX = re.compile(rf'{NEGATIVE_MARKER}?{_NUMBER}')
LITERAL_REGEX = re.compile(rf'({NEGATIVE_MARKER}?)({_NUMBER})')
# An exponent sign with no digits after it, e.g. "1E+" or "2E-x".
MALFORMED_EXPONENT_REGEX = re.compile(r'[\d.]E[+-](?!\d)')

# Characters after which a resolved group is multiplied implicitly: 2(3), 3!(2), max(1,2)(3).
_IMPLICIT_LEFT = set("0123456789.!]")
_IMPLICIT_RIGHT = set("0123456789.")


def format_literal(value: float) -> str:
    """Writes a value back into an expression string so that it parses to the same float."""
    marker = NEGATIVE_MARKER if value < 0 else ""
    return marker + format_number(abs(value)).upper()


# --- Scanning Helpers ---

def check_exponents(text: str, result: MathResult) -> None:
    """
    Reports an exponent sign with no digits after it. Runs on parenthesis-free
    text, so `1E+(2)` is only checked once the group has become `1E+2`.
    """
    if MALFORMED_EXPONENT_REGEX.search(text):
        result.throw_error(f"Malformed E-notation in \"{text}\": the exponent sign must be followed by digits.")


def _checked(value: float, operation: str, result: MathResult) -> float:
    """Passes a finite value through and reports anything else as an overflow."""
    if math.isfinite(value):
        return value
    return result.throw_error(f"Overflow evaluating {operation}, the result is not a finite number.")


def _is_sign(arg: str, index: int) -> bool:
    """
    True when the `+`/`-` at `index` is not a binary operator: either the sign
    of an E-notation exponent (`1E-5`) or a unary sign following another
    operator (`2*-3`).
    """
    if index == 0:
        return False
    previous = arg[index - 1]
    if previous in BINARY_OPERATORS:
        return True
    return previous == 'E' and index >= 2 and (arg[index - 2].isdigit() or arg[index - 2] == '.')


def _find_operator(arg: str, operators: str, skip=None) -> int:
    """Returns the index of the rightmost operator outside any `[...]` list, or -1."""
    depth = 0
    for index in range(len(arg) - 1, -1, -1):
        char = arg[index]
        if char == ']':
            depth += 1
        elif char == '[':
            depth -= 1
        elif depth == 0 and char in operators:
            if skip is not None and skip(arg, index):
                continue
            return index
    return -1


def _matching_bracket(text: str) -> int:
    """Index of the `]` closing the `[` at the start of `text`, or -1."""
    depth = 0
    for index, char in enumerate(text):
        if char == '[':
            depth += 1
        elif char == ']':
            depth -= 1
            if depth == 0:
                return index
    return -1


def _split_arguments(text: str) -> list[str]:
    """Splits the inside of an argument list at its top-level `;` separators."""
    items = []
    depth = 0
    start = 0
    for index, char in enumerate(text):
        if char == '[':
            depth += 1
        elif char == ']':
            depth -= 1
        elif char == ';' and depth == 0:
            items.append(text[start:index])
            start = index + 1
    items.append(text[start:])
    return items


def _top_level_commas(text: str) -> list[int]:
    depth = 0
    found = []
    for index, char in enumerate(text):
        if char == '[':
            depth += 1
        elif char == ']':
            depth -= 1
        elif char == ',' and depth == 0:
            found.append(index)
    return found


# --- Parenthesis Resolver ---

def resolve_group(expr: str, group_content: str, open_index: int, close_index: int, result: MathResult) -> str:
    """
    Replaces the parenthesis group spanning `open_index`..`close_index` in `expr`.

    A group with top-level commas becomes an argument list, `(a,b)` -> `[a;b]`,
    left for a preceding function to consume. Any other group is evaluated and
    replaced by its value, with a `*` added where a digit touches the group so
    that `2(3)` reads as `2*3`. An argument list followed by a digit gets the
    same `*` after it: `max(1,2)3` reads as `max[1;2]*3`.
    """
    left = expr[:open_index]
    right = expr[close_index + 1:]

    asterisk_right = close_index + 1 < len(expr) and expr[close_index + 1] in _IMPLICIT_RIGHT

    commas = _top_level_commas(group_content)
    if commas:
        result.echo(f'Parsing function parameters "{group_content}"', expr)
        chars = list(group_content)
        for index in commas:
            chars[index] = ';'
        return f"{left}[{''.join(chars)}]{'*' if asterisk_right else ''}{right}"

    asterisk_left = open_index > 0 and expr[open_index - 1] in _IMPLICIT_LEFT

    check_exponents(group_content, result)
    value = process_math(group_content, result, 1.0)
    if not math.isfinite(value):
        value = result.throw_error(f"Overflow evaluating ({group_content}), the result is not a finite number.")
    result.echo(f"Parsing parentheses ({group_content}) into ({format_number(value)})", expr)
    literal = format_literal(value)
    logger.debug(f"Resolved '({group_content})' to '{literal}'")
    return f"{left}{'*' if asterisk_left else ''}{literal}{'*' if asterisk_right else ''}{right}"


def resolve_parentheses(arg: str, result: MathResult) -> Optional[str]:
    """
    Collapses every parenthesis group in `arg`, innermost first. Returns the
    parenthesis-free string, or None after recording an unbalanced-parenthesis error.
    """
    while '(' in arg or ')' in arg:
        starts: list[int] = []
        for index, char in enumerate(arg):
            if char == '(':
                starts.append(index)
            elif char == ')':
                if not starts:
                    result.throw_error("Unbalanced or unexpected closing parenthesis found.")
                    return None
                start = starts.pop()
                arg = resolve_group(arg, arg[start + 1:index], start, index, result)
                break
        else:
            result.throw_error("Unbalanced or unexpected opening parenthesis found.")
            return None
    return arg


# --- Precedence Evaluator ---

def process_math(arg: str, result: MathResult, neutral_value: float = 1.0) -> float:
    """
    Evaluates `arg` and returns its value.

    `neutral_value` is what an empty slice is worth, which is how the optional
    operands work: the left side of `-5` is 0, the count in `d20` is 1.
    """
    if arg == "":
        return neutral_value

    if '(' in arg or ')' in arg:
        resolved = resolve_parentheses(arg, result)
        if resolved is None:
            return ERROR_SENTINEL
        arg = resolved

    # Addition and subtraction
    index = _find_operator(arg, ADDITIVE_OPERATORS, skip=_is_sign)
    if index >= 0:
        a = process_math(arg[:index], result, 0.0)
        b = process_math(arg[index + 1:], result, 0.0)
        if arg[index] == '+':
            result.echo(f"Added {format_number(a)} + {format_number(b)}.", arg)
            return _checked(a + b, f"{format_number(a)} + {format_number(b)}", result)
        result.echo(f"Subtracted {format_number(a)} - {format_number(b)}.", arg)
        return _checked(a - b, f"{format_number(a)} - {format_number(b)}", result)

    # Multiplication and division
    index = _find_operator(arg, MULTIPLICATIVE_OPERATORS)
    if index >= 0:
        a = process_math(arg[:index], result, 1.0)
        b = process_math(arg[index + 1:], result, 1.0)
        if arg[index] in '/÷':
            if b == 0:
                return result.throw_error("Attempt to divide by zero")
            result.echo(f"Divided {format_number(a)} / {format_number(b)}", arg)
            return _checked(a / b, f"{format_number(a)} / {format_number(b)}", result)
        result.echo(f"Multiplied {format_number(a)} * {format_number(b)}", arg)
        return _checked(a * b, f"{format_number(a)} * {format_number(b)}", result)

    # Exponentiation
    index = _find_operator(arg, POWER_OPERATORS)
    if index >= 0:
        a = process_math(arg[:index], result, 1.0)
        b = process_math(arg[index + 1:], result, 1.0)
        return _power(a, b, arg, result)

    # Dice and remainder
    index = _find_operator(arg, RANDOM_OPERATORS)
    if index >= 0:
        a = process_math(arg[:index], result, 1.0)
        b = process_math(arg[index + 1:], result, 1.0)
        if arg[index] == 'd':
            return roll(a, b, result)
        if arg[index] == 'D':
            return roll(a, b, result, verbose=True)
        return _remainder(a, b, arg, result)

    # Factorial
    if arg.endswith('!'):
        return factorial(process_math(arg[:-1], result), result)

    value = _apply_symbol(arg, result)
    if value is not None:
        return value

    return _parse_literal(arg, result)


def _power(a: float, b: float, arg: str, result: MathResult) -> float:
    if a == 0 and b == 0:
        return result.throw_error("Attempt to evaluate zero to the power of zero.")
    try:
        value = math.pow(a, b)
    except OverflowError:
        return result.throw_error(f"Overflow evaluating {format_number(a)} ^ {format_number(b)}.")
    except ValueError:
        return result.throw_error(f"{format_number(a)} ^ {format_number(b)} has no real value.")
    result.echo(f"Evaluated {format_number(a)} ^ {format_number(b)}", arg)
    return value


def _remainder(a: float, b: float, arg: str, result: MathResult) -> float:
    if b == 0:
        return result.throw_error("Attempt to take the remainder of a division by zero")
    try:
        value = math.fmod(a, b)
    except ValueError:
        return result.throw_error(f"{format_number(a)} % {format_number(b)} has no real value.")
    result.echo(f"Calculated the remainder of {format_number(a)} % {format_number(b)}", arg)
    return value


def _apply_symbol(arg: str, result: MathResult) -> Optional[float]:
    """
    Evaluates `arg` as an optional coefficient followed by a constant or a
    function application. Returns None when `arg` names no known symbol.
    """
    coefficient_match = COEFFICIENT_REGEX.match(arg)
    coefficient_text = coefficient_match.group(0) if coefficient_match else ""
    name_text = arg[len(coefficient_text):]

    symbol = match_symbol(name_text)
    if symbol is None:
        return None

    factor = 1.0
    if coefficient_text:
        result.echo(f'Parsing function multiplicand "{coefficient_text}"', arg)
        factor = _parse_literal(coefficient_text, result)

    rest = name_text[len(symbol.identifier):]

    if symbol.is_constant:
        value = symbol.evaluate(())
        result.echo(f"Parsed constant {symbol.identifier} = {format_number(value)}.", arg)
        # Whatever follows a constant multiplies it: "pi2", "epi".
        return _checked(factor * value * process_math(rest, result, 1.0), arg, result)

    args = _parse_arguments(symbol, rest, result)
    if args is None:
        return ERROR_SENTINEL
    listing = "; ".join(format_number(a) for a in args)

    if not symbol.accepts(len(args)):
        return result.throw_error(
            f"Invalid number of arguments for function {symbol.identifier}: "
            f"{_describe_bounds(symbol)}, found {len(args)} in \"{rest}\"."
        )
    if not symbol.domain(args):
        return result.throw_verbose_error(
            f"Value [{listing}] not included in the domain of function \"{symbol.identifier}\"."
        )

    try:
        value = float(symbol.evaluate(args))
    except (ValueError, OverflowError) as e:
        return result.throw_error(f"Could not evaluate {symbol.identifier} of [{listing}]: {e}.")

    result.echo(f"Evaluating {symbol.identifier} of [{listing}].", arg)
    return _checked(factor * value, f"{symbol.identifier} of [{listing}]", result)


def _parse_arguments(symbol: Symbol, rest: str, result: MathResult) -> Optional[list[float]]:
    """Evaluates the argument text after a function name: `9` or `[2;8]`."""
    if rest == "":
        result.throw_error(f"Missing argument for function {symbol.identifier}.")
        return None

    if rest.startswith('[') and _matching_bracket(rest) == len(rest) - 1:
        items = _split_arguments(rest[1:-1])
        if any(item == "" for item in items):
            result.throw_error(f"Empty argument in the argument list of function {symbol.identifier}, found \"{rest}\".")
            return None
        return [process_math(item, result, 1.0) for item in items]

    return [process_math(rest, result, 1.0)]


def _describe_bounds(symbol: Symbol) -> str:
    if symbol.max_args is None:
        return f"expected at least {symbol.min_args}"
    if symbol.min_args == symbol.max_args:
        return f"expected {symbol.min_args}"
    return f"expected {symbol.min_args} to {symbol.max_args}"


def _parse_literal(arg: str, result: MathResult) -> float:
    match = LITERAL_REGEX.fullmatch(arg)
    if match is None:
        if arg.startswith('['):
            return result.throw_error(f"Unexpected argument list \"{arg}\" with no function to apply it to.")
        return result.throw_verbose_error(f"Failed to parse string \"{arg}\".")

    negative = bool(match.group(1))
    value = float(match.group(2))
    if not math.isfinite(value):
        return result.throw_error(f"Overflow parsing numerical value {match.group(2)}.")
    if negative:
        value = -value
    result.echo(f"Parsed numerical value {format_number(value)}.", ("(-)" if negative else "") + match.group(2))
    return value


# --- Entry Point ---

def evaluate_expression(
    expression: str,
    *,
    max_rolls: int = DEFAULT_MAX_ROLLS,
    max_rolls_verbose_dice: int = DEFAULT_MAX_ROLLS_VERBOSE_DICE,
    max_rolls_verbose_chars: int = DEFAULT_MAX_ROLLS_VERBOSE_CHARS,
    max_steps: int = DEFAULT_MAX_STEPS,
    rng: Optional[random.Random] = None,
) -> MathResult:
    """
    Evaluates a user-typed expression and returns the filled-in MathResult.

    Whitespace is ignored anywhere and `**` is accepted as `^`. The caller must
    check `error_flag` before using `value`.
    """
    result = MathResult(
        max_rolls=max_rolls,
        max_rolls_verbose_dice=max_rolls_verbose_dice,
        max_rolls_verbose_chars=max_rolls_verbose_chars,
        max_steps=max_steps,
        rng=rng,
    )
    arg = "".join(expression.split()).replace("**", "^")
    logger.debug(f"Evaluating expression '{arg}'")

    try:
        resolved = resolve_parentheses(arg, result)
        if resolved is None:
            result.value = ERROR_SENTINEL
        else:
            check_exponents(resolved, result)
            result.value = process_math(resolved, result)
    except RecursionError:
        # Operator chains recurse once per operator; very long ones run out of stack.
        result.value = result.throw_error("Expression is too deeply nested to evaluate.")

    return result
