"""
Tests for the expression evaluator.

Covers:
1. Arithmetic tiers, associativity and unary signs
2. Parenthesis resolution and implicit multiplication
3. Constants and functions, including domain and argument checks
4. Dice, remainder and factorial operators
5. Error reporting: accumulation, sentinel values, no exceptions
6. Determinism and the resolve-then-evaluate round trip
"""
import math
import random

import pytest

from utils.math_parser import (
    evaluate_expression, format_literal, process_math, resolve_group, resolve_parentheses,
)
from utils.math_result import MathResult


def value_of(expression: str, **limits) -> float:
    result = evaluate_expression(expression, **limits)
    assert not result.error_flag, result.error_text
    return result.value


def error_of(expression: str, **limits) -> MathResult:
    result = evaluate_expression(expression, **limits)
    assert result.error_flag
    return result


class TestArithmetic:
    @pytest.mark.parametrize("expression, expected", [
        ("2+2", 4),
        ("  2 +   2 ", 4),
        ("(2+3)*4", 20),
        ("2+3*4", 14),
        ("10-4-3", 3),
        ("8/2/2", 2),
        ("2 × 3 ÷ 4", 1.5),
        ("7.5%2", 1.5),
        ("2**3", 8),
        (".5+1.", 1.5),
    ])
    def test_values(self, expression: str, expected: float) -> None:
        assert value_of(expression) == pytest.approx(expected)

    @pytest.mark.parametrize("expression, expected", [
        ("-5", -5),
        ("+5", 5),
        ("-5+2", -3),
        ("2*-3", -6),
        ("2--3", 5),
        ("2^-1", 0.5),
        ("-2^2", -4),
    ])
    def test_unary_signs(self, expression: str, expected: float) -> None:
        assert value_of(expression) == pytest.approx(expected)

    def test_power_is_left_associative(self) -> None:
        # The rightmost ^ is split first, so this is (2^3)^2 and not 2^(3^2).
        assert value_of("2^3^2") == 64

    def test_scientific_notation_uses_uppercase_e(self) -> None:
        assert value_of("1.5E-3*2") == pytest.approx(0.003)
        assert value_of("2E+3") == 2000
        # Lowercase e is Euler's number: 2e3 is 2 * e * 3.
        assert value_of("2e3") == pytest.approx(6 * math.e)

    def test_empty_expression_is_the_neutral_value(self) -> None:
        assert value_of("") == 1


class TestParentheses:
    @pytest.mark.parametrize("expression, expected", [
        ("2(3)", 6),
        ("(2)(3)", 6),
        ("2(3+4)", 14),
        ("((1+2)*(3+4))", 21),
        ("(0-3)2", -6),
        ("2(0-3)", -6),
        ("(-2)^2", 4),
        ("3!(2)", 12),
        ("((((7))))", 7),
    ])
    def test_values(self, expression: str, expected: float) -> None:
        assert value_of(expression) == pytest.approx(expected)

    def test_group_becomes_literal_with_implicit_multiplication(self) -> None:
        result = MathResult()
        assert resolve_group("2(3)", "3", 1, 3, result) == "2*3"

    def test_negative_group_uses_marker(self) -> None:
        result = MathResult()
        assert resolve_group("(0-5)", "0-5", 0, 4, result) == "_5"

    def test_comma_group_becomes_argument_list(self) -> None:
        result = MathResult()
        assert resolve_group("max(1,2)", "1,2", 3, 7, result) == "max[1;2]"
        assert result.steps[-1][0] == 'Parsing function parameters "1,2"'

    def test_digit_after_argument_list_multiplies(self) -> None:
        result = MathResult()
        assert resolve_group("max(1,2)3", "1,2", 3, 7, result) == "max[1;2]*3"

    def test_nested_groups_resolve_innermost_first(self) -> None:
        result = MathResult()
        assert resolve_parentheses("((2))", result) == "2"
        assert resolve_parentheses("max(1,(2+3))", result) == "max[1;5]"

    def test_literals_round_trip_exactly(self) -> None:
        for value in (1 / 3, -2.5, 1e-7, 6.02214076e23, -1e300):
            result = MathResult()
            assert process_math(format_literal(value), result) == value
            assert not result.error_flag

    @pytest.mark.parametrize("expression, message", [
        ("(2+3", "opening parenthesis"),
        ("2+3)", "closing parenthesis"),
        (")(", "closing parenthesis"),
    ])
    def test_unbalanced(self, expression: str, message: str) -> None:
        assert message in error_of(expression).error_text


class TestSymbols:
    @pytest.mark.parametrize("expression, expected", [
        ("pi", math.pi),
        ("PI", math.pi),
        ("2pi", 2 * math.pi),
        ("pi(2)", 2 * math.pi),
        ("epi", math.e * math.pi),
        ("tau/2", math.pi),
        ("1.5c", 1.5 * 299792458),
        ("electron", 1.60217662e-19),
        ("sqrt(9)", 3),
        ("2sqrt(9)", 6),
        ("sqrt(sqrt(16))", 2),
        ("abs(-3)", 3),
        ("cbrt(-8)", -2),
        ("floor(2.7)", 2),
        ("ceil(2.1)", 3),
        ("ln(e)", 1),
        ("sin(pi/2)", 1),
        ("arccos(1)", 0),
        ("max(1, 5, 3)", 5),
        ("min(4, 2+1)", 3),
        ("max(1,2)(3)", 6),
        ("log(2, 1024)", 10),
        ("na", 6.02214076e23),
        ("2na", 1.204428152e24),
        ("max(1,2)3", 6),
        ("max(1,2).5", 1),
    ])
    def test_values(self, expression: str, expected: float) -> None:
        assert value_of(expression) == pytest.approx(expected)

    @pytest.mark.parametrize("expression", ["sqrt(-1)", "ln(0)", "arcsin(2)", "arccos(-1.5)", "log(1, 5)", "log(2, -4)"])
    def test_domain_errors(self, expression: str) -> None:
        result = error_of(expression)
        assert "domain" in result.error_text
        assert result.verbose_flag

    @pytest.mark.parametrize("expression", ["log(8)", "sqrt(1, 2)"])
    def test_argument_count_errors(self, expression: str) -> None:
        assert "Invalid number of arguments" in error_of(expression).error_text

    def test_missing_argument(self) -> None:
        assert "Missing argument" in error_of("sqrt").error_text

    def test_empty_list_item(self) -> None:
        assert "Empty argument" in error_of("max(1,)").error_text

    def test_argument_list_without_function(self) -> None:
        assert "Unexpected argument list" in error_of("(1,2)").error_text

    def test_math_library_failures_are_reported(self) -> None:
        assert "Could not evaluate exp" in error_of("exp(1000)").error_text


class TestOperators:
    def test_one_sided_die_is_deterministic(self) -> None:
        assert value_of("1d1") == 1

    def test_count_defaults_to_one(self, rng) -> None:
        assert 1 <= value_of("d20", rng=rng) <= 20

    def test_two_dice_distribution(self) -> None:
        rng = random.Random(42)
        trials = 100_000
        total = 0
        for _ in range(trials):
            value = value_of("2d6", rng=rng)
            assert 2 <= value <= 12
            total += value
        assert total / trials == pytest.approx(7, abs=0.05)

    def test_negative_dice_count(self, rng) -> None:
        assert -12 <= value_of("(0-2)d6", rng=rng) <= -2

    def test_zero_dice(self) -> None:
        result = evaluate_expression("0d6")
        assert result.value == 0
        assert not result.error_flag

    def test_uppercase_d_fills_roll_summary(self, rng) -> None:
        result = evaluate_expression("4D6", rng=rng)
        assert not result.error_flag
        assert result.roll_summary.startswith("d6:")
        rolls = [int(r) for r in result.roll_summary.strip()[len("d6:"):].split(",")]
        assert len(rolls) == 4
        assert sum(rolls) == result.value

    def test_lowercase_d_is_silent(self, rng) -> None:
        assert evaluate_expression("4d6", rng=rng).roll_summary == ""

    def test_verbose_dice_cap(self, rng) -> None:
        result = evaluate_expression("1D2+1D2+1D2", rng=rng, max_rolls_verbose_dice=2)
        assert result.roll_summary.count("d2:") == 2
        assert result.roll_summary.endswith("...")

    def test_dice_count_at_maximum(self) -> None:
        assert value_of("10d1", max_rolls=10) == 10

    def test_dice_count_above_maximum(self) -> None:
        assert "Exceeded maximum" in error_of("11d1", max_rolls=10).error_text

    def test_die_without_faces(self) -> None:
        assert "less than one face" in error_of("2d0").error_text

    @pytest.mark.parametrize("expression, expected", [
        ("3!", 6), ("0!", 1), ("5!/3!", 20), ("3!!", 720), ("2.6!", 6),
    ])
    def test_factorial(self, expression: str, expected: float) -> None:
        assert value_of(expression) == expected

    def test_factorial_overflow(self) -> None:
        result = error_of("171!")
        assert result.verbose_flag
        assert "Overflow" in result.error_text

    def test_remainder_is_truncated(self) -> None:
        assert value_of("7%3") == 1
        assert value_of("(0-7)%3") == -1


class TestErrors:
    def test_divide_by_zero(self) -> None:
        assert "divide by zero" in error_of("10/0").error_text

    def test_zero_to_the_zero(self) -> None:
        assert "zero to the power of zero" in error_of("0^0").error_text

    def test_remainder_by_zero(self) -> None:
        assert error_of("5%0").error_flag

    def test_non_real_power(self) -> None:
        assert "no real value" in error_of("(0-8)^(1/3)").error_text

    def test_power_overflow(self) -> None:
        assert "Overflow" in error_of("10^400").error_text

    def test_unparsable_literal(self) -> None:
        result = error_of("1.2.3")
        assert "Failed to parse" in result.error_text
        assert result.verbose_flag

    def test_unknown_name(self) -> None:
        assert 'Failed to parse string "foo"' in error_of("foo").error_text

    def test_malformed_exponent(self) -> None:
        assert "Malformed E-notation" in error_of("1E+").error_text

    def test_exponent_from_a_group_is_well_formed(self) -> None:
        result = evaluate_expression("1E+(2)")
        assert result.value == 100
        assert not result.error_flag

    @pytest.mark.parametrize("expression", ["(1E+)", "max(1E-, 2)", "2*(3+(1.E-))"])
    def test_malformed_exponent_inside_groups(self, expression: str) -> None:
        assert error_of(expression).error_text.count("Malformed E-notation") == 1

    @pytest.mark.parametrize("expression", ["NAN", "INF", "_INF", "2*NAN"])
    def test_non_finite_names_are_not_literals(self, expression: str) -> None:
        assert "Failed to parse" in error_of(expression).error_text

    @pytest.mark.parametrize("expression", [
        "1E400",
        "1E308+1E308",
        "0-1E308-1E308",
        "1E308*10",
        "1E308/1E-10",
        "1E308pi",
        "2cbrt(1E308)*1E308",
        "(10^308*10)-(10^308*10)",
    ])
    def test_overflow_is_an_error_not_a_special_value(self, expression: str) -> None:
        result = error_of(expression)
        assert "Overflow" in result.error_text
        assert math.isfinite(result.value)

    def test_errors_accumulate(self) -> None:
        result = error_of("1/0 + 2/0")
        assert len(result.errors) == 2

    def test_trace_survives_errors(self) -> None:
        result = error_of("2*3 + 1/0")
        assert any(message.startswith("Multiplied 2 * 3") for message, _ in result.steps)

    def test_deep_operator_chain_is_reported_not_raised(self) -> None:
        result = evaluate_expression("+".join(["1"] * 5000))
        assert result.error_flag
        assert "too deeply nested" in result.error_text

    def test_deep_parentheses_are_flattened(self) -> None:
        assert value_of("(" * 500 + "1" + ")" * 500) == 1


class TestProperties:
    @pytest.mark.parametrize("expression", ["sqrt(2)*pi/7+3!", "log(3, 81) - 2^0.5", "max(1,2,3)%2"])
    def test_deterministic(self, expression: str) -> None:
        first = evaluate_expression(expression)
        second = evaluate_expression(expression)
        assert first.value == second.value
        assert first.error_flag == second.error_flag
        assert first.steps == second.steps

    @pytest.mark.parametrize("expression, rewrite", [
        ("(2+3)*4", "5*4"),
        ("2*(3-7)", "2*-4"),
        ("(1+2)^2", "3^2"),
        ("10/(4-2)", "10/2"),
        ("2(0.5+0.25)", "2*0.75"),
        ("(1/3)*3", "0.3333333333333333*3"),
    ])
    def test_resolve_then_evaluate_matches_rewrite(self, expression: str, rewrite: str) -> None:
        result = MathResult()
        resolved = resolve_parentheses(expression, result)
        assert resolved is not None
        assert process_math(resolved, result) == evaluate_expression(rewrite).value
        assert not result.error_flag

    def test_fuzzed_input_never_raises(self) -> None:
        fuzz = random.Random(2024)
        pieces = list("0123456789+-*/^%!.,()dDE_[];") + ["pi", "e", "sqrt", "max", "log", "ln", " ", "×", "**", "x"]
        for _ in range(2000):
            expression = "".join(fuzz.choice(pieces) for _ in range(fuzz.randint(0, 30)))
            result = evaluate_expression(expression, max_rolls=50, rng=fuzz)
            assert isinstance(result.value, float), expression
            assert isinstance(result.error_text, str)
