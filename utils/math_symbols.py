"""
math_symbols.py

This module holds the symbol table used by the expression evaluator: named
constants (pi, e, c, ...) and the functions a user may call (sqrt, ln, max, ...).

Every symbol pairs its evaluation with a domain predicate, so the evaluator can
report "value not in the domain of sqrt" instead of handing back a NaN. The
table is built once at import time and never mutated.
"""
import math
from enum import Enum
from dataclasses import dataclass
from typing import Callable, Optional, Sequence


class Arity(Enum):
    """How many arguments a symbol consumes."""
    ZERO = "zero"
    ONE = "one"
    MANY = "many"


def _always(args: Sequence[float]) -> bool:
    return True


@dataclass(frozen=True)
class Symbol:
    """A named constant or function known to the evaluator."""
    identifier: str
    arity: Arity
    evaluate: Callable[[Sequence[float]], float]
    domain: Callable[[Sequence[float]], bool] = _always
    description: str = ""
    min_args: int = 0
    max_args: Optional[int] = 0

    @property
    def is_constant(self) -> bool:
        return self.arity is Arity.ZERO

    def accepts(self, count: int) -> bool:
        """Checks an argument count against this symbol's bounds."""
        if count < self.min_args:
            return False
        return self.max_args is None or count <= self.max_args


def constant(identifier: str, value: float, description: str = "") -> Symbol:
    return Symbol(identifier, Arity.ZERO, lambda args: value, _always, description)


def unary(identifier: str, func: Callable[[float], float],
          domain: Callable[[Sequence[float]], bool] = _always, description: str = "") -> Symbol:
    return Symbol(identifier, Arity.ONE, lambda args: func(args[0]), domain, description, 1, 1)


def variadic(identifier: str, func: Callable[[Sequence[float]], float],
             domain: Callable[[Sequence[float]], bool] = _always, description: str = "",
             min_args: int = 1, max_args: Optional[int] = None) -> Symbol:
    return Symbol(identifier, Arity.MANY, func, domain, description, min_args, max_args)


# --- Domain Predicates ---

def is_non_negative(args: Sequence[float]) -> bool:
    return len(args) == 1 and args[0] >= 0

def is_strictly_positive(args: Sequence[float]) -> bool:
    return len(args) == 1 and args[0] > 0

def is_unit_interval(args: Sequence[float]) -> bool:
    """Accepts arguments in [-1, 1], the domain of arcsin and arccos."""
    return len(args) == 1 and abs(args[0]) <= 1

def is_valid_log(args: Sequence[float]) -> bool:
    # log(base, value): both positive and a base of 1 has no logarithm.
    return len(args) == 2 and args[0] > 0 and args[1] > 0 and args[0] != 1


# --- Function Bodies ---

def _cbrt(x: float) -> float:
    return math.copysign(abs(x) ** (1 / 3), x)

def _log(args: Sequence[float]) -> float:
    return math.log(args[1]) / math.log(args[0])


# The table is keyed by lowercase identifier; lookups are case-insensitive.
# Identifiers must not contain 'd' or 'D', which the evaluator reads as the dice operator.
_SYMBOL_LIST = [
    # Mathematical constants
    constant('pi', math.pi, "Ratio of a circle's circumference to its diameter"),
    constant('tau', math.tau, "2π"),
    constant('e', math.e, "Euler's number"),
    constant('phi', (1 + math.sqrt(5)) / 2, "Golden ratio"),
    # Physical constants (SI units)
    constant('c', 299792458.0, "Speed of light (m/s)"),
    constant('g', 6.67408e-11, "Gravitational constant (m³/kg·s²)"),
    constant('k', 8.9875517923e9, "Coulomb constant (N·m²/C²)"),
    constant('epsilon', 8.8541878128e-12, "Vacuum permittivity (F/m)"),
    constant('mu0', 1.25663706212e-6, "Vacuum permeability (N/A²)"),
    constant('electron', 1.60217662e-19, "Elementary charge (C)"),
    # N_A; the full name would contain the dice operator.
    constant('na', 6.02214076e23, "Avogadro's number (1/mol)"),
    # Unary functions
    unary('abs', abs, description="Absolute value"),
    unary('sqrt', math.sqrt, is_non_negative, "Square root"),
    unary('cbrt', _cbrt, description="Cube root"),
    unary('ln', math.log, is_strictly_positive, "Natural logarithm"),
    unary('exp', math.exp, description="e raised to the argument"),
    unary('sin', math.sin, description="Sine (radians)"),
    unary('cos', math.cos, description="Cosine (radians)"),
    unary('tan', math.tan, description="Tangent (radians)"),
    unary('arcsin', math.asin, is_unit_interval, "Inverse sine"),
    unary('arccos', math.acos, is_unit_interval, "Inverse cosine"),
    unary('arctan', math.atan, description="Inverse tangent"),
    unary('ceil', math.ceil, description="Round up"),
    unary('floor', math.floor, description="Round down"),
    # Multi-argument functions
    variadic('max', max, description="Largest of the arguments"),
    variadic('min', min, description="Smallest of the arguments"),
    variadic('log', _log, is_valid_log, "log(b, a): logarithm of a in base b", min_args=2, max_args=2),
]

SYMBOLS: dict[str, Symbol] = {symbol.identifier: symbol for symbol in _SYMBOL_LIST}

# Longest identifiers first so that 'electron' wins over 'e' and 'cos' over 'c'.
_BY_LENGTH = sorted(SYMBOLS.values(), key=lambda s: len(s.identifier), reverse=True)


def match_symbol(text: str) -> Optional[Symbol]:
    """
    Returns the symbol whose identifier prefixes `text` (case-insensitively),
    preferring the longest identifier, or None when nothing matches.
    """
    lowered = text.lower()
    for symbol in _BY_LENGTH:
        if lowered.startswith(symbol.identifier):
            return symbol
    return None


def constants() -> list[Symbol]:
    return [s for s in _SYMBOL_LIST if s.is_constant]


def functions() -> list[Symbol]:
    return [s for s in _SYMBOL_LIST if not s.is_constant]
