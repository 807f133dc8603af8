"""Exact payout multipliers.

Multipliers arrive as user text ("1.8", "2.5e1") or JSON numbers. They are
held as reduced integer fractions so payout tables never see float error,
however many fractional digits the input has or however large the budget.
"""

import math
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import total_ordering
from typing import Union

_PLAIN = re.compile(r"^(-)?(\d+)(?:\.(\d+))?$")
_SCIENTIFIC = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)[eE][+-]?\d+$")


class ParseError(ValueError):
    """Raised when a multiplier is not a positive decimal literal."""

    pass


@total_ordering
@dataclass(frozen=True)
class ExactRatio:
    """A positive rational ``numerator / denominator`` in lowest terms."""

    numerator: int
    denominator: int

    def __post_init__(self):
        if self.numerator <= 0 or self.denominator <= 0:
            raise ParseError(f"Ratio must be positive, got {self.numerator}/{self.denominator}")
        if math.gcd(self.numerator, self.denominator) != 1:
            raise ParseError(f"Ratio {self.numerator}/{self.denominator} is not reduced")

    @classmethod
    def parse(cls, raw: Union[str, int, float]) -> "ExactRatio":
        """Parse a decimal or scientific literal into a reduced fraction.

        Raises:
            ParseError: for empty, malformed, non-finite, zero or negative input.
        """
        text = _to_text(raw)
        if _SCIENTIFIC.match(text):
            text = _expand_scientific(text)

        match = _PLAIN.match(text)
        if not match:
            raise ParseError(f"Not a decimal number: {raw!r}")
        negative, whole, frac = match.group(1), match.group(2), match.group(3) or ""

        numerator = int(whole + frac)
        if negative:
            numerator = -numerator
        if numerator <= 0:
            raise ParseError(f"Multiplier must be greater than zero: {raw!r}")

        denominator = 10 ** len(frac)
        divisor = math.gcd(numerator, denominator)
        return cls(numerator // divisor, denominator // divisor)

    def payout(self, stake: int) -> int:
        """Integer payout for ``stake``, truncated toward zero."""
        return stake * self.numerator // self.denominator

    def __lt__(self, other: "ExactRatio") -> bool:
        if not isinstance(other, ExactRatio):
            return NotImplemented
        return self.numerator * other.denominator < other.numerator * self.denominator

    def __float__(self) -> float:
        return self.numerator / self.denominator

    def __str__(self) -> str:
        if self.denominator == 1:
            return str(self.numerator)
        return f"{self.numerator}/{self.denominator}"


def _to_text(raw) -> str:
    # bool is an int subclass; True is not a multiplier
    if isinstance(raw, bool):
        raise ParseError(f"Not a decimal number: {raw!r}")
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, float):
        if not math.isfinite(raw):
            raise ParseError(f"Multiplier must be finite: {raw!r}")
        return repr(raw)
    if isinstance(raw, str):
        return raw.strip()
    raise ParseError(f"Unsupported multiplier type: {type(raw).__name__}")


def _expand_scientific(text: str) -> str:
    """Rewrite ``1.5e3`` as ``1500`` without going through a float."""
    try:
        value = Decimal(text)
    except InvalidOperation as e:
        raise ParseError(f"Not a decimal number: {text!r}") from e

    # Same range a JSON number can carry; also keeps the expansion bounded
    as_float = float(value)
    if not math.isfinite(as_float) or as_float == 0.0:
        if value != 0:
            raise ParseError(f"Multiplier out of range: {text!r}")

    expanded = format(value, "f")
    if "." in expanded:
        expanded = expanded.rstrip("0").rstrip(".")
    return expanded or "0"
