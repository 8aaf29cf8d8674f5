from __future__ import annotations

import random
import string
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from obfusheet.cells import BooleanCell, CellValue, EmptyCell, NumberCell, StringCell, classify

if TYPE_CHECKING:
    from obfusheet.obfuscate import ObfuscationOptions

ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
MIN_STRING_LENGTH = 3
CONSISTENT_NUMBER_CEILING = 1000.0


@dataclass
class ReplacementMemo:
    """Replacements chosen so far for one sheet. Never shared across sheets."""

    strings: dict[str, str] = field(default_factory=dict)
    numbers: dict[float, float] = field(default_factory=dict)

    def clear(self) -> None:
        self.strings.clear()
        self.numbers.clear()


def random_token(length: int, rng: random.Random) -> str:
    return "".join(rng.choice(ALPHABET) for _ in range(length))


def string_token(length: int, rng: random.Random) -> str:
    """Random token that reloads as text, never as a number or boolean ("123", "1e5", "yes")."""
    while True:
        token = random_token(length, rng)
        if isinstance(classify(token), StringCell):
            return token


def jitter_number(value: float, rng: random.Random, max_percent: float = 15.0) -> float:
    return value * (1.0 + rng.uniform(-max_percent, max_percent) / 100.0)


def random_number(value: float, rng: random.Random) -> float:
    # Negative originals would invert [0, 2x]; order the endpoints instead.
    low, high = sorted((0.0, value * 2.0))
    return rng.uniform(low, high)


def replace_string(text: str, policy: str, memo: ReplacementMemo, rng: random.Random) -> str:
    if policy == "none":
        return text
    length = max(MIN_STRING_LENGTH, len(text))
    if policy == "random":
        return string_token(length, rng)
    if policy == "consistent":
        if text not in memo.strings:
            memo.strings[text] = string_token(length, rng)
        return memo.strings[text]
    raise ValueError(f"Unknown string policy: {policy}")


def replace_number(
    value: float,
    policy: str,
    memo: ReplacementMemo,
    rng: random.Random,
    jitter_percent: float = 15.0,
) -> float:
    if policy == "none":
        return value
    if policy == "jitter":
        return jitter_number(value, rng, jitter_percent)
    if policy == "random":
        return random_number(value, rng)
    if policy == "consistent":
        if value not in memo.numbers:
            memo.numbers[value] = rng.uniform(0.0, CONSISTENT_NUMBER_CEILING)
        return memo.numbers[value]
    raise ValueError(f"Unknown number policy: {policy}")


def replace_value(
    value: CellValue,
    options: ObfuscationOptions,
    memo: ReplacementMemo,
    rng: random.Random,
) -> CellValue:
    """
    Return the obfuscated counterpart of one classified cell.

    Empty and boolean cells are returned as-is under every policy. Strings
    and numbers follow options.string_policy / options.effective_number_policy;
    the consistent policies record their choice in memo.
    """
    if isinstance(value, (EmptyCell, BooleanCell)):
        return value
    if isinstance(value, StringCell):
        if options.string_policy == "none":
            return value
        return StringCell(replace_string(value.text, options.string_policy, memo, rng))
    if isinstance(value, NumberCell):
        policy = options.effective_number_policy
        if policy == "none":
            return value
        return NumberCell(replace_number(value.value, policy, memo, rng, options.jitter_percent))
    raise TypeError(f"Unknown cell type: {type(value).__name__}")
