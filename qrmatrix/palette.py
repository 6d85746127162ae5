"""Emoji palette and colour classification for pixel art.

Each cell of a resampled image is mapped to one of a fixed set of coloured
square emoji. Classification walks an ordered list of threshold rules and the
first rule that matches wins, so the order of CLASSIFICATION_RULES matters.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, NamedTuple


class ColorSample(NamedTuple):
    """An RGBA colour with every channel normalised to [0, 1]."""

    red: float
    green: float
    blue: float
    alpha: float = 1.0

    @classmethod
    def from_rgba8(cls, rgba: tuple[int, ...]) -> "ColorSample":
        """Build a sample from 8-bit channels, e.g. a Pillow RGBA pixel."""
        r, g, b, a = rgba
        return cls(r / 255.0, g / 255.0, b / 255.0, a / 255.0)


TRANSPARENT = ColorSample(0.0, 0.0, 0.0, 0.0)


class Symbol(Enum):
    """Pixel art symbols. The value is the glyph written into the payload."""

    # White and black squares carry U+FE0F so they render as emoji
    WHITE = "\u2b1c\ufe0f"
    RED = "\U0001f7e5"
    ORANGE = "\U0001f7e7"
    YELLOW = "\U0001f7e8"
    GREEN = "\U0001f7e9"
    BLUE = "\U0001f7e6"
    PURPLE = "\U0001f7ea"
    BROWN = "\U0001f7eb"
    BLACK = "\u2b1b\ufe0f"

    @property
    def glyph(self) -> str:
        return self.value


DEFAULT_SYMBOL = Symbol.WHITE


@dataclass(frozen=True)
class ColorRule:
    """A single classification rule: *symbol* applies when *matches* is true."""

    symbol: Symbol
    matches: Callable[[ColorSample], bool]


CLASSIFICATION_RULES: tuple[ColorRule, ...] = (
    ColorRule(Symbol.WHITE, lambda c: c.alpha < 0.5),
    ColorRule(Symbol.RED, lambda c: c.red > 0.7 and c.green < 0.3 and c.blue < 0.3),
    ColorRule(Symbol.ORANGE, lambda c: c.red > 0.7 and c.green > 0.5 and c.blue < 0.3),
    # Never reached: every YELLOW match is already an ORANGE match
    ColorRule(Symbol.YELLOW, lambda c: c.red > 0.7 and c.green > 0.7 and c.blue < 0.3),
    ColorRule(Symbol.GREEN, lambda c: c.red < 0.3 and c.green > 0.6 and c.blue < 0.3),
    ColorRule(Symbol.BLUE, lambda c: c.red < 0.3 and c.green < 0.3 and c.blue > 0.6),
    ColorRule(Symbol.PURPLE, lambda c: c.red > 0.5 and c.green < 0.3 and c.blue > 0.5),
    ColorRule(Symbol.BROWN, lambda c: c.red > 0.5 and c.green > 0.3 and c.blue < 0.3),
    ColorRule(Symbol.BLACK, lambda c: c.red < 0.2 and c.green < 0.2 and c.blue < 0.2),
)


def classify(
    sample: ColorSample,
    rules: tuple[ColorRule, ...] = CLASSIFICATION_RULES,
) -> Symbol:
    """Map a colour sample to its pixel art symbol.

    Rules are evaluated in order and the first match wins. Samples that
    match no rule fall back to DEFAULT_SYMBOL, so every input has a symbol.

    Args:
        sample: The colour to classify.
        rules: Ordered rules to evaluate. Defaults to CLASSIFICATION_RULES.

    Returns:
        The matching Symbol.
    """
    for rule in rules:
        if rule.matches(sample):
            return rule.symbol
    return DEFAULT_SYMBOL


def classify_grid(grid: list[list[ColorSample]]) -> list[list[Symbol]]:
    """Classify every cell of a colour grid, keeping its shape."""
    return [[classify(sample) for sample in row] for row in grid]
