"""Weighted character width of bullet text.

A character count is a poor proxy for how wide a line renders in a
proportional font: "WM" is much wider than "il". Each character gets a weight
relative to an average lowercase letter (1.0) and the weights are summed.
"""

_WIDE = frozenset("WM@%&")
_BROAD = frozenset("mwQGODBHNUAKR")
_NARROW = frozenset("iljtfrIJ1!;:.,'\"`|/")
_DIGITS = frozenset("023456789")

W_SPACE = 0.55
W_WIDE = 1.25
W_BROAD = 1.15
W_NARROW = 0.55
W_HYPHEN = 0.70
W_DIGIT = 1.00
W_UPPER = 1.10
W_LOWER = 1.00
W_OTHER = 0.80


def char_width(char: str) -> float:
    if char == " ":
        return W_SPACE
    if char in _WIDE:
        return W_WIDE
    if char in _BROAD:
        return W_BROAD
    if char in _NARROW:
        return W_NARROW
    if char == "-":
        return W_HYPHEN
    if char in _DIGITS:
        return W_DIGIT
    if "A" <= char <= "Z":
        return W_UPPER
    if "a" <= char <= "z":
        return W_LOWER
    return W_OTHER


def calculate_visual_width(text: str) -> float:
    """Sum of per-character weights, rounded to 2 decimals."""
    return round(sum(char_width(c) for c in text), 2)


def exceeds_width(text: str, max_width: float) -> bool:
    return calculate_visual_width(text) > max_width
