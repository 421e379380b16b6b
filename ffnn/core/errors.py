"""Exception types raised by the numerical core."""

from __future__ import annotations


class ShapeMismatchError(ValueError):
    """An operand does not have the dimensions a layer or network expects."""

    def __init__(self, what: str, expected: tuple, actual: tuple) -> None:
        super().__init__(f"{what}: expected shape {expected}, got {actual}")
        self.what = what
        self.expected = expected
        self.actual = actual


__all__ = ["ShapeMismatchError"]
