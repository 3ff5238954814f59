"""Integer proportion helpers with explicit rounding direction."""

from .constants import BPS_DENOMINATOR


def mul_div_down(x: int, y: int, denominator: int) -> int:
    """floor(x * y / denominator)."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div_down by zero")
    return (x * y) // denominator


def mul_div_up(x: int, y: int, denominator: int) -> int:
    """ceil(x * y / denominator)."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div_up by zero")
    return -((-x * y) // denominator)


def bps_of(amount: int, rate_bps: int) -> int:
    """floor(amount * rate_bps / 10_000)."""
    return mul_div_down(amount, rate_bps, BPS_DENOMINATOR)
