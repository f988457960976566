"""Fixed-point helpers for reward accounting.

All reward rates and reward-per-token indices are integers scaled by
PRECISION. Division always floors, so the protocol rounds in its own favour by
at most one scaled unit per operation.
"""

from .errors import MathOverflow

PRECISION = 1_000_000_000_000  # 1e12 scaling factor
SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY  # 31,536,000 seconds
MAX_WITHDRAWAL_DELAY_DAYS = 31

U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1


def is_integer_amount(value) -> bool:
    """True for plain ints; bools and floats are not token quantities."""
    return isinstance(value, int) and not isinstance(value, bool)


def _check_u64(value: int, what: str) -> int:
    if value < 0 or value > U64_MAX:
        raise MathOverflow(f"{what} out of u64 range: {value}")
    return value


def scaled_mul_div(a: int, b: int, divisor: int) -> int:
    """
    Compute floor(a * b / divisor) with an unbounded intermediate.

    Args:
        a: First factor (non-negative)
        b: Second factor (non-negative)
        divisor: Positive divisor, usually PRECISION

    Returns:
        Floored quotient

    Raises:
        MathOverflow: On negative operands, zero divisor or a u64 overflow
    """
    if a < 0 or b < 0:
        raise MathOverflow(f"Negative operand in scaled_mul_div: a={a}, b={b}")
    if divisor <= 0:
        raise MathOverflow(f"Invalid divisor in scaled_mul_div: {divisor}")
    return _check_u64((a * b) // divisor, "scaled_mul_div result")


def checked_add(a: int, b: int) -> int:
    """u64 addition that fails instead of wrapping."""
    return _check_u64(a + b, "sum")


def checked_sub(a: int, b: int) -> int:
    """u64 subtraction that fails instead of wrapping."""
    return _check_u64(a - b, "difference")


def checked_mul(a: int, b: int) -> int:
    return _check_u64(a * b, "product")


def checked_timestamp(value: int) -> int:
    """Validate a u32 seconds timestamp."""
    if value < 0 or value > U32_MAX:
        raise MathOverflow(f"Timestamp out of u32 range: {value}")
    return value


def yearly_rate_to_per_second(yearly_numerator: int) -> int:
    """
    Convert a yearly percentage numerator to a per-second-per-token rate.

    80_000_000_000 (8% scaled by PRECISION) becomes 2536. Very small yearly
    rates floor to zero.
    """
    if yearly_numerator < 0:
        raise MathOverflow(f"Negative reward rate: {yearly_numerator}")
    return _check_u64(yearly_numerator, "yearly rate") // SECONDS_PER_YEAR


def per_second_rate_to_apr_percent(rate_per_second_numerator: int) -> float:
    """Approximate APR in percent for display (2536 -> ~7.9975)."""
    return rate_per_second_numerator * SECONDS_PER_YEAR / 1e10


def days_to_seconds(days: int) -> int:
    return checked_mul(days, SECONDS_PER_DAY)
