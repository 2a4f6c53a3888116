"""XIRR: the constant growth rate that brings the net future value of dated cash flows to zero.

Given the flows of a holding (buys negative, sells and income positive, and a final
synthetic inflow equal to the market value of what is still held), the solver looks for
the constant *daily* rate ``r`` such that compounding every flow by ``(1 + r) ** days``
up to the last flow date nets to zero. The annualized figure shown to users is
``(1 + r) ** 365 - 1``.

Worked example, flows of one stock::

    2023-01-01  -1000.00   buy
    2023-02-01   -500.00   buy
    2023-03-01  +1320.00   sell
    2023-04-01   +100.00   dividend
    2023-05-01  -2200.00   buy
    2023-06-01  +2651.25   sell everything

The daily rate is about 0.00211118, i.e. an annualized XIRR of 1.159266424. A stock
growing at exactly that rate, traded with the same flows, ends with the same 371.25
profit.

The net future value is not guaranteed to be monotonic in ``r``, so the root is found in
two phases: a coarse scan over ever finer equal segments until a sign change is seen,
then bisection inside that segment.
"""
from __future__ import annotations

import math
from datetime import date
from decimal import Decimal
from typing import Callable, Sequence

from .results import ValidationResult

DAYS_PER_YEAR = 365


def count_days(start: date, end: date) -> int:
    return (end - start).days


def simulate_future_value(current_value: float, daily_rate: float, days: int) -> float:
    if daily_rate <= -1.0:
        raise ValueError(f"Growth rate too small: {daily_rate}")
    if days <= 0:
        raise ValueError(f"Invalid days: {days}")
    return current_value * math.pow(1.0 + daily_rate, days)


def simulate_net_future_value(flows: Sequence[tuple[int, float]], daily_rate: float) -> float:
    """Balance right after the last flow, starting from zero on day 0.

    ``flows`` holds ``(day_offset, amount)`` pairs; they are replayed in day order.
    """
    if daily_rate <= -1.0:
        raise ValueError(f"Growth rate too small: {daily_rate}")
    balance = 0.0
    day = 0
    for days, amount in sorted(flows, key=lambda flow: flow[0]):
        if days < 0:
            raise ValueError(f"Invalid day offset: {days}")
        passed = days - day
        if passed > 0:
            balance = simulate_future_value(balance, daily_rate, passed)
        balance += amount
        day = days
    return balance


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


def find_any_root(
    lower: float,
    upper: float,
    budget: int,
    tolerance: float,
    fn: Callable[[float], float],
    max_iterations: int = 1_000,
) -> ValidationResult[float]:
    """Find some ``x`` in ``[lower, upper]`` with ``|fn(x)| <= tolerance``.

    The interval is split into 2, 4, 8, ... equal segments for as long as the number of
    evaluations stays within ``budget``; the leftmost segment whose ends differ in sign is
    then bisected for at most ``max_iterations`` steps.
    """
    if not lower < upper:
        return ValidationResult.failure(f"Invalid search interval [{lower}, {upper}]")
    try:
        bracket = _find_sign_change(lower, upper, budget, tolerance, fn)
        if bracket is None:
            return ValidationResult.failure(f"No sign change found in [{lower}, {upper}] within {budget} evaluations")
        left, left_value, right, right_value = bracket
        if abs(left_value) <= tolerance:
            return ValidationResult.success(left)
        if abs(right_value) <= tolerance:
            return ValidationResult.success(right)
        return _bisect(left, left_value, right, tolerance, fn, max_iterations)
    except (OverflowError, ValueError) as error:
        return ValidationResult.failure(f"Evaluation failed: {error}")


def _find_sign_change(
    lower: float,
    upper: float,
    budget: int,
    tolerance: float,
    fn: Callable[[float], float],
) -> tuple[float, float, float, float] | None:
    evaluations = 0
    segments = 2
    while evaluations + segments + 1 <= budget:
        step = (upper - lower) / segments
        previous_x = lower
        previous_value = fn(previous_x)
        evaluations += 1
        if abs(previous_value) <= tolerance:
            return previous_x, previous_value, previous_x, previous_value
        for i in range(1, segments + 1):
            x = upper if i == segments else lower + step * i
            value = fn(x)
            evaluations += 1
            if abs(value) <= tolerance or _sign(value) * _sign(previous_value) < 0:
                return previous_x, previous_value, x, value
            previous_x, previous_value = x, value
        segments *= 2
    return None


def _bisect(
    left: float,
    left_value: float,
    right: float,
    tolerance: float,
    fn: Callable[[float], float],
    max_iterations: int,
) -> ValidationResult[float]:
    for _ in range(max_iterations):
        middle = (left + right) / 2.0
        value = fn(middle)
        if abs(value) <= tolerance:
            return ValidationResult.success(middle)
        if _sign(value) == _sign(left_value):
            left, left_value = middle, value
        else:
            right = middle
    return ValidationResult.failure(f"Binary search did not converge after {max_iterations} iterations")


def annualize(daily_rate: float) -> float:
    return math.pow(1.0 + daily_rate, DAYS_PER_YEAR) - 1.0


def calculate_daily_xirr(
    cash_flows: Sequence[tuple[date, Decimal]],
    lower: float = -0.02,
    upper: float = 0.02,
    budget: int = 10_000,
    tolerance: float = 1e-7,
    max_iterations: int = 1_000,
) -> ValidationResult[float]:
    flows = list(cash_flows)
    # A zero final flow destabilises the search at the boundary.
    if flows and flows[-1][1] == 0:
        flows = flows[:-1]
    if len(flows) < 2:
        return ValidationResult.failure("At least two cash flows are required")
    if not any(amount > 0 for _, amount in flows) or not any(amount < 0 for _, amount in flows):
        return ValidationResult.failure("Cash flows must contain at least one positive and one negative amount")
    first_date = min(when for when, _ in flows)
    offsets = [(count_days(first_date, when), float(amount)) for when, amount in flows]
    return find_any_root(
        lower,
        upper,
        budget,
        tolerance,
        lambda rate: simulate_net_future_value(offsets, rate),
        max_iterations,
    )


def calculate_xirr(
    cash_flows: Sequence[tuple[date, Decimal]],
    lower: float = -0.02,
    upper: float = 0.02,
    budget: int = 10_000,
    tolerance: float = 1e-7,
    max_iterations: int = 1_000,
) -> ValidationResult[float]:
    """Annualized XIRR of ``(date, amount)`` flows, or a failure explaining why none was found."""
    return calculate_daily_xirr(cash_flows, lower, upper, budget, tolerance, max_iterations).and_then(
        lambda rate: ValidationResult.success(annualize(rate))
    )
