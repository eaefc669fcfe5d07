import math
from decimal import Decimal

import pytest

from budget_automation.utils.metrics import (
    round2, calculate_budget_utilization, calculate_acos, to_finite_float, to_number,
)


@pytest.mark.parametrize('value, expected', [
    (92.88888, 92.89),
    (23.6934, 23.69),
    (68.999345, 69.0),
    (0.125, 0.13),
    (18.700000000000003, 18.7),
    (0, 0.0),
])
def test_round2_rounds_half_up(value, expected):
    assert round2(value) == expected


def test_zero_denominators_yield_zero():
    assert calculate_budget_utilization(10, 0) == 0
    assert calculate_budget_utilization(10, -5) == 0
    assert calculate_acos(10, 0) == 0
    assert calculate_acos(10, -1) == 0


def test_ratios():
    assert calculate_budget_utilization(40, 50) == pytest.approx(80.0)
    assert calculate_acos(30, 120) == pytest.approx(25.0)


@pytest.mark.parametrize('raw, expected', [
    (12, 12.0),
    (12.5, 12.5),
    (' 7.25 ', 7.25),
    (Decimal('3.10'), 3.1),
    (0, 0.0),
    ('0', 0.0),
])
def test_to_finite_float_accepts_numbers(raw, expected):
    assert to_finite_float(raw) == expected


@pytest.mark.parametrize('raw', [
    None, '', '   ', 'abc', True, False, float('nan'), float('inf'), '1e999',
    Decimal('NaN'), [1], {'value': 1}, 10 ** 400,
])
def test_to_finite_float_rejects_invalid(raw):
    assert to_finite_float(raw) is None


def test_to_number_falls_back():
    assert to_number('nope', 30) == 30
    assert to_number(None, 5.0) == 5.0
    assert to_number(0, 5.0) == 0.0
    assert not math.isnan(to_number(float('nan'), 1.0))
