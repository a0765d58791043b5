# tests/test_points.py

import pytest

from models import PaymentSlab
from points import (
  can_redeem,
  find_slab,
  max_redeemable_rupees,
  points_for_amount,
  points_needed_for_redemption,
  points_value,
  vip_bonus_percent,
)


@pytest.fixture
def slabs():
  return [
    PaymentSlab(id=1, min_amount=0, max_amount=100, points=5),
    PaymentSlab(id=2, min_amount=101, max_amount=300, points=15),
    PaymentSlab(id=3, min_amount=301, max_amount=500, points=30),
    PaymentSlab(id=4, min_amount=501, max_amount=1000, points=60),
    PaymentSlab(id=5, min_amount=1001, max_amount=99999, points=100),
  ]


class TestPointsForAmount:
  """Slab lookup and VIP multiplier"""

  @pytest.mark.parametrize("amount,expected", [
    (1, 5), (100, 5), (101, 15), (250, 15), (300, 15), (301, 30), (1000, 60), (1001, 100), (99999, 100),
  ])
  def test_regular_customer_gets_slab_points(self, slabs, amount, expected):
    assert points_for_amount(amount, slabs) == expected

  def test_non_positive_amount_earns_nothing(self, slabs):
    assert points_for_amount(0, slabs) == 0
    assert points_for_amount(-50, slabs) == 0

  def test_amount_outside_every_slab_fails_open(self, slabs):
    assert points_for_amount(100.5, slabs) == 0
    assert points_for_amount(150000, slabs) == 0
    assert find_slab(150000, slabs) is None

  def test_vip_multiplier_rounds_half_up(self, slabs):
    assert points_for_amount(250, slabs, True, 1.2) == 18
    assert points_for_amount(50, slabs, True, 1.5) == 8  # 7.5 -> 8
    assert points_for_amount(50, slabs, True, 1.1) == 6  # 5.5 -> 6

  def test_vip_flag_ignored_multiplier_for_regular(self, slabs):
    assert points_for_amount(600, slabs, False, 3) == 60

  def test_vip_matches_rounded_base_points(self, slabs):
    for amount in range(1, 2000, 37):
      for multiplier in (1, 1.2, 1.25, 1.5, 2):
        base = points_for_amount(amount, slabs, False, 1)
        expected = int(base * multiplier + 0.5)
        assert points_for_amount(amount, slabs, True, multiplier) == expected


class TestRedemptionMath:
  """Rupee conversion and redemption bounds"""

  def test_points_value_is_not_rounded(self):
    assert points_value(125, 0.5) == 62.5

  def test_can_redeem_threshold(self):
    assert can_redeem(100, 100)
    assert not can_redeem(99, 100)

  def test_max_redeemable_is_floored(self):
    assert max_redeemable_rupees(125, 0.5) == 62
    assert max_redeemable_rupees(3, 0.3) == 0

  def test_points_needed_is_ceiled(self):
    assert points_needed_for_redemption(62, 0.5) == 124
    assert points_needed_for_redemption(1, 0.3) == 4

  def test_points_needed_rejects_zero_ratio(self):
    with pytest.raises(ValueError):
      points_needed_for_redemption(10, 0)

  def test_max_redeemable_never_needs_more_points_than_held(self):
    for ratio in (0.1, 0.25, 0.3, 0.5, 0.75, 1, 1.5, 2, 3.3):
      for points in range(0, 500, 7):
        rupees = max_redeemable_rupees(points, ratio)
        assert points_needed_for_redemption(rupees, ratio) <= points

  def test_vip_bonus_percent(self):
    assert vip_bonus_percent(1.2) == 20
    assert vip_bonus_percent(1) == 0
