# points.py
"""
Points arithmetic: slab lookup, VIP multiplier and rupee conversion.

All functions are pure; configuration is passed in by the caller.
"""
from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR, ROUND_CEILING
from typing import Iterable, Optional

from models import PaymentSlab


def _dec(value) -> Decimal:
  return Decimal(str(value))


def find_slab(amount: float, slabs: Iterable[PaymentSlab]) -> Optional[PaymentSlab]:
  for slab in slabs:
    if slab.min_amount <= amount <= slab.max_amount:
      return slab
  return None


def points_for_amount(amount: float, slabs: Iterable[PaymentSlab], is_vip: bool = False, vip_multiplier: float = 1) -> int:
  if amount <= 0:
    return 0
  slab = find_slab(amount, slabs)
  if slab is None:
    return 0
  if not is_vip:
    return slab.points
  boosted = _dec(slab.points) * _dec(vip_multiplier)
  return int(boosted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def points_value(points: int, ratio: float) -> float:
  return points * ratio


def can_redeem(points: int, min_redemption_points: int) -> bool:
  return points >= min_redemption_points


def max_redeemable_rupees(points: int, ratio: float) -> int:
  # floored: never offer more value than the point balance backs
  return int((_dec(points) * _dec(ratio)).to_integral_value(rounding=ROUND_FLOOR))


def points_needed_for_redemption(rupees: float, ratio: float) -> int:
  if ratio <= 0:
    raise ValueError("pointsToRupeeRatio must be positive")
  return int((_dec(rupees) / _dec(ratio)).to_integral_value(rounding=ROUND_CEILING))


def vip_bonus_percent(vip_multiplier: float) -> int:
  return int(((_dec(vip_multiplier) - 1) * 100).to_integral_value(rounding=ROUND_FLOOR))
