# coupons.py
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel

from models import Coupon


class CouponApplication(BaseModel):
  valid: bool
  reason: Optional[str] = None
  code: Optional[str] = None
  order_amount: float = 0
  discount_amount: float = 0
  final_amount: float = 0


def normalize_code(code: str) -> str:
  return (code or "").strip().upper()


def _now(now: Optional[datetime]) -> datetime:
  return now or datetime.now(timezone.utc)


def is_expired(coupon: Coupon, now: Optional[datetime] = None) -> bool:
  return coupon.expiry_date <= _now(now).date()


def ineligibility_reason(coupon: Coupon, order_amount: float, is_vip_customer: bool, now: Optional[datetime] = None) -> Optional[str]:
  # usage_limit is displayed but not enforced against usage_count
  if not coupon.is_active:
    return "Coupon inactive"
  if is_expired(coupon, now):
    return "Coupon expired"
  if coupon.for_vip_only and not is_vip_customer:
    return "Coupon is for VIP customers only"
  if order_amount < coupon.min_order_value:
    return "Order below minimum amount"
  return None


def is_eligible(coupon: Coupon, order_amount: float, is_vip_customer: bool, now: Optional[datetime] = None) -> bool:
  return ineligibility_reason(coupon, order_amount, is_vip_customer, now) is None


def compute_discount(coupon: Coupon, order_amount: float) -> float:
  if order_amount <= 0:
    return 0
  if coupon.discount_type == "percentage":
    discount = order_amount * coupon.discount_value / 100.0
    if coupon.max_discount and discount > coupon.max_discount:
      discount = coupon.max_discount
    return discount
  if coupon.discount_type == "fixed":
    return min(coupon.discount_value, order_amount)
  # freeItem is honoured at the counter, not as a price reduction
  return 0


def apply_coupon(coupon: Coupon, order_amount: float, is_vip_customer: bool = False, now: Optional[datetime] = None) -> CouponApplication:
  reason = ineligibility_reason(coupon, order_amount, is_vip_customer, now)
  if reason:
    return CouponApplication(valid=False, reason=reason, code=coupon.code, order_amount=order_amount, final_amount=order_amount)

  discount = compute_discount(coupon, order_amount)
  final_amount = max(0, order_amount - discount)
  return CouponApplication(valid=True, code=coupon.code, order_amount=order_amount, discount_amount=discount, final_amount=final_amount)
