# ledger.py
"""
Mutation operations on the loyalty ledger.

Every operation reads whole collections from the gateway, computes the new
collections and commits them as one unit. Validation happens before anything
is written; a rejected operation leaves the stored state untouched and
returns a failed LedgerResult carrying a human-readable reason.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from coupons import apply_coupon, is_expired, normalize_code
from gateway import PersistenceGateway
from models import Collection, Coupon, Customer, PaymentSlab, Settings, Transaction, next_id
from points import (
  can_redeem,
  max_redeemable_rupees,
  points_for_amount,
  points_needed_for_redemption,
  points_value,
  vip_bonus_percent,
)
from upi import upi_qr_code, upi_string

logger = logging.getLogger(__name__)

INVALID = "invalid"
NOT_FOUND = "not_found"
CONFLICT = "conflict"
UNAUTHORIZED = "unauthorized"

CUSTOMER_FIELDS = ("name", "phone", "email", "points", "password")
COUPON_FIELDS = (
  "code", "title", "description", "discount_type", "discount_value", "min_order_value",
  "max_discount", "expiry_date", "usage_limit", "for_vip_only",
)
SETTINGS_FIELDS = tuple(Settings.model_fields)


@dataclass
class LedgerResult:
  ok: bool
  data: Any = None
  reason: Optional[str] = None
  code: Optional[str] = None
  sync: Optional["asyncio.Task[bool]"] = None  # remote mirror outcome

  def __bool__(self) -> bool:
    return self.ok

  @classmethod
  def success(cls, data: Any = None, sync=None) -> "LedgerResult":
    return cls(ok=True, data=data, sync=sync)

  @classmethod
  def fail(cls, reason: str, code: str = INVALID) -> "LedgerResult":
    return cls(ok=False, reason=reason, code=code)


def _match(q: str, *values: str) -> bool:
  ql = q.strip().lower()
  return any(ql in (v or "").lower() for v in values)


def _find(items: Iterable[Any], item_id: int):
  return next((i for i in items if i.id == item_id), None)


def _tx_sort_key(t: Transaction) -> datetime:
  return t.date if t.date.tzinfo else t.date.replace(tzinfo=timezone.utc)


def _replace(items: List[Any], updated: Any) -> List[Any]:
  return [updated if i.id == updated.id else i for i in items]


def _pick(changes: Dict[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
  return {k: v for k, v in changes.items() if k in allowed}


def _validation_reason(exc: ValidationError) -> str:
  err = exc.errors()[0]
  loc = ".".join(str(p) for p in err.get("loc", ()))
  return f"Invalid {loc}: {err.get('msg')}" if loc else str(err.get("msg"))


def _coupon_problem(coupon: Coupon) -> Optional[str]:
  if coupon.discount_value < 0:
    return "Discount value must not be negative"
  if coupon.discount_type == "percentage" and not (0 < coupon.discount_value <= 100):
    return "Percent discount must be between 0 and 100"
  if coupon.min_order_value < 0:
    return "Minimum order value must not be negative"
  if coupon.usage_limit < 0 or coupon.usage_count < 0:
    return "Usage limit must not be negative"
  return None


class LedgerService:
  def __init__(self, gateway: PersistenceGateway, admin_phone: str = "+91 9999999999",
               clock: Optional[Callable[[], datetime]] = None):
    self.gateway = gateway
    self.admin_phone = admin_phone
    self.clock = clock or (lambda: datetime.now(timezone.utc))
    self._lock = asyncio.Lock()

  # ----- reads -----

  def _today(self) -> date:
    return self.clock().date()

  def customers(self) -> List[Customer]:
    return self.gateway.models(Collection.CUSTOMERS)

  def transactions(self) -> List[Transaction]:
    return self.gateway.models(Collection.TRANSACTIONS)

  def coupons(self) -> List[Coupon]:
    return self.gateway.models(Collection.COUPONS)

  def payment_slabs(self) -> List[PaymentSlab]:
    return self.gateway.models(Collection.PAYMENT_SLABS)

  def settings(self) -> Settings:
    return self.gateway.models(Collection.SETTINGS)

  def get_customer(self, customer_id: int) -> Optional[Customer]:
    return _find(self.customers(), customer_id)

  def get_coupon(self, coupon_id: int) -> Optional[Coupon]:
    return _find(self.coupons(), coupon_id)

  def find_coupon_by_code(self, code: str) -> Optional[Coupon]:
    code = normalize_code(code)
    return next((c for c in self.coupons() if normalize_code(c.code) == code), None)

  def role_for(self, customer: Customer) -> str:
    return "admin" if customer.phone == self.admin_phone else "customer"

  def search_customers(self, q: Optional[str] = None) -> List[Customer]:
    rows = self.customers()
    if not q:
      return rows
    return [c for c in rows if _match(q, c.name, c.phone, c.email)]

  def search_coupons(self, q: Optional[str] = None) -> List[Coupon]:
    rows = self.coupons()
    if not q:
      return rows
    return [c for c in rows if _match(q, c.code, c.title)]

  def customer_transactions(self, customer_id: int) -> List[Transaction]:
    rows = [t for t in self.transactions() if t.customer_id == customer_id]
    return sorted(rows, key=_tx_sort_key, reverse=True)

  def available_coupons(self, customer_id: int, order_amount: Optional[float] = None) -> LedgerResult:
    customer = self.get_customer(customer_id)
    if customer is None:
      return LedgerResult.fail("Customer not found", NOT_FOUND)
    now = self.clock()
    rows = [
      c for c in self.coupons()
      if c.is_active and not is_expired(c, now) and (not c.for_vip_only or customer.is_vip)
      and (order_amount is None or order_amount >= c.min_order_value)
    ]
    return LedgerResult.success(rows)

  def points_summary(self, customer_id: int) -> LedgerResult:
    customer = self.get_customer(customer_id)
    if customer is None:
      return LedgerResult.fail("Customer not found", NOT_FOUND)
    s = self.settings()
    return LedgerResult.success({
      "points": customer.points,
      "pointsValue": points_value(customer.points, s.points_to_rupee_ratio),
      "canRedeem": can_redeem(customer.points, s.min_redemption_points),
      "maxRedeemable": max_redeemable_rupees(customer.points, s.points_to_rupee_ratio),
      "minRedemptionPoints": s.min_redemption_points,
      "isVip": customer.is_vip,
      "vipBonusPercent": vip_bonus_percent(s.vip_points_multiplier) if customer.is_vip else 0,
    })

  def dashboard(self) -> Dict[str, Any]:
    customers = self.customers()
    transactions = self.transactions()
    recent_tx = sorted(transactions, key=_tx_sort_key, reverse=True)[:5]
    recent_customers = sorted(customers, key=lambda c: (c.created_at, c.id), reverse=True)[:5]
    return {
      "totalCustomers": len(customers),
      "activeCustomers": sum(1 for c in customers if c.is_active),
      "vipCustomers": sum(1 for c in customers if c.is_vip),
      "totalRevenue": sum(t.amount for t in transactions),
      "totalTransactions": len(transactions),
      "totalPointsIssued": sum(t.points_earned for t in transactions),
      "recentCustomers": recent_customers,
      "recentTransactions": recent_tx,
    }

  def checkout(self, customer_id: int, order_amount: float, coupon_code: Optional[str] = None) -> LedgerResult:
    """Price an order before payment; nothing is written."""
    if order_amount <= 0:
      return LedgerResult.fail("Please enter a valid amount")
    customer = self.get_customer(customer_id)
    if customer is None:
      return LedgerResult.fail("Customer not found", NOT_FOUND)

    s = self.settings()
    final_amount, discount, code = order_amount, 0, None
    if coupon_code:
      coupon = self.find_coupon_by_code(coupon_code)
      if coupon is None:
        return LedgerResult.fail("Invalid code")
      applied = apply_coupon(coupon, order_amount, customer.is_vip, self.clock())
      if not applied.valid:
        return LedgerResult.fail(applied.reason)
      final_amount, discount, code = applied.final_amount, applied.discount_amount, coupon.code

    return LedgerResult.success({
      "customerId": customer.id,
      "orderAmount": order_amount,
      "discount": discount,
      "finalAmount": final_amount,
      "couponCode": code,
      "pointsToEarn": points_for_amount(final_amount, self.payment_slabs(), customer.is_vip, s.vip_points_multiplier),
      "upiLink": upi_string(final_amount, s),
      "qrCodeUrl": upi_qr_code(final_amount, s),
    })

  # ----- payments and redemptions -----

  async def record_payment(self, customer_id: int, final_amount: float, coupon_code: Optional[str] = None) -> LedgerResult:
    async with self._lock:
      if final_amount < 0:
        return LedgerResult.fail("Please enter a valid amount")
      customers = self.customers()
      customer = _find(customers, customer_id)
      if customer is None:
        return LedgerResult.fail("Customer not found", NOT_FOUND)

      coupons = self.coupons()
      coupon = None
      if coupon_code:
        code = normalize_code(coupon_code)
        coupon = next((c for c in coupons if normalize_code(c.code) == code), None)
        if coupon is None:
          return LedgerResult.fail("Invalid code")

      s = self.settings()
      earned = points_for_amount(final_amount, self.payment_slabs(), customer.is_vip, s.vip_points_multiplier)
      total_spent = customer.total_spent + final_amount
      is_vip = customer.is_vip or total_spent >= s.vip_threshold
      became_vip = is_vip and not customer.is_vip

      updated = customer.model_copy(update={
        "points": customer.points + earned,
        "total_spent": total_spent,
        "last_visit": self._today(),
        "is_vip": is_vip,
      })
      transactions = self.transactions()
      tx = Transaction(
        id=next_id(transactions),
        customer_id=customer.id,
        amount=final_amount,
        points_earned=earned,
        points_redeemed=0,
        date=self.clock(),
        type="payment",
        coupon_used=coupon.code if coupon else None,
      )

      changes = {
        Collection.CUSTOMERS: _replace(customers, updated),
        Collection.TRANSACTIONS: transactions + [tx],
      }
      if coupon is not None:
        changes[Collection.COUPONS] = _replace(coupons, coupon.model_copy(update={"usage_count": coupon.usage_count + 1}))

      sync = self.gateway.commit(changes)
      if became_vip:
        logger.info("Customer %s promoted to VIP", customer.id)
      logger.info("Payment of %s recorded for customer %s, %s points earned", final_amount, customer.id, earned)
      return LedgerResult.success({"customer": updated, "transaction": tx, "pointsEarned": earned, "becameVip": became_vip}, sync)

  async def redeem_points(self, customer_id: int, rupee_amount: float) -> LedgerResult:
    async with self._lock:
      if rupee_amount <= 0:
        return LedgerResult.fail("Please enter a valid amount to redeem")
      customers = self.customers()
      customer = _find(customers, customer_id)
      if customer is None:
        return LedgerResult.fail("Customer not found", NOT_FOUND)

      s = self.settings()
      if not can_redeem(customer.points, s.min_redemption_points):
        return LedgerResult.fail(f"Minimum {s.min_redemption_points} points required for redemption")
      max_amount = max_redeemable_rupees(customer.points, s.points_to_rupee_ratio)
      if rupee_amount > max_amount:
        return LedgerResult.fail(f"Maximum redeemable amount is ₹{max_amount}")
      needed = points_needed_for_redemption(rupee_amount, s.points_to_rupee_ratio)
      if needed > customer.points:
        return LedgerResult.fail("Insufficient points")

      updated = customer.model_copy(update={"points": customer.points - needed, "last_visit": self._today()})
      transactions = self.transactions()
      tx = Transaction(
        id=next_id(transactions),
        customer_id=customer.id,
        amount=rupee_amount,
        points_earned=0,
        points_redeemed=needed,
        date=self.clock(),
        type="redemption",
      )
      sync = self.gateway.commit({
        Collection.CUSTOMERS: _replace(customers, updated),
        Collection.TRANSACTIONS: transactions + [tx],
      })
      logger.info("Customer %s redeemed %s points for ₹%s", customer.id, needed, rupee_amount)
      return LedgerResult.success({"customer": updated, "transaction": tx, "pointsRedeemed": needed}, sync)

  # ----- auth -----

  async def register(self, name: str, phone: str, password: str, email: str = "") -> LedgerResult:
    async with self._lock:
      if not name or not phone or not password:
        return LedgerResult.fail("Please fill all required fields")
      customers = self.customers()
      if any(c.phone == phone for c in customers):
        return LedgerResult.fail("Phone number already exists", CONFLICT)

      today = self._today()
      customer = Customer(
        id=next_id(customers),
        name=name,
        phone=phone,
        email=email or "",
        password=password,
        points=self.settings().welcome_bonus_points,
        total_spent=0,
        is_active=True,
        is_vip=False,
        created_at=today,
        last_visit=today,
      )
      sync = self.gateway.write(Collection.CUSTOMERS, customers + [customer])
      return LedgerResult.success({"customer": customer, "role": "customer"}, sync)

  async def login(self, phone: str, password: str) -> LedgerResult:
    async with self._lock:
      customers = self.customers()
      user = next((c for c in customers if c.phone == phone and c.password == password and c.is_active), None)
      if user is None:
        return LedgerResult.fail("Invalid phone number or password", UNAUTHORIZED)

      updated = user.model_copy(update={"last_visit": self._today()})
      sync = self.gateway.write(Collection.CUSTOMERS, _replace(customers, updated))
      return LedgerResult.success({"customer": updated, "role": self.role_for(updated)}, sync)

  # ----- customer admin -----

  async def add_customer(self, name: str, phone: str, email: str, password: str, points: Optional[int] = None) -> LedgerResult:
    async with self._lock:
      if not name or not phone or not email or not password:
        return LedgerResult.fail("Please fill all required fields")
      if points is not None and points < 0:
        return LedgerResult.fail("Points must not be negative")
      customers = self.customers()
      if any(c.phone == phone for c in customers):
        return LedgerResult.fail("Phone number already exists", CONFLICT)

      today = self._today()
      customer = Customer(
        id=next_id(customers),
        name=name,
        phone=phone,
        email=email,
        password=password,
        points=points or self.settings().welcome_bonus_points,
        created_at=today,
        last_visit=today,
      )
      sync = self.gateway.write(Collection.CUSTOMERS, customers + [customer])
      return LedgerResult.success(customer, sync)

  async def update_customer(self, customer_id: int, changes: Dict[str, Any]) -> LedgerResult:
    async with self._lock:
      customers = self.customers()
      current = _find(customers, customer_id)
      if current is None:
        return LedgerResult.fail("Customer not found", NOT_FOUND)

      try:
        updated = Customer.model_validate({**current.model_dump(), **_pick(changes, CUSTOMER_FIELDS)})
      except ValidationError as exc:
        return LedgerResult.fail(_validation_reason(exc))
      if not updated.name or not updated.phone or not updated.email:
        return LedgerResult.fail("Please fill all required fields")
      if updated.points < 0:
        return LedgerResult.fail("Points must not be negative")
      if updated.phone != current.phone and any(c.phone == updated.phone for c in customers):
        return LedgerResult.fail("Phone number already exists", CONFLICT)

      sync = self.gateway.write(Collection.CUSTOMERS, _replace(customers, updated))
      return LedgerResult.success(updated, sync)

  async def delete_customer(self, customer_id: int) -> LedgerResult:
    async with self._lock:
      customers = self.customers()
      if _find(customers, customer_id) is None:
        return LedgerResult.fail("Customer not found", NOT_FOUND)
      sync = self.gateway.write(Collection.CUSTOMERS, [c for c in customers if c.id != customer_id])
      return LedgerResult.success({"id": customer_id}, sync)

  async def toggle_customer(self, customer_id: int) -> LedgerResult:
    async with self._lock:
      customers = self.customers()
      current = _find(customers, customer_id)
      if current is None:
        return LedgerResult.fail("Customer not found", NOT_FOUND)
      updated = current.model_copy(update={"is_active": not current.is_active})
      sync = self.gateway.write(Collection.CUSTOMERS, _replace(customers, updated))
      return LedgerResult.success(updated, sync)

  # ----- coupon admin -----

  async def add_coupon(self, data: Dict[str, Any]) -> LedgerResult:
    async with self._lock:
      fields = _pick(data, COUPON_FIELDS)
      if not fields.get("code") or not fields.get("title") or not fields.get("discount_value") or not fields.get("expiry_date"):
        return LedgerResult.fail("Please fill all required fields")
      fields["code"] = normalize_code(fields["code"])
      coupons = self.coupons()
      if any(normalize_code(c.code) == fields["code"] for c in coupons):
        return LedgerResult.fail("Coupon code already exists", CONFLICT)

      try:
        coupon = Coupon.model_validate({**fields, "id": next_id(coupons), "is_active": True, "usage_count": 0})
      except ValidationError as exc:
        return LedgerResult.fail(_validation_reason(exc))
      problem = _coupon_problem(coupon)
      if problem:
        return LedgerResult.fail(problem)

      sync = self.gateway.write(Collection.COUPONS, coupons + [coupon])
      return LedgerResult.success(coupon, sync)

  async def update_coupon(self, coupon_id: int, changes: Dict[str, Any]) -> LedgerResult:
    async with self._lock:
      coupons = self.coupons()
      current = _find(coupons, coupon_id)
      if current is None:
        return LedgerResult.fail("Coupon not found", NOT_FOUND)

      fields = _pick(changes, COUPON_FIELDS)
      if "code" in fields:
        fields["code"] = normalize_code(fields["code"])
      try:
        updated = Coupon.model_validate({**current.model_dump(), **fields})
      except ValidationError as exc:
        return LedgerResult.fail(_validation_reason(exc))
      if not updated.code or not updated.title or not updated.discount_value:
        return LedgerResult.fail("Please fill all required fields")
      problem = _coupon_problem(updated)
      if problem:
        return LedgerResult.fail(problem)
      if updated.code != current.code and any(normalize_code(c.code) == updated.code for c in coupons):
        return LedgerResult.fail("Coupon code already exists", CONFLICT)

      sync = self.gateway.write(Collection.COUPONS, _replace(coupons, updated))
      return LedgerResult.success(updated, sync)

  async def delete_coupon(self, coupon_id: int) -> LedgerResult:
    async with self._lock:
      coupons = self.coupons()
      if _find(coupons, coupon_id) is None:
        return LedgerResult.fail("Coupon not found", NOT_FOUND)
      sync = self.gateway.write(Collection.COUPONS, [c for c in coupons if c.id != coupon_id])
      return LedgerResult.success({"id": coupon_id}, sync)

  async def toggle_coupon(self, coupon_id: int) -> LedgerResult:
    async with self._lock:
      coupons = self.coupons()
      current = _find(coupons, coupon_id)
      if current is None:
        return LedgerResult.fail("Coupon not found", NOT_FOUND)
      updated = current.model_copy(update={"is_active": not current.is_active})
      sync = self.gateway.write(Collection.COUPONS, _replace(coupons, updated))
      return LedgerResult.success(updated, sync)

  # ----- configuration -----

  async def update_settings(self, changes: Dict[str, Any]) -> LedgerResult:
    async with self._lock:
      try:
        updated = Settings.model_validate({**self.settings().model_dump(), **_pick(changes, SETTINGS_FIELDS)})
      except ValidationError as exc:
        return LedgerResult.fail(_validation_reason(exc))
      if updated.points_to_rupee_ratio <= 0:
        return LedgerResult.fail("Points to rupee ratio must be positive")
      if updated.vip_points_multiplier < 1:
        return LedgerResult.fail("VIP multiplier must be at least 1")
      if updated.welcome_bonus_points < 0 or updated.min_redemption_points < 0 or updated.vip_threshold < 0:
        return LedgerResult.fail("Settings values must not be negative")

      sync = self.gateway.write(Collection.SETTINGS, updated)
      return LedgerResult.success(updated, sync)

  async def replace_payment_slabs(self, slabs: List[Dict[str, Any]]) -> LedgerResult:
    async with self._lock:
      try:
        parsed = [
          PaymentSlab.model_validate({"id": i, **s}) if "id" not in s else PaymentSlab.model_validate(s)
          for i, s in enumerate(slabs, start=1)
        ]
      except ValidationError as exc:
        return LedgerResult.fail(_validation_reason(exc))
      if len({s.id for s in parsed}) != len(parsed):
        return LedgerResult.fail("Slab ids must be unique")

      ordered = sorted(parsed, key=lambda s: s.min_amount)
      for slab in ordered:
        if slab.min_amount < 0 or slab.min_amount > slab.max_amount:
          return LedgerResult.fail(f"Slab {slab.id} has an invalid range")
        if slab.points < 0:
          return LedgerResult.fail(f"Slab {slab.id} awards negative points")
      for prev, cur in zip(ordered, ordered[1:]):
        if cur.min_amount <= prev.max_amount:
          return LedgerResult.fail(f"Slabs {prev.id} and {cur.id} overlap")

      sync = self.gateway.write(Collection.PAYMENT_SLABS, ordered)
      return LedgerResult.success(ordered, sync)
