# loyalty_route.py
from datetime import date
from typing import Any, List, Literal, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field

from deps import get_ledger
from ledger import CONFLICT, INVALID, NOT_FOUND, UNAUTHORIZED, LedgerResult, LedgerService
from models import Coupon, Customer, LedgerModel, PaymentSlab, Settings, Transaction

router = APIRouter(prefix="/api", tags=["loyalty"])

STATUS_CODES = {INVALID: 400, UNAUTHORIZED: 401, NOT_FOUND: 404, CONFLICT: 409}


def _unwrap(result: LedgerResult) -> Any:
  if not result.ok:
    raise HTTPException(status_code=STATUS_CODES.get(result.code, 400), detail=result.reason)
  return result.data


class RegisterRequest(LedgerModel):
  name: str
  phone: str
  password: str
  email: str = ""


class LoginRequest(LedgerModel):
  phone: str
  password: str


class CustomerCreate(LedgerModel):
  name: str
  phone: str
  email: str
  password: str
  points: Optional[int] = None


class CustomerUpdate(LedgerModel):
  name: Optional[str] = None
  phone: Optional[str] = None
  email: Optional[str] = None
  password: Optional[str] = None
  points: Optional[int] = None


class CouponCreate(LedgerModel):
  code: str
  title: str
  description: str = ""
  discount_type: Literal["percentage", "fixed", "freeItem"] = "percentage"
  discount_value: float
  min_order_value: float = 0
  max_discount: Optional[float] = None
  expiry_date: date
  usage_limit: int = 1
  for_vip_only: bool = False


class CouponUpdate(LedgerModel):
  code: Optional[str] = None
  title: Optional[str] = None
  description: Optional[str] = None
  discount_type: Optional[Literal["percentage", "fixed", "freeItem"]] = None
  discount_value: Optional[float] = None
  min_order_value: Optional[float] = None
  max_discount: Optional[float] = None
  expiry_date: Optional[date] = None
  usage_limit: Optional[int] = None
  for_vip_only: Optional[bool] = None


class PaymentRequest(LedgerModel):
  customer_id: int
  amount: float
  coupon_code: Optional[str] = None


class RedemptionRequest(LedgerModel):
  customer_id: int
  amount: float


class SettingsUpdate(LedgerModel):
  business_name: Optional[str] = None
  upi_id: Optional[str] = None
  points_to_rupee_ratio: Optional[float] = None
  welcome_bonus_points: Optional[int] = None
  min_redemption_points: Optional[int] = None
  vip_threshold: Optional[float] = None
  vip_points_multiplier: Optional[float] = None


class SlabIn(LedgerModel):
  id: Optional[int] = None
  min_amount: float
  max_amount: float
  points: int


class CustomerOut(Customer):
  # stored with the record, never sent to clients
  password: str = Field(default="", exclude=True)


class AuthOut(LedgerModel):
  customer: CustomerOut
  role: str


class PaymentOut(LedgerModel):
  customer: CustomerOut
  transaction: Transaction
  points_earned: int
  became_vip: bool


class RedemptionOut(LedgerModel):
  customer: CustomerOut
  transaction: Transaction
  points_redeemed: int


class DashboardOut(LedgerModel):
  total_customers: int
  active_customers: int
  vip_customers: int
  total_revenue: float
  total_transactions: int
  total_points_issued: int
  recent_customers: List[CustomerOut]
  recent_transactions: List[Transaction]


def _changes(body: LedgerModel) -> dict:
  return body.model_dump(exclude_unset=True)

# ---------------------- auth ----------------------

@router.post("/auth/register", response_model=AuthOut)
async def register(body: RegisterRequest, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(await ledger.register(body.name, body.phone, body.password, body.email))

@router.post("/auth/login", response_model=AuthOut)
async def login(body: LoginRequest, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(await ledger.login(body.phone, body.password))

# ---------------------- customers ----------------------

@router.get("/customers", response_model=List[CustomerOut], response_model_by_alias=True, response_model_exclude_none=True)
def list_customers(q: Optional[str] = None, ledger: LedgerService = Depends(get_ledger)):
  return ledger.search_customers(q)

@router.post("/customers", response_model=CustomerOut)
async def create_customer(body: CustomerCreate, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(await ledger.add_customer(body.name, body.phone, body.email, body.password, body.points))

@router.get("/customers/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: int, ledger: LedgerService = Depends(get_ledger)):
  customer = ledger.get_customer(customer_id)
  if not customer:
    raise HTTPException(status_code=404, detail="Customer not found")
  return customer

@router.put("/customers/{customer_id}", response_model=CustomerOut)
async def update_customer(customer_id: int, body: CustomerUpdate, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(await ledger.update_customer(customer_id, _changes(body)))

@router.delete("/customers/{customer_id}")
async def delete_customer(customer_id: int, ledger: LedgerService = Depends(get_ledger)):
  _unwrap(await ledger.delete_customer(customer_id))
  return {"ok": True, "id": customer_id}

@router.post("/customers/{customer_id}/toggle", response_model=CustomerOut)
async def toggle_customer(customer_id: int, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(await ledger.toggle_customer(customer_id))

@router.get("/customers/{customer_id}/transactions", response_model=List[Transaction], response_model_by_alias=True, response_model_exclude_none=True)
def customer_transactions(customer_id: int, ledger: LedgerService = Depends(get_ledger)):
  if not ledger.get_customer(customer_id):
    raise HTTPException(status_code=404, detail="Customer not found")
  return ledger.customer_transactions(customer_id)

@router.get("/customers/{customer_id}/coupons", response_model=List[Coupon], response_model_by_alias=True, response_model_exclude_none=True)
def customer_coupons(customer_id: int, amount: Optional[float] = None, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(ledger.available_coupons(customer_id, amount))

@router.get("/customers/{customer_id}/points")
def customer_points(customer_id: int, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(ledger.points_summary(customer_id))

# ---------------------- coupons ----------------------

@router.get("/coupons", response_model=List[Coupon], response_model_by_alias=True, response_model_exclude_none=True)
def list_coupons(q: Optional[str] = None, ledger: LedgerService = Depends(get_ledger)):
  return ledger.search_coupons(q)

@router.post("/coupons")
async def create_coupon(body: CouponCreate, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(await ledger.add_coupon(body.model_dump()))

@router.put("/coupons/{coupon_id}")
async def update_coupon(coupon_id: int, body: CouponUpdate, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(await ledger.update_coupon(coupon_id, _changes(body)))

@router.delete("/coupons/{coupon_id}")
async def delete_coupon(coupon_id: int, ledger: LedgerService = Depends(get_ledger)):
  _unwrap(await ledger.delete_coupon(coupon_id))
  return {"ok": True, "id": coupon_id}

@router.post("/coupons/{coupon_id}/toggle")
async def toggle_coupon(coupon_id: int, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(await ledger.toggle_coupon(coupon_id))

# ---------------------- payments ----------------------

@router.post("/payments/quote")
def quote_payment(body: PaymentRequest, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(ledger.checkout(body.customer_id, body.amount, body.coupon_code))

@router.post("/payments", response_model=PaymentOut, response_model_exclude_none=True)
async def pay(body: PaymentRequest, ledger: LedgerService = Depends(get_ledger)):
  # payment success is self-reported by the client after the UPI transfer
  quote = _unwrap(ledger.checkout(body.customer_id, body.amount, body.coupon_code))
  return _unwrap(await ledger.record_payment(body.customer_id, quote["finalAmount"], quote["couponCode"]))

@router.post("/redemptions", response_model=RedemptionOut, response_model_exclude_none=True)
async def redeem(body: RedemptionRequest, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(await ledger.redeem_points(body.customer_id, body.amount))

# ---------------------- configuration ----------------------

@router.get("/settings", response_model=Settings, response_model_by_alias=True)
def get_settings(ledger: LedgerService = Depends(get_ledger)):
  return ledger.settings()

@router.put("/settings")
async def update_settings(body: SettingsUpdate, ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(await ledger.update_settings(_changes(body)))

@router.get("/payment-slabs", response_model=List[PaymentSlab], response_model_by_alias=True)
def list_payment_slabs(ledger: LedgerService = Depends(get_ledger)):
  return ledger.payment_slabs()

@router.put("/payment-slabs")
async def replace_payment_slabs(body: List[SlabIn], ledger: LedgerService = Depends(get_ledger)):
  return _unwrap(await ledger.replace_payment_slabs([s.model_dump(exclude_none=True) for s in body]))

@router.get("/dashboard", response_model=DashboardOut, response_model_exclude_none=True)
def dashboard(ledger: LedgerService = Depends(get_ledger)):
  return ledger.dashboard()
