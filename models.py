# models.py
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Type
from datetime import date, datetime, timezone
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import SQLModel, Field


class Collection(str, Enum):
  CUSTOMERS = "customers"
  TRANSACTIONS = "transactions"
  PAYMENT_SLABS = "paymentSlabs"
  COUPONS = "coupons"
  SETTINGS = "settings"


class LedgerModel(BaseModel):
  # persisted JSON keeps the camelCase layout of the browser store
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

  def to_doc(self) -> Dict[str, Any]:
    return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Customer(LedgerModel):
  id: int
  name: str
  phone: str
  email: str = ""
  password: str = ""  # plaintext, demo-only auth
  points: int = 0
  total_spent: float = 0
  is_active: bool = True
  is_vip: bool = False
  created_at: date
  last_visit: date


class Transaction(LedgerModel):
  id: int
  customer_id: int
  amount: float
  points_earned: int = 0
  points_redeemed: int = 0
  date: datetime
  type: Literal["payment", "redemption"]
  coupon_used: Optional[str] = None


class PaymentSlab(LedgerModel):
  id: int
  min_amount: float
  max_amount: float
  points: int


class Coupon(LedgerModel):
  id: int
  code: str
  title: str
  description: str = ""
  discount_type: Literal["percentage", "fixed", "freeItem"]
  discount_value: float
  min_order_value: float = 0
  max_discount: Optional[float] = None
  is_active: bool = True
  expiry_date: date
  usage_limit: int = 1
  usage_count: int = 0
  for_vip_only: bool = False


class Settings(LedgerModel):
  business_name: str = "Curry Point"
  upi_id: str = ""
  points_to_rupee_ratio: float = 0.5
  welcome_bonus_points: int = 0
  min_redemption_points: int = 0
  vip_threshold: float = 0
  vip_points_multiplier: float = 1


COLLECTION_MODELS: Dict[Collection, Type[LedgerModel]] = {
  Collection.CUSTOMERS: Customer,
  Collection.TRANSACTIONS: Transaction,
  Collection.PAYMENT_SLABS: PaymentSlab,
  Collection.COUPONS: Coupon,
  Collection.SETTINGS: Settings,
}


def is_singleton(collection: Collection) -> bool:
  return collection is Collection.SETTINGS


def must_stay_present(collection: Collection) -> bool:
  # settings and slabs are never replaced by an empty remote value
  return collection in (Collection.SETTINGS, Collection.PAYMENT_SLABS)


def parse_collection(collection: Collection, raw: Any):
  """Validate raw JSON for a collection into model instances.

  Returns a Settings object for the settings singleton and a list of models
  for the other collections. Raises pydantic.ValidationError on bad input.
  """
  model = COLLECTION_MODELS[collection]
  if is_singleton(collection):
    return model.model_validate(raw or {})
  return [model.model_validate(item) for item in (raw or [])]


def dump_collection(collection: Collection, value: Any):
  if is_singleton(collection):
    return value.to_doc() if isinstance(value, LedgerModel) else dict(value)
  return [v.to_doc() if isinstance(v, LedgerModel) else dict(v) for v in value]


def next_id(items: List[Any]) -> int:
  """max(existing ids) + 1; ids of deleted records are never handed out again
  as long as a higher id is still present."""
  return max([0] + [i.id for i in items]) + 1


class CollectionRecord(SQLModel, table=True):
  """Local tier row: one JSON document per collection."""
  name: str = Field(primary_key=True, index=True)
  data: str
  updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Document(SQLModel, table=True):
  """Document store row used by docstore.py."""
  pk: Optional[int] = Field(default=None, primary_key=True)
  collection: str = Field(index=True)
  doc_id: Optional[int] = Field(default=None, index=True)
  body: str
