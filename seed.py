# seed.py
import copy
from typing import Any, Dict

INITIAL_DATA: Dict[str, Any] = {
  "customers": [
    {
      "id": 1, "name": "John Doe", "phone": "+91 9876543210", "email": "john@example.com",
      "points": 125, "totalSpent": 2850, "isActive": True,
      "createdAt": "2025-01-15", "lastVisit": "2025-05-22", "password": "1234", "isVip": False,
    },
    {
      "id": 2, "name": "Admin User", "phone": "+91 9999999999", "email": "admin@currypoint.com",
      "points": 0, "totalSpent": 0, "isActive": True,
      "createdAt": "2025-01-01", "lastVisit": "2025-05-22", "password": "admin", "isVip": True,
    },
  ],
  "transactions": [
    {"id": 1, "customerId": 1, "amount": 550, "pointsEarned": 30, "pointsRedeemed": 0, "date": "2025-05-22T14:30:45", "type": "payment"},
    {"id": 2, "customerId": 1, "amount": 800, "pointsEarned": 60, "pointsRedeemed": 0, "date": "2025-05-20T19:15:22", "type": "payment"},
    {"id": 3, "customerId": 1, "amount": 1500, "pointsEarned": 100, "pointsRedeemed": 0, "date": "2025-05-15T12:45:33", "type": "payment"},
    {"id": 4, "customerId": 1, "amount": 200, "pointsEarned": 0, "pointsRedeemed": 40, "date": "2025-05-10T20:30:15", "type": "redemption"},
  ],
  "paymentSlabs": [
    {"id": 1, "minAmount": 0, "maxAmount": 100, "points": 5},
    {"id": 2, "minAmount": 101, "maxAmount": 300, "points": 15},
    {"id": 3, "minAmount": 301, "maxAmount": 500, "points": 30},
    {"id": 4, "minAmount": 501, "maxAmount": 1000, "points": 60},
    {"id": 5, "minAmount": 1001, "maxAmount": 99999, "points": 100},
  ],
  "coupons": [
    {
      "id": 1, "code": "WELCOME10", "title": "10% Off Your First Order",
      "description": "Get 10% off on your first order above ₹300",
      "discountType": "percentage", "discountValue": 10, "minOrderValue": 300, "maxDiscount": 100,
      "isActive": True, "expiryDate": "2025-12-31", "usageLimit": 1, "usageCount": 0, "forVipOnly": False,
    },
    {
      "id": 2, "code": "FLAT50", "title": "Flat ₹50 Off",
      "description": "Get flat ₹50 off on orders above ₹500",
      "discountType": "fixed", "discountValue": 50, "minOrderValue": 500,
      "isActive": True, "expiryDate": "2025-07-31", "usageLimit": 2, "usageCount": 0, "forVipOnly": False,
    },
    {
      "id": 3, "code": "VIPSPECIAL", "title": "VIP Special: 15% Off",
      "description": "Exclusive 15% off for our VIP customers",
      "discountType": "percentage", "discountValue": 15, "minOrderValue": 200, "maxDiscount": 200,
      "isActive": True, "expiryDate": "2025-12-31", "usageLimit": 5, "usageCount": 0, "forVipOnly": True,
    },
  ],
  "settings": {
    "businessName": "Curry Point",
    "upiId": "currypoint@upi",
    "pointsToRupeeRatio": 0.5,  # 1 point = ₹0.5
    "welcomeBonusPoints": 50,
    "minRedemptionPoints": 100,
    "vipThreshold": 3000,
    "vipPointsMultiplier": 1.2,
  },
}


def default_snapshot() -> Dict[str, Any]:
  return copy.deepcopy(INITIAL_DATA)
