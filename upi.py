# upi.py
from urllib.parse import quote, urlencode

from models import Settings

QR_SERVER_URL = "https://api.qrserver.com/v1/create-qr-code/"


def _format_amount(amount: float) -> str:
  return str(int(amount)) if float(amount).is_integer() else str(amount)


def upi_string(amount: float, settings: Settings, description: str = "") -> str:
  params = {
    "pa": settings.upi_id,
    "pn": settings.business_name,
    "am": _format_amount(amount),
    "cu": "INR",
    "tn": description or f"Payment to {settings.business_name}",
  }
  return f"upi://pay?{urlencode(params)}"


def qr_code_url(text: str, size: int = 200) -> str:
  return f"{QR_SERVER_URL}?size={size}x{size}&data={quote(text, safe='')}"


def upi_qr_code(amount: float, settings: Settings, description: str = "") -> str:
  return qr_code_url(upi_string(amount, settings, description))
