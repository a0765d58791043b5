# tests/test_upi.py

from urllib.parse import parse_qs, urlparse

from models import Settings
from upi import qr_code_url, upi_qr_code, upi_string

SETTINGS = Settings(business_name="Curry Point", upi_id="currypoint@upi", points_to_rupee_ratio=0.5,
                    welcome_bonus_points=50, min_redemption_points=100, vip_threshold=3000,
                    vip_points_multiplier=1.2)


def test_upi_string_fields():
  link = upi_string(1900, SETTINGS)
  assert link.startswith("upi://pay?")
  params = parse_qs(urlparse(link).query)
  assert params == {
    "pa": ["currypoint@upi"],
    "pn": ["Curry Point"],
    "am": ["1900"],
    "cu": ["INR"],
    "tn": ["Payment to Curry Point"],
  }


def test_fractional_amount_and_custom_note():
  params = parse_qs(urlparse(upi_string(99.5, SETTINGS, "Table 4")).query)
  assert params["am"] == ["99.5"]
  assert params["tn"] == ["Table 4"]


def test_qr_code_url_encodes_payload():
  url = qr_code_url("upi://pay?pa=a@b&am=1", size=300)
  assert url.startswith("https://api.qrserver.com/v1/create-qr-code/?size=300x300&data=")
  assert "upi%3A%2F%2Fpay%3Fpa%3Da%40b%26am%3D1" in url


def test_upi_qr_code_wraps_upi_string():
  assert upi_qr_code(250, SETTINGS) == qr_code_url(upi_string(250, SETTINGS))
