"""
pricing.py — Price display: tr-TR formatting, TRY/USD switch and masking.

The USD rate comes from a public exchange-rate API and is cached for an hour.
"""

import os
import re
import time

import requests

EXCHANGE_RATE_URL = os.environ.get("EXCHANGE_RATE_URL", "https://open.er-api.com/v6/latest/USD")
RATE_TTL = 3600
# After a failed fetch, wait this long before asking the API again
RETRY_AFTER = 300

CURRENCY_SYMBOLS = {"TRY": "₺", "USD": "$"}

# 1 USD = rate TRY
_FX_CACHE = {"rate": 0.0, "ts": 0, "failed_at": 0}

_DIGITS = re.compile(r"[\d.,]+")


def format_number(amount, decimals=2):
    """Turkish grouping: 1234567.8 -> '1.234.567,80'."""
    text = f"{abs(amount):,.{decimals}f}"
    text = text.replace(",", "\x00").replace(".", ",").replace("\x00", ".")
    return f"-{text}" if amount < 0 else text


def format_currency(amount, currency="TRY"):
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    if amount < 0:
        return f"-{symbol}{format_number(-amount)}"
    return f"{symbol}{format_number(amount)}"


def mask(value):
    """Hide the digits but keep the currency symbol."""
    return _DIGITS.sub("***", str(value))


def format_price(amount, visible=True, currency="TRY", usd_rate=0.0):
    """Format a TRY amount for display, converting to USD when asked and a rate is known."""
    amount = amount or 0
    if currency == "USD" and usd_rate > 0:
        formatted = format_currency(amount / usd_rate, "USD")
    else:
        formatted = format_currency(amount, "TRY")
    return formatted if visible else mask(formatted)


def fetch_usd_rate(force=False):
    """TRY per USD. Falls back to the last good rate (or 0.0) when the API is unreachable."""
    now = time.time()
    if not force:
        if _FX_CACHE["rate"] and (now - _FX_CACHE["ts"]) < RATE_TTL:
            return _FX_CACHE["rate"]
        if (now - _FX_CACHE.get("failed_at", 0)) < RETRY_AFTER:
            return _FX_CACHE["rate"]

    try:
        resp = requests.get(EXCHANGE_RATE_URL, headers={"User-Agent": "StokTakip/1.0"}, timeout=8)
        resp.raise_for_status()
        rate = float(resp.json().get("rates", {}).get("TRY") or 0)
    except (requests.RequestException, ValueError) as e:
        print(f"[FX] Rate fetch failed: {e}")
        _FX_CACHE["failed_at"] = now
        return _FX_CACHE["rate"]

    if rate > 0:
        _FX_CACHE.update({"rate": rate, "ts": now})
    return _FX_CACHE["rate"]


def rate_label(rate):
    """'$1.00 = ₺32,45' as shown next to the currency switch."""
    if rate <= 0:
        return ""
    return "$1.00 = ₺" + f"{rate:.2f}".replace(".", ",")
