"""
helpers.py — Labels, timestamps and form builders shared by the pages.
"""

from datetime import datetime

# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------

REPAIR_STATUSES = {
    "in_progress": "İşlemde",
    "waiting_parts": "Parça Bekliyor",
    "completed": "Tamamlandı",
    "delivered": "Teslim Edildi",
    "cancelled": "İptal",
}

# Forward-only progression used by the "advance" action
REPAIR_STATUS_FLOW = ["in_progress", "waiting_parts", "completed", "delivered"]

REQUEST_STATUSES = {
    "pending": "Beklemede",
    "found": "Bulundu",
    "notified": "Bildirildi",
    "completed": "Tamamlandı",
    "cancelled": "İptal",
}

PURCHASE_STATUSES = {
    "odenmedi": "Ödenmedi",
    "kismi_odendi": "Kısmi Ödendi",
    "odendi": "Ödendi",
}

EXPENSE_STATUSES = {"odendi": "Ödendi", "bekliyor": "Bekliyor"}

EXPENSE_CATEGORIES = ["Kira", "Elektrik", "İnternet", "Maaş", "Stok", "Mutfak", "Diğer"]

PAYMENT_METHODS = {
    "cash": "Nakit", "nakit": "Nakit",
    "card": "Kart", "kart": "Kart",
    "transfer": "Havale", "havale": "Havale",
    "mixed": "Karışık", "vadeli": "Vadeli",
}

LEDGER_ENTRY_TYPES = ("alis", "odeme", "iade", "borc_ekleme", "alacak_ekleme")


def payment_method_label(method):
    return PAYMENT_METHODS.get(method, method)


def repair_status_label(status):
    return REPAIR_STATUSES.get(status, REPAIR_STATUSES["in_progress"])


def request_status_label(status):
    return REQUEST_STATUSES.get(status, REQUEST_STATUSES["pending"])


def purchase_status_label(status):
    return PURCHASE_STATUSES.get(status, PURCHASE_STATUSES["odenmedi"])


def stock_status(stock, min_stock):
    """Classify a product: 'stoksuz' (none left), 'kritik' (at or under the minimum) or 'stokta'."""
    if stock == 0:
        return "stoksuz"
    if stock <= min_stock:
        return "kritik"
    return "stokta"


def next_repair_status(current):
    if current not in REPAIR_STATUS_FLOW:
        return None
    idx = REPAIR_STATUS_FLOW.index(current)
    if idx >= len(REPAIR_STATUS_FLOW) - 1:
        return None
    return REPAIR_STATUS_FLOW[idx + 1]


# ---------------------------------------------------------------------------
# Numbers and timestamps
# ---------------------------------------------------------------------------

def to_float(value, default=0.0):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_int(value, default=0):
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def now_iso():
    """Local time with its UTC offset, so the backend stores the right instant."""
    return datetime.now().astimezone().isoformat(timespec="seconds")


def parse_ts(value):
    """Parse an ISO timestamp from the backend into a naive local datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


# ---------------------------------------------------------------------------
# Form builders
# ---------------------------------------------------------------------------

def build_sale(lines, products, payment_method="cash", customer_name="", customer_phone="", now=None):
    """Turn the sale form into a sale record.

    Each line names a productId and a quantity; prices default to the
    product's current prices. Raises ValueError for unknown products or an
    empty cart.
    """
    if not lines:
        raise ValueError("Add at least one product")

    by_id = {str(p.get("id")): p for p in products}
    items = []
    for line in lines:
        product = by_id.get(str(line.get("productId")))
        if product is None:
            raise ValueError(f"Product {line.get('productId')} not found")
        quantity = to_int(line.get("quantity"), 1)
        if quantity <= 0:
            raise ValueError(f"Quantity for {product.get('name')} must be positive")
        sale_price = to_float(line.get("salePrice", product.get("salePrice", 0)))
        purchase_price = to_float(line.get("purchasePrice", product.get("purchasePrice", 0)))
        items.append({
            "productId": product["id"],
            "productName": product.get("name", ""),
            "quantity": quantity,
            "salePrice": sale_price,
            "purchasePrice": purchase_price,
            "profit": (sale_price - purchase_price) * quantity,
        })

    total_price = sum(i["salePrice"] * i["quantity"] for i in items)
    total_profit = sum(i["profit"] for i in items)
    sale = {
        "items": items,
        "totalPrice": total_price,
        "totalProfit": total_profit,
        "date": now or now_iso(),
        "paymentMethod": payment_method,
        "paymentDetails": {payment_method: total_price},
    }
    if customer_name:
        sale["customerInfo"] = {"name": customer_name, "phone": customer_phone or ""}
    return sale


def build_repair(form, existing=None, now=None):
    """Repair record from the repair form. Profit is labour minus parts."""
    existing = existing or {}
    now = now or now_iso()
    repair_cost = to_float(form.get("repairCost", existing.get("repairCost", 0)))
    parts_cost = to_float(form.get("partsCost", existing.get("partsCost", 0)))
    status = form.get("status", existing.get("status", "in_progress"))

    delivered_at = existing.get("deliveredAt")
    if status == "delivered" and not delivered_at:
        delivered_at = now
    elif status != "delivered":
        delivered_at = None

    record = {
        "customerName": (form.get("customerName", existing.get("customerName", "")) or "").strip(),
        "customerPhone": (form.get("customerPhone", existing.get("customerPhone", "")) or "").strip(),
        "deviceInfo": (form.get("deviceInfo", existing.get("deviceInfo", "")) or "").strip(),
        "imei": form.get("imei", existing.get("imei", "")),
        "problemDescription": form.get("problemDescription", existing.get("problemDescription", "")),
        "repairCost": repair_cost,
        "partsCost": parts_cost,
        "profit": repair_cost - parts_cost,
        "prePayment": to_float(form.get("prePayment", existing.get("prePayment", 0))),
        "status": status,
        "paymentMethod": form.get("paymentMethod", existing.get("paymentMethod", "cash")),
        "technicianNotes": form.get("technicianNotes", existing.get("technicianNotes", "")),
        "supplierId": form.get("supplierId", existing.get("supplierId", "")) or "",
        "supplierName": form.get("supplierName", existing.get("supplierName", "")) or "",
        "createdAt": existing.get("createdAt") or now,
    }
    if delivered_at:
        record["deliveredAt"] = delivered_at
    return record


def build_phone_sale(stock, sale_price, payment_method="cash", customer_name="", customer_phone="", now=None):
    purchase_price = to_float(stock.get("purchasePrice", 0))
    sale = {
        "brand": stock.get("brand", ""),
        "model": stock.get("model", ""),
        "imei": stock.get("imei", ""),
        "purchasePrice": purchase_price,
        "salePrice": sale_price,
        "profit": sale_price - purchase_price,
        "date": now or now_iso(),
        "paymentMethod": payment_method,
        "paymentDetails": {payment_method: sale_price},
    }
    if customer_name:
        sale["customerName"] = customer_name
    if customer_phone:
        sale["customerPhone"] = customer_phone
    return sale


def next_invoice_number(purchases, year=None):
    year = year or datetime.now().year
    return f"FTR-{year}-{len(purchases) + 1:03d}"


def build_purchase(form, products):
    """Purchase header and its line items (without purchaseId) from the purchase form.

    Raises ValueError when the supplier or the cart is missing, or a line has a
    non-positive quantity or a negative unit cost.
    """
    supplier_id = form.get("supplierId")
    lines = form.get("items") or []
    if not supplier_id or not lines:
        raise ValueError("Supplier and at least one product are required")

    by_id = {str(p.get("id")): p for p in products}
    items = []
    for line in lines:
        product = by_id.get(str(line.get("productId")))
        if product is None:
            raise ValueError(f"Product {line.get('productId')} not found")
        quantity = to_int(line.get("quantity"), 1)
        if quantity <= 0:
            raise ValueError(f"Quantity for {product.get('name')} must be positive")
        unit_cost = to_float(line.get("unitCost", product.get("purchasePrice", 0)))
        if unit_cost < 0:
            raise ValueError(f"Unit cost for {product.get('name')} cannot be negative")
        items.append({
            "productId": product["id"],
            "quantity": quantity,
            "unitCost": unit_cost,
            "totalCost": quantity * unit_cost,
        })

    subtotal = sum(i["totalCost"] for i in items)
    discount = to_float(form.get("discount", 0))
    total = subtotal - discount
    purchase = {
        "supplierId": supplier_id,
        "purchaseDate": form.get("purchaseDate") or datetime.now().date().isoformat(),
        "invoiceNumber": form.get("invoiceNumber", ""),
        "paymentMethod": form.get("paymentMethod", "nakit"),
        "status": "odenmedi",
        "subtotal": subtotal,
        "discount": discount,
        "total": total,
        "paidAmount": 0,
        "remaining": total,
        "currency": form.get("currency", "TRY"),
        "exchangeRate": to_float(form.get("exchangeRate", 1), 1),
        "notes": form.get("notes", ""),
    }
    return purchase, items


def apply_purchase_payment(purchase, amount):
    """New paid/remaining/status values after paying ``amount`` against a purchase."""
    total = to_float(purchase.get("total", 0))
    paid = to_float(purchase.get("paidAmount", 0)) + amount
    remaining = max(0.0, total - paid)
    if remaining == 0:
        status = "odendi"
    elif paid > 0:
        status = "kismi_odendi"
    else:
        status = "odenmedi"
    return {"paidAmount": paid, "remaining": remaining, "status": status}


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

def profit_calc(purchase_price, sale_price, vat_rate=20):
    gross = sale_price - purchase_price
    margin = (gross / purchase_price) * 100 if purchase_price > 0 else 0
    vat_from_sale = (sale_price * vat_rate) / (100 + vat_rate) if sale_price > 0 else 0
    return {
        "grossProfit": gross,
        "margin": margin,
        "vatFromSale": vat_from_sale,
        "netProfit": gross - vat_from_sale,
    }


def vat_calc(amount, rate=20, direction="exclusive"):
    """Split an amount into base, VAT and total.

    ``exclusive`` treats the amount as the net base; ``inclusive`` treats it
    as the gross total.
    """
    if direction == "inclusive":
        base = amount / (1 + rate / 100)
        return {"base": base, "vat": amount - base, "total": amount}
    vat = amount * (rate / 100)
    return {"base": amount, "vat": vat, "total": amount + vat}
