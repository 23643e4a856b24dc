"""
backend.py — Data-access layer for StokTakip
Talks to the hosted Supabase project over HTTP.

Two transports are used:
  * the auto-generated REST interface (/rest/v1/<table>), whose rows are
    snake_case and get mapped to the camelCase shape the app works with;
  * the custom edge function (/functions/v1/<name>/<endpoint>), which already
    speaks camelCase and wraps every answer in {"data": ...}.

Every entity gets one function per operation (list, create, update, delete).
"""

import os
import re

import requests

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

SUPABASE_URL = os.environ.get("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")
EDGE_FUNCTION_NAME = os.environ.get("EDGE_FUNCTION_NAME", "make-server-929c4905")
REQUEST_TIMEOUT = float(os.environ.get("BACKEND_TIMEOUT", 15))


class BackendError(Exception):
    """Raised when the hosted backend answers with a non-2xx status."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


# ---------------------------------------------------------------------------
# snake_case <-> camelCase
# ---------------------------------------------------------------------------

_SNAKE_KEY = re.compile(r"_([a-z])")
_CAMEL_KEY = re.compile(r"[A-Z]")


def snake_to_camel(row):
    """Map the top-level keys of a backend row to camelCase."""
    return {_SNAKE_KEY.sub(lambda m: m.group(1).upper(), key): value for key, value in row.items()}


def camel_to_snake(obj):
    """Map the top-level keys of an app record to snake_case."""
    return {_CAMEL_KEY.sub(lambda m: "_" + m.group(0).lower(), key): value for key, value in obj.items()}


# ---------------------------------------------------------------------------
# Transport helpers
# ---------------------------------------------------------------------------

def _auth_headers():
    return {
        "Content-Type": "application/json",
        "apikey": SUPABASE_ANON_KEY,
        "Authorization": f"Bearer {SUPABASE_ANON_KEY}",
    }


def edge_fetch(endpoint, method="GET", payload=None):
    """Call the custom edge function. Returns the decoded JSON envelope."""
    url = f"{SUPABASE_URL}/functions/v1/{EDGE_FUNCTION_NAME}{endpoint}"
    resp = requests.request(method, url, json=payload, headers=_auth_headers(), timeout=REQUEST_TIMEOUT)
    if not resp.ok:
        print(f"[EDGE] Error {resp.status_code} on {endpoint}: {resp.text}")
        raise BackendError(f"Edge Error: {resp.status_code}", status=resp.status_code)
    return resp.json()


def db_fetch(path, method="GET", payload=None, params=None):
    """Call the auto-generated REST interface. Empty bodies come back as None."""
    url = f"{SUPABASE_URL}/rest/v1/{path}"
    headers = _auth_headers()
    headers["Prefer"] = "return=representation"
    resp = requests.request(method, url, params=params, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
    if not resp.ok:
        raise BackendError(f"DB Error {resp.status_code}: {resp.text}", status=resp.status_code)
    if not resp.text:
        return None
    return resp.json()


def _edge_list(endpoint, optional=False):
    try:
        result = edge_fetch(endpoint)
    except BackendError:
        if not optional:
            raise
        # Some endpoints are deployed later than others; treat as empty
        print(f"[EDGE] {endpoint} unavailable, using empty list")
        return []
    return (result or {}).get("data") or []


def _edge_create(endpoint, record):
    body = {k: v for k, v in record.items() if k != "id"}
    return (edge_fetch(endpoint, "POST", body) or {}).get("data")


def _edge_update(endpoint, record_id, record):
    body = dict(record, id=record_id)
    return (edge_fetch(f"{endpoint}/{record_id}", "PUT", body) or {}).get("data")


def _edge_delete(endpoint, record_id):
    return edge_fetch(f"{endpoint}/{record_id}", "DELETE")


def _rest_list(table, select="*", order="created_at.desc", **filters):
    params = {"select": select}
    if order:
        params["order"] = order
    for column, value in filters.items():
        params[column] = f"eq.{value}"
    rows = db_fetch(table, params=params) or []
    return [snake_to_camel(r) for r in rows]


def _rest_payload(record, drop=("created_at",)):
    payload = camel_to_snake(record)
    for key in drop:
        payload.pop(key, None)
    return payload


def _first(rows):
    if rows:
        return snake_to_camel(rows[0])
    return None


def _rest_create(table, record, drop=("created_at", "id")):
    rows = db_fetch(table, "POST", _rest_payload(record, drop))
    return _first(rows)


def _rest_update(table, record_id, changes, drop=("created_at", "id")):
    rows = db_fetch(table, "PATCH", _rest_payload(changes, drop), params={"id": f"eq.{record_id}"})
    return _first(rows)


def _rest_delete(table, record_id):
    return db_fetch(table, "DELETE", params={"id": f"eq.{record_id}"})


# ---------------------------------------------------------------------------
# Categories (edge)
# ---------------------------------------------------------------------------

def list_categories():
    return _edge_list("/categories")


def create_category(category):
    # The server generates the id; only the name is sent
    return _edge_create("/categories", {"name": category["name"]})


def update_category(category_id, category):
    return _edge_update("/categories", category_id, category)


def delete_category(category_id):
    return _edge_delete("/categories", category_id)


# ---------------------------------------------------------------------------
# Products (edge)
# ---------------------------------------------------------------------------

def list_products():
    return _edge_list("/products")


def create_product(product):
    return _edge_create("/products", product)


def update_product(product_id, product):
    return _edge_update("/products", product_id, product)


def delete_product(product_id):
    return _edge_delete("/products", product_id)


def update_product_stock_db(product_id, stock, purchase_price=None):
    """Patch stock (and optionally purchase price) straight on the products table."""
    body = {"stock": stock}
    if purchase_price is not None:
        body["purchase_price"] = purchase_price
    return db_fetch("products", "PATCH", body, params={"id": f"eq.{product_id}"})


# ---------------------------------------------------------------------------
# Sales (edge)
# ---------------------------------------------------------------------------

def list_sales():
    raw = _edge_list("/sales")
    # The edge function may return the same sale more than once
    seen = set()
    unique = []
    for sale in raw:
        if sale.get("id") in seen:
            continue
        seen.add(sale.get("id"))
        unique.append(sale)
    return unique


def create_sale(sale):
    return _edge_create("/sales", sale)


def update_sale(sale_id, sale):
    return _edge_update("/sales", sale_id, sale)


def delete_sale(sale_id):
    return _edge_delete("/sales", sale_id)


# ---------------------------------------------------------------------------
# Repairs (edge)
# ---------------------------------------------------------------------------

def list_repairs():
    return _edge_list("/repairs")


def create_repair(repair):
    return _edge_create("/repairs", repair)


def update_repair(repair_id, repair):
    return _edge_update("/repairs", repair_id, repair)


def delete_repair(repair_id):
    return _edge_delete("/repairs", repair_id)


# ---------------------------------------------------------------------------
# Phone sales (edge)
# ---------------------------------------------------------------------------

def list_phone_sales():
    return _edge_list("/phone-sales", optional=True)


def create_phone_sale(phone_sale):
    return _edge_create("/phone-sales", phone_sale)


def update_phone_sale(phone_sale_id, phone_sale):
    return _edge_update("/phone-sales", phone_sale_id, phone_sale)


def delete_phone_sale(phone_sale_id):
    return _edge_delete("/phone-sales", phone_sale_id)


# ---------------------------------------------------------------------------
# Expenses (edge)
# ---------------------------------------------------------------------------

def list_expenses():
    return _edge_list("/expenses", optional=True)


def create_expense(expense):
    return _edge_create("/expenses", expense)


def update_expense(expense_id, expense):
    return _edge_update("/expenses", expense_id, expense)


def delete_expense(expense_id):
    return _edge_delete("/expenses", expense_id)


# ---------------------------------------------------------------------------
# Customer requests (edge)
# ---------------------------------------------------------------------------

def list_customer_requests():
    return _edge_list("/customer-requests", optional=True)


def create_customer_request(customer_request):
    return _edge_create("/customer-requests", customer_request)


def update_customer_request(request_id, customer_request):
    return _edge_update("/customer-requests", request_id, customer_request)


def delete_customer_request(request_id):
    return _edge_delete("/customer-requests", request_id)


# ---------------------------------------------------------------------------
# Phone stocks (REST)
# ---------------------------------------------------------------------------

def list_phone_stocks():
    return _rest_list("phone_stocks")


def create_phone_stock(phone_stock):
    return _rest_create("phone_stocks", phone_stock)


def update_phone_stock(phone_stock_id, changes):
    return _rest_update("phone_stocks", phone_stock_id, changes)


def update_phone_stock_status(phone_stock_id, status):
    return db_fetch("phone_stocks", "PATCH", {"status": status}, params={"id": f"eq.{phone_stock_id}"})


def delete_phone_stock(phone_stock_id):
    return _rest_delete("phone_stocks", phone_stock_id)


# ---------------------------------------------------------------------------
# Suppliers (REST + edge balance endpoint)
# ---------------------------------------------------------------------------

def list_suppliers():
    return _rest_list("suppliers")


def create_supplier(supplier):
    return _rest_create("suppliers", supplier)


def update_supplier(supplier_id, changes):
    return _rest_update("suppliers", supplier_id, changes)


def delete_supplier(supplier_id):
    return _rest_delete("suppliers", supplier_id)


def update_supplier_balance(supplier_id, add_amount):
    """Add to a supplier's running balance (goes through the edge function to bypass RLS)."""
    return edge_fetch("/supplier-balance", "POST", {"supplier_id": supplier_id, "add_amount": add_amount})


# ---------------------------------------------------------------------------
# Purchases (REST)
# ---------------------------------------------------------------------------

PURCHASE_SELECT = "*,supplier:suppliers(*),items:purchase_items(*)"


def _map_purchase(row):
    purchase = snake_to_camel(row)
    if row.get("supplier"):
        purchase["supplier"] = snake_to_camel(row["supplier"])
    if isinstance(row.get("items"), list):
        purchase["items"] = [snake_to_camel(i) for i in row["items"]]
    return purchase


def list_purchases():
    rows = db_fetch("purchases", params={"select": PURCHASE_SELECT, "order": "created_at.desc"}) or []
    return [_map_purchase(r) for r in rows]


def _purchase_payload(purchase, drop):
    payload = _rest_payload(purchase, drop)
    payload.pop("supplier", None)
    payload.pop("items", None)
    return payload


def create_purchase(purchase):
    rows = db_fetch("purchases", "POST", _purchase_payload(purchase, ("created_at", "id")))
    return _first(rows)


def update_purchase(purchase_id, changes):
    rows = db_fetch("purchases", "PATCH", _purchase_payload(changes, ("created_at", "id")),
                    params={"id": f"eq.{purchase_id}"})
    return _first(rows)


def delete_purchase(purchase_id):
    return _rest_delete("purchases", purchase_id)


def create_purchase_items(items):
    payload = [_rest_payload(i, ("created_at", "id")) for i in items]
    rows = db_fetch("purchase_items", "POST", payload) or []
    return [snake_to_camel(r) for r in rows]


# ---------------------------------------------------------------------------
# Supplier ledger: cari hareketler (REST read, edge write)
# ---------------------------------------------------------------------------

def list_cari_hareketler(supplier_id):
    return _rest_list("cari_hareketler", order="islem_tarihi.desc", supplier_id=supplier_id)


def create_cari_hareket(entry):
    payload = _rest_payload(entry, ("created_at", "id"))
    return edge_fetch("/cari-hareket", "POST", payload)


# ---------------------------------------------------------------------------
# Payments (REST)
# ---------------------------------------------------------------------------

def list_payments(purchase_id):
    return _rest_list("payments", order="payment_date.desc", purchase_id=purchase_id)


def create_payment(payment):
    return _rest_create("payments", payment)


# ---------------------------------------------------------------------------
# Customers (REST)
# ---------------------------------------------------------------------------

def list_customers():
    return _rest_list("customers")


def create_customer(customer):
    return _rest_create("customers", customer)


def update_customer(customer_id, changes):
    return _rest_update("customers", customer_id, changes)


def delete_customer(customer_id):
    return _rest_delete("customers", customer_id)


# ---------------------------------------------------------------------------
# Reminders (REST)
# ---------------------------------------------------------------------------

def list_reminders():
    return _rest_list("reminders", order="remind_at.asc")


def create_reminder(reminder):
    return _rest_create("reminders", reminder)


def update_reminder(reminder_id, changes):
    return _rest_update("reminders", reminder_id, changes)


def mark_reminder_sent(reminder_id):
    return db_fetch("reminders", "PATCH", {"is_sent": True}, params={"id": f"eq.{reminder_id}"})


def delete_reminder(reminder_id):
    return _rest_delete("reminders", reminder_id)
