"""
StokTakip Pro — Shop management dashboard
Flask front end over the hosted Supabase backend (REST interface + edge function).
"""

import functools
import os
import time
from collections import defaultdict

import bcrypt
from flask import Flask, jsonify, request, render_template, session, redirect, url_for

import backend
import helpers
import pricing
import reminders
import reports
from backend import BackendError
from helpers import to_float, to_int, now_iso
from state import ShopState, load_settings, save_settings

app = Flask(__name__)

# SECRET_KEY must be stable in production (random fallback only for local dev)
_is_production = os.environ.get("RAILWAY_ENVIRONMENT") or os.environ.get("RENDER") or os.environ.get("PRODUCTION")
if _is_production and not os.environ.get("SECRET_KEY"):
    raise RuntimeError("SECRET_KEY env var must be set in production")
app.secret_key = os.environ.get("SECRET_KEY", os.urandom(32).hex())

# ---------------------------------------------------------------------------
# Login rate limiter: in-memory, per IP
# ---------------------------------------------------------------------------
_login_attempts = defaultdict(list)   # ip -> [timestamp, ...]
_LOGIN_WINDOW = 300    # 5-minute window
_LOGIN_MAX = 10        # max attempts per window

# ---------------------------------------------------------------------------
# Production config
# ---------------------------------------------------------------------------
if _is_production:
    app.config["SESSION_COOKIE_SECURE"] = True
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    from werkzeug.middleware.proxy_fix import ProxyFix
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

# Session lifetime: one 8-hour shop shift
app.config["PERMANENT_SESSION_LIFETIME"] = 8 * 60 * 60

# ---------------------------------------------------------------------------
# Admin credential: a single fixed operator
# ---------------------------------------------------------------------------
ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "technocep").strip().lower()
if _is_production and not (os.environ.get("ADMIN_PASSWORD_HASH") or os.environ.get("ADMIN_PASSWORD")):
    raise RuntimeError("ADMIN_PASSWORD or ADMIN_PASSWORD_HASH must be set in production")
ADMIN_PASSWORD_HASH = os.environ.get("ADMIN_PASSWORD_HASH") or bcrypt.hashpw(
    os.environ.get("ADMIN_PASSWORD", "technocep").encode(), bcrypt.gensalt()
).decode()

# All entity collections, loaded on login
shop = ShopState()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _payload():
    return request.get_json(silent=True) or {}


def _prefs():
    return session.get("prefs") or {"visible": True, "currency": "TRY"}


def _fp(amount):
    """Format a TRY amount with the operator's visibility and currency choice."""
    prefs = _prefs()
    rate = pricing.fetch_usd_rate() if prefs["currency"] == "USD" else 0.0
    return pricing.format_price(amount, prefs["visible"], prefs["currency"], rate)


def _display(stats, *keys):
    return {k: _fp(stats[k]) for k in keys}


def _not_found(what):
    return jsonify({"error": f"{what} not found"}), 404


@app.errorhandler(BackendError)
def handle_backend_error(e):
    print(f"[BACKEND] {e}")
    return jsonify({"error": str(e)}), 502


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

def login_required(f):
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if "user" not in session:
            if request.path.startswith("/api/"):
                return jsonify({"error": "Unauthorized"}), 401
            return redirect(url_for("login_page"))
        # Session survived a restart: collections need loading again
        if shop.loaded_at is None:
            shop.load_all()
        return f(*args, **kwargs)
    return decorated


# ---------------------------------------------------------------------------
# Auth routes
# ---------------------------------------------------------------------------

@app.route("/login")
def login_page():
    if "user" in session:
        return redirect(url_for("index"))
    return render_template("login.html")


@app.route("/api/auth/login", methods=["POST"])
def api_login():
    # --- Rate limiting ---
    ip = request.remote_addr or "unknown"
    now_ts = time.time()
    _login_attempts[ip] = [t for t in _login_attempts[ip] if now_ts - t < _LOGIN_WINDOW]
    if len(_login_attempts[ip]) >= _LOGIN_MAX:
        return jsonify({"error": "Too many login attempts. Please wait a few minutes."}), 429
    _login_attempts[ip].append(now_ts)

    data = _payload()
    username = (data.get("username") or "").strip().lower()
    password = data.get("password") or ""

    if username != ADMIN_USERNAME or not bcrypt.checkpw(password.encode(), ADMIN_PASSWORD_HASH.encode()):
        print(f"[AUTH] Failed login for '{username}' from {ip}")
        return jsonify({"error": "Invalid username or password"}), 401

    # Clear rate-limit on success
    _login_attempts.pop(ip, None)

    session.permanent = True
    session["user"] = {"username": ADMIN_USERNAME, "role": "admin"}
    session.setdefault("prefs", {"visible": True, "currency": "TRY"})

    errors = shop.load_all()
    return jsonify({"success": True, "user": session["user"], "counts": shop.counts(), "loadErrors": errors})


@app.route("/api/auth/logout", methods=["POST"])
def api_logout():
    session.pop("user", None)
    shop.clear()
    return jsonify({"success": True})


@app.route("/api/auth/me", methods=["GET"])
def api_me():
    if "user" in session:
        return jsonify(session["user"])
    return jsonify({"error": "Not logged in"}), 401


# ---------------------------------------------------------------------------
# Frontend
# ---------------------------------------------------------------------------

@app.route("/")
@login_required
def index():
    return render_template("index.html", user=session["user"])


@app.route("/api/refresh", methods=["POST"])
@login_required
def refresh_all():
    errors = shop.load_all()
    return jsonify({"success": True, "counts": shop.counts(), "loadErrors": errors})


# ---------------------------------------------------------------------------
# Preferences API (price visibility, display currency)
# ---------------------------------------------------------------------------

@app.route("/api/preferences", methods=["GET"])
@login_required
def get_preferences():
    prefs = _prefs()
    rate = pricing.fetch_usd_rate()
    return jsonify(dict(prefs, usdRate=rate, rateLabel=pricing.rate_label(rate)))


@app.route("/api/preferences", methods=["PUT"])
@login_required
def update_preferences():
    data = _payload()
    prefs = dict(_prefs())
    if "visible" in data:
        prefs["visible"] = bool(data["visible"])
    if "currency" in data:
        if data["currency"] not in pricing.CURRENCY_SYMBOLS:
            return jsonify({"error": "Currency must be TRY or USD"}), 400
        prefs["currency"] = data["currency"]
    session["prefs"] = prefs
    return jsonify({"success": True, "preferences": prefs})


@app.route("/api/preferences/toggle-visibility", methods=["POST"])
@login_required
def toggle_visibility():
    prefs = dict(_prefs())
    prefs["visible"] = not prefs["visible"]
    session["prefs"] = prefs
    return jsonify({"success": True, "preferences": prefs})


@app.route("/api/exchange-rate", methods=["GET"])
@login_required
def exchange_rate():
    rate = pricing.fetch_usd_rate(force=request.args.get("refresh") == "true")
    return jsonify({"usdRate": rate, "label": pricing.rate_label(rate)})


# ---------------------------------------------------------------------------
# Sales & reports API
# ---------------------------------------------------------------------------

@app.route("/api/sales", methods=["GET"])
@login_required
def get_sales():
    period = request.args.get("period", "thisMonth")
    start, end = reports.period_range(period)
    summary = reports.sales_summary(
        shop.get("sales"), shop.get("repairs"), shop.get("phoneSales"), shop.get("suppliers"), start, end
    )
    stats = {k: summary[k] for k in ("totalRevenue", "totalProfit", "totalTransactions", "supplierBalance")}
    return jsonify({
        "period": period,
        "sales": summary["sales"],
        "repairs": summary["repairs"],
        "phoneSales": summary["phoneSales"],
        "stats": stats,
        "display": _display(stats, "totalRevenue", "totalProfit", "supplierBalance"),
    })


@app.route("/api/sales", methods=["POST"])
@login_required
def create_sale():
    data = _payload()
    try:
        sale = helpers.build_sale(
            data.get("items") or [], shop.get("products"),
            payment_method=data.get("paymentMethod", "cash"),
            customer_name=(data.get("customerName") or "").strip(),
            customer_phone=(data.get("customerPhone") or "").strip(),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    created = backend.create_sale(sale)

    # Stock decrement is a separate call per product; there is no rollback
    sold = defaultdict(int)
    for item in sale["items"]:
        sold[str(item["productId"])] += item["quantity"]
    for product_id, qty in sold.items():
        product = shop.find("products", product_id)
        if product:
            new_stock = max(0, to_int(product.get("stock")) - qty)
            backend.update_product(product["id"], dict(product, stock=new_stock))

    if data.get("addCustomer"):
        _remember_customer(data.get("customerName"), data.get("customerPhone"))

    shop.load_all()
    return jsonify({"success": True, "message": "Sale recorded", "sale": created or sale}), 201


@app.route("/api/sales/<sale_id>", methods=["DELETE"])
@login_required
def delete_sale(sale_id):
    backend.delete_sale(sale_id)
    shop.remove("sales", sale_id)
    return jsonify({"success": True, "message": "Sale deleted"})


# ---------------------------------------------------------------------------
# Products & categories API
# ---------------------------------------------------------------------------

def _product_from_form(data, existing=None):
    existing = existing or {}
    category_id = data.get("categoryId", existing.get("categoryId", ""))
    category = shop.find("categories", category_id) if category_id else None
    return {
        "name": (data.get("name", existing.get("name", "")) or "").strip(),
        "categoryId": category_id,
        "categoryName": category.get("name", "") if category else existing.get("categoryName", ""),
        "barcode": (data.get("barcode", existing.get("barcode", "")) or "").strip(),
        "stock": to_int(data.get("stock", existing.get("stock", 0))),
        "minStock": to_int(data.get("minStock", existing.get("minStock", 5)), 5),
        "purchasePrice": to_float(data.get("purchasePrice", existing.get("purchasePrice", 0))),
        "salePrice": to_float(data.get("salePrice", existing.get("salePrice", 0))),
        "description": data.get("description", existing.get("description", "")),
    }


def _validate_product(product):
    if not product["name"] or not product["categoryId"]:
        return "Product name and category are required"
    if product["purchasePrice"] < 0 or product["salePrice"] < 0:
        return "Prices cannot be negative"
    if product["stock"] < 0:
        return "Stock cannot be negative"
    return None


@app.route("/api/products", methods=["GET"])
@login_required
def get_products():
    products = shop.get("products")
    categories = shop.get("categories")
    filtered = reports.filter_products(
        products,
        search=request.args.get("q", ""),
        category_id=request.args.get("category", "all"),
        stock_filter=request.args.get("stock", "all"),
    )
    items = [dict(p, stockStatus=helpers.stock_status(p.get("stock", 0), p.get("minStock", 0))) for p in filtered]
    stats = reports.product_stats(products, categories)
    return jsonify({
        "items": items,
        "categories": categories,
        "stats": stats,
        "display": _display(stats, "totalValue"),
    })


@app.route("/api/products", methods=["POST"])
@login_required
def add_product():
    product = _product_from_form(_payload())
    error = _validate_product(product)
    if error:
        return jsonify({"error": error}), 400

    created = backend.create_product(product)
    record = created or product
    if record.get("id") is not None:
        shop.upsert("products", record)
    return jsonify({"success": True, "message": "Product added", "product": record}), 201


@app.route("/api/products/<product_id>", methods=["PUT"])
@login_required
def update_product(product_id):
    existing = shop.find("products", product_id)
    if not existing:
        return _not_found("Product")

    product = _product_from_form(_payload(), existing)
    error = _validate_product(product)
    if error:
        return jsonify({"error": error}), 400

    product["id"] = existing["id"]
    updated = backend.update_product(existing["id"], product)
    record = dict(product, **(updated or {}))
    shop.upsert("products", record)
    return jsonify({"success": True, "message": "Product updated", "product": record})


@app.route("/api/products/<product_id>", methods=["DELETE"])
@login_required
def delete_product(product_id):
    if not shop.find("products", product_id):
        return _not_found("Product")
    backend.delete_product(product_id)
    shop.remove("products", product_id)
    return jsonify({"success": True, "message": "Product deleted"})


@app.route("/api/categories", methods=["GET"])
@login_required
def get_categories():
    return jsonify(shop.get("categories"))


@app.route("/api/categories", methods=["POST"])
@login_required
def add_category():
    name = (_payload().get("name") or "").strip()
    if not name:
        return jsonify({"error": "Category name is required"}), 400
    created = backend.create_category({"name": name})
    if created:
        shop.upsert("categories", created)
    else:
        shop.reload("categories")
    return jsonify({"success": True, "message": "Category added", "category": created}), 201


@app.route("/api/categories/<category_id>", methods=["DELETE"])
@login_required
def delete_category(category_id):
    backend.delete_category(category_id)
    shop.remove("categories", category_id)
    return jsonify({"success": True, "message": "Category deleted"})


# ---------------------------------------------------------------------------
# Repairs API
# ---------------------------------------------------------------------------

def _add_supplier_debt(supplier_id, amount, device_info, repair_id):
    """Book a parts purchase on the supplier's ledger; a failure does not undo the repair."""
    try:
        backend.create_cari_hareket({
            "supplierId": supplier_id,
            "islemTarihi": now_iso(),
            "islemTipi": "alis",
            "miktar": amount,
            "aciklama": f"Tamir parçası: {device_info}",
            "ilgiliId": repair_id,
            "bakiyeEtkisi": amount,
        })
        shop.reload("suppliers")
    except BackendError as e:
        print(f"[LEDGER] Supplier debt for repair {repair_id} failed: {e}")
        return False
    return True


def _with_supplier_name(record):
    if record.get("supplierId"):
        supplier = shop.find("suppliers", record["supplierId"])
        if supplier:
            record["supplierName"] = supplier.get("name", "")
    else:
        record["supplierName"] = ""
    return record


@app.route("/api/repairs", methods=["GET"])
@login_required
def get_repairs():
    repairs = shop.get("repairs")
    filtered = reports.filter_repairs(repairs, request.args.get("status", "all"), request.args.get("q", ""))
    items = [
        dict(r, statusLabel=helpers.repair_status_label(r.get("status")),
             nextStatus=helpers.next_repair_status(r.get("status")))
        for r in filtered
    ]
    stats = reports.repair_stats(repairs)
    return jsonify({"items": items, "stats": stats, "display": _display(stats, "totalRevenue")})


@app.route("/api/repairs", methods=["POST"])
@login_required
def add_repair():
    data = _payload()
    record = _with_supplier_name(helpers.build_repair(data))
    if not record["customerName"] or not record["deviceInfo"]:
        return jsonify({"error": "Customer name and device info are required"}), 400
    if record["status"] not in helpers.REPAIR_STATUSES:
        return jsonify({"error": f"Unknown status: {record['status']}"}), 400

    created = backend.create_repair(record)
    saved = dict(record, **(created or {}))

    if saved["supplierId"] and saved["partsCost"] > 0:
        _add_supplier_debt(saved["supplierId"], saved["partsCost"], saved["deviceInfo"], saved.get("id"))

    if data.get("addCustomer"):
        _remember_customer(saved["customerName"], saved["customerPhone"])

    if saved.get("id") is not None:
        shop.upsert("repairs", saved)
    return jsonify({"success": True, "message": "Repair record added", "repair": saved}), 201


@app.route("/api/repairs/<repair_id>", methods=["PUT"])
@login_required
def update_repair(repair_id):
    existing = shop.find("repairs", repair_id)
    if not existing:
        return _not_found("Repair")

    record = _with_supplier_name(helpers.build_repair(_payload(), existing))
    if not record["customerName"] or not record["deviceInfo"]:
        return jsonify({"error": "Customer name and device info are required"}), 400
    if record["status"] not in helpers.REPAIR_STATUSES:
        return jsonify({"error": f"Unknown status: {record['status']}"}), 400

    record["id"] = existing["id"]
    backend.update_repair(existing["id"], record)

    # A newly chosen supplier takes on the parts cost
    if record["supplierId"] and record["partsCost"] > 0 and record["supplierId"] != existing.get("supplierId"):
        _add_supplier_debt(record["supplierId"], record["partsCost"], record["deviceInfo"], existing["id"])

    shop.upsert("repairs", record)
    return jsonify({"success": True, "message": "Repair record updated", "repair": record})


@app.route("/api/repairs/<repair_id>/advance", methods=["POST"])
@login_required
def advance_repair(repair_id):
    existing = shop.find("repairs", repair_id)
    if not existing:
        return _not_found("Repair")

    next_status = helpers.next_repair_status(existing.get("status"))
    if not next_status:
        return jsonify({"error": "Repair has no further status"}), 400

    updated = dict(existing, status=next_status)
    if next_status == "delivered":
        updated["deliveredAt"] = now_iso()
    backend.update_repair(existing["id"], updated)
    shop.upsert("repairs", updated)
    label = helpers.repair_status_label(next_status)
    return jsonify({"success": True, "message": f"Status updated: {label}", "repair": updated})


@app.route("/api/repairs/<repair_id>", methods=["DELETE"])
@login_required
def delete_repair(repair_id):
    backend.delete_repair(repair_id)
    shop.remove("repairs", repair_id)
    return jsonify({"success": True, "message": "Repair record deleted"})


# ---------------------------------------------------------------------------
# Phone stock & phone sales API
# ---------------------------------------------------------------------------

@app.route("/api/phone-stocks", methods=["GET"])
@login_required
def get_phone_stocks():
    stocks = shop.get("phoneStocks")
    in_stock = reports.in_stock_phones(stocks)
    return jsonify({
        "items": reports.in_stock_phones(stocks, request.args.get("q", "")),
        "inStockCount": len(in_stock),
        "stockValue": _fp(sum(ps.get("purchasePrice", 0) for ps in in_stock)),
    })


@app.route("/api/phone-stocks", methods=["POST"])
@login_required
def add_phone_stock():
    data = _payload()
    brand = (data.get("brand") or "").strip()
    model = (data.get("model") or "").strip()
    if not brand or not model:
        return jsonify({"error": "Brand and model are required"}), 400

    created = backend.create_phone_stock({
        "brand": brand,
        "model": model,
        "imei": (data.get("imei") or "").strip(),
        "purchasePrice": to_float(data.get("purchasePrice")),
        "salePrice": to_float(data.get("salePrice")),
        "notes": data.get("notes", ""),
        "status": "in_stock",
    })
    if created:
        created = dict(created, status="in_stock")
        shop.upsert("phoneStocks", created)
    return jsonify({"success": True, "message": "Phone added to stock", "phoneStock": created}), 201


@app.route("/api/phone-stocks/<stock_id>", methods=["PUT"])
@login_required
def update_phone_stock(stock_id):
    existing = shop.find("phoneStocks", stock_id)
    if not existing:
        return _not_found("Phone")

    data = _payload()
    changes = {}
    for key in ("brand", "model", "imei", "notes"):
        if key in data:
            changes[key] = (data[key] or "").strip()
    for key in ("purchasePrice", "salePrice"):
        if key in data:
            changes[key] = to_float(data[key])

    updated = backend.update_phone_stock(existing["id"], changes)
    record = {**existing, **changes, **(updated or {})}
    shop.upsert("phoneStocks", record)
    return jsonify({"success": True, "message": "Phone updated", "phoneStock": record})


@app.route("/api/phone-stocks/<stock_id>", methods=["DELETE"])
@login_required
def delete_phone_stock(stock_id):
    backend.delete_phone_stock(stock_id)
    shop.remove("phoneStocks", stock_id)
    return jsonify({"success": True, "message": "Phone removed from stock"})


@app.route("/api/phone-stocks/<stock_id>/sell", methods=["POST"])
@login_required
def sell_phone(stock_id):
    stock = shop.find("phoneStocks", stock_id)
    if not stock:
        return _not_found("Phone")
    if stock.get("status") != "in_stock":
        return jsonify({"error": "Phone is already sold"}), 400

    data = _payload()
    phone_sale = helpers.build_phone_sale(
        stock,
        to_float(data.get("salePrice", stock.get("salePrice", 0))),
        payment_method=data.get("paymentMethod", "cash"),
        customer_name=(data.get("customerName") or "").strip(),
        customer_phone=(data.get("customerPhone") or "").strip(),
    )
    created = backend.create_phone_sale(phone_sale)
    backend.update_phone_stock_status(stock["id"], "sold")

    if data.get("addCustomer"):
        _remember_customer(data.get("customerName"), data.get("customerPhone"))

    record = created or phone_sale
    shop.upsert("phoneSales", record)
    shop.upsert("phoneStocks", dict(stock, status="sold"))
    return jsonify({"success": True, "message": "Phone sale recorded", "phoneSale": record}), 201


@app.route("/api/phone-sales", methods=["GET"])
@login_required
def get_phone_sales():
    sales = sorted(shop.get("phoneSales"), key=lambda s: s.get("date") or "", reverse=True)
    return jsonify({
        "items": sales,
        "totalRevenue": _fp(sum(s.get("salePrice", 0) for s in sales)),
        "totalProfit": _fp(sum(s.get("profit", 0) for s in sales)),
    })


@app.route("/api/phone-sales/<sale_id>", methods=["DELETE"])
@login_required
def delete_phone_sale(sale_id):
    backend.delete_phone_sale(sale_id)
    shop.remove("phoneSales", sale_id)
    return jsonify({"success": True, "message": "Phone sale deleted"})


# ---------------------------------------------------------------------------
# Customers API
# ---------------------------------------------------------------------------

def _remember_customer(name, phone):
    """Create a customer record for a quick-added name unless one already matches."""
    name = (name or "").strip()
    phone = (phone or "").strip()
    if not name or reports.match_customer(shop.get("customers"), name, phone):
        return None
    created = backend.create_customer({"name": name, "phone": phone, "email": "", "address": "", "notes": ""})
    if created:
        shop.upsert("customers", created)
    return created


def _customer_period():
    return reports.period_range(
        request.args.get("period", "thisMonth"),
        custom_start=request.args.get("start"),
        custom_end=request.args.get("end"),
    )


def _stats_summary(stats):
    if not stats:
        return {"totalSpent": 0, "totalProfit": 0, "repairCount": 0,
                "phoneSaleCount": 0, "productSaleCount": 0, "lastTx": ""}
    return {k: v for k, v in stats.items() if k not in ("repairs", "phoneSales", "productSales")}


@app.route("/api/customers", methods=["GET"])
@login_required
def list_customers():
    customers = shop.get("customers")
    start, end = _customer_period()
    stats = reports.customer_stats(
        customers, shop.get("repairs"), shop.get("phoneSales"), shop.get("sales"), start, end
    )
    ordered = reports.sort_customers(
        customers, stats, request.args.get("sort", "lastTransaction"), request.args.get("q", "")
    )
    totals = reports.customer_balance_totals(customers)
    return jsonify({
        "items": [dict(c, stats=_stats_summary(stats.get(c["id"]))) for c in ordered],
        "totals": totals,
        "display": _display(totals, "totalDebt", "totalCredit", "netBalance"),
    })


@app.route("/api/customers/<customer_id>", methods=["GET"])
@login_required
def get_customer(customer_id):
    customer = shop.find("customers", customer_id)
    if not customer:
        return _not_found("Customer")
    start, end = _customer_period()
    stats = reports.customer_stats(
        [customer], shop.get("repairs"), shop.get("phoneSales"), shop.get("sales"), start, end
    )
    return jsonify(dict(customer, stats=stats.get(customer["id"]) or _stats_summary(None)))


@app.route("/api/customers", methods=["POST"])
@login_required
def create_customer():
    data = _payload()
    name = (data.get("name") or "").strip()
    if not name:
        return jsonify({"error": "Customer name is required"}), 400

    created = backend.create_customer({
        "name": name,
        "phone": (data.get("phone") or "").strip(),
        "email": (data.get("email") or "").strip(),
        "address": (data.get("address") or "").strip(),
        "notes": (data.get("notes") or "").strip(),
    })
    if created:
        shop.upsert("customers", created)
    return jsonify({"success": True, "message": "Customer added", "customer": created}), 201


@app.route("/api/customers/<customer_id>", methods=["PUT"])
@login_required
def update_customer(customer_id):
    existing = shop.find("customers", customer_id)
    if not existing:
        return _not_found("Customer")

    data = _payload()
    changes = {k: (data[k] or "").strip() for k in ("name", "phone", "email", "address", "notes") if k in data}
    if "name" in changes and not changes["name"]:
        return jsonify({"error": "Customer name is required"}), 400

    updated = backend.update_customer(existing["id"], changes)
    record = {**existing, **changes, **(updated or {})}
    shop.upsert("customers", record)
    return jsonify({"success": True, "message": "Customer updated", "customer": record})


@app.route("/api/customers/<customer_id>", methods=["DELETE"])
@login_required
def delete_customer(customer_id):
    backend.delete_customer(customer_id)
    shop.remove("customers", customer_id)
    return jsonify({"success": True, "message": "Customer deleted"})


@app.route("/api/customers/<customer_id>/transactions", methods=["POST"])
@login_required
def add_customer_transaction(customer_id):
    existing = shop.find("customers", customer_id)
    if not existing:
        return _not_found("Customer")

    data = _payload()
    amount = to_float(data.get("amount"))
    if amount <= 0:
        return jsonify({"error": "Enter a valid amount"}), 400
    tx_type = data.get("type", "debt")
    if tx_type not in reports.CUSTOMER_TX_TYPES:
        return jsonify({"error": f"Unknown transaction type: {tx_type}"}), 400

    changes = reports.apply_customer_transaction(existing, tx_type, amount)
    backend.update_customer(existing["id"], changes)
    record = dict(existing, **changes)
    shop.upsert("customers", record)
    return jsonify({"success": True, "message": "Transaction recorded", "customer": record})


@app.route("/api/customers/import", methods=["POST"])
@login_required
def import_customers():
    entries = reports.customers_to_import(
        shop.get("customers"), shop.get("repairs"), shop.get("phoneSales"), shop.get("sales")
    )
    if not entries:
        return jsonify({"error": "No new customers found to import"}), 400

    imported = []
    for entry in entries:
        try:
            created = backend.create_customer(dict(entry, email="", address="", notes=""))
        except BackendError as e:
            print(f"[IMPORT] Skipping customer {entry['name']}: {e}")
            continue
        if created:
            shop.upsert("customers", created)
            imported.append(created)

    return jsonify({
        "success": True,
        "message": f"{len(imported)} customer(s) imported",
        "imported": imported,
    })


# ---------------------------------------------------------------------------
# Analytics API
# ---------------------------------------------------------------------------

@app.route("/api/analytics", methods=["GET"])
@login_required
def get_analytics():
    sales = shop.get("sales")
    repairs = shop.get("repairs")
    phone_sales = shop.get("phoneSales")
    expenses = shop.get("expenses")

    totals = reports.analytics_totals(sales, repairs, phone_sales, expenses)
    return jsonify({
        "dailyTrend": reports.daily_trend(sales, repairs, phone_sales, expenses,
                                          days=to_int(request.args.get("days", 30), 30)),
        "categories": reports.category_breakdown(sales),
        "payments": reports.payment_breakdown(sales, repairs, phone_sales),
        "topProducts": reports.top_products(sales),
        "topCustomers": reports.top_customers(sales, repairs, phone_sales),
        "totals": totals,
        "display": _display(totals, "totalRevenue", "totalProfit", "totalExpenses", "netProfit"),
    })


# ---------------------------------------------------------------------------
# Customer requests API
# ---------------------------------------------------------------------------

def _request_from_form(data, existing=None):
    existing = existing or {}
    return {
        "customerName": (data.get("customerName", existing.get("customerName", "")) or "").strip(),
        "phoneNumber": (data.get("phoneNumber", existing.get("phoneNumber", "")) or "").strip(),
        "productName": (data.get("productName", existing.get("productName", "")) or "").strip(),
        "notes": data.get("notes", existing.get("notes", "")),
        "priority": data.get("priority", existing.get("priority", "normal")),
        "estimatedBudget": to_float(data.get("estimatedBudget", existing.get("estimatedBudget", 0))),
        "status": data.get("status", existing.get("status", "pending")),
        "createdAt": existing.get("createdAt") or now_iso(),
    }


def _validate_request(record):
    if not record["customerName"] or not record["productName"]:
        return "Customer name and product are required"
    if record["priority"] not in ("normal", "urgent"):
        return "Priority must be normal or urgent"
    if record["status"] not in helpers.REQUEST_STATUSES:
        return f"Unknown status: {record['status']}"
    return None


@app.route("/api/requests", methods=["GET"])
@login_required
def get_requests():
    filtered = reports.filter_requests(
        shop.get("requests"), request.args.get("status", "all"), request.args.get("q", "")
    )
    return jsonify({
        "items": [dict(r, statusLabel=helpers.request_status_label(r.get("status"))) for r in filtered],
    })


@app.route("/api/requests", methods=["POST"])
@login_required
def add_request():
    record = _request_from_form(_payload())
    error = _validate_request(record)
    if error:
        return jsonify({"error": error}), 400
    created = backend.create_customer_request(record)
    saved = dict(record, **(created or {}))
    if saved.get("id") is not None:
        shop.upsert("requests", saved)
    return jsonify({"success": True, "message": "Request added", "request": saved}), 201


@app.route("/api/requests/<request_id>", methods=["PUT"])
@login_required
def update_request(request_id):
    existing = shop.find("requests", request_id)
    if not existing:
        return _not_found("Request")
    record = _request_from_form(_payload(), existing)
    error = _validate_request(record)
    if error:
        return jsonify({"error": error}), 400
    record["id"] = existing["id"]
    backend.update_customer_request(existing["id"], record)
    shop.upsert("requests", record)
    return jsonify({"success": True, "message": "Request updated", "request": record})


@app.route("/api/requests/<request_id>/status", methods=["PUT"])
@login_required
def update_request_status(request_id):
    existing = shop.find("requests", request_id)
    if not existing:
        return _not_found("Request")
    status = _payload().get("status")
    if status not in helpers.REQUEST_STATUSES:
        return jsonify({"error": f"Unknown status: {status}"}), 400
    record = dict(existing, status=status)
    backend.update_customer_request(existing["id"], record)
    shop.upsert("requests", record)
    return jsonify({"success": True, "message": "Status updated", "request": record})


@app.route("/api/requests/<request_id>", methods=["DELETE"])
@login_required
def delete_request(request_id):
    backend.delete_customer_request(request_id)
    shop.remove("requests", request_id)
    return jsonify({"success": True, "message": "Request deleted"})


# ---------------------------------------------------------------------------
# Calculator API
# ---------------------------------------------------------------------------

@app.route("/api/calculator/profit", methods=["POST"])
@login_required
def calculate_profit():
    data = _payload()
    result = helpers.profit_calc(
        to_float(data.get("purchasePrice")),
        to_float(data.get("salePrice")),
        to_float(data.get("vatRate", 20), 20),
    )
    return jsonify(result)


@app.route("/api/calculator/vat", methods=["POST"])
@login_required
def calculate_vat():
    data = _payload()
    direction = data.get("direction", "exclusive")
    if direction not in ("inclusive", "exclusive"):
        return jsonify({"error": "Direction must be inclusive or exclusive"}), 400
    result = helpers.vat_calc(to_float(data.get("amount")), to_float(data.get("rate", 20), 20), direction)
    return jsonify(result)


# ---------------------------------------------------------------------------
# Purchases API
# ---------------------------------------------------------------------------

@app.route("/api/purchases", methods=["GET"])
@login_required
def get_purchases():
    purchases = shop.get("purchases")
    filtered = reports.filter_purchases(purchases, request.args.get("q", ""))
    stats = reports.purchase_stats(purchases)
    return jsonify({
        "items": [dict(p, statusLabel=helpers.purchase_status_label(p.get("status"))) for p in filtered],
        "stats": stats,
        "display": _display(stats, "totalAmount", "unpaidAmount"),
        "nextInvoiceNumber": helpers.next_invoice_number(purchases),
    })


@app.route("/api/purchases", methods=["POST"])
@login_required
def create_purchase():
    data = _payload()
    products = shop.get("products")
    try:
        purchase, items = helpers.build_purchase(data, products)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if not purchase["invoiceNumber"]:
        purchase["invoiceNumber"] = helpers.next_invoice_number(shop.get("purchases"))

    created = backend.create_purchase(purchase)
    if not created or not created.get("id"):
        return jsonify({"error": "Purchase could not be saved"}), 502

    backend.create_purchase_items([dict(i, purchaseId=created["id"]) for i in items])

    # Received goods raise stock and refresh the product's purchase price
    received = defaultdict(int)
    last_cost = {}
    for item in items:
        received[str(item["productId"])] += item["quantity"]
        last_cost[str(item["productId"])] = item["unitCost"]
    for product_id, qty in received.items():
        product = shop.find("products", product_id)
        if product:
            backend.update_product(product["id"], dict(
                product, stock=to_int(product.get("stock")) + qty, purchasePrice=last_cost[product_id]
            ))

    shop.load_all()
    return jsonify({"success": True, "message": "Purchase recorded", "purchase": created}), 201


@app.route("/api/purchases/<purchase_id>", methods=["DELETE"])
@login_required
def delete_purchase(purchase_id):
    backend.delete_purchase(purchase_id)
    shop.remove("purchases", purchase_id)
    return jsonify({"success": True, "message": "Purchase deleted"})


@app.route("/api/purchases/<purchase_id>/payments", methods=["GET"])
@login_required
def get_purchase_payments(purchase_id):
    return jsonify(backend.list_payments(purchase_id))


@app.route("/api/purchases/<purchase_id>/payments", methods=["POST"])
@login_required
def add_purchase_payment(purchase_id):
    purchase = shop.find("purchases", purchase_id)
    if not purchase:
        return _not_found("Purchase")

    data = _payload()
    amount = to_float(data.get("amount"))
    if amount <= 0:
        return jsonify({"error": "Enter a valid amount"}), 400
    remaining = to_float(purchase.get("remaining", purchase.get("total", 0)))
    if amount > remaining + 0.005:
        return jsonify({"error": "Payment exceeds the remaining amount"}), 400

    payment = backend.create_payment({
        "purchaseId": purchase["id"],
        "supplierId": purchase.get("supplierId"),
        "amount": amount,
        "paymentDate": data.get("paymentDate") or now_iso(),
        "paymentMethod": data.get("paymentMethod", purchase.get("paymentMethod", "nakit")),
        "receiptNumber": data.get("receiptNumber", ""),
        "notes": data.get("notes", ""),
    })

    changes = helpers.apply_purchase_payment(purchase, amount)
    backend.update_purchase(purchase["id"], changes)
    backend.create_cari_hareket({
        "supplierId": purchase.get("supplierId"),
        "islemTarihi": now_iso(),
        "islemTipi": "odeme",
        "miktar": amount,
        "aciklama": f"Ödeme: {purchase.get('invoiceNumber', '')}",
        "ilgiliId": purchase["id"],
        "faturaNo": purchase.get("invoiceNumber", ""),
        "bakiyeEtkisi": -amount,
    })

    record = dict(purchase, **changes)
    shop.upsert("purchases", record)
    shop.reload("suppliers")
    return jsonify({"success": True, "message": "Payment recorded", "payment": payment, "purchase": record}), 201


# ---------------------------------------------------------------------------
# Expenses API
# ---------------------------------------------------------------------------

def _expense_from_form(data, existing=None):
    existing = existing or {}
    return {
        "name": (data.get("name", existing.get("name", "")) or "").strip(),
        "category": data.get("category", existing.get("category", "Diğer")),
        "amount": to_float(data.get("amount", existing.get("amount", 0))),
        "paymentMethod": data.get("paymentMethod", existing.get("paymentMethod", "nakit")),
        "isRecurring": bool(data.get("isRecurring", existing.get("isRecurring", False))),
        "recurrencePeriod": data.get("recurrencePeriod", existing.get("recurrencePeriod", "")),
        "status": data.get("status", existing.get("status", "odendi")),
        "createdAt": existing.get("createdAt") or now_iso(),
    }


def _validate_expense(record):
    if not record["name"] or record["amount"] <= 0:
        return "Name and a positive amount are required"
    if record["status"] not in helpers.EXPENSE_STATUSES:
        return f"Unknown status: {record['status']}"
    return None


@app.route("/api/expenses", methods=["GET"])
@login_required
def get_expenses():
    expenses = shop.get("expenses")
    category = request.args.get("category", "all")
    filtered = [e for e in expenses if category in ("", "all") or e.get("category") == category]
    stats = reports.expense_stats(expenses)
    return jsonify({
        "items": filtered,
        "categories": helpers.EXPENSE_CATEGORIES,
        "stats": stats,
        "display": _display(stats, "totalExpenses", "thisMonth", "recurringTotal"),
    })


@app.route("/api/expenses", methods=["POST"])
@login_required
def add_expense():
    record = _expense_from_form(_payload())
    error = _validate_expense(record)
    if error:
        return jsonify({"error": error}), 400
    created = backend.create_expense(record)
    saved = dict(record, **(created or {}))
    if saved.get("id") is not None:
        shop.upsert("expenses", saved)
    return jsonify({"success": True, "message": "Expense added", "expense": saved}), 201


@app.route("/api/expenses/<expense_id>", methods=["PUT"])
@login_required
def update_expense(expense_id):
    existing = shop.find("expenses", expense_id)
    if not existing:
        return _not_found("Expense")
    record = _expense_from_form(_payload(), existing)
    error = _validate_expense(record)
    if error:
        return jsonify({"error": error}), 400
    record["id"] = existing["id"]
    backend.update_expense(existing["id"], record)
    shop.upsert("expenses", record)
    return jsonify({"success": True, "message": "Expense updated", "expense": record})


@app.route("/api/expenses/<expense_id>", methods=["DELETE"])
@login_required
def delete_expense(expense_id):
    backend.delete_expense(expense_id)
    shop.remove("expenses", expense_id)
    return jsonify({"success": True, "message": "Expense deleted"})


# ---------------------------------------------------------------------------
# Suppliers API
# ---------------------------------------------------------------------------

SUPPLIER_FIELDS = ("name", "contactName", "phone", "whatsapp", "email", "address",
                   "city", "notes", "paymentTerms", "currency")

# Ledger entry type -> sign of its effect on what we owe the supplier
LEDGER_SIGNS = {"alis": 1, "borc_ekleme": 1, "odeme": -1, "iade": -1, "alacak_ekleme": -1}


@app.route("/api/suppliers", methods=["GET"])
@login_required
def list_suppliers():
    active = reports.active_suppliers(shop.get("suppliers"), request.args.get("q", ""))
    debts = reports.supplier_debts(shop.get("repairs"))
    items = [dict(s, repairDebt=(debts.get(s["id"]) or {}).get("total", 0)) for s in active]
    all_active = reports.active_suppliers(shop.get("suppliers"))
    stats = {
        "activeCount": len(all_active),
        "totalRepairDebt": sum((debts.get(s["id"]) or {}).get("total", 0) for s in all_active),
        "debtCount": sum(1 for s in all_active if (debts.get(s["id"]) or {}).get("total", 0) > 0),
    }
    return jsonify({"items": items, "stats": stats, "display": _display(stats, "totalRepairDebt")})


@app.route("/api/suppliers", methods=["POST"])
@login_required
def create_supplier():
    data = _payload()
    name = (data.get("name") or "").strip()
    if not name:
        return jsonify({"error": "Supplier name is required"}), 400

    record = {k: (data.get(k) or "").strip() for k in SUPPLIER_FIELDS}
    record["paymentTerms"] = record["paymentTerms"] or "pesin"
    record["currency"] = record["currency"] or "TRY"
    record["isActive"] = True
    created = backend.create_supplier(record)
    shop.reload("suppliers")
    return jsonify({"success": True, "message": f"Supplier '{name}' created", "supplier": created}), 201


@app.route("/api/suppliers/<supplier_id>", methods=["PUT"])
@login_required
def update_supplier(supplier_id):
    existing = shop.find("suppliers", supplier_id)
    if not existing:
        return _not_found("Supplier")

    data = _payload()
    changes = {k: (data[k] or "").strip() for k in SUPPLIER_FIELDS if k in data}
    if "name" in changes and not changes["name"]:
        return jsonify({"error": "Supplier name is required"}), 400
    if "isActive" in data:
        changes["isActive"] = bool(data["isActive"])

    updated = backend.update_supplier(existing["id"], changes)
    record = {**existing, **changes, **(updated or {})}
    shop.upsert("suppliers", record)
    return jsonify({"success": True, "message": f"Supplier '{record.get('name')}' updated", "supplier": record})


@app.route("/api/suppliers/<supplier_id>", methods=["DELETE"])
@login_required
def delete_supplier(supplier_id):
    existing = shop.find("suppliers", supplier_id)
    if not existing:
        return _not_found("Supplier")
    # Purchases and ledger entries keep pointing at the supplier, so it is only deactivated
    backend.update_supplier(existing["id"], {"isActive": False})
    shop.upsert("suppliers", dict(existing, isActive=False))
    return jsonify({"success": True, "message": f"Supplier '{existing.get('name')}' deactivated"})


@app.route("/api/suppliers/<supplier_id>/ledger", methods=["GET"])
@login_required
def supplier_ledger(supplier_id):
    supplier = shop.find("suppliers", supplier_id)
    if not supplier:
        return _not_found("Supplier")
    debts = reports.supplier_debts(shop.get("repairs")).get(supplier["id"]) or {"total": 0, "repairs": []}
    return jsonify({
        "supplier": supplier,
        "entries": backend.list_cari_hareketler(supplier["id"]),
        "repairs": debts["repairs"],
        "repairDebt": debts["total"],
        "balance": _fp(supplier.get("balance") or 0),
    })


@app.route("/api/suppliers/<supplier_id>/ledger", methods=["POST"])
@login_required
def add_ledger_entry(supplier_id):
    supplier = shop.find("suppliers", supplier_id)
    if not supplier:
        return _not_found("Supplier")

    data = _payload()
    entry_type = data.get("islemTipi", "alis")
    if entry_type not in LEDGER_SIGNS:
        return jsonify({"error": f"Unknown entry type: {entry_type}"}), 400
    amount = to_float(data.get("miktar"))
    if amount <= 0:
        return jsonify({"error": "Enter a valid amount"}), 400

    entry = {
        "supplierId": supplier["id"],
        "islemTarihi": data.get("islemTarihi") or now_iso(),
        "islemTipi": entry_type,
        "miktar": amount,
        "aciklama": data.get("aciklama", ""),
        "bakiyeEtkisi": LEDGER_SIGNS[entry_type] * amount,
    }
    if data.get("faturaNo"):
        entry["faturaNo"] = data["faturaNo"]
    if data.get("ilgiliId"):
        entry["ilgiliId"] = data["ilgiliId"]

    result = backend.create_cari_hareket(entry)
    shop.reload("suppliers")
    return jsonify({"success": True, "message": "Ledger entry recorded", "result": result}), 201


@app.route("/api/suppliers/<supplier_id>/balance", methods=["POST"])
@login_required
def adjust_supplier_balance(supplier_id):
    supplier = shop.find("suppliers", supplier_id)
    if not supplier:
        return _not_found("Supplier")
    data = _payload()
    if "amount" not in data:
        return jsonify({"error": "Amount is required"}), 400
    backend.update_supplier_balance(supplier["id"], to_float(data["amount"]))
    shop.reload("suppliers")
    return jsonify({"success": True, "message": "Balance updated", "supplier": shop.find("suppliers", supplier_id)})


# ---------------------------------------------------------------------------
# Reminders API
# ---------------------------------------------------------------------------

REMINDER_FIELDS = ("title", "description", "remindAt", "repeatType", "phoneNumber",
                   "priority", "category", "isCompleted")


def _validate_reminder(record):
    if not (record.get("title") or "").strip():
        return "Title is required"
    if not record.get("remindAt"):
        return "Date and time are required"
    if record.get("priority") not in reminders.PRIORITIES:
        return f"Unknown priority: {record.get('priority')}"
    if record.get("repeatType") not in reminders.REPEAT_TYPES:
        return f"Unknown repeat type: {record.get('repeatType')}"
    return None


def _find_reminder(reminder_id):
    for r in backend.list_reminders():
        if str(r.get("id")) == str(reminder_id):
            return r
    return None


@app.route("/api/reminders", methods=["GET"])
@login_required
def get_reminders():
    view = request.args.get("filter", "upcoming")
    if view not in reminders.VIEWS:
        return jsonify({"error": f"Unknown filter: {view}"}), 400
    all_reminders = backend.list_reminders()
    now = helpers.parse_ts(now_iso())
    items = reminders.filter_reminders(all_reminders, view, request.args.get("category", "all"), now)
    return jsonify({
        "items": [
            dict(r, relative=reminders.relative_time(r.get("remindAt"), now),
                 overdue=reminders.is_overdue(r, now))
            for r in items
        ],
        "counts": reminders.reminder_counts(all_reminders, now),
        "categories": reminders.CATEGORIES,
        "whatsappConfigured": reminders.is_configured(load_settings()),
    })


@app.route("/api/reminders", methods=["POST"])
@login_required
def add_reminder():
    data = _payload()
    record = {
        "title": (data.get("title") or "").strip(),
        "description": data.get("description", ""),
        "remindAt": data.get("remindAt"),
        "repeatType": data.get("repeatType", "none"),
        "phoneNumber": (data.get("phoneNumber") or "").strip(),
        "priority": data.get("priority", "medium"),
        "category": data.get("category", "genel"),
        "isSent": False,
        "isCompleted": False,
    }
    error = _validate_reminder(record)
    if error:
        return jsonify({"error": error}), 400
    created = backend.create_reminder(record)
    return jsonify({"success": True, "message": "Reminder created", "reminder": created}), 201


@app.route("/api/reminders/<reminder_id>", methods=["PUT"])
@login_required
def update_reminder(reminder_id):
    existing = _find_reminder(reminder_id)
    if not existing:
        return _not_found("Reminder")

    data = _payload()
    changes = {k: data[k] for k in REMINDER_FIELDS if k in data}
    merged = dict(existing, **changes)
    error = _validate_reminder(merged)
    if error:
        return jsonify({"error": error}), 400
    # A rescheduled reminder goes out again
    if "remindAt" in changes and changes["remindAt"] != existing.get("remindAt"):
        changes["isSent"] = False

    updated = backend.update_reminder(existing["id"], changes)
    return jsonify({"success": True, "message": "Reminder updated", "reminder": updated or dict(merged, **changes)})


@app.route("/api/reminders/<reminder_id>/toggle", methods=["POST"])
@login_required
def toggle_reminder(reminder_id):
    existing = _find_reminder(reminder_id)
    if not existing:
        return _not_found("Reminder")
    updated = backend.update_reminder(existing["id"], {"isCompleted": not existing.get("isCompleted")})
    return jsonify({"success": True, "reminder": updated})


@app.route("/api/reminders/<reminder_id>", methods=["DELETE"])
@login_required
def delete_reminder(reminder_id):
    backend.delete_reminder(reminder_id)
    return jsonify({"success": True, "message": "Reminder deleted"})


@app.route("/api/reminders/settings", methods=["GET"])
@login_required
def get_reminder_settings():
    settings = load_settings()
    return jsonify({
        "waInstance": settings.get("waInstance", ""),
        "waPhone": settings.get("waPhone", ""),
        "hasToken": bool(settings.get("waToken")),
        "configured": reminders.is_configured(settings),
    })


@app.route("/api/reminders/settings", methods=["PUT"])
@login_required
def update_reminder_settings():
    data = _payload()
    changes = {k: (data[k] or "").strip() for k in ("waInstance", "waToken", "waPhone") if k in data}
    settings = save_settings(changes)
    return jsonify({"success": True, "message": "Settings saved", "configured": reminders.is_configured(settings)})


@app.route("/api/reminders/test", methods=["POST"])
@login_required
def test_whatsapp():
    settings = load_settings()
    if not reminders.is_configured(settings) or not settings.get("waPhone"):
        return jsonify({"error": "WhatsApp settings are incomplete"}), 400
    if not reminders.send_whatsapp(settings, settings["waPhone"], reminders.TEST_MESSAGE):
        return jsonify({"error": "Message could not be sent, check the settings"}), 502
    return jsonify({"success": True, "message": "Test message sent"})


@app.route("/api/reminders/check", methods=["POST"])
@login_required
def check_reminders():
    _, sent = reminders.check_due_reminders()
    return jsonify({"success": True, "sent": len(sent)})


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.route("/api/health", methods=["GET"])
def health_check():
    """Health check endpoint for monitoring and platform health checks."""
    return jsonify({
        "status": "healthy",
        "backendConfigured": bool(backend.SUPABASE_URL and backend.SUPABASE_ANON_KEY),
        "loadedAt": shop.loaded_at,
        "loadErrors": shop.errors,
        "reminderPoller": bool(_poller and _poller.is_alive()),
    })


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------

_poller = None


def start_reminder_poller():
    global _poller
    if _poller is None or not _poller.is_alive():
        _poller = reminders.ReminderPoller()
        _poller.start()
    return _poller


# Start polling on import (for gunicorn)
if os.environ.get("REMINDER_POLLING", "1") == "1":
    start_reminder_poller()

if __name__ == "__main__":
    if not backend.SUPABASE_URL:
        print("[BACKEND] SUPABASE_URL is not set, every data call will fail")

    port = int(os.environ.get("PORT", 8000))
    debug = not _is_production
    # The reloader would import this module twice and start a second poller
    app.run(debug=debug, host="0.0.0.0", port=port, use_reloader=False)
