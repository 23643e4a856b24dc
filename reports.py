"""
reports.py — Aggregations behind the KPI cards, tables and analytics charts.

Everything here is a pure function over the loaded collections: sums,
filters and sorts. Timestamps are compared as naive local datetimes.
"""

from collections import defaultdict
from datetime import datetime, timedelta

from helpers import parse_ts, payment_method_label, stock_status

EPOCH_START = datetime(2020, 1, 1)


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------

def period_range(period, now=None, custom_start=None, custom_end=None):
    """Return (start, end) for 'thisMonth', 'lastMonth', 'all' or 'custom'."""
    now = now or datetime.now()
    if period == "thisMonth":
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0), now
    if period == "lastMonth":
        first_this = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        last_prev = first_this - timedelta(days=1)
        start = last_prev.replace(day=1)
        end = last_prev.replace(hour=23, minute=59, second=59)
        return start, end
    if period == "custom":
        start = parse_ts(custom_start) or EPOCH_START
        end = parse_ts(custom_end)
        end = end.replace(hour=23, minute=59, second=59) if end else now
        return start, end
    return EPOCH_START, now


def in_range(value, start, end):
    ts = parse_ts(value)
    return ts is not None and start <= ts <= end


def active_repairs(repairs):
    return [r for r in repairs if r.get("status") != "cancelled"]


# ---------------------------------------------------------------------------
# Sales page
# ---------------------------------------------------------------------------

def sales_summary(sales, repairs, phone_sales, suppliers, start, end):
    period_sales = [s for s in sales if in_range(s.get("date"), start, end)]
    period_repairs = [r for r in active_repairs(repairs) if in_range(r.get("createdAt"), start, end)]
    period_phones = [p for p in phone_sales if in_range(p.get("date"), start, end)]

    revenue = (sum(s.get("totalPrice", 0) for s in period_sales)
               + sum(r.get("repairCost", 0) for r in period_repairs)
               + sum(p.get("salePrice", 0) for p in period_phones))
    profit = (sum(s.get("totalProfit", 0) for s in period_sales)
              + sum(r.get("profit", 0) for r in period_repairs)
              + sum(p.get("profit", 0) for p in period_phones))
    return {
        "sales": period_sales,
        "repairs": period_repairs,
        "phoneSales": period_phones,
        "totalRevenue": revenue,
        "totalProfit": profit,
        "totalTransactions": len(period_sales) + len(period_repairs) + len(period_phones),
        "supplierBalance": sum(s.get("balance") or 0 for s in suppliers),
    }


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

def _on_day(value, day):
    ts = parse_ts(value)
    return ts is not None and ts.date() == day


def daily_trend(sales, repairs, phone_sales, expenses, days=30, today=None):
    """Revenue, profit and expense per day for the last ``days`` days, oldest first."""
    today = today or datetime.now().date()
    live_repairs = active_repairs(repairs)
    trend = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        day_sales = [s for s in sales if _on_day(s.get("date"), day)]
        day_repairs = [r for r in live_repairs if _on_day(r.get("createdAt"), day)]
        day_phones = [p for p in phone_sales if _on_day(p.get("date"), day)]
        trend.append({
            "date": day.isoformat(),
            "revenue": (sum(s.get("totalPrice", 0) for s in day_sales)
                        + sum(r.get("repairCost", 0) for r in day_repairs)
                        + sum(p.get("salePrice", 0) for p in day_phones)),
            "profit": (sum(s.get("totalProfit", 0) for s in day_sales)
                       + sum(r.get("profit", 0) for r in day_repairs)
                       + sum(p.get("profit", 0) for p in day_phones)),
            "expense": sum(e.get("amount", 0) for e in expenses if _on_day(e.get("createdAt"), day)),
        })
    return trend


def category_breakdown(sales, limit=8):
    """Sales revenue grouped by the first word of the product name."""
    totals = defaultdict(float)
    for sale in sales:
        for item in sale.get("items") or []:
            name = (item.get("productName") or "").split(" ")[0] or "Diğer"
            totals[name] += item.get("salePrice", 0) * item.get("quantity", 0)
    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)[:limit]
    return [{"name": name, "value": value} for name, value in ranked]


def _amount(record):
    return record.get("totalPrice") or record.get("repairCost") or record.get("salePrice") or 0


def payment_breakdown(sales, repairs, phone_sales):
    totals = defaultdict(float)
    for record in [*sales, *repairs, *phone_sales]:
        label = payment_method_label(record.get("paymentMethod") or "cash")
        totals[label] += _amount(record)
    return [{"name": name, "value": value} for name, value in totals.items()]


def top_products(sales, limit=5):
    totals = {}
    for sale in sales:
        for item in sale.get("items") or []:
            entry = totals.setdefault(item.get("productId"), {
                "name": item.get("productName", ""), "qty": 0, "revenue": 0.0})
            entry["qty"] += item.get("quantity", 0)
            entry["revenue"] += item.get("salePrice", 0) * item.get("quantity", 0)
    return sorted(totals.values(), key=lambda e: e["revenue"], reverse=True)[:limit]


def top_customers(sales, repairs, phone_sales, limit=5):
    totals = {}
    for record in [*sales, *repairs, *phone_sales]:
        name = (record.get("customerInfo") or {}).get("name") or record.get("customerName")
        if not name:
            continue
        entry = totals.setdefault(name, {"name": name, "total": 0.0, "count": 0})
        entry["total"] += _amount(record)
        entry["count"] += 1
    return sorted(totals.values(), key=lambda e: e["total"], reverse=True)[:limit]


def analytics_totals(sales, repairs, phone_sales, expenses):
    live_repairs = active_repairs(repairs)
    revenue = (sum(s.get("totalPrice", 0) for s in sales)
               + sum(r.get("repairCost", 0) for r in live_repairs)
               + sum(p.get("salePrice", 0) for p in phone_sales))
    profit = (sum(s.get("totalProfit", 0) for s in sales)
              + sum(r.get("profit", 0) for r in live_repairs)
              + sum(p.get("profit", 0) for p in phone_sales))
    total_expenses = sum(e.get("amount", 0) for e in expenses)
    return {
        "totalRevenue": revenue,
        "totalProfit": profit,
        "totalExpenses": total_expenses,
        "netProfit": profit - total_expenses,
    }


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def filter_products(products, search="", category_id="all", stock_filter="all"):
    q = (search or "").lower()
    result = []
    for p in products:
        if q and q not in (p.get("name") or "").lower() and q not in (p.get("barcode") or ""):
            continue
        if category_id not in ("", "all") and str(p.get("categoryId")) != str(category_id):
            continue
        if stock_filter not in ("", "all") and stock_status(p.get("stock", 0), p.get("minStock", 0)) != stock_filter:
            continue
        result.append(p)
    return result


def product_stats(products, categories):
    return {
        "totalProducts": len(products),
        "totalValue": sum(p.get("stock", 0) * p.get("purchasePrice", 0) for p in products),
        "criticalCount": sum(1 for p in products if stock_status(p.get("stock", 0), p.get("minStock", 0)) == "kritik"),
        "categoryCount": len(categories),
    }


# ---------------------------------------------------------------------------
# Repairs
# ---------------------------------------------------------------------------

def filter_repairs(repairs, status="all", search=""):
    q = (search or "").lower()
    result = []
    for r in repairs:
        if status not in ("", "all") and r.get("status") != status:
            continue
        if q and q not in (r.get("customerName") or "").lower() and q not in (r.get("deviceInfo") or "").lower():
            continue
        result.append(r)
    return result


def repair_stats(repairs):
    return {
        "totalRepairs": len(repairs),
        "activeRepairs": sum(1 for r in repairs if r.get("status") in ("in_progress", "waiting_parts")),
        "completedRepairs": sum(1 for r in repairs if r.get("status") in ("completed", "delivered")),
        "totalRevenue": sum(r.get("repairCost", 0) for r in active_repairs(repairs)),
    }


# ---------------------------------------------------------------------------
# Phone stock
# ---------------------------------------------------------------------------

def in_stock_phones(phone_stocks, search=""):
    q = (search or "").lower()
    result = []
    for ps in phone_stocks:
        if ps.get("status") != "in_stock":
            continue
        label = f"{ps.get('brand', '')} {ps.get('model', '')}".lower()
        if q and q not in label and q not in (ps.get("imei") or ""):
            continue
        result.append(ps)
    return result


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------

def expense_stats(expenses, now=None):
    now = now or datetime.now()
    this_month = 0.0
    for e in expenses:
        ts = parse_ts(e.get("createdAt"))
        if ts and ts.year == now.year and ts.month == now.month:
            this_month += e.get("amount", 0)
    by_category = defaultdict(float)
    for e in expenses:
        by_category[e.get("category") or "Diğer"] += e.get("amount", 0)
    return {
        "totalExpenses": sum(e.get("amount", 0) for e in expenses),
        "thisMonth": this_month,
        "recurringTotal": sum(e.get("amount", 0) for e in expenses if e.get("isRecurring")),
        "byCategory": sorted(by_category.items(), key=lambda kv: kv[1], reverse=True),
    }


# ---------------------------------------------------------------------------
# Purchases and suppliers
# ---------------------------------------------------------------------------

def filter_purchases(purchases, search=""):
    q = (search or "").lower()
    if not q:
        return list(purchases)
    return [
        p for p in purchases
        if q in (p.get("invoiceNumber") or "").lower()
        or q in ((p.get("supplier") or {}).get("name") or "").lower()
    ]


def purchase_stats(purchases):
    return {
        "totalPurchases": len(purchases),
        "totalAmount": sum(p.get("total") or 0 for p in purchases),
        "unpaidAmount": sum(p.get("remaining") or 0 for p in purchases if p.get("status") != "odendi"),
    }


def supplier_debts(repairs):
    """Parts cost owed per supplier, derived from repair records."""
    debts = {}
    for r in repairs:
        if r.get("supplierId") and r.get("partsCost", 0) > 0:
            entry = debts.setdefault(r["supplierId"], {"total": 0.0, "repairs": []})
            entry["total"] += r["partsCost"]
            entry["repairs"].append(r)
    return debts


def active_suppliers(suppliers, search=""):
    q = (search or "").lower()
    return [
        s for s in suppliers
        if s.get("isActive") is not False and (not q or q in (s.get("name") or "").lower())
    ]


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def match_customer(customers, name, phone):
    """Find the customer a transaction belongs to: same phone, else same name (case-insensitive)."""
    n = (name or "").strip().lower()
    p = (phone or "").strip()
    for c in customers:
        cp = (c.get("phone") or "").strip()
        if p and cp and p == cp:
            return c
        if n and (c.get("name") or "").lower() == n:
            return c
    return None


def _empty_stats():
    return {
        "totalSpent": 0.0, "totalProfit": 0.0,
        "repairCount": 0, "phoneSaleCount": 0, "productSaleCount": 0,
        "lastTx": "", "repairs": [], "phoneSales": [], "productSales": [],
    }


def _touch(stats, when):
    # Records mix local-offset and UTC timestamps, so compare instants
    ts = parse_ts(when)
    if ts is None:
        return
    current = parse_ts(stats["lastTx"])
    if current is None or ts > current:
        stats["lastTx"] = when


def customer_stats(customers, repairs, phone_sales, sales, start, end):
    """Per-customer totals over a period, keyed by customer id."""
    stats = {}

    for r in repairs:
        if not in_range(r.get("createdAt"), start, end):
            continue
        c = match_customer(customers, r.get("customerName"), r.get("customerPhone"))
        if not c:
            continue
        s = stats.setdefault(c["id"], _empty_stats())
        s["totalSpent"] += r.get("repairCost", 0)
        s["totalProfit"] += r.get("profit", 0)
        s["repairCount"] += 1
        s["repairs"].append(r)
        _touch(s, r.get("createdAt"))

    for ps in phone_sales:
        if not in_range(ps.get("date"), start, end):
            continue
        c = match_customer(customers, ps.get("customerName"), ps.get("customerPhone"))
        if not c:
            continue
        s = stats.setdefault(c["id"], _empty_stats())
        s["totalSpent"] += ps.get("salePrice", 0)
        s["totalProfit"] += ps.get("profit", 0)
        s["phoneSaleCount"] += 1
        s["phoneSales"].append(ps)
        _touch(s, ps.get("date"))

    for sale in sales:
        if not in_range(sale.get("date"), start, end):
            continue
        info = sale.get("customerInfo") or {}
        if not info.get("name") and not info.get("phone"):
            continue
        c = match_customer(customers, info.get("name"), info.get("phone"))
        if not c:
            continue
        s = stats.setdefault(c["id"], _empty_stats())
        s["totalSpent"] += sale.get("totalPrice", 0)
        s["totalProfit"] += sale.get("totalProfit", 0)
        s["productSaleCount"] += 1
        s["productSales"].append(sale)
        _touch(s, sale.get("date"))

    return stats


def _tx_count(s):
    if not s:
        return 0
    return s["repairCount"] + s["phoneSaleCount"] + s["productSaleCount"]


def sort_customers(customers, stats, sort_by="lastTransaction", search=""):
    q = (search or "").lower()
    result = [
        c for c in customers
        if not q
        or q in (c.get("name") or "").lower()
        or q in (c.get("phone") or "")
        or q in (c.get("email") or "").lower()
    ]
    if sort_by == "name":
        return sorted(result, key=lambda c: (c.get("name") or "").casefold())
    if sort_by == "totalSpent":
        return sorted(result, key=lambda c: (stats.get(c["id"]) or {}).get("totalSpent", 0), reverse=True)
    if sort_by == "transactions":
        return sorted(result, key=lambda c: _tx_count(stats.get(c["id"])), reverse=True)
    if sort_by == "lastTransaction":
        def last_tx(c):
            return parse_ts((stats.get(c["id"]) or {}).get("lastTx")) or datetime.min
        return sorted(result, key=last_tx, reverse=True)
    return result


def customer_balance_totals(customers):
    debt = sum(c.get("debt") or 0 for c in customers)
    credit = sum(c.get("credit") or 0 for c in customers)
    return {"totalDebt": debt, "totalCredit": credit, "netBalance": debt - credit}


CUSTOMER_TX_TYPES = ("debt", "credit", "payment_received", "payment_made")


def apply_customer_transaction(customer, tx_type, amount):
    """New debt/credit values after a customer account transaction."""
    debt = customer.get("debt") or 0
    credit = customer.get("credit") or 0
    if tx_type == "debt":
        debt += amount
    elif tx_type == "credit":
        credit += amount
    elif tx_type == "payment_received":
        debt = max(0, debt - amount)
    elif tx_type == "payment_made":
        credit = max(0, credit - amount)
    else:
        raise ValueError(f"Unknown transaction type: {tx_type}")
    return {"debt": debt, "credit": credit}


def customers_to_import(customers, repairs, phone_sales, sales):
    """Names (with phones) seen on transactions that have no customer record yet."""
    existing = {(c.get("name") or "").lower() for c in customers}
    found = {}

    def consider(name, phone):
        name = (name or "").strip()
        key = name.lower()
        if not name or key in existing or key in found:
            return
        found[key] = {"name": name, "phone": (phone or "").strip()}

    for r in repairs:
        consider(r.get("customerName"), r.get("customerPhone"))
    for ps in phone_sales:
        consider(ps.get("customerName"), ps.get("customerPhone"))
    for sale in sales:
        info = sale.get("customerInfo") or {}
        consider(info.get("name"), info.get("phone"))
    return list(found.values())


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

def filter_requests(requests, status="all", search=""):
    q = (search or "").lower()
    result = []
    for r in requests:
        if status not in ("", "all") and r.get("status") != status:
            continue
        if q and q not in (r.get("customerName") or "").lower() and q not in (r.get("productName") or "").lower():
            continue
        result.append(r)
    return result
