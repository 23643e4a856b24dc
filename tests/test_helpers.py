from datetime import datetime

import pytest

import helpers

PRODUCTS = [
    {"id": 1, "name": "Ekran Koruyucu", "salePrice": 150, "purchasePrice": 50, "stock": 10},
    {"id": 2, "name": "Şarj Kablosu", "salePrice": 200, "purchasePrice": 120, "stock": 3},
]


def test_stock_status_thresholds():
    assert helpers.stock_status(0, 5) == "stoksuz"
    assert helpers.stock_status(5, 5) == "kritik"
    assert helpers.stock_status(6, 5) == "stokta"


def test_repair_status_progression():
    assert helpers.next_repair_status("in_progress") == "waiting_parts"
    assert helpers.next_repair_status("completed") == "delivered"
    assert helpers.next_repair_status("delivered") is None
    assert helpers.next_repair_status("cancelled") is None


def test_labels_fall_back_to_defaults():
    assert helpers.repair_status_label("waiting_parts") == "Parça Bekliyor"
    assert helpers.repair_status_label("bogus") == "İşlemde"
    assert helpers.payment_method_label("card") == "Kart"
    assert helpers.payment_method_label("crypto") == "crypto"


def test_to_float_and_to_int_tolerate_junk():
    assert helpers.to_float("12.5") == 12.5
    assert helpers.to_float(None) == 0.0
    assert helpers.to_int("3.0") == 3
    assert helpers.to_int("abc", 7) == 7


def test_parse_ts_handles_naive_and_zulu():
    assert helpers.parse_ts("2026-03-01T10:00:00") == datetime(2026, 3, 1, 10, 0)
    assert helpers.parse_ts("") is None
    assert helpers.parse_ts("not a date") is None
    parsed = helpers.parse_ts("2026-03-01T10:00:00Z")
    assert parsed.tzinfo is None


def test_build_sale_totals():
    sale = helpers.build_sale(
        [{"productId": 1, "quantity": 2}, {"productId": "2", "quantity": 1}],
        PRODUCTS, payment_method="card", customer_name="Ayşe", now="2026-03-01T10:00:00",
    )
    assert sale["totalPrice"] == 500
    assert sale["totalProfit"] == 280
    assert sale["paymentDetails"] == {"card": 500}
    assert sale["customerInfo"] == {"name": "Ayşe", "phone": ""}
    assert sale["items"][0]["profit"] == 200


def test_build_sale_rejects_bad_carts():
    with pytest.raises(ValueError):
        helpers.build_sale([], PRODUCTS)
    with pytest.raises(ValueError):
        helpers.build_sale([{"productId": 99, "quantity": 1}], PRODUCTS)
    with pytest.raises(ValueError):
        helpers.build_sale([{"productId": 1, "quantity": 0}], PRODUCTS)


def test_build_sale_without_customer_has_no_customer_info():
    sale = helpers.build_sale([{"productId": 1, "quantity": 1}], PRODUCTS)
    assert "customerInfo" not in sale


def test_build_repair_profit_and_delivery_stamp():
    repair = helpers.build_repair(
        {"customerName": " Ali ", "deviceInfo": "iPhone 12", "repairCost": "1500", "partsCost": "600",
         "status": "delivered"},
        now="2026-03-01T12:00:00",
    )
    assert repair["customerName"] == "Ali"
    assert repair["profit"] == 900
    assert repair["deliveredAt"] == "2026-03-01T12:00:00"

    reopened = helpers.build_repair({"status": "in_progress"}, existing=repair)
    assert "deliveredAt" not in reopened
    assert reopened["createdAt"] == repair["createdAt"]


def test_build_phone_sale_profit():
    stock = {"brand": "Samsung", "model": "A54", "imei": "123", "purchasePrice": 9000}
    sale = helpers.build_phone_sale(stock, 11000, customer_name="Veli")
    assert sale["profit"] == 2000
    assert sale["customerName"] == "Veli"
    assert "customerPhone" not in sale


def test_next_invoice_number():
    assert helpers.next_invoice_number([], 2026) == "FTR-2026-001"
    assert helpers.next_invoice_number([{}] * 11, 2026) == "FTR-2026-012"


def test_build_purchase():
    purchase, items = helpers.build_purchase(
        {"supplierId": 4, "items": [{"productId": 1, "quantity": 5, "unitCost": 40}], "discount": 20},
        PRODUCTS,
    )
    assert items == [{"productId": 1, "quantity": 5, "unitCost": 40.0, "totalCost": 200.0}]
    assert purchase["subtotal"] == 200
    assert purchase["total"] == 180
    assert purchase["remaining"] == 180
    assert purchase["status"] == "odenmedi"


def test_build_purchase_requires_supplier_and_items():
    with pytest.raises(ValueError):
        helpers.build_purchase({"items": [{"productId": 1}]}, PRODUCTS)
    with pytest.raises(ValueError):
        helpers.build_purchase({"supplierId": 1, "items": []}, PRODUCTS)


def test_build_purchase_rejects_bad_quantities_and_costs():
    form = {"supplierId": 1, "items": [{"productId": 1, "quantity": 0, "unitCost": 40}]}
    with pytest.raises(ValueError):
        helpers.build_purchase(form, PRODUCTS)
    form["items"][0]["quantity"] = -5
    with pytest.raises(ValueError):
        helpers.build_purchase(form, PRODUCTS)
    form["items"][0].update(quantity=2, unitCost=-1)
    with pytest.raises(ValueError):
        helpers.build_purchase(form, PRODUCTS)
    # Free goods are allowed
    form["items"][0]["unitCost"] = 0
    purchase, items = helpers.build_purchase(form, PRODUCTS)
    assert purchase["total"] == 0
    assert items[0]["quantity"] == 2


def test_apply_purchase_payment_statuses():
    purchase = {"total": 300, "paidAmount": 0}
    assert helpers.apply_purchase_payment(purchase, 100) == {
        "paidAmount": 100, "remaining": 200, "status": "kismi_odendi"}
    assert helpers.apply_purchase_payment({"total": 300, "paidAmount": 100}, 200)["status"] == "odendi"


def test_profit_calc():
    result = helpers.profit_calc(100, 150, 20)
    assert result["grossProfit"] == 50
    assert result["margin"] == 50
    assert result["vatFromSale"] == pytest.approx(25)
    assert result["netProfit"] == pytest.approx(25)
    assert helpers.profit_calc(0, 100)["margin"] == 0


def test_vat_calc_directions():
    exclusive = helpers.vat_calc(100, 20)
    assert exclusive["base"] == 100
    assert exclusive["vat"] == pytest.approx(20)
    assert exclusive["total"] == pytest.approx(120)
    inclusive = helpers.vat_calc(120, 20, "inclusive")
    assert inclusive["base"] == pytest.approx(100)
    assert inclusive["vat"] == pytest.approx(20)
