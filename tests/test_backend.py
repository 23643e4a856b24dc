import pytest

import backend
from backend import BackendError


def test_key_mapping_is_top_level_only():
    row = {"created_at": "2026-01-01", "min_stock": 3, "payment_details": {"cash_amount": 5}}
    mapped = backend.snake_to_camel(row)
    assert mapped == {"createdAt": "2026-01-01", "minStock": 3, "paymentDetails": {"cash_amount": 5}}

    back = backend.camel_to_snake({"purchasePrice": 10, "isActive": True, "name": "x"})
    assert back == {"purchase_price": 10, "is_active": True, "name": "x"}


def test_edge_fetch_raises_on_error_status(fake_backend):
    fake_backend.fail("GET", "/products", status=503)
    with pytest.raises(BackendError) as exc:
        backend.edge_fetch("/products")
    assert exc.value.status == 503
    assert "503" in str(exc.value)


def test_db_fetch_sends_auth_and_representation_headers(fake_backend, monkeypatch):
    seen = {}

    def capture(method, url, params=None, json=None, headers=None, timeout=None):
        seen.update(headers=headers, params=params, url=url)
        return fake_backend.request(method, url, params=params, json=json)

    monkeypatch.setattr(backend.requests, "request", capture)
    backend.list_customers()
    assert seen["url"] == "https://shop.supabase.test/rest/v1/customers"
    assert seen["headers"]["apikey"] == "anon-key"
    assert seen["headers"]["Authorization"] == "Bearer anon-key"
    assert seen["headers"]["Prefer"] == "return=representation"
    assert seen["params"] == {"select": "*", "order": "created_at.desc"}


def test_db_fetch_empty_body_is_none(fake_backend):
    row = fake_backend.add_row("customers", name="Ayşe")
    assert backend.db_fetch("customers", "DELETE", params={"id": f"eq.{row['id']}"}) is None
    assert fake_backend.rest["customers"] == []


def test_rest_rows_come_back_camel_case(fake_backend):
    fake_backend.add_row("phone_stocks", brand="Apple", model="iPhone 13", purchase_price=20000, status="in_stock")
    stocks = backend.list_phone_stocks()
    assert stocks[0]["purchasePrice"] == 20000
    assert "purchase_price" not in stocks[0]


def test_rest_create_sends_snake_case_without_id(fake_backend):
    created = backend.create_customer({"id": "temp", "name": "Mehmet", "createdAt": "x", "phone": "555"})
    method, url, params, payload = fake_backend.calls[-1]
    assert method == "POST"
    assert payload == {"name": "Mehmet", "phone": "555"}
    assert created["name"] == "Mehmet"
    assert created["id"] != "temp"


def test_rest_update_targets_row_by_id(fake_backend):
    row = fake_backend.add_row("customers", name="Ali", debt=0)
    updated = backend.update_customer(row["id"], {"debt": 150})
    _, _, params, payload = fake_backend.calls[-1]
    assert params == {"id": f"eq.{row['id']}"}
    assert payload == {"debt": 150}
    assert updated["debt"] == 150


def test_list_sales_drops_duplicate_ids(fake_backend):
    fake_backend.add_edge("sales", id=1, totalPrice=100)
    fake_backend.add_edge("sales", id=1, totalPrice=100)
    fake_backend.add_edge("sales", id=2, totalPrice=50)
    assert [s["id"] for s in backend.list_sales()] == [1, 2]


def test_optional_edge_lists_fall_back_to_empty(fake_backend):
    fake_backend.fail("GET", "/phone-sales", status=404)
    fake_backend.fail("GET", "/expenses", status=500)
    assert backend.list_phone_sales() == []
    assert backend.list_expenses() == []


def test_required_edge_lists_propagate_errors(fake_backend):
    fake_backend.fail("GET", "/categories", status=500)
    with pytest.raises(BackendError):
        backend.list_categories()


def test_create_category_sends_name_only(fake_backend):
    created = backend.create_category({"id": "tmp", "name": "Kılıf", "extra": 1})
    _, _, _, payload = fake_backend.calls[-1]
    assert payload == {"name": "Kılıf"}
    assert created["name"] == "Kılıf"


def test_edge_update_puts_id_in_body_and_path(fake_backend):
    product = fake_backend.add_edge("products", name="Şarj Aleti", stock=4)
    backend.update_product(product["id"], {"name": "Şarj Aleti", "stock": 3})
    method, url, _, payload = fake_backend.calls[-1]
    assert method == "PUT"
    assert url.endswith(f"/products/{product['id']}")
    assert payload["id"] == product["id"]
    assert fake_backend.edge_record("products", product["id"])["stock"] == 3


def test_update_supplier_balance_goes_through_edge(fake_backend):
    supplier = fake_backend.add_row("suppliers", name="Toptancı", balance=100)
    backend.update_supplier_balance(supplier["id"], 40)
    _, url, _, payload = fake_backend.calls[-1]
    assert url.endswith("/supplier-balance")
    assert payload == {"supplier_id": supplier["id"], "add_amount": 40}
    assert fake_backend.row("suppliers", supplier["id"])["balance"] == 140


def test_list_purchases_maps_joined_rows(fake_backend):
    supplier = fake_backend.add_row("suppliers", name="Toptancı", is_active=True)
    purchase = fake_backend.add_row("purchases", supplier_id=supplier["id"], invoice_number="FTR-2026-001", total=300)
    fake_backend.add_row("purchase_items", purchase_id=purchase["id"], product_id=7, unit_cost=100, quantity=3)

    purchases = backend.list_purchases()
    assert purchases[0]["invoiceNumber"] == "FTR-2026-001"
    assert purchases[0]["supplier"]["isActive"] is True
    assert purchases[0]["items"][0]["unitCost"] == 100


def test_create_purchase_strips_nested_fields(fake_backend):
    backend.create_purchase({"supplierId": 1, "total": 10, "supplier": {"name": "x"}, "items": [1]})
    _, _, _, payload = fake_backend.calls[-1]
    assert payload == {"supplier_id": 1, "total": 10}


def test_cari_hareket_filters_by_supplier(fake_backend):
    fake_backend.add_row("cari_hareketler", supplier_id=1, islem_tipi="alis", miktar=10)
    fake_backend.add_row("cari_hareketler", supplier_id=2, islem_tipi="odeme", miktar=5)
    entries = backend.list_cari_hareketler(1)
    assert [e["islemTipi"] for e in entries] == ["alis"]


def test_mark_reminder_sent_patches_flag(fake_backend):
    reminder = fake_backend.add_row("reminders", title="Kira", is_sent=False)
    backend.mark_reminder_sent(reminder["id"])
    assert fake_backend.row("reminders", reminder["id"])["is_sent"] is True


def test_update_product_stock_db_patches_products_table(fake_backend):
    row = fake_backend.add_row("products", stock=3, purchase_price=10)
    result = backend.update_product_stock_db(row["id"], 8, purchase_price=12)

    method, url, params, payload = fake_backend.calls[-1]
    assert method == "PATCH"
    assert url.endswith("/rest/v1/products")
    assert params == {"id": f"eq.{row['id']}"}
    assert payload == {"stock": 8, "purchase_price": 12}
    assert result[0]["stock"] == 8
    assert fake_backend.row("products", row["id"])["purchase_price"] == 12


def test_update_product_stock_db_leaves_price_alone_when_not_given(fake_backend):
    row = fake_backend.add_row("products", stock=3, purchase_price=10)
    backend.update_product_stock_db(row["id"], 5)

    assert fake_backend.calls[-1][3] == {"stock": 5}
    assert fake_backend.row("products", row["id"]) == {"id": row["id"], "stock": 5, "purchase_price": 10}
