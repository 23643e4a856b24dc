import json
import os
import threading
from urllib.parse import urlsplit

import pytest
import requests

# Configure before any project module is imported
os.environ["SUPABASE_URL"] = "https://shop.supabase.test"
os.environ["SUPABASE_ANON_KEY"] = "anon-key"
os.environ["ADMIN_USERNAME"] = "technocep"
os.environ["ADMIN_PASSWORD"] = "secret-pass"
os.environ["REMINDER_POLLING"] = "0"
os.environ["ULTRAMSG_INSTANCE_ID"] = ""
os.environ["ULTRAMSG_TOKEN"] = ""
os.environ["ULTRAMSG_DEFAULT_PHONE"] = ""
for var in ("RAILWAY_ENVIRONMENT", "RENDER", "PRODUCTION", "ADMIN_PASSWORD_HASH"):
    os.environ.pop(var, None)

EDGE_PREFIX = "/functions/v1/make-server-929c4905"
REST_PREFIX = "/rest/v1/"


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self.text = "" if body is None else json.dumps(body)

    def json(self):
        return json.loads(self.text)

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeBackend:
    """In-memory stand-in for the hosted project: edge collections hold
    camelCase records, REST tables hold snake_case rows."""

    EDGE_COLLECTIONS = ("categories", "products", "sales", "repairs", "phone-sales",
                        "expenses", "customer-requests")

    def __init__(self):
        self.edge = {name: [] for name in self.EDGE_COLLECTIONS}
        self.rest = {}
        self.calls = []
        self.failures = []
        self._next_id = 1000
        self._lock = threading.Lock()

    # -- seeding -----------------------------------------------------------

    def new_id(self):
        self._next_id += 1
        return self._next_id

    def add_edge(self, collection, /, **record):
        record.setdefault("id", self.new_id())
        self.edge[collection].append(record)
        return record

    def add_row(self, table, /, **row):
        row.setdefault("id", self.new_id())
        self.rest.setdefault(table, []).append(row)
        return row

    def fail(self, method, fragment, status=500):
        self.failures.append((method, fragment, status))

    def row(self, table, row_id):
        for r in self.rest.get(table, []):
            if str(r.get("id")) == str(row_id):
                return r
        return None

    def edge_record(self, name, record_id):
        for r in self.edge[name]:
            if str(r.get("id")) == str(record_id):
                return r
        return None

    # -- transport ---------------------------------------------------------

    def request(self, method, url, params=None, json=None, headers=None, timeout=None, **kwargs):
        with self._lock:
            self.calls.append((method, url, params, json))
            for fail_method, fragment, status in self.failures:
                if fail_method == method and fragment in url:
                    return FakeResponse(status, {"error": "boom"})
            path = urlsplit(url).path
            if path.startswith(EDGE_PREFIX):
                return self._edge(method, path[len(EDGE_PREFIX):], json)
            if path.startswith(REST_PREFIX):
                return self._rest(method, path[len(REST_PREFIX):], params or {}, json)
            return FakeResponse(404, {"error": "unknown path"})

    def _edge(self, method, endpoint, payload):
        parts = endpoint.strip("/").split("/")
        name = parts[0]
        record_id = parts[1] if len(parts) > 1 else None

        if name == "supplier-balance":
            supplier = self.row("suppliers", payload["supplier_id"])
            if supplier is None:
                return FakeResponse(404, {"error": "supplier not found"})
            supplier["balance"] = (supplier.get("balance") or 0) + payload["add_amount"]
            return FakeResponse(200, {"success": True})

        if name == "cari-hareket":
            row = dict(payload, id=self.new_id())
            self.rest.setdefault("cari_hareketler", []).append(row)
            supplier = self.row("suppliers", payload.get("supplier_id"))
            if supplier is not None:
                supplier["balance"] = (supplier.get("balance") or 0) + (payload.get("bakiye_etkisi") or 0)
            return FakeResponse(200, {"data": row})

        if name not in self.edge:
            return FakeResponse(404, {"error": "not found"})
        items = self.edge[name]

        if method == "GET":
            return FakeResponse(200, {"data": [dict(r) for r in items]})
        if method == "POST":
            record = dict(payload, id=self.new_id())
            items.insert(0, record)
            return FakeResponse(200, {"data": record})
        if method == "PUT":
            for i, r in enumerate(items):
                if str(r.get("id")) == str(record_id):
                    items[i] = dict(payload)
                    return FakeResponse(200, {"data": items[i]})
            return FakeResponse(404, {"error": "not found"})
        if method == "DELETE":
            self.edge[name] = [r for r in items if str(r.get("id")) != str(record_id)]
            return FakeResponse(200, {"success": True})
        return FakeResponse(405, {"error": "method"})

    def _matches(self, row, params):
        for column, value in params.items():
            if column in ("select", "order"):
                continue
            if str(row.get(column)) != value[len("eq."):]:
                return False
        return True

    def _rest(self, method, table, params, payload):
        rows = self.rest.setdefault(table, [])

        if method == "GET":
            result = [dict(r) for r in rows if self._matches(r, params)]
            if table == "purchases":
                for r in result:
                    r["supplier"] = self.row("suppliers", r.get("supplier_id"))
                    r["items"] = [i for i in self.rest.get("purchase_items", [])
                                  if str(i.get("purchase_id")) == str(r["id"])]
            return FakeResponse(200, result)
        if method == "POST":
            created = []
            for p in payload if isinstance(payload, list) else [payload]:
                row = dict(p, id=self.new_id(), created_at="2026-01-01T00:00:00")
                rows.append(row)
                created.append(dict(row))
            return FakeResponse(201, created)
        if method == "PATCH":
            updated = []
            for r in rows:
                if self._matches(r, params):
                    r.update(payload)
                    updated.append(dict(r))
            return FakeResponse(200, updated)
        if method == "DELETE":
            self.rest[table] = [r for r in rows if not self._matches(r, params)]
            return FakeResponse(204)
        return FakeResponse(405, {"error": "method"})


class Outbound:
    """Records calls to the third-party services (exchange rate, WhatsApp)."""

    def __init__(self):
        self.messages = []
        self.rate_requests = 0
        self.usd_try = 32.5
        self.post_status = 200
        self.get_error = None

    def get(self, url, headers=None, timeout=None, **kwargs):
        self.rate_requests += 1
        if self.get_error:
            raise self.get_error
        return FakeResponse(200, {"result": "success", "rates": {"TRY": self.usd_try}})

    def post(self, url, data=None, json=None, timeout=None, **kwargs):
        self.messages.append({"url": url, "data": data})
        return FakeResponse(self.post_status, {"sent": "true"})


@pytest.fixture
def fake_backend(monkeypatch):
    fake = FakeBackend()
    monkeypatch.setattr(requests, "request", fake.request)
    return fake


@pytest.fixture(autouse=True)
def outbound(monkeypatch):
    import pricing

    out = Outbound()
    monkeypatch.setattr(requests, "get", out.get)
    monkeypatch.setattr(requests, "post", out.post)
    monkeypatch.setattr(pricing, "_FX_CACHE", {"rate": 0.0, "ts": 0, "failed_at": 0})
    return out


@pytest.fixture(autouse=True)
def settings_file(monkeypatch, tmp_path):
    import state

    path = tmp_path / "data" / "settings.json"
    monkeypatch.setattr(state, "SETTINGS_PATH", path)
    return path


@pytest.fixture
def flask_app(fake_backend):
    import app as app_module

    app_module.app.config["TESTING"] = True
    app_module._login_attempts.clear()
    app_module.shop.clear()
    yield app_module
    app_module.shop.clear()
    app_module._login_attempts.clear()


@pytest.fixture
def client(flask_app):
    return flask_app.app.test_client()


@pytest.fixture
def auth_client(client):
    resp = client.post("/api/auth/login", json={"username": "technocep", "password": "secret-pass"})
    assert resp.status_code == 200
    return client
