"""
state.py — Process-local view state for StokTakip

ShopState keeps every entity collection in memory after login. Pages read
from it and filter locally; single-record mutations patch it in place and
mutations with cross-entity effects reload everything from the backend.

Local settings (messaging webhook credentials) live in data/settings.json.
"""

import json
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path

import backend

BASE_DIR = Path(__file__).resolve().parent
DATA_DIR = Path(os.environ.get("DATA_DIR", BASE_DIR / "data"))
SETTINGS_PATH = DATA_DIR / "settings.json"

# collection name -> loader
LOADERS = {
    "categories": backend.list_categories,
    "products": backend.list_products,
    "sales": backend.list_sales,
    "repairs": backend.list_repairs,
    "phoneSales": backend.list_phone_sales,
    "phoneStocks": backend.list_phone_stocks,
    "expenses": backend.list_expenses,
    "requests": backend.list_customer_requests,
    "suppliers": backend.list_suppliers,
    "purchases": backend.list_purchases,
    "customers": backend.list_customers,
}


class ShopState:
    """All entity collections, fetched in bulk and kept for the view layer."""

    def __init__(self, loaders=None):
        self.loaders = loaders or LOADERS
        self._lock = threading.Lock()
        self._collections = {name: [] for name in self.loaders}
        self.errors = {}
        self.loaded_at = None

    def load_all(self):
        """Fetch every collection in parallel. A failing loader leaves its
        collection untouched and is recorded in ``errors``; the rest still load."""
        errors = {}
        with ThreadPoolExecutor(max_workers=len(self.loaders)) as pool:
            futures = {name: pool.submit(fn) for name, fn in self.loaders.items()}
            for name, future in futures.items():
                try:
                    data = future.result()
                except Exception as e:
                    print(f"[LOAD] {name} failed: {e}")
                    errors[name] = str(e)
                    continue
                with self._lock:
                    self._collections[name] = list(data or [])
        self.errors = errors
        self.loaded_at = datetime.now().isoformat()
        return errors

    def reload(self, name):
        """Re-fetch a single collection."""
        data = self.loaders[name]()
        with self._lock:
            self._collections[name] = list(data or [])
        return self.get(name)

    def get(self, name):
        with self._lock:
            return list(self._collections[name])

    def find(self, name, record_id):
        for record in self.get(name):
            if str(record.get("id")) == str(record_id):
                return record
        return None

    def replace(self, name, records):
        with self._lock:
            self._collections[name] = list(records)

    def upsert(self, name, record):
        """Replace the record with the same id, or put a new one first."""
        with self._lock:
            items = self._collections[name]
            for i, existing in enumerate(items):
                if str(existing.get("id")) == str(record.get("id")):
                    items[i] = record
                    return record
            items.insert(0, record)
        return record

    def remove(self, name, record_id):
        with self._lock:
            before = len(self._collections[name])
            self._collections[name] = [
                r for r in self._collections[name] if str(r.get("id")) != str(record_id)
            ]
            return len(self._collections[name]) != before

    def counts(self):
        with self._lock:
            return {name: len(items) for name, items in self._collections.items()}

    def clear(self):
        with self._lock:
            self._collections = {name: [] for name in self.loaders}
        self.errors = {}
        self.loaded_at = None


# ---------------------------------------------------------------------------
# Local settings
# ---------------------------------------------------------------------------

DEFAULT_SETTINGS = {
    "waInstance": os.environ.get("ULTRAMSG_INSTANCE_ID", ""),
    "waToken": os.environ.get("ULTRAMSG_TOKEN", ""),
    "waPhone": os.environ.get("ULTRAMSG_DEFAULT_PHONE", ""),
}


def load_settings():
    """Defaults overlaid with whatever was saved in data/settings.json."""
    settings = dict(DEFAULT_SETTINGS)
    if SETTINGS_PATH.exists():
        try:
            with open(SETTINGS_PATH, "r", encoding="utf-8") as f:
                settings.update(json.load(f))
        except (json.JSONDecodeError, OSError) as e:
            print(f"[SETTINGS] Could not read {SETTINGS_PATH}: {e}")
    return settings


def save_settings(changes):
    settings = load_settings()
    settings.update({k: v for k, v in changes.items() if k in DEFAULT_SETTINGS})
    SETTINGS_PATH.parent.mkdir(parents=True, exist_ok=True)
    with open(SETTINGS_PATH, "w", encoding="utf-8") as f:
        json.dump(settings, f, indent=2)
    return settings
