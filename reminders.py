"""
reminders.py — Reminder views and the WhatsApp notification poller.

A background thread wakes up on a fixed interval, re-fetches the reminders
from the backend and, for each one whose time has come, posts a message to
the UltraMsg chat API and flips ``is_sent``. There is no retry or backoff;
the flag is the only thing that stops a reminder from going out twice.
"""

import math
import os
import threading
from datetime import datetime

import requests

import backend
from helpers import parse_ts
from state import load_settings

ULTRAMSG_API = os.environ.get("ULTRAMSG_API", "https://api.ultramsg.com")
POLL_INTERVAL = int(os.environ.get("REMINDER_POLL_INTERVAL", 60))

CATEGORIES = {
    "genel": "Genel",
    "tamir": "Tamir",
    "musteri": "Müşteri",
    "odeme": "Ödeme",
    "teslimat": "Teslimat",
    "toplanti": "Toplantı",
}
PRIORITIES = ("low", "medium", "high")
REPEAT_TYPES = ("none", "daily", "weekly", "monthly")
VIEWS = ("all", "upcoming", "overdue", "completed")

TEST_MESSAGE = "✅ StokTakip Pro WhatsApp bağlantısı başarılı!"


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

def _due_at(reminder):
    return parse_ts(reminder.get("remindAt"))


def is_overdue(reminder, now):
    due = _due_at(reminder)
    return due is not None and due < now and not reminder.get("isCompleted")


def is_upcoming(reminder, now):
    due = _due_at(reminder)
    return due is not None and due >= now and not reminder.get("isCompleted")


def filter_reminders(reminders, view="upcoming", category="all", now=None):
    """Reminders for one tab and category, earliest first."""
    now = now or datetime.now()
    result = []
    for r in reminders:
        if view == "upcoming" and not is_upcoming(r, now):
            continue
        if view == "completed" and not r.get("isCompleted"):
            continue
        if view == "overdue" and not is_overdue(r, now):
            continue
        if category not in ("", "all") and r.get("category") != category:
            continue
        result.append(r)
    return sorted(result, key=lambda r: _due_at(r) or datetime.max)


def reminder_counts(reminders, now=None):
    now = now or datetime.now()
    return {
        "upcoming": sum(1 for r in reminders if is_upcoming(r, now)),
        "overdue": sum(1 for r in reminders if is_overdue(r, now)),
        "completed": sum(1 for r in reminders if r.get("isCompleted")),
    }


def _js_round(x):
    return int(math.floor(x + 0.5))


def relative_time(remind_at, now=None):
    """'5 dakika sonra', '3 saat önce', 'Yarın' ..."""
    now = now or datetime.now()
    due = parse_ts(remind_at)
    if due is None:
        return ""
    diff = (due - now).total_seconds()
    mins = _js_round(diff / 60)
    hours = _js_round(diff / 3600)
    days = _js_round(diff / 86400)
    if diff < 0:
        if abs(mins) < 60:
            return f"{abs(mins)} dakika önce"
        if abs(hours) < 24:
            return f"{abs(hours)} saat önce"
        return f"{abs(days)} gün önce"
    if mins < 60:
        return f"{mins} dakika sonra"
    if hours < 24:
        return f"{hours} saat sonra"
    if days == 1:
        return "Yarın"
    return f"{days} gün sonra"


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

def is_configured(settings):
    return bool(settings.get("waInstance") and settings.get("waToken"))


def build_message(reminder):
    category = CATEGORIES.get(reminder.get("category"), reminder.get("category") or "")
    due = _due_at(reminder)
    when = due.strftime("%d.%m.%Y %H:%M:%S") if due else ""
    lines = [
        f"🔔 *Hatırlatıcı: {reminder.get('title', '')}*",
        "",
        f"📋 *Kategori:* {category}",
    ]
    if reminder.get("description"):
        lines.append(f"📝 *Not:* {reminder['description']}")
    lines += ["", f"⏰ {when}", "", "_StokTakip Pro tarafından gönderildi_"]
    return "\n".join(lines)


def send_whatsapp(settings, phone, body):
    """Post one chat message. Returns False when unconfigured or the call fails."""
    instance = settings.get("waInstance")
    token = settings.get("waToken")
    if not instance or not token or not phone:
        return False
    try:
        resp = requests.post(
            f"{ULTRAMSG_API}/{instance}/messages/chat",
            data={"token": token, "to": phone, "body": body},
            timeout=15,
        )
    except requests.RequestException as e:
        print(f"[REMINDER] WhatsApp send failed: {e}")
        return False
    if not resp.ok:
        print(f"[REMINDER] WhatsApp send failed: HTTP {resp.status_code} {resp.text}")
        return False
    return True


def send_reminder(reminder, settings):
    phone = reminder.get("phoneNumber") or settings.get("waPhone")
    return send_whatsapp(settings, phone, build_message(reminder))


def is_due(reminder, now):
    due = _due_at(reminder)
    return (
        not reminder.get("isCompleted")
        and not reminder.get("isSent")
        and due is not None
        and due <= now
    )


def check_due_reminders(settings=None, now=None):
    """Send every due reminder once and mark it sent. Returns (reminders, sent)."""
    settings = settings if settings is not None else load_settings()
    now = now or datetime.now()
    reminders = backend.list_reminders()
    sent = []
    for reminder in reminders:
        if not is_due(reminder, now):
            continue
        delivered = send_reminder(reminder, settings)
        # Marked even when the webhook is not configured, as the flag means "handled"
        backend.mark_reminder_sent(reminder["id"])
        reminder["isSent"] = True
        sent.append(reminder)
        print(f"[REMINDER] '{reminder.get('title')}' due: {'sent' if delivered else 'not delivered'}")
    return reminders, sent


class ReminderPoller(threading.Thread):
    """Fixed-interval timer that runs check_due_reminders in the background."""

    def __init__(self, interval=POLL_INTERVAL, settings_loader=load_settings):
        super().__init__(name="reminder-poller", daemon=True)
        self.interval = interval
        self.settings_loader = settings_loader
        self._stop_event = threading.Event()

    def run(self):
        print(f"[REMINDER] Polling every {self.interval}s")
        while not self._stop_event.wait(self.interval):
            self.tick()

    def tick(self):
        try:
            _, sent = check_due_reminders(self.settings_loader())
        except (backend.BackendError, requests.RequestException) as e:
            print(f"[REMINDER] Poll failed: {e}")
            return []
        return sent

    def stop(self):
        self._stop_event.set()
