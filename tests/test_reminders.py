from datetime import datetime

import reminders

NOW = datetime(2026, 3, 15, 12, 0)

CONFIGURED = {"waInstance": "instance42", "waToken": "tok", "waPhone": "905551112233"}


def _reminder(**kw):
    base = {"id": 1, "title": "Kira ödemesi", "remindAt": "2026-03-15T11:00:00", "category": "odeme",
            "isSent": False, "isCompleted": False}
    base.update(kw)
    return base


def test_overdue_and_upcoming():
    past = _reminder(remindAt="2026-03-15T11:00:00")
    future = _reminder(remindAt="2026-03-16T09:00:00")
    done = _reminder(remindAt="2026-03-14T09:00:00", isCompleted=True)

    assert reminders.is_overdue(past, NOW)
    assert not reminders.is_overdue(done, NOW)
    assert reminders.is_upcoming(future, NOW)
    assert reminders.reminder_counts([past, future, done], NOW) == {"upcoming": 1, "overdue": 1, "completed": 1}


def test_filter_reminders_sorts_and_filters_category():
    items = [
        _reminder(id=1, remindAt="2026-03-18T09:00:00", category="tamir"),
        _reminder(id=2, remindAt="2026-03-16T09:00:00", category="odeme"),
        _reminder(id=3, remindAt="2026-03-17T09:00:00", category="odeme"),
    ]
    assert [r["id"] for r in reminders.filter_reminders(items, "upcoming", "all", NOW)] == [2, 3, 1]
    assert [r["id"] for r in reminders.filter_reminders(items, "all", "odeme", NOW)] == [2, 3]


def test_relative_time_in_turkish():
    assert reminders.relative_time("2026-03-15T12:05:00", NOW) == "5 dakika sonra"
    assert reminders.relative_time("2026-03-15T09:00:00", NOW) == "3 saat önce"
    assert reminders.relative_time("2026-03-16T12:00:00", NOW) == "Yarın"
    assert reminders.relative_time("2026-03-20T12:00:00", NOW) == "5 gün sonra"
    assert reminders.relative_time("2026-03-12T12:00:00", NOW) == "3 gün önce"
    assert reminders.relative_time(None, NOW) == ""


def test_build_message_mentions_category_and_note():
    message = reminders.build_message(_reminder(description="Ev sahibine havale"))
    assert "*Hatırlatıcı: Kira ödemesi*" in message
    assert "*Kategori:* Ödeme" in message
    assert "Ev sahibine havale" in message
    assert "15.03.2026 11:00:00" in message


def test_send_whatsapp_posts_form_fields(outbound):
    assert reminders.send_whatsapp(CONFIGURED, "905550000000", "merhaba")
    sent = outbound.messages[-1]
    assert sent["url"] == f"{reminders.ULTRAMSG_API}/instance42/messages/chat"
    assert sent["data"] == {"token": "tok", "to": "905550000000", "body": "merhaba"}


def test_send_whatsapp_unconfigured_or_rejected(outbound):
    assert not reminders.send_whatsapp({"waInstance": "", "waToken": ""}, "905550000000", "x")
    assert outbound.messages == []
    outbound.post_status = 401
    assert not reminders.send_whatsapp(CONFIGURED, "905550000000", "x")


def test_check_due_reminders_sends_once_and_marks(fake_backend, outbound):
    due = fake_backend.add_row("reminders", title="Teslimat", remind_at="2026-03-15T10:00:00",
                               category="teslimat", phone_number="905554443322",
                               is_sent=False, is_completed=False)
    fake_backend.add_row("reminders", title="Sonra", remind_at="2026-03-20T10:00:00",
                         is_sent=False, is_completed=False)
    fake_backend.add_row("reminders", title="Zaten", remind_at="2026-03-10T10:00:00",
                         is_sent=True, is_completed=False)

    _, sent = reminders.check_due_reminders(CONFIGURED, NOW)
    assert [r["title"] for r in sent] == ["Teslimat"]
    assert outbound.messages[0]["data"]["to"] == "905554443322"
    assert fake_backend.row("reminders", due["id"])["is_sent"] is True

    _, sent_again = reminders.check_due_reminders(CONFIGURED, NOW)
    assert sent_again == []
    assert len(outbound.messages) == 1


def test_check_due_reminders_marks_even_when_unconfigured(fake_backend, outbound, capsys):
    due = fake_backend.add_row("reminders", title="Ara", remind_at="2026-03-15T10:00:00",
                               is_sent=False, is_completed=False)
    _, sent = reminders.check_due_reminders({"waInstance": "", "waToken": "", "waPhone": ""}, NOW)
    assert len(sent) == 1
    assert outbound.messages == []
    assert fake_backend.row("reminders", due["id"])["is_sent"] is True
    assert "[REMINDER] 'Ara' due: not delivered" in capsys.readouterr().out


def test_poller_tick_survives_backend_errors(fake_backend):
    fake_backend.fail("GET", "/reminders")
    poller = reminders.ReminderPoller(interval=3600, settings_loader=lambda: CONFIGURED)
    assert poller.tick() == []


def test_poller_stops(monkeypatch):
    ticks = []
    poller = reminders.ReminderPoller(interval=0.01, settings_loader=lambda: CONFIGURED)
    monkeypatch.setattr(poller, "tick", lambda: ticks.append(1))
    poller.start()
    poller.stop()
    poller.join(timeout=2)
    assert not poller.is_alive()


def test_poller_tick_logs_mark_sent_failure(fake_backend, outbound):
    fake_backend.fail("PATCH", "/reminders")
    fake_backend.add_row("reminders", title="Ara", remind_at="2020-01-01T10:00:00",
                         is_sent=False, is_completed=False)
    poller = reminders.ReminderPoller(interval=3600, settings_loader=lambda: CONFIGURED)
    assert poller.tick() == []
    assert len(outbound.messages) == 1
