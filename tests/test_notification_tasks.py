import asyncio

import pytest
from sqlalchemy import select

import bluecollar.notifications.tasks as tasks
from bluecollar.config import settings
from bluecollar.services import notifications
from bluecollar.services.notification_providers import LogProvider, get_provider
from bluecollar.services.notification_service import NotificationService

from conftest import book


def test_render_booking_created_template():
    body = NotificationService().render(
        "booking_created.txt",
        context={"name": "Ravi", "service_title": "Fan installation", "client_name": "Asha", "distance_km": 5.234, "date": "2026-10-22"},
    )
    assert "Hi Ravi" in body
    assert "from Asha" in body
    assert "Distance: 5.2 km" in body


def test_render_falls_back_to_english():
    body = NotificationService().render("booking_completed.txt", locale="hi", context={"name": "Asha", "service_title": "Tap repair"})
    assert "Tap repair service has been completed" in body


def test_render_unknown_template():
    with pytest.raises(RuntimeError):
        NotificationService().render("nope.txt")


def test_provider_registry():
    assert isinstance(get_provider("LOG"), LogProvider)
    with pytest.raises(ValueError):
        get_provider("carrier-pigeon")


def test_task_sends_through_provider():
    result = tasks.send_notification_task.apply(
        args=("asha@example.com", "booking_accepted.txt"),
        kwargs={"context": {"name": "Asha", "provider_name": "Ravi", "service_title": "Fan installation"}, "subject": "Booking Accepted!"},
    )
    assert result.get() == {"status": "sent", "provider": "log"}


def test_exhausted_retries_go_to_dead_letter(monkeypatch):
    parked = []
    monkeypatch.setattr(tasks, "_push_dead_letter", parked.append)
    result = tasks.send_notification_task.apply(
        args=("asha@example.com", "missing.txt"),
        retries=tasks.send_notification_task.max_retries,
    )
    assert result.failed()
    assert parked == [{"to": "asha@example.com", "template": "missing.txt", "subject": "", "context": {}, "locale": "en"}]


def test_email_copies_queued_when_enabled(client, provider, client_user, monkeypatch):
    sent = []
    monkeypatch.setattr(settings, "EMAIL_NOTIFICATIONS_ENABLED", True)
    monkeypatch.setattr(tasks.send_notification_task, "delay", lambda *args, **kwargs: sent.append((args, kwargs)))

    book(client, client_user, provider["service"]["id"], payment_method="CASH")
    assert len(sent) == 1
    (to, template), kwargs = sent[0]
    assert template == "booking_created.txt"
    assert to == provider["email"]
    assert kwargs["context"]["client_name"] == "Asha Client"


def test_email_copies_wait_for_commit(session_factory, monkeypatch):
    sent = []
    monkeypatch.setattr(settings, "EMAIL_NOTIFICATIONS_ENABLED", True)
    monkeypatch.setattr(tasks.send_notification_task, "delay", lambda *args, **kwargs: sent.append(args))

    async def _run():
        async with session_factory() as db:
            await db.execute(select(1))
            notifications._queue_email(db, "gone@example.com", "booking_accepted.txt", "Booking Accepted!", {})
            assert sent == []
            await db.rollback()

            await db.execute(select(1))
            notifications._queue_email(db, "kept@example.com", "booking_accepted.txt", "Booking Accepted!", {})
            assert sent == []
            await db.commit()

    asyncio.run(_run())
    assert sent == [("kept@example.com", "booking_accepted.txt")]
