"""Tests for reminder planning, scheduling and delivery."""

import time
from datetime import datetime, timezone

import pytest
import pytz

from pillmate.exceptions import ValidationError
from pillmate.services.reminder_delivery import ReminderDelivery, resolve_timezone
from pillmate.services.reminder_scheduler import (
    FirestoreReminderBackend,
    ReminderPlanner,
    ReminderScheduler,
    parse_hhmm,
)
from tests.conftest import PIN
from tests.util.fakes import FakeReminderBackend, unavailable

DOSES = [
    {"id": "d1", "medName": "Aspirin", "dose": "1", "time": "08:00", "enabled": True},
    {"id": "d2", "medName": "Metformin", "dose": None, "time": "19:30", "enabled": True},
    {"id": "d3", "medName": "Vitamin D", "dose": "2", "time": "12:00", "enabled": False},
]


class TestPlanning:

    @pytest.mark.parametrize("text, expected", [("08:00", (8, 0)), ("7:05", (7, 5)), ("23:59", (23, 59))])
    def test_parse_hhmm(self, text, expected):
        assert parse_hhmm(text) == expected

    @pytest.mark.parametrize("text", ["24:00", "12:60", "noon", "", "12:5"])
    def test_parse_hhmm_rejects(self, text):
        with pytest.raises(ValidationError):
            parse_hhmm(text)

    def test_plan_enabled_doses(self):
        specs = ReminderPlanner().plan(DOSES)

        assert [(s.body, s.hour, s.minute, s.dose_id) for s in specs] == [
            ("Aspirin • 1", 8, 0, "d1"),
            ("Metformin", 19, 30, "d2"),
        ]
        assert all(s.title == "Time to take your dose" for s in specs)


class TestScheduler:

    def test_apply_replaces_all(self, config):
        backend = FakeReminderBackend()
        scheduler = ReminderScheduler(backend, config=config)

        scheduler.apply(DOSES)
        scheduler.apply(DOSES[:1])

        assert backend.cancel_count == 2
        assert len(backend.scheduled) == 1

    def test_changes_are_debounced(self, config):
        backend = FakeReminderBackend()
        scheduler = ReminderScheduler(backend, config=config)

        scheduler.schedule_changed(DOSES)
        scheduler.schedule_changed(DOSES[:1])
        time.sleep(0.3)

        assert backend.cancel_count == 1
        assert [s[4] for s in backend.scheduled] == ["d1"]

    def test_firestore_backend(self, db):
        backend = FirestoreReminderBackend("u1", db)

        backend.schedule_daily("Time to take your dose", "Aspirin • 1", 8, 0, "d1")
        backend.schedule_daily("Time to take your dose", "Metformin", 19, 30, "d2")
        assert sorted(doc["time"] for doc in db.firestore.docs.values()) == ["08:00", "19:30"]

        backend.cancel_all()
        assert db.firestore.docs == {}


class TestDelivery:

    def test_pushes_due_reminders_and_dispenses(self, db, config, notifier, coordinator, schedule, session, linked_device):
        schedule.add_dose(session, "Aspirin", "1", "08:00")
        FirestoreReminderBackend("u1", db).schedule_daily("Time to take your dose", "Aspirin • 1", 8, 0, "d1")
        FirestoreReminderBackend("u2", db).schedule_daily("Time to take your dose", "Other", 9, 0, "d9")
        delivery = ReminderDelivery(notifier, coordinator, schedule, db, config)

        outcomes = delivery.deliver(datetime(2024, 1, 1, 8, 0, 30, tzinfo=timezone.utc))

        assert notifier.sent == [("u1", "Time to take your dose", "Aspirin • 1")]
        assert outcomes["u1"].dispensed
        assert db.realtime.data["devices"][PIN]["dispense"] is True
        assert "u2" not in outcomes

    def test_local_time_uses_configured_timezone(self, db, config, notifier, coordinator, schedule):
        config["reminders"]["timezone"] = "Europe/Amsterdam"
        delivery = ReminderDelivery(notifier, coordinator, schedule, db, config)

        assert delivery.local_time(datetime(2024, 1, 1, 7, 0, tzinfo=timezone.utc)) == "08:00"


def test_schedule_write_reschedules_reminders(db, config, schedule, session):
    from pillmate.brokers.triggered.on_dose_written import handle_dose_written

    schedule.add_dose(session, "Aspirin", "1", "08:00")
    schedule.add_dose(session, "Metformin", "500", "19:30")
    backend = FirestoreReminderBackend("u1", db)
    backend.schedule_daily("Old", "Stale", 6, 0)

    count = handle_dose_written("u1", schedule, ReminderScheduler(backend, config=config))

    reminders = [doc for path, doc in db.firestore.docs.items() if "/reminders/" in path]
    assert count == 2
    assert sorted(r["body"] for r in reminders) == ["Aspirin • 1", "Metformin • 500"]


class TestReminderIds:

    def test_interleaved_reschedules_leave_one_reminder_per_dose(self, db):
        first = FirestoreReminderBackend("u1", db)
        second = FirestoreReminderBackend("u1", db)

        first.cancel_all()
        second.cancel_all()
        first.schedule_daily("Time to take your dose", "Aspirin • 1", 8, 0, "d1")
        second.schedule_daily("Time to take your dose", "Aspirin • 1", 8, 0, "d1")

        assert [path for path in db.firestore.docs if "/reminders/" in path] == ["users/u1/reminders/d1"]

    def test_apply_replaces_in_one_batch(self, db, config):
        backend = FirestoreReminderBackend("u1", db, timezone="Europe/Amsterdam")
        scheduler = ReminderScheduler(backend, config=config)

        scheduler.apply(DOSES)
        scheduler.apply(DOSES)
        assert sorted(path for path in db.firestore.docs if "/reminders/" in path) == [
            "users/u1/reminders/d1", "users/u1/reminders/d2",
        ]

        scheduler.apply(DOSES[:1])
        assert [path for path in db.firestore.docs if "/reminders/" in path] == ["users/u1/reminders/d1"]
        assert db.firestore.docs["users/u1/reminders/d1"]["timezone"] == "Europe/Amsterdam"
        assert [op for op, _ in db.firestore.calls].count("commit") == 3


class TestDeliveryOnce:

    @pytest.fixture
    def delivery(self, db, config, notifier, coordinator, schedule, session, linked_device):
        schedule.add_dose(session, "Aspirin", "1", "08:00")
        FirestoreReminderBackend("u1", db).schedule_daily("Time to take your dose", "Aspirin • 1", 8, 0, "d1")
        return ReminderDelivery(notifier, coordinator, schedule, db, config)

    def dispense_writes(self, db):
        return [path for op, path in db.realtime.writes() if op == "update" and path == f"devices/{PIN}"]

    def test_overlapping_runs_dispense_once(self, delivery, db, notifier):
        writes_before = len(self.dispense_writes(db))

        first = delivery.deliver(datetime(2024, 1, 1, 8, 0, 5, tzinfo=timezone.utc))
        second = delivery.deliver(datetime(2024, 1, 1, 8, 0, 40, tzinfo=timezone.utc))

        assert first["u1"].dispensed
        assert second == {}
        assert len(notifier.sent) == 1
        assert len(self.dispense_writes(db)) == writes_before + 1
        assert "users/u1/deliveries/2024-01-01T0800" in db.firestore.docs

    def test_next_day_is_delivered_again(self, delivery, notifier):
        delivery.deliver(datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc))
        outcomes = delivery.deliver(datetime(2024, 1, 2, 8, 0, tzinfo=timezone.utc))

        assert outcomes["u1"].dispensed
        assert len(notifier.sent) == 2

    def test_failed_claim_skips_the_user(self, delivery, db, notifier):
        db.firestore.fail_on["create"] = unavailable()

        outcomes = delivery.deliver(datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc))

        assert outcomes == {}
        assert notifier.sent == []


class TestUserTimezones:

    def schedule_at_eight(self, db, uid, tz):
        FirestoreReminderBackend(uid, db, timezone=tz).schedule_daily("Time to take your dose", f"Dose of {uid}", 8, 0, "d1")

    def test_each_user_is_reminded_at_local_time(self, db, config, notifier, coordinator, schedule):
        self.schedule_at_eight(db, "ams", "Europe/Amsterdam")
        self.schedule_at_eight(db, "nyc", "America/New_York")
        self.schedule_at_eight(db, "del", "Asia/Kolkata")
        self.schedule_at_eight(db, "utc", None)
        delivery = ReminderDelivery(notifier, coordinator, schedule, db, config)

        for hour, minute in [(2, 30), (7, 0), (8, 0), (13, 0)]:
            delivery.deliver(datetime(2024, 1, 15, hour, minute, tzinfo=timezone.utc))

        assert [uid for uid, _, _ in notifier.sent] == ["del", "ams", "utc", "nyc"]

    def test_unknown_timezone_uses_default(self, db, config, notifier, coordinator, schedule):
        self.schedule_at_eight(db, "u9", "Mars/Olympus")
        delivery = ReminderDelivery(notifier, coordinator, schedule, db, config)

        delivery.deliver(datetime(2024, 1, 15, 8, 0, tzinfo=timezone.utc))

        assert [uid for uid, _, _ in notifier.sent] == ["u9"]

    def test_profile_timezone_is_resolved(self):
        assert resolve_timezone("Asia/Kolkata", pytz.utc).zone == "Asia/Kolkata"
        assert resolve_timezone("", pytz.utc) is pytz.utc
