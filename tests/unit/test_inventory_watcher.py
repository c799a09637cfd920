"""Tests for low and empty stock alerts."""

import time

import pytest

from pillmate.exceptions import ExternalServiceError
from pillmate.models.realtime_types import Slot
from pillmate.services.inventory_watcher import (
    InventoryWatcher,
    SlotChangeAlerter,
    summarize_alerts,
    transition_alerts,
)
from tests.conftest import PIN
from tests.util.fakes import RecordingNotifier


def snapshot(**counts):
    """Seven slots; ``s3=0`` assigns slot 3 with zero pills."""
    slots = []
    for number in range(1, 8):
        count = counts.get(f"s{number}")
        if count is None:
            slots.append(Slot(slotNumber=number))
        else:
            slots.append(Slot(slotNumber=number, medicationName=f"Med{number}", pillCount=count))
    return slots


@pytest.fixture
def watcher(notifier, slots, config):
    return InventoryWatcher("u1", PIN, notifier, slots=slots, config=config)


class TestInventoryWatcher:

    def test_repeated_empty_snapshot_alerts_once(self, watcher, notifier):
        watcher.process(snapshot(s3=0))
        watcher.process(snapshot(s3=0))

        assert notifier.sent == [("u1", "Device Pill Alert", "Slot 3 (Med3) is empty! Please refill.")]

    def test_refill_rearms_the_alert(self, watcher, notifier):
        watcher.process(snapshot(s3=0))
        watcher.process(snapshot(s3=50))
        watcher.process(snapshot(s3=0))

        assert len(notifier.sent) == 2
        assert all("is empty" in body for _, _, body in notifier.sent)

    def test_low_message(self, watcher, notifier):
        watcher.process(snapshot(s2=4))

        assert notifier.sent[0][2] == "Slot 2 (Med2) is low! Only 4 pills remaining. Please refill soon."

    def test_ok_to_empty_in_one_step(self, watcher, notifier):
        watcher.process(snapshot(s1=80))
        watcher.process(snapshot(s1=0))

        assert len(notifier.sent) == 1
        assert "is empty" in notifier.sent[0][2]

    def test_low_then_empty_alerts_twice(self, watcher, notifier):
        watcher.process(snapshot(s1=5))
        watcher.process(snapshot(s1=0))

        assert len(notifier.sent) == 2

    def test_unassigned_slots_are_ignored(self, watcher, notifier):
        assert watcher.process(snapshot()) is None
        assert notifier.sent == []

    def test_multiple_alerts_are_summarized(self, watcher, notifier):
        watcher.process(snapshot(s1=0, s2=0, s3=1, s4=2, s5=3))

        _, title, body = notifier.sent[0]
        lines = body.split("\n")
        assert title == "Device Pills Running Low"
        assert lines[0] == "5 slots need attention:"
        assert len(lines) == 5
        assert lines[-1] == "...and 2 more"

    def test_summary_of_exactly_three(self):
        body = summarize_alerts(["a", "b", "c"])
        assert body == "3 slots need attention:\na\nb\nc"

    def test_dispatch_guard_drops_alerts_during_cooldown(self, notifier, slots, config):
        config["notifications"]["dispatch_cooldown_sec"] = 0.2
        watcher = InventoryWatcher("u1", PIN, notifier, slots=slots, config=config)

        watcher.process(snapshot(s1=0))
        watcher.process(snapshot(s1=0, s2=0))
        assert len(notifier.sent) == 1
        # Dropped alerts stay recorded
        assert (2, "empty") in {(n, s.value) for n, s in watcher.notified}

        time.sleep(0.4)
        watcher.process(snapshot(s1=0, s2=0, s3=0))
        assert len(notifier.sent) == 2
        watcher.stop()

    def test_notifier_failure_releases_guard(self, slots, config):
        notifier = RecordingNotifier(error=ExternalServiceError("fcm", "down"))
        watcher = InventoryWatcher("u1", PIN, notifier, slots=slots, config=config)

        watcher.process(snapshot(s1=0))
        watcher.process(snapshot(s1=0, s2=0))

        assert len(notifier.sent) == 2

    def test_start_watches_the_device(self, watcher, notifier, slots, db):
        slots.load_slots(PIN)
        watcher.start()

        slots.update_slot(PIN, 6, "Aspirin", 0)
        watcher.stop()
        slots.update_slot(PIN, 5, "Ibuprofen", 0)

        assert notifier.sent == [("u1", "Device Pill Alert", "Slot 6 (Aspirin) is empty! Please refill.")]


def raw_slots(**counts):
    """Realtime slot value; ``s3=0`` assigns slot 3 with zero pills."""
    return {
        str(number): {"slotNumber": number, "medicationName": f"Med{number}", "pillCount": counts[f"s{number}"]}
        for number in range(1, 8) if f"s{number}" in counts
    }


class TestTransitionAlerts:

    def test_only_changed_statuses_alert(self):
        messages = transition_alerts(snapshot(s1=0, s2=50), snapshot(s1=0, s2=4))

        assert messages == ["Slot 2 (Med2) is low! Only 4 pills remaining. Please refill soon."]

    def test_low_to_empty_alerts(self):
        assert len(transition_alerts(snapshot(s1=4), snapshot(s1=0))) == 1

    def test_newly_assigned_empty_slot_alerts(self):
        assert len(transition_alerts(snapshot(), snapshot(s5=0))) == 1

    def test_refill_is_silent(self):
        assert transition_alerts(snapshot(s1=0), snapshot(s1=80)) == []


class TestSlotChangeAlerter:

    @pytest.fixture
    def alerter(self, notifier, slots, db, config):
        return SlotChangeAlerter(notifier, slots=slots, db=db, config=config)

    def test_notifies_the_owner(self, alerter, notifier, linked_device):
        body = alerter.handle(PIN, raw_slots(s3=20), raw_slots(s3=0))

        assert body == "Slot 3 (Med3) is empty! Please refill."
        assert notifier.sent == [("u1", "Device Pill Alert", body)]

    def test_repeated_write_of_same_status_is_silent(self, alerter, notifier, linked_device):
        alerter.handle(PIN, raw_slots(s3=20), raw_slots(s3=0))
        alerter.handle(PIN, raw_slots(s3=0), raw_slots(s3=0))

        assert len(notifier.sent) == 1

    def test_several_slots_are_summarized(self, alerter, notifier, linked_device):
        alerter.handle(PIN, raw_slots(s1=50, s2=50), raw_slots(s1=0, s2=3))

        _, title, body = notifier.sent[0]
        assert title == "Device Pills Running Low"
        assert body.startswith("2 slots need attention:")

    def test_unowned_device_is_skipped(self, alerter, notifier, waiting_device):
        assert alerter.handle(PIN, raw_slots(s1=50), raw_slots(s1=0)) is None
        assert notifier.sent == []

    def test_deleted_slots_are_ignored(self, alerter, notifier, linked_device):
        assert alerter.handle(PIN, raw_slots(s1=0), None) is None
        assert notifier.sent == []

    def test_notifier_failure_is_logged(self, slots, db, config, linked_device):
        notifier = RecordingNotifier(error=ExternalServiceError("fcm", "down"))
        alerter = SlotChangeAlerter(notifier, slots=slots, db=db, config=config)

        assert alerter.handle(PIN, raw_slots(s1=50), raw_slots(s1=0)) is not None
        assert len(notifier.sent) == 1
