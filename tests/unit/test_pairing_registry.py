"""Tests for linking devices to accounts."""

import pytest

from pillmate.exceptions import (
    AlreadyLinkedToOtherError,
    BackendError,
    DeviceNotFoundError,
    DeviceNotReadyError,
    InvalidPinError,
    NotAuthenticatedError,
)
from pillmate.services.pairing_registry import PairingRegistry, waiting_pins
from pillmate.services.session import Session
from tests.conftest import PIN
from tests.util.fakes import unavailable


class TestLinkDevice:

    @pytest.mark.parametrize("pin", ["12345", "1234567", "12a456", "", "12 456", 123456, None])
    def test_rejects_malformed_pin_without_store_access(self, registry, db, session, pin):
        with pytest.raises(InvalidPinError):
            registry.link_device(session, pin)
        assert db.realtime.calls == []
        assert db.firestore.calls == []

    def test_requires_authenticated_session(self, registry, db, waiting_device):
        with pytest.raises(NotAuthenticatedError):
            registry.link_device(Session(), waiting_device)
        assert db.realtime.writes() == []

    def test_links_waiting_device(self, registry, db, session, waiting_device):
        result = registry.link_device(session, waiting_device)

        record = db.realtime.data["devices"][PIN]
        assert record["status"] == "LINKED"
        assert record["ownerUid"] == "u1"
        assert record["ownerEmail"] == "u1@example.com"
        assert record["pairingSession"] == 1
        assert record["linkedAt"].endswith("Z")

        assert sorted(record["slots"]) == [str(n) for n in range(1, 8)]
        for slot in record["slots"].values():
            assert slot["medicationName"] is None
            assert slot["pillCount"] == 0
            assert slot["maxCapacity"] == 100
            assert slot["lowThreshold"] == 10

        assert result.already_linked is False
        assert result.slots_seeded == list(range(1, 8))
        assert result.message == "Device linked successfully!"

    def test_writes_link_record_and_primary_device(self, registry, db, session, waiting_device):
        registry.link_device(session, waiting_device)

        link = db.firestore.docs[f"users/u1/devices/{PIN}"]
        assert link["devicePIN"] == PIN
        assert link["status"] == "LINKED"
        assert link["model"] == "M5Stack"
        assert db.firestore.docs["users/u1"]["primaryDevicePIN"] == PIN

    def test_relinking_own_device_is_idempotent(self, registry, db, session, waiting_device):
        registry.link_device(session, waiting_device)
        db.realtime.data["devices"][PIN]["slots"]["3"]["pillCount"] = 25

        second = registry.link_device(session, waiting_device)
        third = registry.link_device(session, waiting_device)

        assert second.already_linked and third.already_linked
        assert second.message == "This device is already linked to your account."
        assert db.realtime.data["devices"][PIN]["pairingSession"] == 1
        assert db.realtime.data["devices"][PIN]["slots"]["3"]["pillCount"] == 25

    def test_device_owned_by_another_user(self, registry, db, waiting_device):
        registry.link_device(Session(uid="uidA"), waiting_device)

        with pytest.raises(AlreadyLinkedToOtherError) as exc_info:
            registry.link_device(Session(uid="uidB"), waiting_device)

        assert exc_info.value.user_message == "This device is already linked to another account."
        assert db.realtime.data["devices"][PIN]["ownerUid"] == "uidA"
        assert f"users/uidB/devices/{PIN}" not in db.firestore.docs

    def test_unknown_pin(self, registry, db, session):
        with pytest.raises(DeviceNotFoundError) as exc_info:
            registry.link_device(session, "654321")

        assert "powered on" in exc_info.value.user_message
        assert "devices" not in db.realtime.data

    def test_unexpected_status(self, registry, db, session):
        db.realtime.data["devices"] = {PIN: {"status": "OFFLINE"}}

        with pytest.raises(DeviceNotReadyError) as exc_info:
            registry.link_device(session, PIN)

        assert "OFFLINE" in exc_info.value.user_message
        assert db.realtime.data["devices"][PIN] == {"status": "OFFLINE"}

    def test_preserve_mode_keeps_existing_slots(self, registry, db, session, waiting_device):
        db.realtime.data["devices"][PIN]["slots"] = {
            "2": {"slotNumber": 2, "medicationName": "Aspirin", "pillCount": 40},
        }

        result = registry.link_device(session, waiting_device)

        assert result.slots_seeded == [1, 3, 4, 5, 6, 7]
        assert db.realtime.data["devices"][PIN]["slots"]["2"]["medicationName"] == "Aspirin"

    def test_reset_mode_overwrites_slots_on_first_link(self, db, slots, config, session, waiting_device):
        config["pairing"]["slot_init_mode"] = "reset"
        registry = PairingRegistry(db, slots, config)
        db.realtime.data["devices"][PIN]["slots"] = {
            "2": {"slotNumber": 2, "medicationName": "Aspirin", "pillCount": 40},
        }

        registry.link_device(session, waiting_device)

        assert db.realtime.data["devices"][PIN]["slots"]["2"]["medicationName"] is None

    def test_failed_derived_write_is_repaired_by_relinking(self, registry, db, session, waiting_device):
        db.firestore.fail_on["set"] = unavailable()

        with pytest.raises(BackendError) as exc_info:
            registry.link_device(session, waiting_device)

        assert "Link it again" in exc_info.value.user_message
        assert db.realtime.data["devices"][PIN]["status"] == "LINKED"

        del db.firestore.fail_on["set"]
        result = registry.link_device(session, waiting_device)

        assert result.already_linked is True
        assert f"users/u1/devices/{PIN}" in db.firestore.docs
        assert len(db.realtime.data["devices"][PIN]["slots"]) == 7


class TestWaitingDevices:

    def test_waiting_pins_filters_and_sorts(self):
        raw = {
            "222222": {"status": "WAITING_FOR_PAIR"},
            "111111": {"status": "WAITING_FOR_PAIR"},
            "333333": {"status": "LINKED"},
            "bogus": "not-a-record",
        }
        assert waiting_pins(raw) == ["111111", "222222"]
        assert waiting_pins(None) == []

    def test_stream_updates_when_device_is_linked(self, registry, session, waiting_device):
        seen = []
        subscription = registry.find_waiting_devices(on_value=seen.append)

        registry.link_device(session, waiting_device)
        subscription.cancel()

        assert seen[0] == [PIN]
        assert seen[-1] == []
