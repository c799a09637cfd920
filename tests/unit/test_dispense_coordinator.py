"""Tests for dispense and motor commands."""

from datetime import datetime, timezone

import pytest

from pillmate.exceptions import (
    DispenseBlockedError,
    DispenseCommandError,
    DispensePendingError,
    NoDeviceLinkedError,
)
from pillmate.models.safety_types import AllergyCheckResult
from pillmate.services.dispense_coordinator import DispenseCoordinator, DispenseState, next_dose
from pillmate.services.session import Session
from tests.conftest import PIN
from tests.util.fakes import unavailable

DOSES = [
    {"id": "d1", "medName": "Vitamin D", "dose": "1", "time": "07:00", "enabled": False},
    {"id": "d2", "medName": "Amoxicillin", "dose": "2", "time": "08:00", "enabled": True},
    {"id": "d3", "medName": "Aspirin", "dose": "1", "time": "09:00", "enabled": True},
]


def allergic_user(db, uid="u1"):
    db.firestore.docs[f"users/{uid}"] = {"allergies": ["penicillin"], "primaryDevicePIN": PIN}


class TestManualDispense:

    def test_next_dose_is_first_enabled_in_caller_order(self):
        assert next_dose(DOSES).medName == "Amoxicillin"
        assert next_dose([]) is None

    def test_sets_dispense_flag(self, coordinator, db, session, linked_device):
        pin = coordinator.manual_dispense(session, DOSES)

        record = db.realtime.data["devices"][PIN]
        assert pin == PIN
        assert record["dispense"] is True
        assert isinstance(record["dispenseRequestedAt"], int)
        assert coordinator.state == DispenseState.IDLE

    def test_no_linked_device(self, coordinator, db, session):
        with pytest.raises(NoDeviceLinkedError) as exc_info:
            coordinator.manual_dispense(session, DOSES)

        assert "link a device first" in exc_info.value.user_message
        assert db.realtime.writes() == []

    def test_sticky_block_writes_nothing(self, coordinator, db, checker, session, linked_device):
        session.block_dispense("Severe allergy to penicillin.")
        writes_before = list(db.realtime.writes())

        with pytest.raises(DispenseBlockedError) as exc_info:
            coordinator.manual_dispense(session, DOSES)

        assert exc_info.value.reason == "Severe allergy to penicillin."
        assert "dispense" not in db.realtime.data["devices"][PIN]
        assert db.realtime.writes() == writes_before
        assert checker.allergy_calls == []

    def test_blocking_allergy_on_next_dose(self, coordinator, db, checker, session, linked_device, blocking_allergy):
        allergic_user(db)
        checker.allergy = blocking_allergy

        with pytest.raises(DispenseBlockedError) as exc_info:
            coordinator.manual_dispense(session, DOSES)

        assert checker.allergy_calls == [("Amoxicillin", ["penicillin"])]
        assert "Dispense blocked for your safety." in exc_info.value.user_message
        assert "dispense" not in db.realtime.data["devices"][PIN]

    def test_non_blocking_allergy_dispenses(self, coordinator, db, checker, session, linked_device):
        allergic_user(db)
        checker.allergy = AllergyCheckResult(hasAllergy=True, severity="low", message="Mild.", shouldBlock=False)

        coordinator.manual_dispense(session, DOSES)

        assert db.realtime.data["devices"][PIN]["dispense"] is True

    def test_no_allergies_skips_the_check(self, coordinator, checker, session, linked_device):
        coordinator.manual_dispense(session, DOSES)
        assert checker.allergy_calls == []

    def test_write_failure(self, coordinator, db, session, linked_device):
        db.realtime.fail_on["update"] = unavailable()

        with pytest.raises(DispenseCommandError) as exc_info:
            coordinator.manual_dispense(session, DOSES)

        assert exc_info.value.user_message == "Could not trigger dispense. Make sure the device is online."
        assert coordinator.state == DispenseState.IDLE

    def test_pending_request_rejected_when_configured(self, gate, db, config, session, linked_device):
        config["dispense"]["reject_while_pending"] = True
        coordinator = DispenseCoordinator(gate, db, config)

        coordinator.manual_dispense(session, DOSES)
        with pytest.raises(DispensePendingError):
            coordinator.manual_dispense(session, DOSES)

        db.realtime.data["devices"][PIN]["dispense"] = False
        coordinator.manual_dispense(session, DOSES)

    def test_pending_request_overwritten_by_default(self, coordinator, db, session, linked_device):
        coordinator.manual_dispense(session, DOSES)
        first = db.realtime.data["devices"][PIN]["dispenseRequestedAt"]
        coordinator.manual_dispense(session, DOSES)

        assert db.realtime.data["devices"][PIN]["dispenseRequestedAt"] > first


class TestAutoDispense:

    def test_rotates_then_dispenses(self, coordinator, db, session, linked_device):
        outcome = coordinator.auto_dispense(session, DOSES)

        record = db.realtime.data["devices"][PIN]
        assert outcome.dispensed and outcome.rotated
        assert record["motorRotate"]["angle"] == 45
        assert record["dispense"] is True
        ops = [path for op, path in db.realtime.writes()]
        assert ops[-2:] == [f"devices/{PIN}/motorRotate", f"devices/{PIN}"]

    def test_blocked_is_silent_but_still_rotates(self, coordinator, db, session, linked_device):
        session.block_dispense("Allergy")

        outcome = coordinator.auto_dispense(session, DOSES)

        assert not outcome.dispensed
        assert outcome.reason == "Allergy"
        assert outcome.rotated
        assert "dispense" not in db.realtime.data["devices"][PIN]

    def test_block_stored_on_profile_stops_auto_dispense(self, coordinator, db, linked_device):
        db.firestore.docs["users/u1"]["dispenseBlocked"] = True
        db.firestore.docs["users/u1"]["safetyWarning"] = "Severe allergy to penicillin."
        session = Session(uid="u1")

        outcome = coordinator.auto_dispense(session, DOSES)

        assert not outcome.dispensed
        assert outcome.reason == "Severe allergy to penicillin."
        assert session.dispense_blocked
        assert "dispense" not in db.realtime.data["devices"][PIN]

    def test_no_device(self, coordinator, db):
        outcome = coordinator.auto_dispense(Session(uid="nobody"), DOSES)

        assert not outcome.dispensed
        assert outcome.pin is None
        assert db.realtime.writes() == []

    def test_write_failure_is_reported_not_raised(self, coordinator, db, session, linked_device):
        db.realtime.fail_on["update"] = unavailable()

        outcome = coordinator.auto_dispense(session, DOSES)

        assert not outcome.dispensed
        assert outcome.rotated


class TestRotate:

    def test_writes_one_shot_command(self, coordinator, db, session, linked_device):
        command = coordinator.rotate(session, 90)

        assert db.realtime.data["devices"][PIN]["motorRotate"] == {
            "angle": 90,
            "timestamp": command.timestamp,
            "executed": False,
        }

    def test_uses_primary_device(self, coordinator, db, registry):
        db.realtime.data["devices"] = {
            "111111": {"status": "WAITING_FOR_PAIR"},
            "222222": {"status": "WAITING_FOR_PAIR"},
        }
        owner = Session(uid="u2")
        registry.link_device(owner, "111111")
        registry.link_device(owner, "222222")

        coordinator.rotate(Session(uid="u2"), 45)

        assert "motorRotate" in db.realtime.data["devices"]["111111"]
        assert "motorRotate" not in db.realtime.data["devices"]["222222"]

    def test_falls_back_to_earliest_linked_device(self, coordinator, db):
        db.realtime.data["devices"] = {
            "111111": {"status": "LINKED", "ownerUid": "u3"},
            "222222": {"status": "LINKED", "ownerUid": "u3"},
        }
        db.firestore.docs["users/u3/devices/222222"] = {
            "devicePIN": "222222", "linkedAt": datetime(2024, 2, 1, tzinfo=timezone.utc),
        }
        db.firestore.docs["users/u3/devices/111111"] = {
            "devicePIN": "111111", "linkedAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }

        coordinator.rotate(Session(uid="u3"), 45)

        assert "motorRotate" in db.realtime.data["devices"]["111111"]
