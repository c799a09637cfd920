"""Pytest configuration and fixtures."""

import copy
import os
import sys

import pytest

# Add root to path for the pillmate package
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ.setdefault("ENV", "development")
os.environ.pop("OPENAI_API_KEY", None)

from pillmate.config.loader import load_app_config  # noqa: E402
from pillmate.models.safety_types import AllergyCheckResult  # noqa: E402
from pillmate.services.dispense_coordinator import DispenseCoordinator  # noqa: E402
from pillmate.services.pairing_registry import PairingRegistry  # noqa: E402
from pillmate.services.safety_gate import SafetyGate  # noqa: E402
from pillmate.services.schedule_service import ScheduleService  # noqa: E402
from pillmate.services.session import Session  # noqa: E402
from pillmate.services.slot_inventory import SlotInventoryStore  # noqa: E402
from tests.util.fakes import FakeDb, FakeSafetyChecker, RecordingNotifier  # noqa: E402

PIN = "123456"


@pytest.fixture
def config():
    """Bundled settings with timers shortened for tests."""
    config = copy.deepcopy(load_app_config())
    config["pairing"]["derived_write_base_delay_sec"] = 0
    config["notifications"]["dispatch_cooldown_sec"] = 0
    config["notifications"]["schedule_debounce_sec"] = 0.05
    config["safety"]["auth_wait_sec"] = 0.05
    return config


@pytest.fixture
def db():
    return FakeDb()


@pytest.fixture
def waiting_device(db):
    db.realtime.data["devices"] = {PIN: {"status": "WAITING_FOR_PAIR"}}
    return PIN


@pytest.fixture
def session():
    return Session(uid="u1", email="u1@example.com")


@pytest.fixture
def slots(db, config):
    return SlotInventoryStore(db, config)


@pytest.fixture
def registry(db, slots, config):
    return PairingRegistry(db, slots, config)


@pytest.fixture
def checker():
    return FakeSafetyChecker()


@pytest.fixture
def gate(checker, db, config):
    return SafetyGate(checker, db, config)


@pytest.fixture
def coordinator(gate, db, config):
    return DispenseCoordinator(gate, db, config)


@pytest.fixture
def schedule(gate, db):
    return ScheduleService(gate, db)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def linked_device(registry, session, waiting_device):
    registry.link_device(session, waiting_device)
    return waiting_device


@pytest.fixture
def blocking_allergy():
    return AllergyCheckResult(
        hasAllergy=True,
        severity="high",
        message="Contains penicillin.",
        shouldBlock=True,
    )
