"""Command line access to the device core, for support and bench testing."""

import argparse
import queue
import sys
from typing import List, Optional

import firebase_admin
from firebase_admin import auth

from pillmate.config.env_loader import EnvironmentError, load_environment, validate_environment
from pillmate.exceptions import PillMateError
from pillmate.models.realtime_types import Slot
from pillmate.services.dispense_coordinator import DispenseCoordinator, resolve_device_pin
from pillmate.services.inventory_watcher import InventoryWatcher
from pillmate.services.pairing_registry import PairingRegistry
from pillmate.services.safety_gate import SafetyGate
from pillmate.services.safety_service import SafetyService
from pillmate.services.schedule_service import ScheduleService
from pillmate.services.session import Session
from pillmate.services.slot_inventory import SlotInventoryStore


class ConsoleNotifier:
    """Prints stock alerts instead of pushing them."""

    def notify(self, uid: str, title: str, body: str) -> int:
        print(f"\n🔔 {title}\n{body}")
        return 1


def init_firebase():
    if firebase_admin._apps:
        return
    env = validate_environment()
    firebase_admin.initialize_app(options={"databaseURL": env["FIREBASE_DATABASE_URL"]})


def build_session(uid: str, pin: Optional[str] = None) -> Session:
    """Session for an existing Firebase Auth user."""
    user = auth.get_user(uid)
    return Session(uid=user.uid, email=user.email, device_pin=pin)


def print_slots(slots: List[Slot]):
    for slot in slots:
        name = slot.medicationName or "(unassigned)"
        print(f"  Slot {slot.slotNumber}: {name:<24} {slot.pillCount:>3}/{slot.maxCapacity}  [{slot.status.value}]")


def cmd_link(args) -> int:
    result = PairingRegistry().link_device(build_session(args.uid), args.pin)
    print(f"✅ {result.message} (PIN {result.pin}, session {result.pairing_session})")
    if result.slots_seeded:
        print(f"   Initialized slots: {', '.join(str(n) for n in result.slots_seeded)}")
    return 0


def cmd_slots(args) -> int:
    session = build_session(args.uid, args.pin)
    pin = resolve_device_pin(session)
    print(f"📦 Slots of device {pin}")
    print_slots(SlotInventoryStore().load_slots(pin))
    return 0


def cmd_update_slot(args) -> int:
    session = build_session(args.uid, args.pin)
    pin = resolve_device_pin(session)
    SlotInventoryStore().update_slot(pin, args.slot, args.name, args.count)
    print(f"✅ Slot {args.slot} updated successfully!")
    return 0


def cmd_dispense(args) -> int:
    session = build_session(args.uid, args.pin)
    gate = SafetyGate(SafetyService())
    doses = ScheduleService(gate).list_doses(session)
    pin = DispenseCoordinator(gate).manual_dispense(session, doses)
    print(f"💊 Dispense triggered on device {pin}. The device will dispense a dose now.")
    return 0


def cmd_rotate(args) -> int:
    session = build_session(args.uid, args.pin)
    command = DispenseCoordinator(SafetyGate(SafetyService())).rotate(session, args.angle)
    print(f"🔄 Motor rotation of {command.angle} degrees sent to device {session.device_pin}")
    return 0


def cmd_watch(args) -> int:
    session = build_session(args.uid, args.pin)
    pin = resolve_device_pin(session)
    watcher = InventoryWatcher(session.uid, pin, ConsoleNotifier())

    print(f"👀 Watching device {pin}, Ctrl+C to stop")
    subscription = SlotInventoryStore().watch_slots(pin)
    watcher.start()
    try:
        for slots in subscription:
            print()
            print_slots(slots)
    except KeyboardInterrupt:
        pass
    finally:
        subscription.cancel()
        watcher.stop()
    return 0


def cmd_waiting(args) -> int:
    with PairingRegistry().find_waiting_devices() as subscription:
        try:
            pins = subscription.get(timeout=args.timeout)
        except queue.Empty:
            print(f"No response from the Realtime Database within {args.timeout:g}s.", file=sys.stderr)
            return 1
    if not pins:
        print("No devices are waiting for pairing.")
    for pin in pins:
        print(f"  {pin}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pillmate",
        description="PillMate device core",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pillmate waiting
  pillmate link --uid USER_ID --pin 123456
  pillmate update-slot --uid USER_ID --slot 3 --name Aspirin --count 30
  pillmate dispense --uid USER_ID
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def with_user(sub, pin_required=False):
        sub.add_argument("--uid", required=True, help="Firebase Auth user id")
        sub.add_argument("--pin", required=pin_required, help="Device PIN (default: the user's primary device)")
        return sub

    link = with_user(subparsers.add_parser("link", help="Link a device to a user"), pin_required=True)
    link.set_defaults(func=cmd_link)

    slots = with_user(subparsers.add_parser("slots", help="Show the slots of a device"))
    slots.set_defaults(func=cmd_slots)

    update = with_user(subparsers.add_parser("update-slot", help="Assign a medication to a slot"))
    update.add_argument("--slot", type=int, required=True, help="Slot number (1-7)")
    update.add_argument("--name", default=None, help="Medication name (omit to unassign)")
    update.add_argument("--count", type=int, required=True, help="Pill count")
    update.set_defaults(func=cmd_update_slot)

    dispense = with_user(subparsers.add_parser("dispense", help="Dispense the next dose now"))
    dispense.set_defaults(func=cmd_dispense)

    rotate = with_user(subparsers.add_parser("rotate", help="Rotate the device motor"))
    rotate.add_argument("--angle", type=int, default=45, help="Degrees (default: 45)")
    rotate.set_defaults(func=cmd_rotate)

    watch = with_user(subparsers.add_parser("watch", help="Stream slots and stock alerts"))
    watch.set_defaults(func=cmd_watch)

    waiting = subparsers.add_parser("waiting", help="List devices waiting for pairing")
    waiting.add_argument("--timeout", type=float, default=10, help="Seconds to wait for the first snapshot")
    waiting.set_defaults(func=cmd_waiting)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_environment()
    try:
        init_firebase()
    except EnvironmentError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2

    try:
        return args.func(args)
    except PillMateError as e:
        print(f"❌ {e.user_message}", file=sys.stderr)
        return 1
    except auth.UserNotFoundError:
        print(f"❌ No user with id {args.uid}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
