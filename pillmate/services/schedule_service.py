"""A user's medication schedule, with safety checks on every addition."""

from typing import Any, Callable, Dict, List, Optional

from pillmate.apis.Db import Db
from pillmate.documents.users.User import User
from pillmate.exceptions import (
    DispenseBlockedError,
    InteractionConflictError,
    NotAuthenticatedError,
    NotFoundError,
    ValidationError,
)
from pillmate.models.firestore_types import DoseDoc
from pillmate.services.reminder_scheduler import format_hhmm, parse_hhmm
from pillmate.services.safety_gate import SafetyGate
from pillmate.services.session import Session
from pillmate.util.backend_errors import backend_errors
from pillmate.util.logger import get_logger

logger = get_logger(__name__)

# (title, message) -> proceed?
ConfirmFn = Callable[[str, str], bool]


def _decline(title: str, message: str) -> bool:
    return False


def validate_dose_fields(med_name: str, dose: Any, time: str) -> Dict[str, str]:
    """Normalize name, dose and time.

    Raises:
        ValidationError: Missing name, non-positive dose or bad time
    """
    name = med_name.strip() if isinstance(med_name, str) else ""
    if not name:
        raise ValidationError("Please enter a medication name.", field="medName")

    dose_str = str(dose).strip() if dose is not None else ""
    try:
        valid_dose = float(dose_str) > 0
    except ValueError:
        valid_dose = False
    if not valid_dose:
        raise ValidationError("Please enter a valid number for the dose.", field="dose")

    hour, minute = parse_hhmm(time)
    return {"medName": name, "dose": dose_str, "time": format_hhmm(hour, minute)}


class ScheduleService:
    """CRUD over ``users/{uid}/schedule`` plus the medication addition gate."""

    def __init__(self, gate: SafetyGate, db: Optional[Db] = None):
        self.gate = gate
        self.db = db or Db.get_instance()

    def _collection(self, session: Session):
        if not session.uid:
            raise NotAuthenticatedError()
        return self.db.collections["userSchedule"](session.uid)

    def list_doses(self, session: Session) -> List[DoseDoc]:
        """All doses, ordered by time of day."""
        with backend_errors(f"list schedule of user {session.uid}"):
            snaps = self._collection(session).order_by("time").get()
        return [DoseDoc(**{**(snap.to_dict() or {}), "id": snap.id}) for snap in snaps]

    def add_dose(
        self,
        session: Session,
        med_name: str,
        dose: Any,
        time: str,
        confirm: Optional[ConfirmFn] = None,
    ) -> Optional[DoseDoc]:
        """Add a dose after the allergy and interaction checks.

        Returns:
            The stored dose, or None when a warning was not confirmed

        Raises:
            ValidationError: Invalid input
            DispenseBlockedError: Blocking allergy; also stores the sticky block on the user
            InteractionConflictError: Cannot be taken with an existing dose
        """
        fields = validate_dose_fields(med_name, dose, time)
        confirm = confirm or _decline
        name = fields["medName"]

        allergy = self.gate.check_allergy(session, name)
        if allergy.hasAllergy:
            if allergy.shouldBlock:
                session.block_dispense(allergy.message)
                User(session.uid, db=self.db).set_dispense_block(allergy.message)
                raise DispenseBlockedError(allergy.message)
            warning = f"{allergy.message}\n\nSeverity: {allergy.severity.upper()}"
            if not confirm("Allergy warning", warning):
                logger.info(f"User {session.uid} declined to add {name} after allergy warning")
                return None

        for existing in self.list_doses(session):
            if not existing.enabled:
                continue

            interaction = self.gate.check_interaction(session, name, existing.medName, fields["time"], existing.time)
            if not interaction.canTakeTogether or interaction.recommendation == "avoid":
                raise InteractionConflictError(name, existing.medName, interaction.message)

            if interaction.recommendation == "space_hours" and interaction.timeGapRequired > 0:
                warning = (
                    f"{interaction.message}\n\nYou need at least {interaction.timeGapRequired:g} hours "
                    f'between "{name}" and "{existing.medName}".'
                )
                if not confirm("Time gap required", warning):
                    logger.info(f"User {session.uid} declined to add {name} after time gap warning")
                    return None

        with backend_errors(f"add dose for user {session.uid}"):
            doc_ref = self._collection(session).document()
            record = DoseDoc(id=doc_ref.id, enabled=True, createdAt=self.db.get_created_at(), **fields)
            doc_ref.set(record.model_dump(exclude={"id"}))

        session.clear_dispense_block()
        User(session.uid, db=self.db).clear_dispense_block()
        logger.info(f"Added {name} at {fields['time']} for user {session.uid}")
        return record

    def update_dose(self, session: Session, dose_id: str, med_name: str, dose: Any, time: str) -> Dict[str, str]:
        fields = validate_dose_fields(med_name, dose, time)
        doc_ref = self._collection(session).document(dose_id)
        with backend_errors(f"update dose {dose_id}"):
            if not doc_ref.get().exists:
                raise NotFoundError("Dose", dose_id)
            doc_ref.update(fields)
        logger.info(f"Updated dose {dose_id} for user {session.uid}")
        return fields

    def toggle_dose(self, session: Session, dose_id: str) -> bool:
        """Flip ``enabled``; returns the new value."""
        doc_ref = self._collection(session).document(dose_id)
        with backend_errors(f"toggle dose {dose_id}"):
            snap = doc_ref.get()
            if not snap.exists:
                raise NotFoundError("Dose", dose_id)
            enabled = not (snap.to_dict() or {}).get("enabled", True)
            doc_ref.update({"enabled": enabled})
        return enabled

    def delete_dose(self, session: Session, dose_id: str):
        with backend_errors(f"delete dose {dose_id}"):
            self._collection(session).document(dose_id).delete()
        logger.info(f"Deleted dose {dose_id} for user {session.uid}")
