"""Callable brokers package."""

from .link_device import link_device_callable
from .get_slots import get_slots_callable
from .update_slot import update_slot_callable
from .dispense import dispense_callable
from .rotate_motor import rotate_motor_callable
from .check_allergy import check_allergy_callable
from .check_interaction import check_interaction_callable
from .get_suggestions import get_suggestions_callable
from .add_dose import add_dose_callable

__all__ = [
    "link_device_callable",
    "get_slots_callable",
    "update_slot_callable",
    "dispense_callable",
    "rotate_motor_callable",
    "check_allergy_callable",
    "check_interaction_callable",
    "get_suggestions_callable",
    "add_dose_callable",
]
