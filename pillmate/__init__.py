"""PillMate device backend: pairing, slot inventory, dispense and reminders."""

__version__ = "0.1.0"
