"""FamilyHub medication reminders."""

__version__ = "1.0.0"
