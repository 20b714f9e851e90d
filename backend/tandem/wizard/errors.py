"""Error taxonomy for the weekly wizard engine."""
from __future__ import annotations


class WizardError(Exception):
    """Base class for wizard engine failures."""


class ValidationFailed(WizardError):
    """User input rejected before any mutation; the user corrects it."""


class TaskValidationError(ValidationFailed):
    """Task fields rejected by the task store."""


class StoreUnavailableError(WizardError):
    """The task/week store rejected a read or write; safe to retry."""


class ProgressStoreError(WizardError):
    """Wizard progress could not be persisted."""


class WindowClosedError(WizardError):
    """The flow may not be entered at this time."""


class SessionNotFoundError(WizardError):
    """No live wizard session exists for the user and flow."""
