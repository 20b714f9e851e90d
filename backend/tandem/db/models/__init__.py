"""ORM models exposed for metadata discovery."""
from tandem.db.models.activity_log import ActivityLog
from tandem.db.models.task import Task
from tandem.db.models.user import User
from tandem.db.models.week import Week
from tandem.db.models.wizard_progress import WizardProgressRecord

__all__ = [
    "ActivityLog",
    "Task",
    "User",
    "Week",
    "WizardProgressRecord",
]
