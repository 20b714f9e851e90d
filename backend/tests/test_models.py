from tandem.db.base import Base
from tandem.db import models  # noqa: F401  ensure models are loaded


def test_metadata_contains_core_tables() -> None:
    table_names = set(Base.metadata.tables.keys())
    expected = {
        "users",
        "weeks",
        "tasks",
        "wizard_progress",
        "activity_log",
    }

    assert expected.issubset(table_names)
