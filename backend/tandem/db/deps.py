"""FastAPI dependencies for database access."""
from __future__ import annotations

from sqlalchemy.orm import sessionmaker


def get_session_factory() -> sessionmaker:
    """Return the session factory used by the wizard stores.

    Imported lazily so that tests can override this dependency without
    a reachable database.
    """
    from tandem.db.session import SessionLocal

    return SessionLocal
