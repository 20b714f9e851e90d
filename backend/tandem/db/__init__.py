"""Database utilities and models."""

from tandem.db.base import Base
from tandem.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
