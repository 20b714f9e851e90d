"""Run short synchronous session scopes from async store code."""
from __future__ import annotations

import logging
from typing import Callable, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from tandem.wizard.errors import StoreUnavailableError, WizardError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_unit_of_work(
    session_factory: sessionmaker,
    work: Callable[[Session], T],
    *,
    operation: str,
    error_cls: Type[WizardError] = StoreUnavailableError,
) -> T:
    """Execute ``work`` in its own session on the threadpool and commit it.

    SQLAlchemy failures roll the session back and surface as ``error_cls``.
    """
    return await run_in_threadpool(_execute, session_factory, work, operation, error_cls)


def _execute(
    session_factory: sessionmaker,
    work: Callable[[Session], T],
    operation: str,
    error_cls: Type[WizardError],
) -> T:
    session = session_factory()
    try:
        result = work(session)
        session.commit()
        return result
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("Store operation %s failed: %s", operation, exc)
        raise error_cls(f"{operation} failed") from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
