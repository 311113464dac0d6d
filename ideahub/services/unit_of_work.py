"""
Transaction boundary for mutating service operations.

Every public mutation runs its reads and writes inside ``unit_of_work()``:
commit on success, rollback on any exception, then re-raise.  A
uniqueness violation that escapes the service (e.g. on the final flush)
surfaces as ConflictError rather than a raw driver error.

Usage::

    with unit_of_work():
        idea = lock_for_update(Idea, idea_id)
        ...
"""

import logging
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ideahub.core.exceptions import ConflictError
from ideahub.models import db

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work():
    try:
        yield db.session
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError("The record was changed by another request. Please reload and try again.") from exc
    except Exception:
        db.session.rollback()
        raise


def lock_for_update(model, pk, *extra_criteria):
    """Load one row with ``SELECT … FOR UPDATE`` and refresh the identity map.

    SQLite ignores the lock clause; its single-writer model gives the same
    serialisation for the duration of the transaction.

    Returns:
        The model instance, or None when no row matches.
    """
    stmt = (
        select(model)
        .where(model.id == pk, *extra_criteria)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.session.execute(stmt).scalar_one_or_none()
