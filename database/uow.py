import contextlib
import logging

from sqlalchemy.orm import sessionmaker

from database.repositories.center import CenterRepository

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def center_uow(session_factory: sessionmaker):
    """Per-unit-of-work scope for center directory reads.

    Yields a CenterRepository bound to a fresh Session. Rolls back on exception,
    always closes.

    Usage:
        with center_uow(SessionLocal) as repo:
            candidates = repo.fetch_candidates(location, 10)
    """
    session = session_factory()
    try:
        yield CenterRepository(session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
