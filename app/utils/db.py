from contextlib import contextmanager
import logging
from sqlalchemy.exc import IntegrityError, OperationalError
from models import db


@contextmanager
def transactional(message="DB transaction failed"):
    """Commit on success; roll back on any failure.

    Constraint violations surface as ConflictError (409) and a lost or locked
    database as TransientError (503). Anything else is re-raised unchanged.
    """
    from app.errors import AppError, ConflictError, TransientError

    try:
        yield
        db.session.commit()
    except AppError as e:
        logging.info(f"{message}: %s", e)
        db.session.rollback()
        raise
    except IntegrityError as e:
        logging.warning(f"{message}: %s", e.orig if e.orig is not None else e)
        db.session.rollback()
        raise ConflictError(f"{message}: conflicting data") from e
    except OperationalError as e:
        logging.error(f"{message}: %s", e, exc_info=True)
        db.session.rollback()
        raise TransientError("Service temporarily unavailable, please retry.") from e
    except Exception as e:
        logging.error(f"{message}: %s", e, exc_info=True)
        db.session.rollback()
        raise
