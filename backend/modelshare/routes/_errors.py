import logging
from contextlib import contextmanager

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..services.errors import ModelShareError

logger = logging.getLogger(__name__)


@contextmanager
def service_errors(db: Session):
    """Roll back and translate service failures raised inside the block."""

    try:
        yield
    except ModelShareError as exc:
        db.rollback()
        logger.warning("%s: %s", type(exc).__name__, exc)
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except (IntegrityError, StaleDataError) as exc:
        db.rollback()
        logger.warning("write conflict: %s", exc)
        raise HTTPException(
            status_code=409,
            detail="The resource was modified concurrently, retry the request",
        ) from exc
