from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from learnhub.services.ordering import ItemNotFound, PositionError, ScopeNotFound


log = logging.getLogger(__name__)


@contextmanager
def write_transaction(db: Session, *, action: str) -> Iterator[Session]:
    """Run a mutation as one unit: commit on success, roll everything back otherwise.

    Ordering errors become 400/404, database failures a 500 `storage_error`.
    """
    try:
        yield db
        db.commit()
    except PositionError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except (ScopeNotFound, ItemNotFound) as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e)) from e
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("%s failed", action)
        raise HTTPException(
            status_code=500,
            detail={"error_code": "storage_error", "error_message": f"Failed to {action}. No changes were saved."},
        ) from e
    except Exception:
        db.rollback()
        raise
