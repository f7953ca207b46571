"""
Persist errors into the error_logs table without ever masking the original failure.
"""
import logging
import traceback
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from cfa_practice.core.database import SessionLocal
from cfa_practice.services import storage

logger = logging.getLogger(__name__)

def record_error(message: str, stack: Optional[str] = None, user_id: Optional[int] = None,
                 metadata: Optional[Dict[str, Any]] = None, route: Optional[str] = None,
                 method: Optional[str] = None) -> None:
    """Write one error_logs row using a session of its own."""
    db = SessionLocal()
    try:
        storage.log_error(db, message, error_stack=stack, user_id=user_id, metadata=metadata, route=route, method=method)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to log error to database: {e}; original error: {message}")
    finally:
        db.close()

def record_exception(exc: BaseException, user_id: Optional[int] = None, route: Optional[str] = None,
                     method: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> None:
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    record_error(str(exc) or exc.__class__.__name__, stack=stack, user_id=user_id, metadata=metadata, route=route, method=method)
