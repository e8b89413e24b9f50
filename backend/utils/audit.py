import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from models.log import Log

logger = logging.getLogger(__name__)


# Append an audit entry. Called after the business commit; a failure here is
# logged and swallowed so it can never undo the action it describes.
def write_log(db: Session, *, user_id, action, resource, status="SUCCESS", ip=None, meta=None):
    try:
        entry = Log(user_id=user_id, action=action, resource=resource, status=status, ip=ip, meta=meta or {})
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Audit log write failed: action=%s resource=%s", action, resource)
