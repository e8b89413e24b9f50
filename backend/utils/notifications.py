# backend/utils/notifications.py
import logging
from typing import Optional

from config import get_settings

logger = logging.getLogger(__name__)


def dispatch_order_event(order_id: int, event: str, *, status: Optional[str] = None, actor_id: Optional[int] = None):
    """Announce an order lifecycle event.

    Scheduled through FastAPI BackgroundTasks so it runs after the response
    has been sent; nothing in the request waits for it or sees its outcome.
    No mail transport is wired in, so the event is only logged.
    """
    if not get_settings().NOTIFICATIONS_ENABLED:
        logger.debug("order.notify skipped (disabled) order=%s event=%s", order_id, event)
        return
    logger.info("order.notify order=%s event=%s status=%s by=%s", order_id, event, status, actor_id)
