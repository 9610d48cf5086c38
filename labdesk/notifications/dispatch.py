# labdesk/notifications/dispatch.py
import logging

logger = logging.getLogger(__name__)


def enqueue(task, *args):
    """
    Fire-and-forget: schedules a Celery task after the triggering change is committed.
    A broker outage is logged and the message dropped; the caller's response is unaffected.
    """
    try:
        task.delay(*args)
    except Exception:
        logger.exception("Could not enqueue %s%r; notification dropped", getattr(task, "name", task), args)
