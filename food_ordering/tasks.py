"""
Celery Tasks
Background export of order ledger events.
"""

import logging
import time

from kombu.exceptions import OperationalError

from food_ordering.celery_worker import celery_app
from food_ordering.services.ledger_export import LedgerExporter

logger = logging.getLogger(__name__)


class LedgerExportFailed(Exception):
    """The ledger file could not be written; raised so the task is retried."""


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_ledger_event(self, event_data: dict) -> dict:
    """
    Append one ledger event to the Excel ledger.

    Args:
        event_data: Order snapshot plus ``event`` and ``previous_status``

    Returns:
        dict: Result of the export operation

    Raises:
        LedgerExportFailed: Lock timeout; Celery retries with backoff
    """
    task_id = self.request.id
    order_id = event_data.get('order_id', 'unknown')
    event = event_data.get('event', 'unknown')

    logger.info(f"Task {task_id}: exporting {event} for order #{order_id}")
    start_time = time.time()

    result = LedgerExporter.export_event(event_data)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"Task {task_id}: order #{order_id} {event} exported in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: order #{order_id} {event} failed - {result['message']}")
        raise LedgerExportFailed(result['message'])

    return result


def queue_ledger_event(event_data: dict) -> None:
    """
    Hand a ledger event to the worker.

    The order change is already committed when this runs, so a broker outage
    is logged rather than reported to the client.
    """
    try:
        export_ledger_event.delay(event_data)
    except OperationalError as e:
        logger.error(
            f"Could not queue {event_data.get('event')} for order "
            f"#{event_data.get('order_id')}: {e}"
        )
