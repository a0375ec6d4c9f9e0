import logging

from aws_clients import configure_logging, get_sqs_client, load_settings
from expiry_dispatcher import ExpiryDispatcher
from task_model import Task

logger = logging.getLogger(__name__)

_dispatcher = None


def _get_dispatcher():
    global _dispatcher
    if _dispatcher is None:
        settings = load_settings(required=("expiry_queue_url",))
        configure_logging(settings)
        _dispatcher = ExpiryDispatcher(get_sqs_client(settings), settings.expiry_queue_url)
    return _dispatcher


def cancel_expiry_check(task, new_status=None):
    # A delayed SQS message can't be retracted. The expiry processor re-reads the
    # task and drops the message once it's no longer Pending.
    logger.info(f"Task {task.task_id} left Pending ({new_status!r} now), expiry check will be ignored")


def process_stream_records(records, dispatcher):
    for rec in records:
        event_name = rec.get("eventName")
        images = rec.get("dynamodb") or {}

        if event_name == "INSERT":
            new_task = Task.from_stream_image(images.get("NewImage"))
            if new_task.is_pending():
                dispatcher.schedule(new_task)
            else:
                logger.info(f"Inserted task {new_task.task_id} has status {new_task.status!r}, nothing to schedule")

        elif event_name == "MODIFY":
            old_task = Task.from_stream_image(images.get("OldImage"))
            new_task = Task.from_stream_image(images.get("NewImage"))
            if old_task.is_pending() and not new_task.is_pending():
                cancel_expiry_check(old_task, new_task.status)
            # still Pending after an edit: the check scheduled at creation stands

        else:
            # REMOVE: hard deletes are dropped by the expiry processor when the row is gone
            logger.debug(f"Ignoring {event_name} stream record")


def lambda_handler(event, context):
    # Scheduling failures propagate so Lambda retries the whole stream batch.
    process_stream_records(event.get("Records", []), _get_dispatcher())
    return {"statusCode": 200}
