import logging

from aws_clients import (
    configure_logging,
    get_sns_client,
    get_sqs_client,
    get_task_table,
    load_settings,
)
from expiry_dispatcher import ExpiryDispatcher, ExpiryIntent, now_ms
from expiry_errors import MalformedIntentError
from notification_service import ExpiryNotifier
from task_model import EXPIRED, PENDING
from task_store import TaskStore

logger = logging.getLogger(__name__)

MISSING = "missing"
SKIPPED = "skipped"
RESCHEDULED = "rescheduled"
EXPIRED_OUTCOME = "expired"
CONFLICT = "conflict"


class ExpiryConsumer:
    """Applies Pending -> Expired for delivered expiry checks.

    The queue delivers at least once and a check can't be withdrawn after it is
    sent, so every message is validated against the stored task. Whatever
    happened to the task since scheduling wins over the message.
    """

    def __init__(self, store, notifier, dispatcher, clock=now_ms):
        self.store = store
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.clock = clock

    def handle_intent(self, intent: ExpiryIntent) -> str:
        task = self.store.get(intent.user_id, intent.task_id)
        if task is None:
            logger.info(f"Task {intent.task_id} no longer exists, dropping expiry check")
            return MISSING

        if not task.is_pending():
            # completed/expired already, or a duplicate delivery
            logger.info(f"Task {task.task_id} is {task.status!r}, dropping expiry check")
            return SKIPPED

        if task.deadline is not None and task.deadline - self.clock() >= 1000:
            # delay was capped at the SQS maximum, or the check came in early
            self.dispatcher.schedule(task, hop=True)
            logger.info(f"Task {task.task_id} is not due yet, expiry check rescheduled")
            return RESCHEDULED

        expired = task.with_status(EXPIRED)
        if not self.store.update(expired, expected_status=PENDING):
            return CONFLICT
        logger.info(f"Task {task.task_id} marked {EXPIRED}")

        try:
            self.notifier.notify_expired(expired, expired.user_email or intent.user_email)
        except Exception as e:
            logger.exception(f"Failed to publish expiry notification for task {task.task_id}: {e}")
        return EXPIRED_OUTCOME

    def process_batch(self, records) -> dict:
        failures = []
        for rec in records:
            message_id = rec.get("messageId")
            try:
                intent = ExpiryIntent.from_json(rec.get("body"))
            except MalformedIntentError as e:
                logger.warning(f"Dropping malformed expiry message {message_id}: {e}")
                continue

            try:
                self.handle_intent(intent)
            except Exception as e:
                logger.exception(f"Failed to process expiry check for task {intent.task_id}: {e}")
                if message_id:
                    failures.append({"itemIdentifier": message_id})

        return {"batchItemFailures": failures}


_consumer = None


def _get_consumer():
    global _consumer
    if _consumer is None:
        settings = load_settings(required=("task_table_name", "expiry_queue_url", "sns_topic_arn"))
        configure_logging(settings)
        _consumer = ExpiryConsumer(
            TaskStore(get_task_table(settings)),
            ExpiryNotifier(get_sns_client(settings), settings.sns_topic_arn),
            ExpiryDispatcher(get_sqs_client(settings), settings.expiry_queue_url),
        )
    return _consumer


def lambda_handler(event, context):
    # event is SQS event -> iterate Records
    return _get_consumer().process_batch(event.get("Records", []))
