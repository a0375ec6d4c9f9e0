"""Sends delayed expiry checks to the FIFO expiry queue.

One message per task, grouped by task id and deduplicated on
``<taskId>-<deadline>``. SQS caps a message delay at 900 seconds, so a
deadline further out is sent with the maximum delay and the consumer sends
it again when it arrives before the deadline. Those later sends get their own
deduplication id so the queue does not drop them as repeats.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from expiry_errors import ExpiryScheduleError, MalformedIntentError

logger = logging.getLogger(__name__)

MAX_DELAY_SECONDS = 900


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ExpiryIntent:
    user_id: str
    task_id: str
    user_email: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps({"userId": self.user_id, "taskId": self.task_id, "userEmail": self.user_email})

    @classmethod
    def from_json(cls, body) -> "ExpiryIntent":
        try:
            data = json.loads(body)
        except (TypeError, ValueError) as e:
            raise MalformedIntentError(f"Expiry message body is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedIntentError("Expiry message body is not a JSON object")

        user_id = data.get("userId")
        task_id = data.get("taskId")
        if not isinstance(user_id, str) or not user_id or not isinstance(task_id, str) or not task_id:
            raise MalformedIntentError("Expiry message is missing userId or taskId")
        user_email = data.get("userEmail")
        return cls(user_id, task_id, user_email if isinstance(user_email, str) else None)


def compute_delay_seconds(deadline_ms: int, current_ms: int) -> Optional[int]:
    """Delay to request for a deadline, or None when the message should be visible right away."""
    # int() truncates toward zero, same as integer division on the millisecond gap
    delay = int((deadline_ms - current_ms) / 1000)
    if delay <= 0:
        return None
    return min(delay, MAX_DELAY_SECONDS)


class ExpiryDispatcher:
    def __init__(self, sqs_client, queue_url: str, clock=now_ms):
        self.sqs = sqs_client
        self.queue_url = queue_url
        self.clock = clock

    def build_message(self, task, hop=False) -> dict:
        """send_message arguments for a task's expiry check.

        The first check is deduplicated on ``<taskId>-<deadline>``. A ``hop`` (sent
        again by the expiry processor) also carries its send time, since it can
        land inside the 5 minute FIFO deduplication window of the previous send.
        """
        if not task.user_id or not task.task_id:
            raise ExpiryScheduleError(f"Cannot schedule expiry without userId and taskId: {task!r}")
        if task.deadline is None:
            raise ExpiryScheduleError(f"Cannot schedule expiry for task {task.task_id} without a deadline")

        current = self.clock()
        dedup_id = f"{task.task_id}-{task.deadline}"
        if hop:
            dedup_id = f"{dedup_id}-{current}"

        intent = ExpiryIntent(task.user_id, task.task_id, task.user_email)
        message = {
            "QueueUrl": self.queue_url,
            "MessageBody": intent.to_json(),
            "MessageGroupId": task.task_id,
            "MessageDeduplicationId": dedup_id,
        }
        delay = compute_delay_seconds(task.deadline, current)
        if delay is not None:
            message["DelaySeconds"] = delay
        return message

    def schedule(self, task, hop=False) -> dict:
        message = self.build_message(task, hop=hop)
        try:
            resp = self.sqs.send_message(**message)
        except (ClientError, BotoCoreError) as e:
            raise ExpiryScheduleError(f"Failed to schedule expiry check for task {task.task_id}: {e}") from e

        logger.info(
            f"Scheduled expiry check for task {task.task_id} "
            f"(delay={message.get('DelaySeconds', 0)}s, messageId={resp.get('MessageId')})"
        )
        return resp
