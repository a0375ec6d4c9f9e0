import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)

EXPIRY_SUBJECT = "Task Expiry Notification"


def format_deadline(deadline_ms: Optional[int]) -> str:
    if deadline_ms is None:
        return "unknown"
    return datetime.fromtimestamp(deadline_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_expiry_message(task) -> str:
    return (
        f"Task Expired: {task.task_id}\n"
        f"Description: {task.description or ''}\n"
        f"Date: {task.date or ''}\n"
        f"Deadline: {format_deadline(task.deadline)}"
    )


class ExpiryNotifier:
    def __init__(self, sns_client, topic_arn: str):
        self.sns = sns_client
        self.topic_arn = topic_arn

    def notify_expired(self, task, user_email: Optional[str] = None) -> dict:
        kwargs = {
            "TopicArn": self.topic_arn,
            "Subject": EXPIRY_SUBJECT,
            "Message": format_expiry_message(task),
        }
        if user_email:
            kwargs["MessageAttributes"] = {"email": {"DataType": "String", "StringValue": user_email}}
        resp = self.sns.publish(**kwargs)
        logger.info(f"Published expiry notification for task {task.task_id}")
        return resp
