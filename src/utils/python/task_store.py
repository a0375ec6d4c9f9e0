import logging
from typing import Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from task_model import Task

logger = logging.getLogger(__name__)


class TaskStore:
    """Task table access (hash key userId, range key taskId)."""

    def __init__(self, table):
        self.table = table

    def get(self, user_id: str, task_id: str) -> Optional[Task]:
        resp = self.table.get_item(Key={"userId": user_id, "taskId": task_id}, ConsistentRead=True)
        item = resp.get("Item")
        if not item:
            return None
        return Task.from_item(item)

    def put(self, task: Task) -> None:
        self.table.put_item(Item=task.to_item())

    def update(self, task: Task, expected_status: Optional[str] = None) -> bool:
        """Write every task field back to the stored item.

        Attributes the task model doesn't know about (index keys written by other
        code paths) are left as they are. Returns False if ``expected_status``
        no longer matches.
        """
        item = task.to_item()
        key = {"userId": item.pop("userId", None), "taskId": item.pop("taskId", None)}

        # Build UpdateExpression
        expr = []
        attr_vals = {}
        attr_names = {}
        for i, (name, value) in enumerate(item.items(), start=1):
            expr.append(f"#n{i} = :v{i}")
            attr_names[f"#n{i}"] = name
            attr_vals[f":v{i}"] = value

        kwargs = {"Key": key}
        if expr:
            kwargs["UpdateExpression"] = "SET " + ", ".join(expr)
            kwargs["ExpressionAttributeNames"] = attr_names
            kwargs["ExpressionAttributeValues"] = attr_vals
        if expected_status is not None:
            kwargs["ConditionExpression"] = Attr("status").eq(expected_status)
        try:
            self.table.update_item(**kwargs)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                logger.info(f"Task {task.task_id} is no longer {expected_status}, write skipped")
                return False
            raise
        return True
