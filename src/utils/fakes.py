"""In-memory stand-ins for the DynamoDB table, SQS and SNS clients used in tests."""

import copy
import itertools

from botocore.exceptions import ClientError


class FakeTable:
    """Subset of the boto3 Table resource: get_item/put_item/update_item keyed by userId + taskId."""

    def __init__(self, items=()):
        self.items = {}
        self.writes = []
        for item in items:
            self.items[(item["userId"], item["taskId"])] = dict(item)

    def get_item(self, Key, ConsistentRead=False):
        item = self.items.get((Key["userId"], Key["taskId"]))
        return {"Item": copy.deepcopy(item)} if item is not None else {}

    def _check(self, key, condition, operation):
        if condition is None:
            return
        attr, expected = condition.get_expression()["values"]
        if self.items.get(key, {}).get(attr.name) != expected:
            raise ClientError(
                {"Error": {"Code": "ConditionalCheckFailedException", "Message": "The conditional request failed"}},
                operation,
            )

    def put_item(self, Item, ConditionExpression=None):
        key = (Item["userId"], Item["taskId"])
        self._check(key, ConditionExpression, "PutItem")
        self.items[key] = copy.deepcopy(Item)
        self.writes.append(copy.deepcopy(Item))
        return {}

    def update_item(
        self,
        Key,
        UpdateExpression=None,
        ExpressionAttributeNames=None,
        ExpressionAttributeValues=None,
        ConditionExpression=None,
    ):
        """Understands ``SET #n1 = :v1, #n2 = :v2`` expressions only."""
        key = (Key["userId"], Key["taskId"])
        self._check(key, ConditionExpression, "UpdateItem")
        item = self.items.setdefault(key, dict(Key))
        if UpdateExpression:
            assert UpdateExpression.startswith("SET ")
            for clause in UpdateExpression[len("SET "):].split(", "):
                name, value = clause.split(" = ")
                item[ExpressionAttributeNames[name]] = copy.deepcopy(ExpressionAttributeValues[value])
        self.writes.append(copy.deepcopy(item))
        return {}


class FakeSqs:
    """Records sent messages. Given a clock, it also drops a message whose
    deduplication id was accepted in the previous 5 minutes, like a FIFO queue."""

    DEDUP_WINDOW_MS = 300_000

    def __init__(self, clock=None):
        self.sent = []
        self.dropped = []
        self.clock = clock
        self._dedup = {}
        self._ids = itertools.count(1)

    def send_message(self, **kwargs):
        dedup_id = kwargs.get("MessageDeduplicationId")
        if self.clock is not None and dedup_id in self._dedup:
            accepted_at, message_id = self._dedup[dedup_id]
            if self.clock() - accepted_at < self.DEDUP_WINDOW_MS:
                # SQS reports success for the duplicate and never delivers it
                self.dropped.append(dict(kwargs))
                return {"MessageId": message_id}

        message_id = f"msg-{next(self._ids)}"
        if self.clock is not None:
            self._dedup[dedup_id] = (self.clock(), message_id)
        self.sent.append(dict(kwargs, MessageId=message_id))
        return {"MessageId": message_id}

    def as_records(self):
        """Sent messages shaped like the Records of an SQS Lambda event."""
        return [{"messageId": m["MessageId"], "body": m["MessageBody"]} for m in self.sent]


class FakeSns:
    def __init__(self, fail=False):
        self.published = []
        self.fail = fail

    def publish(self, **kwargs):
        if self.fail:
            raise ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, "Publish")
        self.published.append(kwargs)
        return {"MessageId": f"sns-{len(self.published)}"}


class FixedClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms
