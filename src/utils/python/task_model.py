from dataclasses import asdict, dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

PENDING = "Pending"
EXPIRED = "Expired"
COMPLETED = "Completed"

# field name -> (item attribute, stream type tag)
ATTRIBUTES = {
    "user_id": ("userId", "S"),
    "task_id": ("taskId", "S"),
    "user_email": ("userEmail", "S"),
    "description": ("description", "S"),
    "date": ("date", "S"),
    "status": ("status", "S"),
    "deadline": ("deadline", "N"),
    "created_at": ("createdAt", "N"),
}


def _to_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = Decimal(str(value))
        if number != number.to_integral_value():
            return None
        return int(number)
    except (InvalidOperation, ValueError, TypeError, OverflowError):
        return None


def _coerce(tag: str, value):
    if tag == "S":
        return value if isinstance(value, str) else None
    return _to_int(value)


@dataclass(frozen=True)
class Task:
    """Snapshot of a task row. Never mutated; use with_status() for a new one."""

    user_id: Optional[str] = None
    task_id: Optional[str] = None
    user_email: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    status: Optional[str] = None
    deadline: Optional[int] = None
    created_at: Optional[int] = None

    def is_pending(self) -> bool:
        return self.status == PENDING

    def with_status(self, status: str) -> "Task":
        return replace(self, status=status)

    def to_item(self) -> dict:
        item = {}
        for field_name, value in asdict(self).items():
            if value is not None:
                item[ATTRIBUTES[field_name][0]] = value
        return item

    @classmethod
    def from_item(cls, item: Optional[Mapping[str, Any]]) -> "Task":
        """Build a task from an item returned by the DynamoDB resource API."""
        if not isinstance(item, Mapping):
            return cls()
        values = {}
        for field_name, (attr, tag) in ATTRIBUTES.items():
            if item.get(attr) is not None:
                values[field_name] = _coerce(tag, item[attr])
        return cls(**values)

    @classmethod
    def from_stream_image(cls, image: Optional[Mapping[str, Any]]) -> "Task":
        """Build a task from a DynamoDB stream image such as ``{"status": {"S": "Pending"}}``.

        Stream images are partial: an old image may be missing attributes and a
        REMOVE has no new image at all. Anything missing, null or carrying the
        wrong type tag is left unset instead of raising.
        """
        if not isinstance(image, Mapping):
            return cls()
        values = {}
        for field_name, (attr, tag) in ATTRIBUTES.items():
            raw = image.get(attr)
            if not isinstance(raw, Mapping) or raw.get(tag) is None:
                continue
            values[field_name] = _coerce(tag, raw[tag])
        return cls(**values)
