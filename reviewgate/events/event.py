from dataclasses import asdict, is_dataclass
from typing import Any


class Event:
    """Base class for events published to the notifier."""

    name = "event"

    def __init__(self, data: Any):
        self.data = data

    def to_dict(self) -> dict:
        payload = asdict(self.data) if is_dataclass(self.data) else {"data": self.data}
        return {"event": self.name, **payload}

    def __str__(self):
        return f"{self.__class__.__name__}: {self.data}"
