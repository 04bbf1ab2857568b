"""Hand-written conversion helpers referenced by the test definitions."""

from dataclasses import dataclass
from enum import Enum, auto

from wiremap.tests.fixtures import wire_types


class ValidationError(Exception):
    """Application error raised by converted records."""

    def __init__(self, kind: str, field: str) -> None:
        self.kind = kind
        self.field = field
        super().__init__(f"{kind}: {field}")

    @classmethod
    def missing_field(cls, field: str) -> "ValidationError":
        return cls("missing", field)

    @classmethod
    def invalid_value(cls, field: str) -> "ValidationError":
        return cls("invalid", field)


class Color(Enum):
    Red = auto()
    Green = auto()


@dataclass(frozen=True)
class Timestamp:
    seconds: int


def timestamp_from_wire(wire: wire_types.Timestamp) -> Timestamp:
    return Timestamp(wire.seconds)


def timestamp_to_wire(timestamp: Timestamp) -> wire_types.Timestamp:
    return wire_types.Timestamp(seconds=timestamp.seconds)


def default_priority() -> int:
    return 5


def default_tags() -> list[str]:
    return ["general"]


def not_an_error(field: str) -> str:
    return field
