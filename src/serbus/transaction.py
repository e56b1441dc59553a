import enum
from dataclasses import dataclass
from typing import Optional

from .config import DATA_WIDTH
from .error import RequestTimeout


class Direction(enum.Enum):
    READ = 0
    WRITE = 1


class Status(enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    OK = "ok"
    TIMEOUT = "timeout"


@dataclass(eq=False)
class Transaction:
    """A single read or write of one byte at (device, offset)."""

    device: int
    offset: int
    data: int = 0
    direction: Direction = Direction.READ
    originator: Optional[int] = None
    status: Status = Status.PENDING
    result: Optional[int] = None
    issued_at: Optional[int] = None
    completed_at: Optional[int] = None

    def __post_init__(self):
        if not 0 <= self.data < (1 << DATA_WIDTH):
            raise ValueError("data 0x%x is not a byte" % self.data)
        if self.device < 0 or self.offset < 0:
            raise ValueError("device and offset must be non-negative")

    @classmethod
    def write(cls, device, offset, data):
        return cls(device, offset, data, Direction.WRITE)

    @classmethod
    def read(cls, device, offset):
        return cls(device, offset, 0, Direction.READ)

    @property
    def is_write(self):
        return self.direction is Direction.WRITE

    @property
    def done(self):
        return self.status in (Status.OK, Status.TIMEOUT)

    @property
    def ok(self):
        return self.status is Status.OK

    def raise_for_status(self):
        if self.status is Status.TIMEOUT:
            raise RequestTimeout(self)
        return self

    def __repr__(self):
        kind = "W" if self.is_write else "R"
        s = "<%s dev=%d off=0x%03x" % (kind, self.device, self.offset)
        if self.is_write:
            s += " data=0x%02x" % self.data
        elif self.result is not None:
            s += " result=0x%02x" % self.result
        if self.originator is not None:
            s += " m%d" % self.originator
        return s + " %s>" % self.status.value
