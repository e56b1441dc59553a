from dataclasses import dataclass
from typing import Optional, Tuple

from myhdl import Signal


@dataclass(frozen=True)
class BusState:
    """Values of the shared bus lines at the end of one tick."""

    tick: int
    wdata: int
    mode: int
    mvalid: int
    rdata: int
    svalid: int
    split: int
    ack: int
    split_grant: int
    breq: Tuple[int, ...]
    grant: Tuple[int, ...]
    msplit: Tuple[int, ...]
    sready: Tuple[int, ...]

    @property
    def owner(self) -> Optional[int]:
        for m, g in enumerate(self.grant):
            if g:
                return m
        return None

    @property
    def split_owner(self) -> Optional[int]:
        for m, s in enumerate(self.msplit):
            if s:
                return m
        return None


class BusSnapshot(object):
    """
    Shared lines of the bus, one Signal per wire

    Every block reads these; only the grant mux drives the master side lines (wdata, mode, mvalid)
    and only the address decoder drives the slave side lines (rdata, svalid, split, ack).

    - wdata: serial write line, master to slave
    - mode: 1 = write, 0 = read
    - mvalid: transaction valid, high from the first device bit to the last data bit
    - rdata: serial read line, slave to master
    - svalid: slave answer / read data valid
    - split: selected slave defers the current transaction
    - ack: decoder accepted the device address
    - split_grant: one tick pulse, a split owner was granted again
    - breq / grant / msplit: per master request, grant, split pending lines
    - sready: per slave readiness
    """

    def __init__(self, num_masters, num_slaves):
        self.wdata = Signal(bool(0))
        self.mode = Signal(bool(0))
        self.mvalid = Signal(bool(0))
        self.rdata = Signal(bool(0))
        self.svalid = Signal(bool(0))
        self.split = Signal(bool(0))
        self.ack = Signal(bool(0))
        self.split_grant = Signal(bool(0))
        self.breq = [Signal(bool(0)) for _ in range(num_masters)]
        self.grant = [Signal(bool(0)) for _ in range(num_masters)]
        self.msplit = [Signal(bool(0)) for _ in range(num_masters)]
        self.sready = [Signal(bool(0)) for _ in range(num_slaves)]

    def sample(self, tick=0):
        return BusState(
            tick=tick,
            wdata=int(self.wdata),
            mode=int(self.mode),
            mvalid=int(self.mvalid),
            rdata=int(self.rdata),
            svalid=int(self.svalid),
            split=int(self.split),
            ack=int(self.ack),
            split_grant=int(self.split_grant),
            breq=tuple(int(s) for s in self.breq),
            grant=tuple(int(s) for s in self.grant),
            msplit=tuple(int(s) for s in self.msplit),
            sready=tuple(int(s) for s in self.sready),
        )
