from dataclasses import dataclass, field
from typing import Optional, Tuple

from .error import ConfigError

DATA_WIDTH = 8


@dataclass(frozen=True)
class SlaveConfig:
    """
    Static description of one slave

    - offset_width: width of the memory offset field in bits (slave holds 2 ** offset_width bytes)
    - split_capable: slave may defer a transaction with a split response
    - split_latency: ticks a deferred backend access takes (0 = always answers immediately)
    - name: label used in logs
    """

    offset_width: int
    split_capable: bool = False
    split_latency: int = 0
    name: str = ""

    @property
    def size(self):
        return 1 << self.offset_width


def _default_slaves():
    return (
        SlaveConfig(11, name="s0"),
        SlaveConfig(12, name="s1"),
        SlaveConfig(12, split_capable=True, split_latency=32, name="s2"),
    )


@dataclass(frozen=True)
class BusConfig:
    """
    Bus topology and timing, resolved once when a fabric is built

    - num_masters: number of master ports, index 0 has the highest priority
    - device_width: width of the device address field in bits
    - slaves: one SlaveConfig per device id, in device id order
    - timeout: ticks a master waits for a grant or an address answer before giving up
    - period: simulation time units per clock period
    """

    num_masters: int = 2
    device_width: int = 4
    slaves: Tuple[SlaveConfig, ...] = field(default_factory=_default_slaves)
    timeout: int = 256
    period: int = 20

    def __post_init__(self):
        # accept lists from callers, keep the dataclass hashable
        object.__setattr__(self, "slaves", tuple(self.slaves))
        if self.num_masters < 1:
            raise ConfigError("at least one master is required")
        if not self.slaves:
            raise ConfigError("at least one slave is required")
        if self.device_width < 1:
            raise ConfigError("device_width must be positive")
        if len(self.slaves) > (1 << self.device_width):
            raise ConfigError("%d slaves do not fit in a %d-bit device address"
                              % (len(self.slaves), self.device_width))
        for s in self.slaves:
            if s.offset_width < 1:
                raise ConfigError("slave %r has no offset bits" % (s.name,))
            if s.split_latency < 0:
                raise ConfigError("slave %r has a negative split latency" % (s.name,))
            if s.split_latency and not s.split_capable:
                raise ConfigError("slave %r has a split latency but cannot split" % (s.name,))
        if sum(1 for s in self.slaves if s.split_capable) > 1:
            # the arbiter tracks a single split owner
            raise ConfigError("at most one split-capable slave is supported")
        if self.timeout < 1:
            raise ConfigError("timeout must be at least one tick")
        if self.period < 2:
            raise ConfigError("period must be at least two time units")

    @property
    def num_slaves(self):
        return len(self.slaves)

    @property
    def max_offset_width(self):
        return max(s.offset_width for s in self.slaves)

    @classmethod
    def from_dict(cls, d):
        d = dict(d)
        if "slaves" in d:
            d["slaves"] = tuple(s if isinstance(s, SlaveConfig) else SlaveConfig(**s) for s in d["slaves"])
        try:
            return cls(**d)
        except TypeError as e:
            raise ConfigError(str(e)) from e


class AddressMap(object):
    """
    Device id -> (slave index, offset width) lookup

    Device id N selects slave N. Ids at or beyond the slave count are invalid and resolve to None.
    """

    def __init__(self, config):
        self.device_width = config.device_width
        self.max_offset_width = config.max_offset_width
        self._entries = tuple((i, s.offset_width) for i, s in enumerate(config.slaves))
        self._split = tuple(s.split_capable for s in config.slaves)

    def __len__(self):
        return len(self._entries)

    def resolve(self, device) -> Optional[Tuple[int, int]]:
        if 0 <= device < len(self._entries):
            return self._entries[device]
        return None

    def is_valid(self, device):
        return self.resolve(device) is not None

    def slave_index(self, device):
        entry = self.resolve(device)
        return None if entry is None else entry[0]

    def offset_width(self, device):
        # invalid ids still need a width on the wire; they are rejected after the device phase
        entry = self.resolve(device)
        return self.max_offset_width if entry is None else entry[1]

    def split_capable(self, device):
        entry = self.resolve(device)
        return entry is not None and self._split[entry[0]]

    def check(self, device, offset):
        """Raise ValueError if (device, offset) cannot be put on the wire without truncation."""
        if not 0 <= device < (1 << self.device_width):
            raise ValueError("device %d does not fit in %d bits" % (device, self.device_width))
        width = self.offset_width(device)
        if not 0 <= offset < (1 << width):
            raise ValueError("offset 0x%x outside the %d-bit window of device %d" % (offset, width, device))

    # flat addresses used by the bridge: {device, offset}
    @property
    def flat_width(self):
        return self.device_width + self.max_offset_width

    def to_flat(self, device, offset):
        self.check(device, offset)
        return (device << self.max_offset_width) | offset

    def from_flat(self, address):
        if not 0 <= address < (1 << self.flat_width):
            raise ValueError("address 0x%x does not fit in %d bits" % (address, self.flat_width))
        return address >> self.max_offset_width, address & ((1 << self.max_offset_width) - 1)
