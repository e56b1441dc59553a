import abc
import logging
from collections import deque, namedtuple

from .config import DATA_WIDTH
from .error import FrameError
from .transaction import Direction, Status, Transaction
from .util.bits import deserialize, serialize

logger = logging.getLogger(__name__)

"""
=== BRIDGE FRAMES ===

Transactions are forwarded to a remote bus as fixed-width frames, shifted out LSB first.

Command frame, {mode, data, address}:
- address: flat bridge address, (device << max_offset_width) | offset, in the low bits
- data: write data (0 for reads)
- mode: 1 = write, 0 = read, in the top bit

Response frame: the 8 read data bits. Writes are posted and get no response.
"""


class CommandFrame(namedtuple("CommandFrame", "mode data address")):

    @staticmethod
    def width(address_width):
        return 1 + DATA_WIDTH + address_width

    def to_bits(self, address_width):
        word = (int(self.mode) << (DATA_WIDTH + address_width)) | (self.data << address_width) | self.address
        return serialize(word, self.width(address_width))

    @classmethod
    def from_bits(cls, bits, address_width):
        if len(bits) != cls.width(address_width):
            raise FrameError("command frame has %d bits, expected %d" % (len(bits), cls.width(address_width)))
        word = deserialize(bits)
        return cls(word >> (DATA_WIDTH + address_width),
                   (word >> address_width) & ((1 << DATA_WIDTH) - 1),
                   word & ((1 << address_width) - 1))

    @classmethod
    def from_transaction(cls, txn, address_map):
        return cls(1 if txn.is_write else 0, txn.data if txn.is_write else 0,
                   address_map.to_flat(txn.device, txn.offset))

    def to_transaction(self, address_map):
        device, offset = address_map.from_flat(self.address)
        direction = Direction.WRITE if self.mode else Direction.READ
        return Transaction(device, offset, self.data if self.mode else 0, direction)


class ResponseFrame(namedtuple("ResponseFrame", "data")):

    def to_bits(self):
        return serialize(self.data, DATA_WIDTH)

    @classmethod
    def from_bits(cls, bits):
        if len(bits) != DATA_WIDTH:
            raise FrameError("response frame has %d bits, expected %d" % (len(bits), DATA_WIDTH))
        return cls(deserialize(bits))


class BridgeTransport(abc.ABC):
    """Point-to-point link carrying whole frames as bit lists. Framing and bit rate are the transport's business."""

    @abc.abstractmethod
    def send_frame(self, bits):
        pass

    @abc.abstractmethod
    def recv_frame(self):
        """Return the next received frame, or None if nothing is waiting."""
        pass


class LoopbackTransport(BridgeTransport):
    """In-memory link, frames sent on one end come out of its peer in order."""

    def __init__(self):
        self.peer = None
        self._rx = deque()

    @classmethod
    def pair(cls):
        a, b = cls(), cls()
        a.peer, b.peer = b, a
        return a, b

    def send_frame(self, bits):
        if self.peer is None:
            raise RuntimeError("transport is not connected")
        self.peer._rx.append(list(bits))

    def recv_frame(self):
        if self._rx:
            return self._rx.popleft()
        return None


class BridgeInitiator(object):
    """
    Local end of a bridge: sends transactions to the remote bus as command frames

    Writes are posted and complete as soon as they are sent. Reads complete when their response
    frame comes back through poll(); responses arrive in request order.
    """

    def __init__(self, transport, address_map):
        self.transport = transport
        self.address_map = address_map
        self._waiting = deque()

    @property
    def outstanding(self):
        return len(self._waiting)

    def forward(self, txn):
        frame = CommandFrame.from_transaction(txn, self.address_map)
        self.transport.send_frame(frame.to_bits(self.address_map.flat_width))
        if txn.is_write:
            txn.status = Status.OK
        else:
            txn.status = Status.ACTIVE
            self._waiting.append(txn)
        return txn

    def poll(self):
        done = []
        bits = self.transport.recv_frame()
        while bits is not None:
            resp = ResponseFrame.from_bits(bits)
            if not self._waiting:
                logger.warning("dropping unexpected response 0x%02x", resp.data)
            else:
                txn = self._waiting.popleft()
                txn.result = resp.data
                txn.status = Status.OK
                done.append(txn)
            bits = self.transport.recv_frame()
        return done


class BridgeTarget(object):
    """
    Remote end of a bridge: replays received command frames on one master of a fabric and sends
    back a response frame for every read, in order
    """

    def __init__(self, fabric, master, transport):
        self.fabric = fabric
        self.master = master
        self.transport = transport
        self._inflight = deque()

    def _accept(self, bits):
        try:
            frame = CommandFrame.from_bits(bits, self.fabric.address_map.flat_width)
        except FrameError as e:
            # mode bit position unknown, nothing to answer
            logger.warning("dropping bridge frame: %s", e)
            return
        txn = frame.to_transaction(self.fabric.address_map)
        try:
            self.fabric.submit(self.master, txn)
        except ValueError as e:
            logger.warning("rejecting bridged %r: %s", txn, e)
            txn.status = Status.TIMEOUT
        else:
            logger.debug("bridge m%d <- %r", self.master, txn)
        # a rejected read still takes its place in the response order
        self._inflight.append(txn)

    def poll(self):
        bits = self.transport.recv_frame()
        while bits is not None:
            self._accept(bits)
            bits = self.transport.recv_frame()

        while self._inflight and self._inflight[0].done:
            txn = self._inflight.popleft()
            if txn.is_write:
                continue
            if not txn.ok:
                # the response frame has no status field
                logger.warning("bridged read %r failed, answering 0", txn)
            self.transport.send_frame(ResponseFrame(txn.result or 0).to_bits())

    def step(self, n=1):
        for _ in range(n):
            self.poll()
            self.fabric.step()
        self.poll()
