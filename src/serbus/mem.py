import logging

import numpy as np

logger = logging.getLogger(__name__)


class MemoryBackend(object):
    """
    Byte-addressable storage behind a slave port

    Plain read/write semantics, no protocol logic. Contents live in a numpy uint8 array so they can
    be loaded from and dumped to binary files.
    """

    def __init__(self, size, ID="mem"):
        self.id = ID
        self._data = np.zeros(size, dtype=np.uint8)

    @classmethod
    def from_file(cls, path, size, ID="mem"):
        mem = cls(size, ID=ID)
        mem.load(np.fromfile(path, dtype=np.uint8))
        return mem

    def __len__(self):
        return len(self._data)

    def _check(self, offset):
        if not 0 <= offset < len(self._data):
            raise IndexError("%s: offset 0x%x out of range" % (self.id, offset))

    def read(self, offset):
        self._check(offset)
        return int(self._data[offset])

    def write(self, offset, value):
        self._check(offset)
        if not 0 <= value <= 0xFF:
            raise ValueError("%s: 0x%x is not a byte" % (self.id, value))
        logger.debug("%s WRITE: 0x%02x -> 0x%03x", self.id, value, offset)
        self._data[offset] = value

    def load(self, data, offset=0):
        data = np.asarray(data, dtype=np.uint8)
        if offset < 0 or offset + len(data) > len(self._data):
            raise IndexError("%s: %d bytes at 0x%x do not fit" % (self.id, len(data), offset))
        self._data[offset:offset + len(data)] = data

    def dump(self):
        return self._data.tobytes()

    def clear(self):
        self._data[:] = 0
