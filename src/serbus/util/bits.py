from ..config import DATA_WIDTH

"""
=== WIRE FORMAT ===

Every field of a transaction is shifted out one bit per tick on the write line.
The device address goes first and is sent most significant bit first, so the decoder can
shift it in with a plain left shift. The memory offset and the data byte follow and are sent
least significant bit first:

| device (MSB..LSB) | offset (LSB..MSB) | <answer tick> | data (LSB..MSB) |

Widths are fixed per field (device width from the config, offset width per slave, 8 data bits),
so a value always round trips exactly as long as it fits its field.
"""


def serialize(value, width, msb_first=False):
    if value < 0 or value >> width:
        raise ValueError("%d does not fit in %d bits" % (value, width))
    order = range(width - 1, -1, -1) if msb_first else range(width)
    return [(value >> i) & 1 for i in order]


def deserialize(bits, msb_first=False):
    value = 0
    if msb_first:
        bits = reversed(bits)
    for i, b in enumerate(bits):
        value |= (int(b) & 1) << i
    return value


def device_bits(device, width):
    return serialize(device, width, msb_first=True)


def offset_bits(offset, width):
    return serialize(offset, width)


def data_bits(data):
    return serialize(data, DATA_WIDTH)


def address_bits(address_map, device, offset):
    """Bits a master shifts out for the address phases of a transaction to (device, offset)."""
    address_map.check(device, offset)
    return (device_bits(device, address_map.device_width) +
            offset_bits(offset, address_map.offset_width(device)))
