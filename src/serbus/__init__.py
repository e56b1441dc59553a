from .config import DATA_WIDTH, SlaveConfig, BusConfig, AddressMap
from .transaction import Direction, Status, Transaction
from .mem import MemoryBackend
from .snapshot import BusState, BusSnapshot
from .bus_arbiter import BusArbiter
from .addr_decoder import AddrDecoder
from .master_port import MasterPort
from .slave_port import SlavePort
from .client import MasterClient, ClientDriver
from .bus_fabric import BusTop, BusFabric
from .bridge import CommandFrame, ResponseFrame, BridgeTransport, LoopbackTransport, BridgeInitiator, BridgeTarget
from .error import BusError, ConfigError, RequestTimeout, BusStalled, FrameError

__all__ = [
    'DATA_WIDTH',
    'SlaveConfig',
    'BusConfig',
    'AddressMap',
    'Direction',
    'Status',
    'Transaction',
    'MemoryBackend',
    'BusState',
    'BusSnapshot',
    'BusArbiter',
    'AddrDecoder',
    'MasterPort',
    'SlavePort',
    'MasterClient',
    'ClientDriver',
    'BusTop',
    'BusFabric',
    'CommandFrame',
    'ResponseFrame',
    'BridgeTransport',
    'LoopbackTransport',
    'BridgeInitiator',
    'BridgeTarget',
    'BusError',
    'ConfigError',
    'RequestTimeout',
    'BusStalled',
    'FrameError',
]

__version__ = '0.1.0'
