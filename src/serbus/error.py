class BusError(Exception):
    """Base class for all exceptions raised by serbus."""
    pass


class ConfigError(BusError):
    """Raised when a bus configuration is inconsistent.

    Configurations are checked once, when they are built, so a bad device
    width or an empty slave list never reaches the simulation.
    """
    pass


class RequestTimeout(BusError):
    """Raised when a master gave up on a transaction.

    The master port only waits a bounded number of ticks for a grant or
    for the slave's answer to the address phase. The failed transaction
    is available as ``transaction``.
    """

    def __init__(self, transaction):
        super().__init__("transaction %r timed out" % (transaction,))
        self.transaction = transaction


class BusStalled(BusError):
    """Raised when a blocking helper ran out of ticks before completion."""
    pass


class FrameError(BusError):
    """Raised when a bridge frame has the wrong length."""
    pass
