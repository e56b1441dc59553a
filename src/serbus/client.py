import logging
from collections import deque

from myhdl import block, always

from .transaction import Status

logger = logging.getLogger(__name__)


class MasterClient(object):
    """
    Transaction queue owned by one master port

    Transactions are issued to the port one at a time, in submission order. A reset drops the
    queue and the transaction in flight into ``discarded`` without completing them.
    """

    def __init__(self, index):
        self.index = index
        self.queue = deque()
        self.current = None
        self.completed = []
        self.discarded = []

    def submit(self, txn):
        txn.originator = self.index
        txn.status = Status.PENDING
        self.queue.append(txn)
        return txn

    @property
    def idle(self):
        return self.current is None and not self.queue

    def start(self, tick):
        txn = self.queue.popleft()
        txn.status = Status.ACTIVE
        txn.issued_at = tick
        self.current = txn
        return txn

    def finish(self, ok, rdat, tick):
        txn = self.current
        self.current = None
        if txn is None:
            return None
        txn.status = Status.OK if ok else Status.TIMEOUT
        txn.completed_at = tick
        if ok and not txn.is_write:
            txn.result = rdat
        self.completed.append(txn)
        logger.debug("m%d finished %r", self.index, txn)
        return txn

    def discard(self):
        if self.current is not None:
            self.discarded.append(self.current)
            self.current = None
        self.discarded.extend(self.queue)
        self.queue.clear()


@block
def ClientDriver(i_rstn, i_clk, i_cycle, client, o_stb, o_dev, o_off, o_dat, o_we, i_done, i_ok, i_rdat):
    """
    Feeds a MasterClient's queue into a MasterPort and reports completions back

    - i_rstn: Reset signal
    - i_clk: Clock signal
    - i_cycle: Input tick counter, used to timestamp transactions
    - client: MasterClient to serve

    - o_stb: Output one tick request strobe
    - o_dev, o_off, o_dat, o_we: Output request fields, valid with o_stb
    - i_done: Input completion pulse from the master port
    - i_ok: Input 1 if the completed transaction succeeded
    - i_rdat: Input read data
    """

    @always(i_clk.posedge, i_rstn.negedge)
    def drive():
        if i_rstn == 0:
            o_stb.next = False
            client.discard()
            return

        if i_done:
            client.finish(bool(i_ok), int(i_rdat), int(i_cycle))
        if o_stb:
            o_stb.next = False
        elif client.current is None and client.queue:
            txn = client.start(int(i_cycle))
            o_dev.next = txn.device
            o_off.next = txn.offset
            o_dat.next = txn.data
            o_we.next = txn.is_write
            o_stb.next = True

    return drive
