import logging

from myhdl import block, always_comb, intbv, ResetSignal, Signal

from .addr_decoder import AddrDecoder
from .bus_arbiter import BusArbiter
from .client import ClientDriver, MasterClient
from .clk_driver import ClkDriver
from .config import AddressMap, BusConfig, DATA_WIDTH
from .error import BusStalled
from .master_port import MasterPort
from .mem import MemoryBackend
from .slave_port import SlavePort
from .snapshot import BusSnapshot
from .transaction import Transaction

logger = logging.getLogger(__name__)

@block
def BusTop(i_rstn, i_clk, o_cycle, bus, clients, backends, config, address_map):
    """
    The whole bus: clock, arbiter, address decoder, master ports with their clients, slave ports,
    and the grant mux putting the owner's serial lines on the shared bus

    - i_rstn: Reset signal
    - i_clk: Clock signal, driven from here
    - o_cycle: Output tick counter
    - bus: BusSnapshot with the shared lines
    - clients: one MasterClient per master
    - backends: one MemoryBackend per slave
    """
    NM = config.num_masters
    NS = config.num_slaves
    DW = config.device_width

    clk_driver = ClkDriver(i_clk, o_cycle, PERIOD=config.period)

    grant = bus.grant
    sready = bus.sready
    bus_wdata = bus.wdata
    bus_mode = bus.mode
    bus_mvalid = bus.mvalid

    # master side lines, before the grant mux
    m_wdata = [Signal(bool(0)) for _ in range(NM)]
    m_mode = [Signal(bool(0)) for _ in range(NM)]
    m_mvalid = [Signal(bool(0)) for _ in range(NM)]
    m_dev = [Signal(intbv(0)[DW:]) for _ in range(NM)]
    tgt_ready = [Signal(bool(0)) for _ in range(NM)]
    req_split = [Signal(bool(0)) for _ in range(NM)]

    # slave side lines, before the decoder mux
    s_mvalid = [Signal(bool(0)) for _ in range(NS)]
    s_svalid = [Signal(bool(0)) for _ in range(NS)]
    s_rdata = [Signal(bool(0)) for _ in range(NS)]
    s_split = [Signal(bool(0)) for _ in range(NS)]

    masters = []
    drivers = []
    for i in range(NM):
        c_stb = Signal(bool(0))
        c_dev = Signal(intbv(0)[DW:])
        c_off = Signal(intbv(0)[address_map.max_offset_width:])
        c_dat = Signal(intbv(0)[DATA_WIDTH:])
        c_we = Signal(bool(0))
        c_done = Signal(bool(0))
        c_ok = Signal(bool(0))
        c_rdat = Signal(intbv(0)[DATA_WIDTH:])
        drivers.append(ClientDriver(i_rstn, i_clk, o_cycle, clients[i], c_stb, c_dev, c_off, c_dat, c_we,
                                    c_done, c_ok, c_rdat))
        masters.append(MasterPort(i_rstn, i_clk, c_stb, c_dev, c_off, c_dat, c_we, c_done, c_ok, c_rdat,
                                  bus.breq[i], grant[i], m_dev[i], m_wdata[i], m_mode[i], m_mvalid[i],
                                  bus.rdata, bus.svalid, bus.ack, bus.split, tgt_ready[i],
                                  address_map, TIMEOUT=config.timeout, ID="m%d" % i))

    slaves = []
    for i, s in enumerate(config.slaves):
        slaves.append(SlavePort(i_rstn, i_clk, bus_wdata, bus_mode, s_mvalid[i], s_rdata[i], s_svalid[i],
                                s_split[i], sready[i], backends[i],
                                OFFSET_WIDTH=s.offset_width, SPLIT_LATENCY=s.split_latency,
                                ID=s.name or "s%d" % i))

    arbiter = BusArbiter(i_rstn, i_clk, bus.breq, req_split, tgt_ready, bus.split,
                         grant, bus.msplit, bus.split_grant, NUM_MASTERS=NM)

    decoder = AddrDecoder(i_rstn, i_clk, bus_wdata, bus_mvalid, bus.split_grant, sready, bus.ack,
                          s_mvalid, s_svalid, s_rdata, s_split, bus.svalid, bus.rdata, bus.split,
                          DEVICE_WIDTH=DW, NUM_SLAVES=NS)

    @always_comb
    def select():
        # only the granted master reaches the shared lines
        owner = -1
        for i in range(NM):
            if grant[i] and owner < 0:
                owner = i
        if owner >= 0:
            bus_wdata.next = m_wdata[owner]
            bus_mode.next = m_mode[owner]
            bus_mvalid.next = m_mvalid[owner]
        else:
            bus_wdata.next = False
            bus_mode.next = False
            bus_mvalid.next = False

    @always_comb
    def targets():
        for i in range(NM):
            dev = int(m_dev[i])
            slave = address_map.slave_index(dev)
            # unknown devices count as ready, the decoder rejects them
            tgt_ready[i].next = True if slave is None else sready[slave]
            req_split[i].next = address_map.split_capable(dev)

    return clk_driver, drivers, masters, slaves, arbiter, decoder, select, targets


class BusFabric(object):
    """
    Cycle-level model of the bus, advanced one tick at a time with step()

    Every call to step() runs one clock period of the MyHDL simulation: all processes sample the
    current signal values on the rising edge and their updates are committed together, so no
    component sees another's new state within the same tick.

    Only one fabric can be simulating at a time; call close() (or use the fabric as a context
    manager) before building the next one.

    - config: BusConfig, defaults to two masters and three slaves
    - backends: one MemoryBackend per slave, created empty if omitted
    - trace: write a VCD trace of every signal
    - record: keep a BusState per tick in ``history``
    """

    def __init__(self, config=None, backends=None, trace=False, record=False):
        self.config = config or BusConfig()
        self.address_map = AddressMap(self.config)
        if backends is None:
            backends = [MemoryBackend(s.size, ID=s.name or "s%d" % i) for i, s in enumerate(self.config.slaves)]
        if len(backends) != self.config.num_slaves:
            raise ValueError("expected %d backends, got %d" % (self.config.num_slaves, len(backends)))
        self.backends = list(backends)
        self.clients = [MasterClient(i) for i in range(self.config.num_masters)]
        self.bus = BusSnapshot(self.config.num_masters, self.config.num_slaves)
        self.record = record
        self.history = []

        self._rst = ResetSignal(1, active=0, isasync=True)
        self._clk = Signal(bool(0))
        self._cycle = Signal(0)
        self._top = BusTop(self._rst, self._clk, self._cycle, self.bus, self.clients, self.backends,
                           self.config, self.address_map)
        if trace:
            self._top.config_sim(trace=True)
        self._started = False
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    @property
    def tick(self):
        return int(self._cycle)

    def state(self):
        return self.bus.sample(self.tick)

    def step(self, n=1):
        if self._closed:
            raise RuntimeError("fabric is closed")
        for _ in range(n):
            self._top.run_sim(self.config.period, quiet=1)
            self._started = True
            if self.record:
                self.history.append(self.state())

    def reset(self):
        """Hold reset for one tick. In-flight and queued transactions are discarded, memories are kept."""
        logger.debug("reset at tick %d", self.tick)
        self._rst.next = 0
        self.step()
        self._rst.next = 1

    def close(self):
        if not self._closed:
            if self._started:
                self._top.quit_sim()
            self._closed = True

    # client side

    def submit(self, master, txn):
        if not 0 <= master < len(self.clients):
            raise ValueError("no master %d" % master)
        self.address_map.check(txn.device, txn.offset)
        return self.clients[master].submit(txn)

    def write(self, master, device, offset, data):
        return self.submit(master, Transaction.write(device, offset, data))

    def read(self, master, device, offset):
        return self.submit(master, Transaction.read(device, offset))

    def idle(self):
        return all(c.idle for c in self.clients)

    def run_until_complete(self, *txns, max_ticks=10000):
        """Step until every given transaction (or every queued one, if none are given) is done."""
        for _ in range(max_ticks):
            if txns:
                if all(t.done for t in txns):
                    return txns
            elif self.idle():
                return txns
            self.step()
        raise BusStalled("not complete after %d ticks" % max_ticks)

    def transfer(self, master, txn, max_ticks=10000):
        """Submit txn and run until it is done. Raises RequestTimeout if the master gave up."""
        self.submit(master, txn)
        self.run_until_complete(txn, max_ticks=max_ticks)
        return txn.raise_for_status()
