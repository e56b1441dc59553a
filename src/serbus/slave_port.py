import logging

from myhdl import block, always, always_comb, enum, intbv, now, Signal

from .config import DATA_WIDTH

logger = logging.getLogger(__name__)

t_State = enum("IDLE", "ADDR", "RESP", "DATA", "SPLIT")

@block
def SlavePort(i_rstn, i_clk, i_wdata, i_mode, i_mvalid, o_rdata, o_svalid, o_split, o_sready, backend,
              OFFSET_WIDTH=12, SPLIT_LATENCY=0, ID="slave"):
    """
    Slave side of the serial protocol, serving one MemoryBackend

    The address decoder consumes the device address, so a slave sees a transaction from its first
    offset bit onwards. Once the offset is in, the slave answers with a one tick svalid pulse and
    moves on to the data phase. A split-capable slave (SPLIT_LATENCY > 0) answers with a split pulse
    instead, finishes the backend access on its own and keeps the transaction pending until the
    decoder selects it again for the retry.

    - i_rstn: Reset signal
    - i_clk: Clock signal

    - i_wdata: Input serial write line
    - i_mode: Input transfer direction (1 = write)
    - i_mvalid: Input transaction valid, routed to this slave by the decoder
    - o_rdata: Output serial read line
    - o_svalid: Output answer pulse / read data valid
    - o_split: Output split pulse
    - o_sready: Output ready signal, 1 only while idle
    - backend: MemoryBackend holding the slave's bytes

    - OFFSET_WIDTH: width of the memory offset in bits
    - SPLIT_LATENCY: ticks a deferred access takes, 0 for a slave that never splits
    """

    _state = Signal(t_State.IDLE)
    _off = Signal(intbv(0)[OFFSET_WIDTH:])
    _cnt = Signal(0)
    _we = Signal(bool(0))
    _wbuf = Signal(intbv(0)[DATA_WIDTH:])
    _rbuf = Signal(intbv(0)[DATA_WIDTH:])
    _pending = Signal(bool(0))

    def address_done(offset, we):
        if SPLIT_LATENCY > 0:
            logger.debug("%s %s: split (%s 0x%03x)", now(), ID, "write" if we else "read", offset)
            o_split.next = True
            _cnt.next = SPLIT_LATENCY
            _state.next = t_State.SPLIT
        else:
            if not we:
                _rbuf.next = backend.read(offset)
            o_svalid.next = True
            _state.next = t_State.RESP

    @always(i_clk.posedge, i_rstn.negedge)
    def fsm():
        if i_rstn == 0:
            _state.next = t_State.IDLE
            _pending.next = False
            o_split.next = False
            o_svalid.next = False
            o_rdata.next = False
            return

        o_split.next = False
        if _state == t_State.IDLE:
            if i_mvalid:
                if _pending:
                    # retry of the deferred transaction, offset and direction are already held
                    _pending.next = False
                    o_svalid.next = True
                    _state.next = t_State.RESP
                else:
                    _we.next = i_mode
                    _off.next = int(i_wdata)
                    if OFFSET_WIDTH == 1:
                        address_done(int(i_wdata), bool(i_mode))
                    else:
                        _cnt.next = 1
                        _state.next = t_State.ADDR
        elif _state == t_State.ADDR:
            if not i_mvalid:
                _state.next = t_State.IDLE
            else:
                off = int(_off) | (int(i_wdata) << int(_cnt))
                _off.next = off
                if _cnt == OFFSET_WIDTH - 1:
                    address_done(off, bool(_we))
                else:
                    _cnt.next = _cnt + 1
        elif _state == t_State.SPLIT:
            if _cnt > 1:
                _cnt.next = _cnt - 1
            else:
                if not _we:
                    _rbuf.next = backend.read(int(_off))
                logger.debug("%s %s: split access done, waiting for retry", now(), ID)
                _pending.next = True
                _state.next = t_State.IDLE
        elif _state == t_State.RESP:
            _wbuf.next = 0
            if _we:
                o_svalid.next = False
                _cnt.next = 0
            else:
                o_svalid.next = True
                o_rdata.next = _rbuf[0]
                _cnt.next = 1
            _state.next = t_State.DATA
        elif _state == t_State.DATA:
            if _we:
                if not i_mvalid:
                    logger.debug("%s %s: write aborted", now(), ID)
                    _state.next = t_State.IDLE
                else:
                    dat = int(_wbuf) | (int(i_wdata) << int(_cnt))
                    if _cnt == DATA_WIDTH - 1:
                        backend.write(int(_off), dat)
                        _state.next = t_State.IDLE
                    else:
                        _wbuf.next = dat
                        _cnt.next = _cnt + 1
            else:
                if _cnt == DATA_WIDTH:
                    o_svalid.next = False
                    o_rdata.next = False
                    _state.next = t_State.IDLE
                else:
                    o_rdata.next = _rbuf[int(_cnt)]
                    _cnt.next = _cnt + 1

    @always_comb
    def ready():
        o_sready.next = _state == t_State.IDLE

    return fsm, ready
