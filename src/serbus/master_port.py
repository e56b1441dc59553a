import logging

from myhdl import block, always, enum, intbv, now, Signal

from .config import DATA_WIDTH

logger = logging.getLogger(__name__)

t_State = enum("IDLE", "REQ", "GRANTED", "DEV_ADDR", "MEM_ADDR", "WAIT_ACK", "DATA", "SPLIT_WAIT")

@block
def MasterPort(i_rstn, i_clk, i_stb, i_dev, i_off, i_dat, i_we, o_done, o_ok, o_rdat,
               o_breq, i_grant, o_dev, o_wdata, o_mode, o_mvalid,
               i_rdata, i_svalid, i_ack, i_split, i_tgt_ready,
               address_map, TIMEOUT=256, ID="master"):
    """
    Master side of the serial protocol, runs one transaction at a time for its client

    - i_rstn: Reset signal
    - i_clk: Clock signal

    - i_stb: Input request strobe from the client, sampled while idle
    - i_dev: Input target device id
    - i_off: Input memory offset
    - i_dat: Input write data
    - i_we: Input transfer direction (1 = write)
    - o_done: Output one tick pulse when the transaction is finished
    - o_ok: Output 1 if the finished transaction succeeded, 0 if it timed out
    - o_rdat: Output read data, valid with o_done

    - o_breq: Output bus request, held from request until completion
    - i_grant: Input bus grant from the arbiter
    - o_dev: Output device id of the current transaction, used for arbitration
    - o_wdata: Output serial write line (only visible on the bus while granted)
    - o_mode: Output transfer direction
    - o_mvalid: Output transaction valid
    - i_rdata: Input serial read line of the bus
    - i_svalid: Input slave answer / read data valid of the bus
    - i_ack: Input decoder acknowledge of the device address
    - i_split: Input split signal of the bus
    - i_tgt_ready: Input ready signal of the target slave, used while waiting on a split

    - address_map: AddressMap giving field widths
    - TIMEOUT: ticks to wait for a grant or an address answer before giving up
    """

    DW = address_map.device_width

    _state = Signal(t_State.IDLE)
    _off = Signal(intbv(0)[address_map.max_offset_width:])
    _dat = Signal(intbv(0)[DATA_WIDTH:])
    _rdat = Signal(intbv(0)[DATA_WIDTH:])
    _we = Signal(bool(0))
    _ow = Signal(0)
    _cnt = Signal(0)
    _timer = Signal(0)
    _acked = Signal(bool(0))
    _retry = Signal(bool(0))

    def finish(ok, rdat=0):
        logger.debug("%s %s: done (dev %d, %s)", now(), ID, int(o_dev), "ok" if ok else "timeout")
        _state.next = t_State.IDLE
        o_breq.next = False
        o_mvalid.next = False
        o_wdata.next = False
        o_done.next = True
        o_ok.next = ok
        o_rdat.next = rdat

    def count_or_give_up():
        if _timer >= TIMEOUT - 1:
            finish(False)
        else:
            _timer.next = _timer + 1

    @always(i_clk.posedge, i_rstn.negedge)
    def fsm():
        if i_rstn == 0:
            _state.next = t_State.IDLE
            o_breq.next = False
            o_mvalid.next = False
            o_wdata.next = False
            o_done.next = False
            return

        o_done.next = False
        if _state == t_State.IDLE:
            if i_stb:
                o_dev.next = i_dev
                o_mode.next = i_we
                o_breq.next = True
                _off.next = i_off
                _dat.next = i_dat
                _we.next = i_we
                _ow.next = address_map.offset_width(int(i_dev))
                _timer.next = 0
                _acked.next = False
                _retry.next = False
                _state.next = t_State.REQ
        elif _state == t_State.REQ:
            if i_grant:
                if _retry:
                    # the decoder re-enters its wait state on its own, hold valid right away
                    o_mvalid.next = True
                _state.next = t_State.GRANTED
            elif not _retry:
                count_or_give_up()
        elif _state == t_State.GRANTED:
            if _retry:
                # slave still holds the address of the deferred transaction
                _timer.next = 0
                _state.next = t_State.WAIT_ACK
            else:
                o_mvalid.next = True
                o_wdata.next = o_dev[DW - 1]
                _cnt.next = 1
                _state.next = t_State.DEV_ADDR
        elif _state == t_State.DEV_ADDR:
            # device address goes out MSB first
            if _cnt == DW:
                o_wdata.next = _off[0]
                _cnt.next = 1
                _state.next = t_State.MEM_ADDR
            else:
                o_wdata.next = o_dev[DW - 1 - int(_cnt)]
                _cnt.next = _cnt + 1
        elif _state == t_State.MEM_ADDR:
            # offset goes out LSB first; the decoder acks while the first offset bit is on the wire
            if i_ack:
                _acked.next = True
            if _cnt == _ow:
                o_wdata.next = False
                _timer.next = 0
                _state.next = t_State.WAIT_ACK
            else:
                o_wdata.next = _off[int(_cnt)]
                _cnt.next = _cnt + 1
        elif _state == t_State.WAIT_ACK:
            if i_split:
                logger.debug("%s %s: split, waiting for dev %d", now(), ID, int(o_dev))
                o_mvalid.next = False
                o_wdata.next = False
                _retry.next = True
                _state.next = t_State.SPLIT_WAIT
            elif i_svalid and (_acked or _retry):
                _rdat.next = 0
                if _we:
                    o_wdata.next = _dat[0]
                    _cnt.next = 1
                else:
                    _cnt.next = 0
                _state.next = t_State.DATA
            else:
                count_or_give_up()
        elif _state == t_State.DATA:
            if _we:
                if _cnt == DATA_WIDTH:
                    finish(True)
                else:
                    o_wdata.next = _dat[int(_cnt)]
                    _cnt.next = _cnt + 1
            elif i_svalid:
                rdat = int(_rdat) | (int(i_rdata) << int(_cnt))
                if _cnt == DATA_WIDTH - 1:
                    finish(True, rdat)
                else:
                    _rdat.next = rdat
                    _cnt.next = _cnt + 1
        elif _state == t_State.SPLIT_WAIT:
            if i_tgt_ready:
                _state.next = t_State.REQ

    return fsm
