import logging

from myhdl import block, always, always_comb, enum, intbv, now, Signal

logger = logging.getLogger(__name__)

t_State = enum("IDLE", "CAPTURE", "VALIDATE", "WAIT")

@block
def AddrDecoder(i_rstn, i_clk, i_wdata, i_mvalid, i_split_grant, i_sready, o_ack,
                o_mvalid, i_svalid, i_rdata, i_split, o_svalid, o_rdata, o_split,
                DEVICE_WIDTH=4, NUM_SLAVES=3, ID="decoder"):

    """
    Address decoder: captures the device address shifted out by the bus owner (MSB first), validates
    it and routes the transaction to the selected slave

    - i_rstn: Reset signal
    - i_clk: Clock signal

    - i_wdata: Input serial write line of the bus
    - i_mvalid: Input transaction valid line of the bus
    - i_split_grant: Input pulse from the arbiter, the split owner was granted again
    - i_sready: Input slave ready lines [NUM_SLAVES]
    - o_ack: Output device address accepted (combinational, during the validate tick)

    - o_mvalid: Output transaction valid routed to each slave [NUM_SLAVES]
    - i_svalid: Input slave answer / read data valid lines [NUM_SLAVES]
    - i_rdata: Input slave serial read lines [NUM_SLAVES]
    - i_split: Input slave split lines [NUM_SLAVES]
    - o_svalid: Output svalid of the selected slave
    - o_rdata: Output rdata of the selected slave
    - o_split: Output split of the selected slave

    - DEVICE_WIDTH: width of the device address in bits
    - NUM_SLAVES: number of configured slaves, device ids at or above this are rejected
    """

    MASK = (1 << DEVICE_WIDTH) - 1

    _state = Signal(t_State.IDLE)
    _dev = Signal(intbv(0)[DEVICE_WIDTH:])
    _cnt = Signal(0)
    _sel = Signal(0)
    _split_sel = Signal(0)
    _armed = Signal(bool(1))
    _ack = Signal(bool(0))

    @always(i_clk.posedge, i_rstn.negedge)
    def capture():
        if i_rstn == 0:
            _state.next = t_State.IDLE
            _armed.next = True
            return

        if _state == t_State.IDLE:
            if i_split_grant:
                # retried split transaction, the slave already holds its address
                _sel.next = _split_sel
                _state.next = t_State.WAIT
            elif i_mvalid and _armed:
                _dev.next = int(i_wdata)
                _cnt.next = 1
                _state.next = t_State.VALIDATE if DEVICE_WIDTH == 1 else t_State.CAPTURE
            elif not i_mvalid:
                _armed.next = True
        elif _state == t_State.CAPTURE:
            if not i_mvalid:
                _state.next = t_State.IDLE
            else:
                _dev.next = ((int(_dev) << 1) | int(i_wdata)) & MASK
                _cnt.next = _cnt + 1
                if _cnt + 1 == DEVICE_WIDTH:
                    _state.next = t_State.VALIDATE
        elif _state == t_State.VALIDATE:
            if _ack:
                _sel.next = int(_dev)
                _state.next = t_State.WAIT
            else:
                if _dev >= NUM_SLAVES:
                    logger.debug("%s %s: rejected invalid device %d", now(), ID, int(_dev))
                else:
                    logger.debug("%s %s: device %d not ready", now(), ID, int(_dev))
                # ignore the rest of this transaction
                _armed.next = False
                _state.next = t_State.IDLE
        elif _state == t_State.WAIT:
            if i_split[int(_sel)]:
                _split_sel.next = _sel
                _armed.next = False
                _state.next = t_State.IDLE
            elif not i_mvalid:
                _state.next = t_State.IDLE

    @always_comb
    def route():
        target = int(_dev)
        ack = False
        if _state == t_State.VALIDATE and target < NUM_SLAVES:
            ack = bool(i_sready[target])
        sel = -1
        if _state == t_State.WAIT:
            sel = int(_sel)
        elif ack:
            sel = target
        _ack.next = ack
        o_ack.next = ack
        for i in range(NUM_SLAVES):
            o_mvalid[i].next = bool(i_mvalid) and sel == i
        if sel >= 0:
            o_svalid.next = i_svalid[sel]
            o_rdata.next = i_rdata[sel]
            o_split.next = i_split[sel]
        else:
            o_svalid.next = False
            o_rdata.next = False
            o_split.next = False

    return capture, route
