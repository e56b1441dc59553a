import logging

from myhdl import block, always, enum, now, Signal

logger = logging.getLogger(__name__)

t_State = enum("IDLE", "GRANTED")

@block
def BusArbiter(i_rstn, i_clk, i_breq, i_req_split, i_tgt_ready, i_split,
               o_grant, o_msplit, o_split_grant,
               NUM_MASTERS=2, ID="arbiter"):

    """
    Fixed-priority bus arbiter with split transaction ownership. Master 0 has the highest priority.

    - i_rstn: Reset signal
    - i_clk: Clock signal

    - i_breq: Input bus request lines [NUM_MASTERS]
    - i_req_split: Input lines, 1 if the master's target slave is split-capable [NUM_MASTERS]
    - i_tgt_ready: Input lines, 1 if the master's target slave is ready [NUM_MASTERS]
    - i_split: Input split signal of the transaction currently on the bus

    - o_grant: Output grant lines, at most one set [NUM_MASTERS]
    - o_msplit: Output split pending lines, set for the master owning a deferred transaction [NUM_MASTERS]
    - o_split_grant: Output one tick pulse when the split owner is granted again for its retry
    """

    _state = Signal(t_State.IDLE)
    _owner = Signal(0)
    _split_owner = Signal(0)
    _split_valid = Signal(bool(0))

    def eligible(m):
        if not i_breq[m] or not i_tgt_ready[m]:
            return False
        if i_req_split[m] and _split_valid:
            # while a transaction is deferred, split-capable slaves only serve its owner
            return _split_owner == m
        return True

    @always(i_clk.posedge, i_rstn.negedge)
    def clk_logic():
        if i_rstn == 0:
            _state.next = t_State.IDLE
            _split_valid.next = False
            o_split_grant.next = False
            for i in range(NUM_MASTERS):
                o_grant[i].next = False
                o_msplit[i].next = False
            return

        o_split_grant.next = False
        if _state == t_State.IDLE:
            # first eligible master in the list is granted until it drops its request or splits
            for i in range(NUM_MASTERS):
                if eligible(i):
                    _owner.next = i
                    _state.next = t_State.GRANTED
                    o_grant[i].next = True
                    if _split_valid and _split_owner == i:
                        logger.debug("%s %s: split retry granted to m%d", now(), ID, i)
                        _split_valid.next = False
                        o_msplit[i].next = False
                        o_split_grant.next = True
                    else:
                        logger.debug("%s %s: grant -> m%d", now(), ID, i)
                    break
        elif _state == t_State.GRANTED:
            owner = int(_owner)
            if i_split:
                _state.next = t_State.IDLE
                o_grant[owner].next = False
                if not _split_valid:
                    logger.debug("%s %s: m%d owns a split transaction", now(), ID, owner)
                    _split_owner.next = owner
                    _split_valid.next = True
                    o_msplit[owner].next = True
            elif not i_breq[owner]:
                logger.debug("%s %s: m%d released the bus", now(), ID, owner)
                _state.next = t_State.IDLE
                o_grant[owner].next = False

    return clk_logic
