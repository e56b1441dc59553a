from myhdl import block, delay, instance

@block
def ClkDriver(o_clk, o_cycle=None, PERIOD=20):
    """
    Free-running clock, one rising edge per PERIOD

    The low half comes first, so running the simulation for exactly PERIOD time units from a period
    boundary always covers one rising and one falling edge.

    - o_clk: Output clock signal
    - o_cycle: Optional output counting rising edges
    """
    lowTime = int(PERIOD / 2)
    highTime = PERIOD - lowTime

    @instance
    def drive_clk():
        while True:
            yield delay(lowTime)
            o_clk.next = 1
            if o_cycle is not None:
                o_cycle.next = o_cycle + 1
            yield delay(highTime)
            o_clk.next = 0

    return drive_clk
