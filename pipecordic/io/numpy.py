import numpy as np

from amaranth.sim import Simulator

from pipecordic.constants import ANGLE_BITS
from pipecordic.util import to_signed

def run_stream(dut, angles, start=None, enable=None, reset=None, vcd_file=None):
    """
    Drives one sample of every input per clock and returns an (n, 3) array of
    (cosine, sine, data_valid) as they read right after each rising edge.

    start and enable default to always on. A true entry in reset pulses rst_n
    low between edges, before that cycle's inputs are applied.
    """
    n = len(angles)
    start = np.ones(n, dtype=bool) if start is None else np.asarray(start, dtype=bool)
    enable = np.ones(n, dtype=bool) if enable is None else np.asarray(enable, dtype=bool)
    reset = np.zeros(n, dtype=bool) if reset is None else np.asarray(reset, dtype=bool)

    output = np.zeros((n, 3), dtype=np.int64)

    sim = Simulator(dut)
    sim.add_clock(1e-6, domain=dut.domain)

    async def testbench(ctx):
        for i in range(n):
            if reset[i]:
                await ctx.delay(1e-8)
                ctx.set(dut.rst_n, 0)
                await ctx.delay(1e-8)
                ctx.set(dut.rst_n, 1)
            ctx.set(dut.enable, int(enable[i]))
            ctx.set(dut.start, int(start[i]))
            ctx.set(dut.angle_in, to_signed(int(angles[i]), ANGLE_BITS))
            await ctx.tick(dut.domain)
            output[i] = [ctx.get(dut.cosine_out), ctx.get(dut.sine_out), ctx.get(dut.data_valid)]

    sim.add_testbench(testbench)
    if vcd_file:
        with sim.write_vcd(vcd_file):
            sim.run()
    else:
        sim.run()

    return output

def test_run_stream():
    from pipecordic.trig import SinCosCordic

    dut = SinCosCordic(stages=4)
    out = run_stream(dut, [0x40000000]*(2*dut.latency), enable=[i < dut.latency for i in range(2*dut.latency)])
    assert out.shape == (2*dut.latency, 3)
    # Valid from the first start onwards, then dropped on the first disabled edge
    assert list(out[:, 2]) == [0]*(dut.latency - 1) + [1] + [0]*dut.latency
    assert np.all(out[dut.latency:, :2] == out[dut.latency - 1, :2])
