from collections import deque, namedtuple

import numpy as np

from pipecordic.constants import (
    ANGLE_BITS,
    CORDIC_X_INIT,
    CORDIC_Y_INIT,
    OUTPUT_BITS,
    PIPELINE_STAGES,
    QUARTER_TURN,
    XY_BITS,
    atan_table,
    check_stages
)
from pipecordic.util import angle_code, expected, to_signed

StageRecord = namedtuple("StageRecord", ["x", "y", "z"])
Output = namedtuple("Output", ["cosine", "sine", "data_valid"])

EMPTY = StageRecord(0, 0, 0)

def prerotate(angle):
    """
    Maps an angle code onto a principal axis so that the residual is within
    +/-90 degrees, which the micro-rotation stages can converge on.
    """
    angle = to_signed(angle, ANGLE_BITS)
    quadrant = (angle >> (ANGLE_BITS - 2)) & 0b11
    low = angle & (QUARTER_TURN - 1)
    if quadrant == 0b01:
        return StageRecord(to_signed(-CORDIC_Y_INIT, XY_BITS), CORDIC_X_INIT, low)
    if quadrant == 0b10:
        return StageRecord(CORDIC_Y_INIT, to_signed(-CORDIC_X_INIT, XY_BITS), low - QUARTER_TURN)
    return StageRecord(CORDIC_X_INIT, CORDIC_Y_INIT, angle)

def rotate(record, i, atan):
    x, y, z = record
    if z < 0:
        return StageRecord(
            to_signed(x + (y >> i), XY_BITS),
            to_signed(y - (x >> i), XY_BITS),
            to_signed(z + atan, ANGLE_BITS))
    return StageRecord(
        to_signed(x - (y >> i), XY_BITS),
        to_signed(y + (x >> i), XY_BITS),
        to_signed(z - atan, ANGLE_BITS))

def truncate(record):
    """Drops the guard bit, returns (cosine, sine)"""
    return to_signed(record.x, OUTPUT_BITS), to_signed(record.y, OUTPUT_BITS)

def trace(angle, stages=PIPELINE_STAGES):
    check_stages(stages)
    records = [prerotate(angle)]
    for i, atan in enumerate(atan_table()[:stages - 1]):
        records.append(rotate(records[-1], i, atan))
    return records

def sincos(angles, stages=PIPELINE_STAGES):
    """Terminal (cosine, sine) for a whole array of angle codes at once"""
    check_stages(stages)
    angle = to_signed(np.asarray(angles, dtype=np.int64), ANGLE_BITS)
    quadrant = (angle >> (ANGLE_BITS - 2)) & 0b11
    low = angle & (QUARTER_TURN - 1)

    x = np.where(quadrant == 0b01, -CORDIC_Y_INIT, np.where(quadrant == 0b10, CORDIC_Y_INIT, CORDIC_X_INIT))
    y = np.where(quadrant == 0b01, CORDIC_X_INIT, np.where(quadrant == 0b10, -CORDIC_X_INIT, CORDIC_Y_INIT))
    z = np.where(quadrant == 0b01, low, np.where(quadrant == 0b10, low - QUARTER_TURN, angle))
    x = to_signed(x.astype(np.int64), XY_BITS)
    y = to_signed(y.astype(np.int64), XY_BITS)

    for i, atan in enumerate(atan_table()[:stages - 1]):
        cw = z < 0
        dx = y >> i
        dy = x >> i
        x, y, z = (
            to_signed(np.where(cw, x + dx, x - dx), XY_BITS),
            to_signed(np.where(cw, y - dy, y + dy), XY_BITS),
            to_signed(np.where(cw, z + atan, z - atan), ANGLE_BITS)
        )

    return to_signed(x, OUTPUT_BITS), to_signed(y, OUTPUT_BITS)

class SinCosPipeline(object):
    """
    Cycle-accurate model of the pipelined engine in trig.py. Every call to
    tick() is one rising clock edge; the returned outputs are what the
    registers hold right after that edge.

    A start sampled on one edge shows up as data_valid exactly stages + 2
    edges later: one for the input register, one for the quadrant
    pre-rotation, stages - 1 micro-rotations and one for the output latch.
    """
    def __init__(self, stages=PIPELINE_STAGES):
        check_stages(stages)
        self.stages = stages
        self.latency = stages + 2
        self.atan = atan_table()[:stages - 1]
        self.reset()

    def reset(self):
        self.angle = 0
        self.slots = [EMPTY]*self.stages
        self.valid = deque([False]*self.latency, maxlen=self.latency)
        self.cosine = 0
        self.sine = 0

    @property
    def data_valid(self):
        return self.valid[-1]

    def outputs(self):
        return Output(self.cosine, self.sine, self.data_valid)

    def tick(self, start=False, angle=0, enable=True, rst_n=True):
        # Reset wins over the clock edge
        if not rst_n:
            self.reset()
            return self.outputs()

        if not enable:
            # Data holds but the valid tracking is thrown away
            self.valid = deque([False]*self.latency, maxlen=self.latency)
            return self.outputs()

        self.cosine, self.sine = truncate(self.slots[-1])
        self.slots = [prerotate(self.angle)] + [
            rotate(record, i, self.atan[i]) for i, record in enumerate(self.slots[:-1])
        ]
        self.angle = to_signed(angle, ANGLE_BITS)
        self.valid.appendleft(bool(start))

        return self.outputs()

    def run(self, angles):
        """Streams one angle per cycle and returns the (cosine, sine) pairs in issue order"""
        results = []
        for angle in angles:
            out = self.tick(start=True, angle=angle)
            if out.data_valid:
                results.append((out.cosine, out.sine))
        for _ in range(self.latency):
            out = self.tick()
            if out.data_valid:
                results.append((out.cosine, out.sine))
        return results

ERROR = 48

def test_quadrants():
    cos, sin = sincos([0x00000000, 0x40000000, 0x80000000, 0xC0000000])
    assert abs(cos[0] - 32000) < ERROR and abs(sin[0]) < ERROR
    assert abs(cos[1]) < ERROR and abs(sin[1] - 32000) < ERROR
    assert abs(cos[2] + 32000) < ERROR and abs(sin[2]) < ERROR
    assert abs(cos[3]) < ERROR and abs(sin[3] + 32000) < ERROR

def test_sixty_degrees():
    cos, sin = sincos([0x2AAAAAAA])
    assert abs(sin[0] - 27713) < ERROR
    assert abs(cos[0] - 16000) < ERROR

def test_magnitude():
    codes = np.arange(0, 1 << 32, 1 << 20, dtype=np.int64)
    cos, sin = sincos(codes)
    magnitude = np.sqrt(cos.astype(np.float64)**2 + sin.astype(np.float64)**2)
    assert np.max(np.abs(magnitude - 32000)) < ERROR

    ref_cos, ref_sin = expected(codes)
    assert np.max(np.abs(cos - ref_cos)) < ERROR
    assert np.max(np.abs(sin - ref_sin)) < ERROR

def test_error_shrinks_with_stages():
    codes = np.arange(0, 1 << 32, 1 << 22, dtype=np.int64)
    ref_cos, ref_sin = expected(codes)
    errors = []
    for stages in [6, 10, 16]:
        cos, sin = sincos(codes, stages=stages)
        errors.append(np.mean(np.abs(cos - ref_cos) + np.abs(sin - ref_sin)))
    assert errors[0] > errors[1] > errors[2]

def test_residual_convergence():
    table = atan_table()
    for code in np.random.RandomState(1).randint(-(1 << 31), (1 << 31) - 1, size=200, dtype=np.int64):
        records = trace(int(code))
        assert abs(records[0].z) <= QUARTER_TURN
        for i in range(1, len(records)):
            assert abs(records[i].z) <= table[i - 1]

def test_initial_vector_on_axis():
    for degrees in [10, 100, 190, 280, -10]:
        x, y, _ = prerotate(angle_code(degrees))
        assert (x, y) in [
            (CORDIC_X_INIT, CORDIC_Y_INIT),
            (-CORDIC_Y_INIT, CORDIC_X_INIT),
            (CORDIC_Y_INIT, -CORDIC_X_INIT)
        ]

def test_trace_matches_vectorized():
    codes = np.random.RandomState(2).randint(-(1 << 31), (1 << 31) - 1, size=100, dtype=np.int64)
    cos, sin = sincos(codes)
    for i, code in enumerate(codes):
        assert truncate(trace(int(code))[-1]) == (cos[i], sin[i])

def test_latency():
    pipe = SinCosPipeline()
    valid = [pipe.tick(start=(i == 0), angle=0x2AAAAAAA).data_valid for i in range(3*pipe.latency)]
    assert [i for i, v in enumerate(valid) if v] == [pipe.latency - 1]

def test_pipelining():
    codes = [int(c) for c in np.random.RandomState(3).randint(-(1 << 31), (1 << 31) - 1, size=40, dtype=np.int64)]
    results = SinCosPipeline().run(codes)
    cos, sin = sincos(codes)
    assert results == list(zip(cos, sin))

def test_reset():
    pipe = SinCosPipeline()
    for i in range(pipe.latency + 4):
        pipe.tick(start=True, angle=i << 24)
    assert pipe.data_valid
    pipe.reset()
    assert pipe.outputs() == (0, 0, False)
    assert pipe.slots == [EMPTY]*pipe.stages
    for _ in range(2*pipe.latency):
        assert not pipe.tick().data_valid

    pipe.tick(start=True, angle=0x40000000)
    assert pipe.tick(rst_n=False) == (0, 0, False)

def test_enable_freeze():
    pipe = SinCosPipeline()
    pipe.tick(start=True, angle=0x2AAAAAAA)
    for _ in range(5):
        pipe.tick()
    slots = list(pipe.slots)
    for _ in range(10):
        out = pipe.tick(start=True, angle=0x40000000, enable=False)
        assert not out.data_valid
        assert pipe.slots == slots

    # The frozen result still flows out once enabled, but is never flagged valid
    outputs = [pipe.tick() for _ in range(pipe.latency)]
    assert not any(out.data_valid for out in outputs)
    cos, sin = sincos([0x2AAAAAAA])
    assert (cos[0], sin[0]) in [(out.cosine, out.sine) for out in outputs]
