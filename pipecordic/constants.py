import numpy as np

ANGLE_BITS = 32
OUTPUT_BITS = 16
# One guard bit above the output word for the rotating vector
XY_BITS = OUTPUT_BITS + 1

PIPELINE_STAGES = 16
ATAN_ENTRIES = 30

# Pre-scaled by 1/gain so the terminal magnitude lands near 32000
CORDIC_X_INIT = 0x4BE5
CORDIC_Y_INIT = 0

FULL_TURN = 1 << ANGLE_BITS
HALF_TURN = 1 << (ANGLE_BITS - 1)
QUARTER_TURN = 1 << (ANGLE_BITS - 2)

def atan_table(entries=ATAN_ENTRIES):
    """atan(2^-i) for each iteration i, in angle code units (2^32 per turn)"""
    return tuple(int(round(np.arctan(2.0**-i)*FULL_TURN/(2*np.pi))) for i in range(entries))

def cordic_gain(iterations):
    return float(np.prod(np.sqrt(1 + 2.0**(-2*np.arange(iterations)))))

def check_stages(stages):
    # stages - 1 micro-rotations, each consuming one table entry
    if stages < 2 or stages > ATAN_ENTRIES + 1:
        raise ValueError("stages must be between 2 and {}, got {}".format(ATAN_ENTRIES + 1, stages))

def test_atan_table():
    table = atan_table()
    assert len(table) == ATAN_ENTRIES
    assert table[0] == 1 << 29
    assert table[-1] == 1
    for i in range(1, len(table)):
        assert table[i] < table[i - 1]
        assert table[i] > 0

def test_gain_compensation():
    gain = cordic_gain(PIPELINE_STAGES - 1)
    assert abs(gain - 1.64676) < 1e-4
    assert abs(CORDIC_X_INIT*gain - 32000) < 10

def test_check_stages():
    check_stages(2)
    check_stages(PIPELINE_STAGES)
    check_stages(ATAN_ENTRIES + 1)
    for bad in [0, 1, ATAN_ENTRIES + 2]:
        try:
            check_stages(bad)
        except ValueError:
            continue
        raise Exception("stages={} was accepted".format(bad))
