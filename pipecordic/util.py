import numpy as np

from pipecordic.constants import ANGLE_BITS, FULL_TURN, HALF_TURN, QUARTER_TURN

def to_signed(value, bits: int):
    """Wraps an int (or a numpy integer array) to a two's-complement word"""
    half = 1 << (bits - 1)
    return ((value + half) & ((1 << bits) - 1)) - half

def angle_code(degrees: float):
    return to_signed(int(round(degrees*FULL_TURN/360)), ANGLE_BITS)

def angle_code_from_radians(radians: float):
    return to_signed(int(round(radians*FULL_TURN/(2*np.pi))), ANGLE_BITS)

def to_degrees(code):
    return to_signed(code, ANGLE_BITS)*360/FULL_TURN

def to_radians(code):
    return to_signed(code, ANGLE_BITS)*2*np.pi/FULL_TURN

def expected(codes, scale: float=32000):
    """Floating point (cosine, sine) for an array of angle codes"""
    phase = to_radians(np.asarray(codes, dtype=np.int64))
    return scale*np.cos(phase), scale*np.sin(phase)

def test_to_signed():
    assert to_signed(0x7FFF, 16) == 32767
    assert to_signed(0x8000, 16) == -32768
    assert to_signed(-1, 16) == -1
    assert to_signed(0x1FFFF, 17) == -1
    assert to_signed(0xC0000000, 32) == -(1 << 30)
    words = to_signed(np.array([0, 0x80000000, 0xFFFFFFFF], dtype=np.int64), 32)
    assert list(words) == [0, -(1 << 31), -1]

def test_angle_codes():
    assert angle_code(0) == 0
    assert angle_code(90) == QUARTER_TURN
    assert angle_code(180) == -HALF_TURN
    assert angle_code(270) == to_signed(0xC0000000, 32)
    assert angle_code(-90) == angle_code(270)
    assert angle_code_from_radians(np.pi/2) == 0x40000000
    assert abs(to_degrees(0x2AAAAAAA) - 60) < 1e-6
    assert abs(to_radians(angle_code(45)) - np.pi/4) < 1e-9
