import sys

import numpy as np

from pipecordic.io.numpy import run_stream
from pipecordic.trig import SinCosCordic
from pipecordic.util import expected, to_degrees

if __name__ == '__main__':
    steps = int(sys.argv[1]) if len(sys.argv) > 1 else 360
    stages = int(sys.argv[2]) if len(sys.argv) > 2 else 16

    dut = SinCosCordic(stages=stages)
    codes = np.arange(steps, dtype=np.int64)*((1 << 32)//steps)
    out = run_stream(dut, list(codes) + [0]*dut.latency, start=[1]*steps + [0]*dut.latency)
    results = out[out[:, 2] == 1]

    ref_cos, ref_sin = expected(codes)
    error = np.maximum(np.abs(results[:, 0] - ref_cos), np.abs(results[:, 1] - ref_sin))
    magnitude = np.sqrt(results[:, 0].astype(np.float64)**2 + results[:, 1].astype(np.float64)**2)

    worst = int(np.argmax(error))
    print("Stages: {}, latency: {} cycles, samples: {}".format(stages, dut.latency, len(results)))
    print("Worst component error: {:.2f} at {:.3f} degrees".format(error[worst], to_degrees(int(codes[worst]))))
    print("Magnitude: min {:.1f}, max {:.1f}".format(magnitude.min(), magnitude.max()))
