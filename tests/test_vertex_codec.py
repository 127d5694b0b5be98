# ABOUTME: Tests for EXT_meshopt_compression vertex buffer compression
# ABOUTME: Stride padding, stream version and compression refusal rules

import sys
from pathlib import Path

import meshoptimizer
import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from vertex_codec import compress_vertex_buffer


def smooth_positions(count):
    """Float positions along a curve, typical of a sorted point cloud."""
    t = np.linspace(0, 1, count, dtype=np.float32)
    return np.stack([t, t * t, np.sin(t)], axis=1).astype('<f4')


def decode(encoded, count, size):
    decoded = meshoptimizer.decode_vertex_buffer(count, size, encoded)
    return np.frombuffer(np.asarray(decoded).tobytes(), dtype=np.uint8).reshape(count, size)


class TestCompressVertexBuffer:
    """Tests for compress_vertex_buffer."""

    def test_compresses_smooth_positions(self):
        data = smooth_positions(2000).tobytes()
        result = compress_vertex_buffer(data, 12, 2000)

        assert result is not None
        assert result.original_size == len(data)
        assert result.compressed_size == len(result.data)
        assert result.compressed_size < result.original_size
        assert decode(result.data, 2000, 12).tobytes() == data

    def test_version_zero_stream(self):
        result = compress_vertex_buffer(smooth_positions(1000).tobytes(), 12, 1000)
        assert result.data[0] == 0xA0

    def test_pads_odd_stride(self):
        # Normalized i16 VEC3 positions: 6 bytes per vertex, encoded as 8
        quantized = np.repeat(np.arange(1000, dtype='<i2')[:, None], 3, axis=1)
        data = quantized.tobytes()
        result = compress_vertex_buffer(data, 6, 1000)

        assert result is not None
        assert result.original_size == 6000
        decoded = decode(result.data, 1000, 8)
        assert decoded[:, :6].tobytes() == data
        assert not decoded[:, 6:].any()

    @pytest.mark.parametrize("data,stride,count", [
        (b'', 4, 0),
        (b'\x00' * 16, 0, 4),
        (b'\x00' * 16, 4, 0),
        (b'\x00' * 15, 4, 4),
        (b'\x00' * 20 * 100, 20, 100),
    ])
    def test_refuses_invalid_input(self, data, stride, count):
        assert compress_vertex_buffer(data, stride, count) is None

    def test_refuses_when_not_smaller(self):
        # A single vertex cannot beat the fixed tail
        assert compress_vertex_buffer(b'\x01\x02\x03\x04', 4, 1) is None

    def test_refuses_random_data(self):
        rng = np.random.default_rng(3)
        data = rng.integers(0, 256, size=64 * 16, dtype=np.uint8).tobytes()
        assert compress_vertex_buffer(data, 16, 64) is None
