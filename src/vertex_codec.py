# ABOUTME: Vertex buffer compression for EXT_meshopt_compression (ATTRIBUTES mode)
# ABOUTME: Wraps the meshoptimizer vertex codec with padding and refusal rules

"""
Vertex codec

Attribute bytes are handed to meshoptimizer's vertex encoder pinned to
stream version 0, the only version EXT_meshopt_compression allows. The
encoder works on vertex sizes that are a multiple of 4, so narrower
attributes (6-byte quantized positions) are zero-padded per vertex first.
The padding only exists inside the encoded stream.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import meshoptimizer
import numpy as np

logger = logging.getLogger('gaussian_pipeline')

# glTF decoders only accept version 0 streams (header byte 0xA0)
VERTEX_CODEC_VERSION = 0

# Supported fixed vertex shapes: 1 to 4 four-byte lanes
MAX_LANES = 4


@dataclass
class VertexCompressionResult:
    """Compressed bytes for one attribute."""
    data: bytes
    original_size: int
    compressed_size: int


def compress_vertex_buffer(data: bytes, vertex_stride: int, vertex_count: int) -> Optional[VertexCompressionResult]:
    """
    Try to compress one attribute's packed vertex bytes.

    Args:
        data: Packed attribute bytes, ``vertex_stride * vertex_count`` long
        vertex_stride: Bytes per vertex
        vertex_count: Number of vertices

    Returns:
        VertexCompressionResult if the encoded form is strictly smaller,
        otherwise None (caller keeps the uncompressed bytes)
    """
    if vertex_stride == 0 or vertex_count == 0 or not data:
        return None

    if len(data) != vertex_count * vertex_stride:
        return None

    padded_stride = (vertex_stride + 3) & ~3
    if padded_stride // 4 > MAX_LANES:
        return None

    vertices = np.frombuffer(data, dtype=np.uint8).reshape(vertex_count, vertex_stride)
    if padded_stride != vertex_stride:
        padded = np.zeros((vertex_count, padded_stride), dtype=np.uint8)
        padded[:, :vertex_stride] = vertices
        vertices = padded

    meshoptimizer.encode_vertex_version(VERTEX_CODEC_VERSION)
    encoded = bytes(meshoptimizer.encode_vertex_buffer(
        np.ascontiguousarray(vertices), vertex_count, padded_stride))

    if len(encoded) >= len(data):
        logger.debug("Compression did not help (%d >= %d bytes)", len(encoded), len(data))
        return None

    return VertexCompressionResult(
        data=encoded,
        original_size=len(data),
        compressed_size=len(encoded),
    )
