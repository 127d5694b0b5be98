# ABOUTME: glTF/GLB export for gaussian splats (KHR_gaussian_splatting point primitives)
# ABOUTME: Packs attributes into one buffer with optional quantization and vertex compression

"""
glTF export

Each splat becomes one vertex of a single POINTS primitive:

- POSITION: centers (VEC3 float, or normalized SHORT with KHR_mesh_quantization)
- COLOR_0: RGBA from the SH DC term plus opacity (VEC4 normalized UNSIGNED_BYTE or float)
- _ROTATION: quaternion (VEC4 float, x y z w)
- _SCALE: linear scale (VEC3 float)
- _SH_COEFFICIENTS_0.._11: optional, all 48 SH floats as twelve VEC4 views
  into one buffer view with a 192 byte stride

KHR_gaussian_splatting is listed as used but not required, so viewers
without splat support still draw the cloud as plain points.
"""

import base64
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np
from pygltflib import (
    GLTF2,
    Accessor,
    Asset,
    Buffer,
    BufferView,
    Mesh,
    Node,
    Primitive,
    Scene,
)

from gaussian_splat import GaussianSplat
from splat_errors import SerializationError
from vertex_codec import compress_vertex_buffer

logger = logging.getLogger('gaussian_pipeline')

# 1 / (2 * sqrt(pi)), zeroth-order SH basis constant
SH_C0 = np.float32(0.28209479)

GENERATOR = 'splat-gltf-converter'

# glTF accessor component types
COMPONENT_UNSIGNED_BYTE = 5121
COMPONENT_SHORT = 5122
COMPONENT_FLOAT = 5126

MODE_POINTS = 0

EXT_GAUSSIAN_SPLATTING = 'KHR_gaussian_splatting'
EXT_MESH_QUANTIZATION = 'KHR_mesh_quantization'
EXT_MESHOPT_COMPRESSION = 'EXT_meshopt_compression'

SH_ACCESSOR_GROUPS = 12
SH_STRIDE = 48 * 4

DATA_URI_PREFIX = 'data:application/octet-stream;base64,'


class ExportFormat(Enum):
    """Output container."""
    GLB = 'glb'
    GLTF_EMBEDDED = 'gltf'


@dataclass
class ExportConfig:
    """
    Configuration for glTF export. All toggles are independent.

    Attributes:
        format: GLB (binary) or JSON glTF with an embedded base64 buffer
        quantize_colors: Store COLOR_0 as normalized u8 instead of f32
        export_full_sh: Also export all 48 SH coefficients
        quantize_positions: Store POSITION as normalized i16 (KHR_mesh_quantization)
        meshopt_compression: Compress attribute buffer views (EXT_meshopt_compression)
    """
    format: ExportFormat = ExportFormat.GLB
    quantize_colors: bool = True
    export_full_sh: bool = False
    quantize_positions: bool = False
    meshopt_compression: bool = False


@dataclass
class BufferViewCompressionInfo:
    """Compression outcome for a single attribute buffer view."""
    attribute: str
    original_size: int
    compressed_size: int  # 0 if not compressed
    ratio: float          # original / compressed, 1.0 if not compressed


@dataclass
class CompressionStats:
    """Statistics about vertex compression across all attributes."""
    compressed_count: int = 0
    skipped_count: int = 0
    original_size: int = 0
    compressed_size: int = 0
    details: List[BufferViewCompressionInfo] = field(default_factory=list)

    @property
    def ratio(self) -> float:
        return self.original_size / self.compressed_size if self.compressed_size else 1.0


@dataclass
class ExportResult:
    """Exported file bytes plus compression statistics (None when compression is off)."""
    data: bytes
    compression_stats: Optional[CompressionStats] = None


def sh_to_rgba(sh_dc: np.ndarray, opacities: np.ndarray) -> np.ndarray:
    """
    Convert SH DC coefficients and opacity to RGBA.

    Args:
        sh_dc: (N, 3) DC terms
        opacities: (N,) opacity in [0, 1]

    Returns:
        (N, 4) float32 RGBA; RGB clamped to [0, 1], alpha is the opacity as is
    """
    rgb = np.clip(np.asarray(sh_dc, dtype=np.float32) * SH_C0 + np.float32(0.5), 0.0, 1.0)
    rgba = np.empty((len(rgb), 4), dtype=np.float32)
    rgba[:, :3] = rgb
    rgba[:, 3] = opacities
    return rgba


def compute_bounds(positions: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Per-axis (min, max) of positions; zeros for an empty array."""
    if len(positions) == 0:
        return np.zeros(3, dtype=np.float32), np.zeros(3, dtype=np.float32)
    return positions.min(axis=0), positions.max(axis=0)


def quantize_positions(positions: np.ndarray, min_p: np.ndarray, max_p: np.ndarray) -> np.ndarray:
    """
    Remap each axis from [min, max] to [-1, 1] and scale to normalized i16.

    Axes with max ~= min map to 0.
    """
    extent = (max_p - min_p).astype(np.float32)
    degenerate = np.abs(extent) < np.finfo(np.float32).eps

    with np.errstate(divide='ignore', invalid='ignore'):
        normalized = (positions - min_p) / extent * np.float32(2.0) - np.float32(1.0)
    scaled = np.clip(normalized * np.float32(32767.0), -32767.0, 32767.0)
    scaled[:, degenerate] = 0
    return scaled.astype(np.int16)


def quantize_unorm8(values: np.ndarray) -> np.ndarray:
    """Round [0, 1] floats to u8, halves away from zero, saturating."""
    scaled = (np.asarray(values, dtype=np.float32) * np.float32(255.0)).astype(np.float64)
    return np.clip(np.floor(scaled + 0.5), 0, 255).astype(np.uint8)


def _f32_list(values: np.ndarray) -> List[float]:
    # str() of a float32 is its shortest round-trip form (0.1, not 0.10000000149)
    return [float(str(np.float32(v))) for v in values]


class _GltfBuilder:
    """Accumulates the binary buffer and the typed buffer views and accessors."""

    def __init__(self, gltf: GLTF2, count: int, use_compression: bool):
        self.gltf = gltf
        self.count = count
        self.use_compression = use_compression
        self.buffer = bytearray()
        self.stats = CompressionStats()

    def _align(self) -> int:
        self.buffer.extend(b'\x00' * ((4 - len(self.buffer) % 4) % 4))
        return len(self.buffer)

    def _add_view(self, view: BufferView) -> int:
        self.gltf.bufferViews.append(view)
        return len(self.gltf.bufferViews) - 1

    def _add_accessor(self, accessor: Accessor) -> int:
        self.gltf.accessors.append(accessor)
        return len(self.gltf.accessors) - 1

    def add_attribute(self, data: bytes, component_type: int, type_: str, name: str,
                      vertex_stride: int, min_value: Optional[List[float]] = None,
                      max_value: Optional[List[float]] = None, normalized: bool = False) -> int:
        """Append one attribute as its own buffer view and accessor; return the accessor index."""
        offset = self._align()

        result = None
        if self.use_compression and vertex_stride > 0:
            result = compress_vertex_buffer(data, vertex_stride, self.count)
        final_data = result.data if result is not None else data

        if self.use_compression:
            self._record(name, len(data), result, vertex_stride)

        self.buffer.extend(final_data)

        view = BufferView(
            buffer=0,
            byteOffset=offset,
            byteLength=len(final_data),
            name=f'{name}_view',
        )
        if result is not None:
            view.extensions = {
                EXT_MESHOPT_COMPRESSION: {
                    'buffer': 0,
                    'byteOffset': offset,
                    'byteLength': len(final_data),
                    'byteStride': vertex_stride,
                    'count': self.count,
                    'mode': 'ATTRIBUTES',
                }
            }
        view_idx = self._add_view(view)

        accessor = Accessor(
            bufferView=view_idx,
            componentType=component_type,
            count=self.count,
            type=type_,
            name=name,
            min=min_value,
            max=max_value,
        )
        if normalized:
            accessor.normalized = True
        return self._add_accessor(accessor)

    def add_sh_coefficients(self, sh_coefficients: np.ndarray) -> List[int]:
        """Store all SH floats in one strided view exposed as twelve VEC4 accessors."""
        data = np.ascontiguousarray(sh_coefficients, dtype='<f4').tobytes()
        offset = self._align()
        self.buffer.extend(data)

        view_idx = self._add_view(BufferView(
            buffer=0,
            byteOffset=offset,
            byteLength=len(data),
            byteStride=SH_STRIDE,
            name='_SH_COEFFICIENTS_view',
        ))

        return [
            self._add_accessor(Accessor(
                bufferView=view_idx,
                byteOffset=i * 16,
                componentType=COMPONENT_FLOAT,
                count=self.count,
                type='VEC4',
                name=f'_SH_COEFFICIENTS_{i}',
            ))
            for i in range(SH_ACCESSOR_GROUPS)
        ]

    def _record(self, name: str, original_size: int, result, vertex_stride: int) -> None:
        stats = self.stats
        if result is not None:
            stats.compressed_count += 1
            stats.original_size += result.original_size
            stats.compressed_size += result.compressed_size
        elif vertex_stride > 0:
            stats.skipped_count += 1
            stats.original_size += original_size
            stats.compressed_size += original_size

        stats.details.append(BufferViewCompressionInfo(
            attribute=name,
            original_size=original_size,
            compressed_size=result.compressed_size if result is not None else 0,
            ratio=result.original_size / result.compressed_size if result is not None else 1.0,
        ))


def build_gltf(gaussians: GaussianSplat, config: ExportConfig) -> Tuple[GLTF2, bytes, Optional[CompressionStats]]:
    """
    Build the glTF document and its binary buffer.

    Args:
        gaussians: Collection to export (not modified)
        config: Export configuration

    Returns:
        Tuple of (GLTF2 document without buffer uri or blob, buffer bytes,
        compression stats or None when compression is disabled)
    """
    count = gaussians.count
    gltf = GLTF2()
    builder = _GltfBuilder(gltf, count, config.meshopt_compression)

    # POSITION
    min_p, max_p = compute_bounds(gaussians.positions)
    if config.quantize_positions:
        positions = quantize_positions(gaussians.positions, min_p, max_p)
        pos_idx = builder.add_attribute(
            positions.astype('<i2').tobytes(), COMPONENT_SHORT, 'VEC3', 'POSITION',
            vertex_stride=6, min_value=_f32_list(min_p), max_value=_f32_list(max_p),
            normalized=True,
        )
    else:
        pos_idx = builder.add_attribute(
            gaussians.positions.astype('<f4').tobytes(), COMPONENT_FLOAT, 'VEC3', 'POSITION',
            vertex_stride=12, min_value=_f32_list(min_p), max_value=_f32_list(max_p),
        )

    # COLOR_0
    colors = sh_to_rgba(gaussians.sh_dc, gaussians.opacities)
    if config.quantize_colors:
        color_idx = builder.add_attribute(
            quantize_unorm8(colors).tobytes(), COMPONENT_UNSIGNED_BYTE, 'VEC4', 'COLOR_0',
            vertex_stride=4, normalized=True,
        )
    else:
        color_idx = builder.add_attribute(
            colors.astype('<f4').tobytes(), COMPONENT_FLOAT, 'VEC4', 'COLOR_0',
            vertex_stride=16,
        )

    # _ROTATION (x, y, z, w) and _SCALE
    rot_idx = builder.add_attribute(
        gaussians.rotations.astype('<f4').tobytes(), COMPONENT_FLOAT, 'VEC4', '_ROTATION',
        vertex_stride=16,
    )
    scale_idx = builder.add_attribute(
        gaussians.scales.astype('<f4').tobytes(), COMPONENT_FLOAT, 'VEC3', '_SCALE',
        vertex_stride=12,
    )

    # Plain mapping so custom underscore attributes serialize in insertion order
    attributes = {
        'POSITION': pos_idx,
        'COLOR_0': color_idx,
        '_ROTATION': rot_idx,
        '_SCALE': scale_idx,
    }

    if config.export_full_sh:
        for i, idx in enumerate(builder.add_sh_coefficients(gaussians.sh_coefficients)):
            attributes[f'_SH_COEFFICIENTS_{i}'] = idx

    extensions_used = [EXT_GAUSSIAN_SPLATTING]
    if config.quantize_positions:
        extensions_used.append(EXT_MESH_QUANTIZATION)
    if builder.stats.compressed_count > 0:
        extensions_used.append(EXT_MESHOPT_COMPRESSION)

    gltf.asset = Asset(version='2.0', generator=GENERATOR)
    gltf.extensionsUsed = extensions_used
    gltf.scene = 0
    gltf.scenes.append(Scene(nodes=[0], name='Scene'))
    gltf.nodes.append(Node(mesh=0, name='GaussianSplats'))
    gltf.meshes.append(Mesh(
        primitives=[Primitive(attributes=attributes, mode=MODE_POINTS)],
        name='gaussian_splats',
    ))
    gltf.buffers.append(Buffer(byteLength=len(builder.buffer)))

    stats = builder.stats if config.meshopt_compression else None
    return gltf, bytes(builder.buffer), stats


def _check_finite(gltf: GLTF2) -> None:
    """JSON has no NaN or infinity; reject them before serializing."""
    for accessor in gltf.accessors:
        for value in (accessor.min or []) + (accessor.max or []):
            if not math.isfinite(value):
                raise SerializationError(
                    f"Failed to serialize glTF document: non-finite bound in {accessor.name}"
                )


def export_glb_with_stats(gaussians: GaussianSplat, config: ExportConfig) -> ExportResult:
    """Export to binary GLB and return the bytes with compression statistics."""
    gltf, buffer_data, stats = build_gltf(gaussians, config)
    _check_finite(gltf)
    gltf.set_binary_blob(buffer_data)

    try:
        data = b''.join(gltf.save_to_bytes())
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Failed to serialize glTF document: {e}") from e

    logger.info("Exported GLB: %d splats, %d bytes", gaussians.count, len(data))
    return ExportResult(data=data, compression_stats=stats)


def export_glb(gaussians: GaussianSplat, config: ExportConfig) -> bytes:
    """Export to binary GLB."""
    return export_glb_with_stats(gaussians, config).data


def export_gltf_embedded_with_stats(gaussians: GaussianSplat, config: ExportConfig) -> ExportResult:
    """Export to pretty-printed JSON glTF with the buffer embedded as a base64 data URI."""
    gltf, buffer_data, stats = build_gltf(gaussians, config)
    _check_finite(gltf)
    gltf.buffers[0].uri = DATA_URI_PREFIX + base64.b64encode(buffer_data).decode('ascii')

    try:
        data = gltf.gltf_to_json(indent=2).encode('utf-8')
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Failed to serialize glTF document: {e}") from e

    logger.info("Exported glTF: %d splats, %d bytes", gaussians.count, len(data))
    return ExportResult(data=data, compression_stats=stats)


def export_gltf_embedded(gaussians: GaussianSplat, config: ExportConfig) -> bytes:
    """Export to JSON glTF with embedded buffer."""
    return export_gltf_embedded_with_stats(gaussians, config).data


def export(gaussians: GaussianSplat, config: ExportConfig) -> ExportResult:
    """Export using the container selected by ``config.format``."""
    if config.format == ExportFormat.GLTF_EMBEDDED:
        return export_gltf_embedded_with_stats(gaussians, config)
    return export_glb_with_stats(gaussians, config)
