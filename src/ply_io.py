# ABOUTME: PLY file I/O for 3D gaussian splat files
# ABOUTME: Decodes and encodes the fixed 62-property 3DGS layout (ASCII or binary little-endian)

import io
import logging
import re
from pathlib import Path
from typing import Iterator, List, Union

import numpy as np
from scipy.special import expit, logit

from gaussian_splat import GaussianSplat
from splat_errors import BodyMalformedError, HeaderMalformedError, InvalidEncodingError

logger = logging.getLogger('gaussian_pipeline')

HEADER_TERMINATOR = b'end_header'

# Standard 3DGS PLY has 62 float properties = 248 bytes per vertex
PROPERTIES_PER_VERTEX = 62
BYTES_PER_VERTEX = PROPERTIES_PER_VERTEX * 4

# Column layout of one vertex record
_POSITION = slice(0, 3)
_SH = slice(6, 54)       # f_dc_0..2 followed by f_rest_0..44
_OPACITY = 54            # logit
_SCALE = slice(55, 58)   # log scale
_ROT_W = 58
_ROT_XYZ = slice(59, 62)

PROPERTY_NAMES = (
    ['x', 'y', 'z', 'nx', 'ny', 'nz']
    + [f'f_dc_{i}' for i in range(3)]
    + [f'f_rest_{i}' for i in range(45)]
    + ['opacity']
    + [f'scale_{i}' for i in range(3)]
    + [f'rot_{i}' for i in range(4)]
)

_VERTEX_COUNT_TOKEN = re.compile(r'\+?[0-9]+')


def parse_ply(data: bytes) -> GaussianSplat:
    """
    Decode PLY bytes into a GaussianSplat.

    Args:
        data: Raw PLY file contents

    Returns:
        GaussianSplat with activated opacity/scale and normalized rotations

    Raises:
        HeaderMalformedError: No end_header, or missing/invalid vertex count
        InvalidEncodingError: Header or ASCII body is not UTF-8
        BodyMalformedError: Binary body too short, or ASCII line with < 62 values
    """
    if not isinstance(data, bytes):
        data = bytes(data)

    header_end = data.find(HEADER_TERMINATOR)
    if header_end < 0:
        raise HeaderMalformedError("No end_header found")

    try:
        header = data[:header_end].decode('utf-8')
    except UnicodeDecodeError as e:
        raise InvalidEncodingError("Invalid UTF-8 in header") from e

    vertex_count = parse_vertex_count(header)
    is_binary = 'format binary_little_endian' in header

    # Body starts after "end_header\n"
    body = data[header_end + len(HEADER_TERMINATOR) + 1:]

    logger.debug("PLY header: %d vertices, %s body",
                 vertex_count, 'binary' if is_binary else 'ascii')

    if is_binary:
        return _parse_binary(body, vertex_count)

    try:
        content = body.decode('utf-8')
    except UnicodeDecodeError as e:
        raise InvalidEncodingError("Invalid UTF-8 in ASCII PLY body") from e
    return _parse_ascii(content, vertex_count)


def load_ply(filepath: Union[str, Path]) -> GaussianSplat:
    """
    Load gaussian splats from PLY file.

    Args:
        filepath: Input PLY file path

    Returns:
        GaussianSplat object
    """
    filepath = Path(filepath)
    logger.info("Loading PLY: %s", filepath)
    return parse_ply(filepath.read_bytes())


def parse_vertex_count(header: str) -> int:
    """Return the count declared on the first 'element vertex' header line."""
    for line in header.splitlines():
        if line.startswith('element vertex'):
            tokens = line.split()
            if len(tokens) < 3 or not _VERTEX_COUNT_TOKEN.fullmatch(tokens[2]):
                raise HeaderMalformedError(f"Invalid vertex count: {line!r}")
            return int(tokens[2])
    raise HeaderMalformedError("No vertex element found")


def _parse_binary(body: bytes, count: int) -> GaussianSplat:
    expected_size = count * BYTES_PER_VERTEX
    if len(body) < expected_size:
        raise BodyMalformedError(
            f"Not enough data: expected {expected_size} bytes, got {len(body)}"
        )

    if count == 0:
        return GaussianSplat.empty()

    records = np.frombuffer(body, dtype='<f4', count=count * PROPERTIES_PER_VERTEX)
    return _records_to_gaussians(records.reshape(count, PROPERTIES_PER_VERTEX))


def _parse_ascii(content: str, count: int) -> GaussianSplat:
    # The declared count is untrusted; never allocate more rows than there are lines
    capacity = min(count, content.count('\n') + 1)
    records = np.empty((capacity, PROPERTIES_PER_VERTEX), dtype=np.float32)
    decoded = 0

    for i, line in enumerate(_iter_lines(content)):
        if i >= capacity:
            break
        values = _parse_floats(line)
        if len(values) < PROPERTIES_PER_VERTEX:
            raise BodyMalformedError(
                f"Line {i + 1}: expected {PROPERTIES_PER_VERTEX} properties, got {len(values)}"
            )
        records[i] = values[:PROPERTIES_PER_VERTEX]
        decoded = i + 1

    if decoded < count:
        logger.warning("ASCII PLY declares %d vertices but only %d lines present",
                       count, decoded)

    return _records_to_gaussians(records[:decoded])


def _iter_lines(content: str) -> Iterator[str]:
    """Split on '\\n' only, dropping a trailing '\\r' and the final empty line."""
    lines = content.split('\n')
    if lines and lines[-1] == '':
        lines.pop()
    for line in lines:
        yield line[:-1] if line.endswith('\r') else line


def _parse_floats(line: str) -> List[float]:
    # Unparseable tokens are skipped, not fatal; only the total count matters.
    # float() accepts digit separators ("1_000"), which are not PLY numbers.
    values = []
    for token in line.split():
        if '_' in token:
            continue
        try:
            values.append(float(token))
        except ValueError:
            continue
    return values


def _records_to_gaussians(records: np.ndarray) -> GaussianSplat:
    """Apply activations to (N, 62) raw records and fill a pre-sized collection."""
    gaussians = GaussianSplat.allocate(len(records))

    gaussians.positions[:] = records[:, _POSITION]
    gaussians.sh_coefficients[:] = records[:, _SH]
    gaussians.opacities[:] = expit(records[:, _OPACITY])
    with np.errstate(over='ignore'):
        gaussians.scales[:] = np.exp(records[:, _SCALE])

    # File order is (w, x, y, z); stored order is (x, y, z, w)
    gaussians.rotations[:, :3] = records[:, _ROT_XYZ]
    gaussians.rotations[:, 3] = records[:, _ROT_W]
    gaussians.rotations[:] = normalize_quaternions(gaussians.rotations)

    return gaussians


def normalize_quaternions(quats: np.ndarray) -> np.ndarray:
    """
    Normalize (N, 4) quaternions to unit length in float32.

    Zero-length quaternions become the identity (0, 0, 0, 1).
    """
    q = np.asarray(quats, dtype=np.float32)
    length = np.sqrt(q[:, 0] * q[:, 0] + q[:, 1] * q[:, 1]
                     + q[:, 2] * q[:, 2] + q[:, 3] * q[:, 3])

    with np.errstate(divide='ignore', invalid='ignore'):
        normalized = q * (np.float32(1.0) / length)[:, None]

    degenerate = ~(length > 0)
    if np.any(degenerate):
        normalized[degenerate] = np.array([0, 0, 0, 1], dtype=np.float32)
    return normalized.astype(np.float32, copy=False)


def encode_ply(gaussians: GaussianSplat, binary: bool = True) -> bytes:
    """
    Encode gaussian splats in the 62-property 3DGS PLY layout.

    Activations are inverted (logit opacity, log scale) and quaternions are
    written in (w, x, y, z) order. Normals are written as zeros.

    Args:
        gaussians: GaussianSplat object to encode
        binary: Write binary_little_endian (True) or ascii (False)

    Returns:
        PLY file contents
    """
    n = gaussians.count
    records = np.zeros((n, PROPERTIES_PER_VERTEX), dtype=np.float32)
    records[:, _POSITION] = gaussians.positions
    records[:, _SH] = gaussians.sh_coefficients
    with np.errstate(divide='ignore'):
        records[:, _OPACITY] = logit(gaussians.opacities)
        records[:, _SCALE] = np.log(gaussians.scales)
    records[:, _ROT_W] = gaussians.rotations[:, 3]
    records[:, _ROT_XYZ] = gaussians.rotations[:, :3]

    fmt = 'binary_little_endian' if binary else 'ascii'
    header_lines = ['ply', f'format {fmt} 1.0', f'element vertex {n}']
    header_lines += [f'property float {name}' for name in PROPERTY_NAMES]
    header_lines.append('end_header')
    header = ('\n'.join(header_lines) + '\n').encode('ascii')

    if binary:
        return header + records.astype('<f4').tobytes()

    body = io.StringIO()
    np.savetxt(body, records, fmt='%.9g')
    return header + body.getvalue().encode('ascii')


def save_ply(gaussians: GaussianSplat, filepath: Union[str, Path], binary: bool = True) -> None:
    """
    Save gaussian splats to PLY file format.

    Args:
        gaussians: GaussianSplat object to save
        filepath: Output PLY file path
        binary: Write binary_little_endian (True) or ascii (False)
    """
    filepath = Path(filepath)
    filepath.write_bytes(encode_ply(gaussians, binary=binary))
    logger.info("Saved %d gaussians to %s", gaussians.count, filepath)
