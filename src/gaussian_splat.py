# ABOUTME: Data structure for representing gaussian splat point clouds
# ABOUTME: Stores positions, opacities, scales, rotations and SH coefficients per splat

import numpy as np
from dataclasses import dataclass

# 3 DC terms + 45 higher-order terms (degree 3, RGB)
SH_COEFFICIENT_COUNT = 48


@dataclass
class GaussianSplat:
    """
    Represents a collection of 3D gaussian splats in columnar form.

    Row ``i`` of every array describes the same splat.

    Attributes:
        positions: (N, 3) array of gaussian centers
        opacities: (N,) array of opacity values [0-1] (already sigmoid'd)
        scales: (N, 3) array of gaussian scales (already exp'd, linear space)
        rotations: (N, 4) array of unit quaternions (x, y, z, w)
        sh_coefficients: (N, 48) array; columns 0-2 are the DC term
    """
    positions: np.ndarray
    opacities: np.ndarray
    scales: np.ndarray
    rotations: np.ndarray
    sh_coefficients: np.ndarray

    def __post_init__(self):
        """Validate gaussian splat data."""
        self.positions = np.asarray(self.positions, dtype=np.float32)
        self.opacities = np.asarray(self.opacities, dtype=np.float32)
        self.scales = np.asarray(self.scales, dtype=np.float32)
        self.rotations = np.asarray(self.rotations, dtype=np.float32)
        self.sh_coefficients = np.asarray(self.sh_coefficients, dtype=np.float32)

        n = len(self.positions)

        if self.positions.shape != (n, 3):
            raise ValueError("Positions must be (N, 3)")
        if self.opacities.shape != (n,):
            raise ValueError("Opacities must be (N,)")
        if self.scales.shape != (n, 3):
            raise ValueError("Scales must be (N, 3)")
        if self.rotations.shape != (n, 4):
            raise ValueError("Rotations must be (N, 4) quaternions")
        if self.sh_coefficients.shape != (n, SH_COEFFICIENT_COUNT):
            raise ValueError(f"SH coefficients must be (N, {SH_COEFFICIENT_COUNT})")

    @classmethod
    def allocate(cls, count: int) -> 'GaussianSplat':
        """Create a zero-filled collection sized for ``count`` splats."""
        return cls(
            positions=np.zeros((count, 3), dtype=np.float32),
            opacities=np.zeros(count, dtype=np.float32),
            scales=np.zeros((count, 3), dtype=np.float32),
            rotations=np.zeros((count, 4), dtype=np.float32),
            sh_coefficients=np.zeros((count, SH_COEFFICIENT_COUNT), dtype=np.float32),
        )

    @classmethod
    def empty(cls) -> 'GaussianSplat':
        return cls.allocate(0)

    @property
    def count(self) -> int:
        """Return number of gaussians."""
        return len(self.positions)

    @property
    def sh_dc(self) -> np.ndarray:
        """(N, 3) DC spherical harmonic terms (base color)."""
        return self.sh_coefficients[:, :3]

    def subset(self, indices: np.ndarray) -> 'GaussianSplat':
        """Create a subset of gaussians by indices (or boolean mask)."""
        indices = np.asarray(indices)
        if indices.dtype != bool:
            indices = indices.astype(np.intp)
        # Fancy indexing always copies, so the subset owns its buffers
        return GaussianSplat(
            positions=self.positions[indices],
            opacities=self.opacities[indices],
            scales=self.scales[indices],
            rotations=self.rotations[indices],
            sh_coefficients=self.sh_coefficients[indices],
        )
