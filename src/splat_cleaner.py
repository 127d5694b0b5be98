# ABOUTME: Cleaning and filtering for gaussian splat data
# ABOUTME: Removes transparent, degenerate and outlying splats with per-reason statistics

import logging
from dataclasses import asdict, dataclass
from typing import Optional, Tuple

import numpy as np

from gaussian_splat import GaussianSplat

logger = logging.getLogger('gaussian_pipeline')

# MAD -> standard deviation for normally distributed data
MAD_TO_SIGMA = np.float32(1.4826)


@dataclass
class CleanOptions:
    """
    Configuration for cleaning operations.

    Attributes:
        min_opacity: Remove splats with opacity below this (inclusive keep)
        min_scale: Remove splats smaller than this in all three dimensions
        outlier_sigma: Remove splats further than median + sigma * robust std
                       from the median center. None disables the stage.
    """
    min_opacity: float = 0.005
    min_scale: float = 0.0001
    outlier_sigma: Optional[float] = None


@dataclass
class CleanStats:
    """Statistics from a cleaning operation. Each removal is counted once."""
    original_count: int = 0
    removed_low_opacity: int = 0
    removed_small_scale: int = 0
    removed_outliers: int = 0
    final_count: int = 0

    @property
    def total_removed(self) -> int:
        return self.removed_low_opacity + self.removed_small_scale + self.removed_outliers

    def to_dict(self) -> dict:
        return asdict(self)


def clean_splats(gaussians: GaussianSplat, options: CleanOptions) -> Tuple[GaussianSplat, CleanStats]:
    """
    Clean the cloud by removing low-quality splats.

    Filters are applied in order: opacity, scale, outlier. A splat rejected
    by one stage is not evaluated by later ones. The input is not modified.

    Args:
        gaussians: Source collection (read only)
        options: Cleaning thresholds

    Returns:
        Tuple of (new filtered collection, statistics)
    """
    stats = CleanStats(original_count=gaussians.count)

    # Thresholds are compared in float32 like the stored attributes
    min_opacity = np.float32(options.min_opacity)
    min_scale = np.float32(options.min_scale)

    keep = np.arange(gaussians.count)

    # Phase 1: opacity
    opacity_ok = gaussians.opacities[keep] >= min_opacity
    stats.removed_low_opacity = int(np.count_nonzero(~opacity_ok))
    keep = keep[opacity_ok]

    # Phase 2: scale (keep if ANY dimension is >= threshold)
    scale_ok = np.any(gaussians.scales[keep] >= min_scale, axis=1)
    stats.removed_small_scale = int(np.count_nonzero(~scale_ok))
    keep = keep[scale_ok]

    # Phase 3: outliers, needs at least 3 points to estimate spread
    if options.outlier_sigma is not None and len(keep) > 2:
        inlier = _outlier_mask(gaussians.positions[keep], np.float32(options.outlier_sigma))
        stats.removed_outliers = int(np.count_nonzero(~inlier))
        keep = keep[inlier]

    cleaned = gaussians.subset(keep)
    stats.final_count = cleaned.count

    logger.info(
        "Cleaned %d -> %d splats (opacity: %d, scale: %d, outliers: %d)",
        stats.original_count, stats.final_count,
        stats.removed_low_opacity, stats.removed_small_scale, stats.removed_outliers,
    )
    return cleaned, stats


def _outlier_mask(positions: np.ndarray, sigma_threshold: np.float32) -> np.ndarray:
    """
    Return True for positions within the robust distance bound.

    Uses the per-axis median as center and the MAD of center distances as a
    spread estimate, so the outliers being searched for do not skew either.
    """
    center = np.median(positions, axis=0).astype(np.float32)
    offsets = positions - center
    distances = np.sqrt(offsets[:, 0] * offsets[:, 0]
                        + offsets[:, 1] * offsets[:, 1]
                        + offsets[:, 2] * offsets[:, 2])

    median_distance = np.float32(np.median(distances))
    mad = np.float32(np.median(np.abs(distances - median_distance)))

    robust_sigma = MAD_TO_SIGMA * mad
    max_distance = median_distance + sigma_threshold * robust_sigma

    logger.debug("Outlier bound: median %.4f, MAD %.4f, max distance %.4f",
                 median_distance, mad, max_distance)
    return distances <= max_distance
