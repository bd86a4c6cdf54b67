"""Inspection helpers for baked volumes."""

from dataclasses import dataclass, asdict
from typing import List, Optional

import numpy as np

from .parameters import BakeMode
from .volume_baker import BakeResult, central_difference


@dataclass
class VolumeStatistics:
    """Summary of a baked volume."""

    size: int
    mode: str
    sample_count: int
    channel_min: List[float]
    channel_max: List[float]
    channel_mean: List[float]
    monochrome: bool  # R == G == B everywhere
    saturated_fraction: float  # share of RGB values at exactly 0 or 1
    max_vector_length: Optional[float] = None  # curl mode only
    mean_vector_length: Optional[float] = None

    def to_dict(self):
        return asdict(self)


def decode_vectors(result: BakeResult) -> np.ndarray:
    """Signed vectors (c * 2 - 1) of every sample, shape (size³, 3)."""
    return result.samples[:, :3].astype(np.float64) * 2.0 - 1.0


def divergence(vx: np.ndarray, vy: np.ndarray, vz: np.ndarray) -> np.ndarray:
    """
    Divergence of a field indexed [z, y, x], using the same clamped central
    differences as the baker.
    """
    size = vx.shape[0]
    return (
        central_difference(vx, 2, size)
        + central_difference(vy, 1, size)
        + central_difference(vz, 0, size)
    )


def interior(field: np.ndarray, margin: int = 2) -> np.ndarray:
    """Drop ``margin`` cells from every face of a [z, y, x] field."""
    inner = slice(margin, -margin if margin else None)
    return field[inner, inner, inner]


def summarize(result: BakeResult) -> VolumeStatistics:
    """Channel statistics, plus vector lengths for curl volumes."""
    samples = result.samples.astype(np.float64)
    rgb = samples[:, :3]

    monochrome = bool(
        np.array_equal(samples[:, 0], samples[:, 1]) and np.array_equal(samples[:, 1], samples[:, 2])
    )
    saturated = np.count_nonzero((rgb == 0.0) | (rgb == 1.0))

    stats = VolumeStatistics(
        size=result.size,
        mode=result.mode.value,
        sample_count=len(result),
        channel_min=samples.min(axis=0).tolist(),
        channel_max=samples.max(axis=0).tolist(),
        channel_mean=samples.mean(axis=0).tolist(),
        monochrome=monochrome,
        saturated_fraction=float(saturated / rgb.size),
    )

    if result.mode is BakeMode.CURL:
        lengths = np.linalg.norm(decode_vectors(result), axis=1)
        stats.max_vector_length = float(lengths.max())
        stats.mean_vector_length = float(lengths.mean())

    return stats


def slice_rgba(result: BakeResult, z: int) -> np.ndarray:
    """RGBA samples of one z-slice, indexed [y, x, channel]."""
    if not 0 <= z < result.size:
        raise IndexError(f"slice {z} out of range for size {result.size}")
    return result.as_volume()[z]
