"""
Fractal (Brownian) noise evaluation.

Sums octaves of a coherent noise kernel with increasing frequency and
decreasing amplitude, then clamps the result to [0, 1].
"""

from typing import Optional, Union

import numpy as np

from .noise_kernels import ArrayLike, FoldedPerlinKernel, NoiseKernel
from .parameters import NoiseParameters


class FractalNoiseEvaluator:
    """
    Deterministic multi-octave noise at continuous 3D coordinates.

    The accumulated sum is not renormalized by the total amplitude, so with
    several octaves the output saturates at 1 in places. Callers must not
    assume the full [0, 1] range is used.
    """

    def __init__(self, params: NoiseParameters, kernel: Optional[NoiseKernel] = None):
        """
        Initialize the evaluator.

        Args:
            params: Octave settings (octaves, frequency, lacunarity, persistence)
            kernel: Coherent noise kernel; defaults to the folded 2D Perlin
                kernel seeded with ``params.seed``
        """
        self.params = params
        self.kernel = kernel if kernel is not None else FoldedPerlinKernel(params.seed)

    def evaluate(self, u: ArrayLike, v: ArrayLike, w: ArrayLike) -> Union[float, np.ndarray]:
        """
        Evaluate fractal noise at (u, v, w).

        Args:
            u, v, w: Coordinates, usually normalized cell centres
                ``(index + 0.5) / size``. Scalars or broadcastable arrays.

        Returns:
            Value(s) in [0, 1]; a float for scalar input
        """
        amplitude = 1.0
        freq = float(self.params.frequency)
        total = np.zeros(np.broadcast(np.asarray(u), np.asarray(v), np.asarray(w)).shape)

        for _ in range(self.params.octaves):
            base = self.kernel.sample(u, v, w, freq)
            # Remap to signed, then back to 0..1
            contribution = ((base - 0.5) * 2.0) * 0.5 + 0.5
            total = total + contribution * amplitude
            amplitude *= self.params.persistence
            freq *= self.params.lacunarity

        result = np.clip(total, 0.0, 1.0)
        if result.ndim == 0:
            return float(result)
        return result

    __call__ = evaluate
