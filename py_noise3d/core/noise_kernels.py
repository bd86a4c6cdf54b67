"""
Coherent noise kernels for the fractal evaluator.

A kernel turns a normalized point (u, v, w) and an octave frequency into a
smooth value in roughly [0, 1]. Kernels work on NumPy arrays so a whole
z-slice is sampled in one call; plain floats work too.

Two implementations are provided:
- FoldedPerlinKernel: 2D gradient noise with the third axis folded into the
  first two as a fixed linear offset. Cheap, and matches the editor bakes.
- GradientNoise3DKernel: genuine 3D improved-Perlin noise for higher
  fidelity. Same signature and range, so it can be swapped in freely.
"""

from typing import Protocol, Union

import numpy as np

from .alea_prng import AleaPRNG

ArrayLike = Union[float, np.ndarray]

# Linear offsets applied to w when folding 3D into 2D
FOLD_U = 0.1
FOLD_V = 0.2

TABLE_SIZE = 256


class NoiseKernel(Protocol):
    """Capability required by FractalNoiseEvaluator."""

    def sample(self, u: ArrayLike, v: ArrayLike, w: ArrayLike, frequency: float) -> np.ndarray:
        ...


def build_permutation(seed: int) -> np.ndarray:
    """
    Seeded permutation table, duplicated to 512 entries.

    The duplication lets lookups like ``perm[perm[x] + y + 1]`` index without
    wrapping.
    """
    table = np.array(AleaPRNG(seed).permutation(TABLE_SIZE), dtype=np.int64)
    return np.concatenate([table, table])


def _fade(t: np.ndarray) -> np.ndarray:
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def _lerp(a: np.ndarray, b: np.ndarray, t: np.ndarray) -> np.ndarray:
    return a + t * (b - a)


def _grad2(h: np.ndarray, x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Dot product with one of four diagonal gradients."""
    h = h & 3
    gx = np.where(h & 1, -x, x)
    gy = np.where(h & 2, -y, y)
    return gx + gy


def _grad3(h: np.ndarray, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Ken Perlin's 12 edge gradients (16 with the repeated four)."""
    h = h & 15
    a = np.where(h < 8, x, y)
    b = np.where(h < 4, y, np.where((h == 12) | (h == 14), x, z))
    return np.where(h & 1, -a, a) + np.where(h & 2, -b, b)


class _PermutationKernel:
    """Shared seeding for the gradient kernels."""

    def __init__(self, seed: int = 0):
        self.seed = seed
        self.perm = build_permutation(seed)

    def __repr__(self):
        return f"{type(self).__name__}(seed={self.seed})"

    def perlin2(self, x: ArrayLike, y: ArrayLike) -> np.ndarray:
        """Signed 2D gradient noise, roughly in [-1, 1]."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        x0 = np.floor(x)
        y0 = np.floor(y)
        xf = x - x0
        yf = y - y0
        xi = x0.astype(np.int64) & 255
        yi = y0.astype(np.int64) & 255

        p = self.perm
        a = p[xi] + yi
        b = p[xi + 1] + yi
        aa, ab = p[a], p[a + 1]
        ba, bb = p[b], p[b + 1]

        u = _fade(xf)
        v = _fade(yf)
        x1 = _lerp(_grad2(aa, xf, yf), _grad2(ba, xf - 1.0, yf), u)
        x2 = _lerp(_grad2(ab, xf, yf - 1.0), _grad2(bb, xf - 1.0, yf - 1.0), u)
        return _lerp(x1, x2, v)

    def perlin3(self, x: ArrayLike, y: ArrayLike, z: ArrayLike) -> np.ndarray:
        """Signed 3D improved-Perlin noise, roughly in [-1, 1]."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        z = np.asarray(z, dtype=np.float64)
        x0, y0, z0 = np.floor(x), np.floor(y), np.floor(z)
        xf, yf, zf = x - x0, y - y0, z - z0
        xi = x0.astype(np.int64) & 255
        yi = y0.astype(np.int64) & 255
        zi = z0.astype(np.int64) & 255

        p = self.perm
        a = p[xi] + yi
        aa, ab = p[a] + zi, p[a + 1] + zi
        b = p[xi + 1] + yi
        ba, bb = p[b] + zi, p[b + 1] + zi

        u, v, w = _fade(xf), _fade(yf), _fade(zf)
        x1 = _lerp(_grad3(p[aa], xf, yf, zf), _grad3(p[ba], xf - 1, yf, zf), u)
        x2 = _lerp(_grad3(p[ab], xf, yf - 1, zf), _grad3(p[bb], xf - 1, yf - 1, zf), u)
        y1 = _lerp(x1, x2, v)
        x1 = _lerp(_grad3(p[aa + 1], xf, yf, zf - 1), _grad3(p[ba + 1], xf - 1, yf, zf - 1), u)
        x2 = _lerp(
            _grad3(p[ab + 1], xf, yf - 1, zf - 1), _grad3(p[bb + 1], xf - 1, yf - 1, zf - 1), u
        )
        y2 = _lerp(x1, x2, v)
        return _lerp(y1, y2, w)


class FoldedPerlinKernel(_PermutationKernel):
    """
    2D Perlin noise sampled at (u*freq + w*0.1, v*freq + w*0.2).

    This is only an approximation of 3D coherence: w shifts the 2D plane
    rather than adding a real third axis, and the shift does not scale with
    frequency.
    """

    def sample(self, u, v, w, frequency):
        w = np.asarray(w, dtype=np.float64)
        x = np.asarray(u, dtype=np.float64) * frequency + w * FOLD_U
        y = np.asarray(v, dtype=np.float64) * frequency + w * FOLD_V
        return self.perlin2(x, y) * 0.5 + 0.5


class GradientNoise3DKernel(_PermutationKernel):
    """True 3D gradient noise sampled at (u, v, w) * freq."""

    def sample(self, u, v, w, frequency):
        x = np.asarray(u, dtype=np.float64) * frequency
        y = np.asarray(v, dtype=np.float64) * frequency
        z = np.asarray(w, dtype=np.float64) * frequency
        return self.perlin3(x, y, z) * 0.5 + 0.5


KERNELS = {
    "folded": FoldedPerlinKernel,
    "gradient3d": GradientNoise3DKernel,
}


def get_kernel(name: str, seed: int = 0) -> NoiseKernel:
    """Build a kernel by registry name."""
    if name not in KERNELS:
        raise KeyError(f"Unknown noise kernel '{name}'. Available: {sorted(KERNELS)}")
    return KERNELS[name](seed)
