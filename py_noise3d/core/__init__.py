"""
Core volume baking functionality.
"""

from .errors import VolumeBakeError, ConfigurationError, ResourceExhaustionError, BakeCancelledError
from .parameters import NoiseParameters, BakeMode
from .noise_kernels import NoiseKernel, FoldedPerlinKernel, GradientNoise3DKernel, get_kernel
from .fractal_noise import FractalNoiseEvaluator
from .volume_baker import (
    VolumeFieldBaker, BakeResult, BakeProgress, CancellationToken,
    bake_volume, estimate_bake_bytes, linear_index, lattice_coordinate,
)

__all__ = ['VolumeBakeError', 'ConfigurationError', 'ResourceExhaustionError', 'BakeCancelledError',
           'NoiseParameters', 'BakeMode',
           'NoiseKernel', 'FoldedPerlinKernel', 'GradientNoise3DKernel', 'get_kernel',
           'FractalNoiseEvaluator',
           'VolumeFieldBaker', 'BakeResult', 'BakeProgress', 'CancellationToken',
           'bake_volume', 'estimate_bake_bytes', 'linear_index', 'lattice_coordinate']
