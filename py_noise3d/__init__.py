"""
py-noise3d: volumetric noise-field baking.

Bakes scalar fractal noise or curl-noise vector fields into RGBA volume
buffers for 3D textures.
"""

__version__ = "0.1.0"
