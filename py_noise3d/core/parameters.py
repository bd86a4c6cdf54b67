"""
Noise parameter structures for volume baking.

The defaults match the editor tool (64³ grid, 3 octaves,
frequency 2, lacunarity 2, persistence 0.5).
"""

import math
import numbers
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict

from .errors import ConfigurationError


class BakeMode(str, Enum):
    """What a bake writes into the volume."""

    SCALAR = "scalar"  # fractal noise replicated into RGB
    CURL = "curl"  # encoded curl of three potential fields


@dataclass(frozen=True)
class NoiseParameters:
    """
    Immutable configuration for one bake.

    Attributes:
        size: Grid edge length; the volume holds size³ cells
        octaves: Number of fractal octaves (>= 1)
        frequency: Spatial frequency of the first octave
        lacunarity: Frequency multiplier per octave (>= 1)
        persistence: Amplitude multiplier per octave, in (0, 1]
        seed: Seed for the noise kernel's permutation table
    """

    size: int = 64
    octaves: int = 3
    frequency: float = 2.0
    lacunarity: float = 2.0
    persistence: float = 0.5
    seed: int = 0

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError if any field is out of range."""
        for name in ("size", "octaves", "seed"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")

        if self.size <= 0:
            raise ConfigurationError(f"size must be positive, got {self.size}")
        if self.octaves < 1:
            raise ConfigurationError(f"octaves must be >= 1, got {self.octaves}")

        for name in ("frequency", "lacunarity", "persistence"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ConfigurationError(f"{name} must be finite, got {value}")
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")

        if self.lacunarity < 1:
            raise ConfigurationError(f"lacunarity must be >= 1, got {self.lacunarity}")
        if self.persistence > 1:
            raise ConfigurationError(f"persistence must be <= 1, got {self.persistence}")

    @property
    def cell_count(self) -> int:
        return self.size ** 3

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
