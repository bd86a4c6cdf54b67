#!/usr/bin/env python3
"""
Visualize baked noise volumes.
Renders a row of z-slices of a scalar bake and of a curl bake.
"""

import argparse

import matplotlib.pyplot as plt
import numpy as np

from py_noise3d.core import BakeMode, NoiseParameters, VolumeFieldBaker
from py_noise3d.core.volume_analysis import slice_rgba, summarize


def visualize_volume(size=64, octaves=3, frequency=2.0, seed=0, slices=4):
    """
    Bake both modes and plot evenly spaced z-slices.

    Args:
        size: Volume edge length
        octaves: Fractal octaves
        frequency: Initial frequency
        seed: Noise seed
        slices: Number of z-slices per row
    """
    params = NoiseParameters(size=size, octaves=octaves, frequency=frequency, seed=seed)
    baker = VolumeFieldBaker()

    print(f"Baking {size}^3 scalar and curl volumes...")
    scalar = baker.bake(params, BakeMode.SCALAR)
    curl = baker.bake(params, BakeMode.CURL)

    for result in (scalar, curl):
        stats = summarize(result)
        print(f"\n{result.mode.value} statistics:")
        print(f"  Mean RGB: {[round(v, 3) for v in stats.channel_mean[:3]]}")
        print(f"  Saturated: {stats.saturated_fraction * 100:.1f}%")
        if stats.max_vector_length is not None:
            print(f"  Max vector length: {stats.max_vector_length:.3f}")

    print("\nCreating visualization...")
    z_values = np.linspace(0, size - 1, slices).astype(int)
    fig, axes = plt.subplots(2, slices, figsize=(4 * slices, 8), squeeze=False)

    for col, z in enumerate(z_values):
        ax = axes[0][col]
        ax.imshow(slice_rgba(scalar, z)[:, :, 0], cmap="gray", vmin=0, vmax=1, origin="lower")
        ax.set_title(f"Scalar z={z}")
        ax.axis("off")

        ax = axes[1][col]
        ax.imshow(slice_rgba(curl, z)[:, :, :3], origin="lower")
        ax.set_title(f"Curl z={z}")
        ax.axis("off")

    fig.suptitle(f"Noise Volume - Size {size}, Seed {seed}", fontsize=16)
    plt.tight_layout()

    output_file = f"volume_{size}_{seed}.png"
    plt.savefig(output_file, dpi=150, bbox_inches="tight")
    print(f"\nVisualization saved to: {output_file}")

    plt.show()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Plot z-slices of baked noise volumes")
    parser.add_argument("--size", type=int, default=64)
    parser.add_argument("--octaves", type=int, default=3)
    parser.add_argument("--frequency", type=float, default=2.0)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--slices", type=int, default=4)
    args = parser.parse_args()

    visualize_volume(args.size, args.octaves, args.frequency, args.seed, args.slices)
