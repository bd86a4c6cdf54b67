#!/usr/bin/env python3
"""
Simple demo script showing scalar and curl volume baking.
"""

import tempfile

import numpy as np
from py_noise3d.core import BakeMode, NoiseParameters, VolumeFieldBaker
from py_noise3d.core.volume_analysis import summarize
from py_noise3d.export import export_bake_result, load_volume_asset


def main():
    """Demonstrate volume baking."""
    print("Py-Noise3D Volume Baking Demo")
    print("=" * 40)

    baker = VolumeFieldBaker()
    params = NoiseParameters(size=32, octaves=4, frequency=2.0, seed=42)

    for mode in (BakeMode.SCALAR, BakeMode.CURL):
        print(f"\n{mode.value.upper()} volume:")
        print("-" * 30)

        ticks = []
        result = baker.bake(params, mode, progress=ticks.append)
        stats = summarize(result)

        print(f"  Samples: {stats.sample_count}")
        print(f"  Progress ticks: {len(ticks)} ({', '.join(sorted({t.stage for t in ticks}))})")
        print(f"  Channel min: {[round(v, 3) for v in stats.channel_min[:3]]}")
        print(f"  Channel max: {[round(v, 3) for v in stats.channel_max[:3]]}")
        print(f"  Saturated: {stats.saturated_fraction * 100:.1f}%")
        if stats.max_vector_length is not None:
            print(f"  Vector length: mean {stats.mean_vector_length:.3f}, max {stats.max_vector_length:.3f}")

        # Show value distribution of the red channel
        bins = np.linspace(0.0, 1.0, 9)
        hist, _ = np.histogram(result.samples[:, 0], bins=bins)
        print("  Red channel distribution:")
        for i in range(len(bins) - 1):
            bar = '#' * int(hist[i] / max(hist) * 20)
            print(f"    {bins[i]:.3f}-{bins[i+1]:.3f}: {bar} ({hist[i]})")

    # Export example
    print("\n\nExport Example:")
    print("-" * 30)
    with tempfile.TemporaryDirectory() as folder:
        result = baker.bake(NoiseParameters(size=16, seed=7), BakeMode.CURL)
        path = export_bake_result(result, folder)
        asset = load_volume_asset(path)
        print(f"  Wrote {path.name}")
        print(f"  Mip sizes: {asset.header['mip_sizes']}")


if __name__ == "__main__":
    main()
