"""
Volume asset export.

Writes baked volumes to disk as compressed NumPy archives holding an RGBA8
volume, its box-filtered mip chain and a JSON header. Samples are stored in
the bake's linear order (x + y*size + z*size²), which texture importers
assume implicitly.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import structlog

from ..core.parameters import BakeMode
from ..core.volume_baker import CHANNELS, BakeResult

logger = structlog.get_logger()

ASSET_SUFFIX = ".npz"
ASSET_FORMAT = "RGBA8"
LINEARIZATION = "x + y*size + z*size^2"


@dataclass
class VolumeAsset:
    """A volume asset loaded back from disk."""

    header: Dict[str, Any]
    mips: List[np.ndarray]  # each (n³, 4) uint8, level 0 first

    @property
    def size(self) -> int:
        return self.header["size"]

    @property
    def mode(self) -> BakeMode:
        return BakeMode(self.header["mode"])

    def level_volume(self, level: int = 0) -> np.ndarray:
        """Mip level indexed [z, y, x, channel]."""
        n = self.header["mip_sizes"][level]
        return self.mips[level].reshape(n, n, n, CHANNELS)


def asset_name(result: BakeResult) -> str:
    """File stem such as ``Noise3D_Curl_64_0``."""
    mode = "Curl" if result.mode is BakeMode.CURL else "Scalar"
    return f"Noise3D_{mode}_{result.size}_{result.parameters.seed}"


def build_mip_chain(volume: np.ndarray) -> List[np.ndarray]:
    """
    Box-filtered mip chain of a [z, y, x, channel] float volume.

    Each level halves the edge length (rounding down, odd trailing cells are
    dropped) until it reaches 1.
    """
    levels = [volume]
    current = volume
    while current.shape[0] > 1:
        half = current.shape[0] // 2
        even = current[: half * 2, : half * 2, : half * 2]
        current = even.reshape(half, 2, half, 2, half, 2, CHANNELS).mean(axis=(1, 3, 5))
        levels.append(current)
    return levels


def _quantize(levels: List[np.ndarray]) -> List[np.ndarray]:
    return [
        np.round(np.clip(level, 0.0, 1.0) * 255.0).astype(np.uint8).reshape(-1, CHANNELS)
        for level in levels
    ]


class VolumeAssetExporter:
    """Exports bake results into an output folder."""

    def __init__(self, output_folder: Union[str, Path], mipmaps: bool = True):
        """
        Initialize exporter.

        Args:
            output_folder: Destination folder, created on first export
            mipmaps: Also store the box-filtered mip chain
        """
        self.output_folder = Path(output_folder)
        self.mipmaps = mipmaps

    def path_for(self, result: BakeResult) -> Path:
        return self.output_folder / f"{asset_name(result)}{ASSET_SUFFIX}"

    def build_header(self, result: BakeResult, mip_sizes: List[int]) -> Dict[str, Any]:
        header = result.metadata()
        header.update(
            {
                "format": ASSET_FORMAT,
                "linearization": LINEARIZATION,
                "mip_sizes": mip_sizes,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
        )
        return header

    def export(self, result: BakeResult, path: Optional[Union[str, Path]] = None) -> Path:
        """
        Write ``result`` to disk.

        Returns:
            Path of the written asset
        """
        target = Path(path) if path is not None else self.path_for(result)
        target.parent.mkdir(parents=True, exist_ok=True)

        volume = result.as_volume().astype(np.float64)
        levels = build_mip_chain(volume) if self.mipmaps else [volume]
        mips = _quantize(levels)
        header = self.build_header(result, [level.shape[0] for level in levels])

        arrays = {f"mip{i}": mip for i, mip in enumerate(mips)}
        with open(target, "wb") as fh:
            np.savez_compressed(fh, header=np.array(json.dumps(header)), **arrays)

        logger.info(
            "Volume asset exported",
            path=str(target),
            size=result.size,
            mode=result.mode.value,
            mip_levels=len(mips),
        )
        return target


def export_bake_result(result: BakeResult, output_folder: Union[str, Path]) -> Path:
    """Export with default options."""
    return VolumeAssetExporter(output_folder).export(result)


def load_volume_asset(path: Union[str, Path]) -> VolumeAsset:
    """Read an asset written by VolumeAssetExporter."""
    with np.load(Path(path), allow_pickle=False) as data:
        header = json.loads(str(data["header"]))
        mips = [data[f"mip{i}"] for i in range(len(header["mip_sizes"]))]
    return VolumeAsset(header=header, mips=mips)
