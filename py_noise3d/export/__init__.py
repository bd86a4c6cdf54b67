"""
Volume asset export.
"""

from .volume_asset import (
    VolumeAsset, VolumeAssetExporter, asset_name, build_mip_chain,
    export_bake_result, load_volume_asset,
)

__all__ = ['VolumeAsset', 'VolumeAssetExporter', 'asset_name', 'build_mip_chain',
           'export_bake_result', 'load_volume_asset']
