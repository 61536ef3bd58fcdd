#!/usr/bin/env python3
# ABOUTME: Basic usage examples for the splat compressor
# ABOUTME: Demonstrates presets, custom formats, clustering progress and reading assets back

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from splatpack import (
    CompressionConfig, DataQuality, GaussianSplatAsset, Pipeline,
    SyntheticKind, SyntheticParams, generate_synthetic, load_npz,
)


def example_basic_compression():
    """Compress an .npz archive with the default (medium) preset."""
    print("Example 1: Basic Compression")
    print("-" * 50)

    splats = load_npz('scene.npz')
    config = CompressionConfig(output_dir='output', asset_name='scene')
    asset = Pipeline(config).run(splats)

    print(f"Compressed {asset.splat_count} splats into {asset.total_size} bytes")
    print()


def example_custom_formats():
    """Pick each data format explicitly."""
    print("Example 2: Custom Formats")
    print("-" * 50)

    splats = generate_synthetic(SyntheticParams(splat_count=50000, kind=SyntheticKind.RandomInsideBox))
    config = CompressionConfig(
        quality=DataQuality.Custom,
        pos_format='Norm16',
        scale_format='Norm11',
        color_format='Float16x4',
        sh_format='Norm11',
    )
    print(f"Estimated sizes: {config.estimate_sizes(splats.count)}")

    asset = Pipeline(config).run(splats)
    print(f"Chunks: {asset.chunk_count}, hash {asset.data_hash}")
    print()


def example_clustered_sh():
    """Clustered SH with a progress callback that can cancel."""
    print("Example 3: Clustered SH")
    print("-" * 50)

    splats = load_npz('scene.npz')
    config = CompressionConfig(quality=DataQuality.Low, output_dir='output_low')

    def progress(fraction):
        print(f"  clustering {fraction * 100:.0f}%")
        return True  # return False to cancel

    asset = Pipeline(config).run(splats, progress=progress)
    if asset is None:
        print("Cancelled")
    else:
        print(f"SH codebook table: {len(asset.sh_data)} bytes")
    print()


def example_load_asset():
    """Read a written asset back."""
    print("Example 4: Load Asset")
    print("-" * 50)

    asset = GaussianSplatAsset.load('output/scene.json')
    print(f"{asset.name}: {asset.splat_count} splats, formats "
          f"{asset.pos_format.name}/{asset.scale_format.name}/"
          f"{asset.color_format.name}/{asset.sh_format.name}")
    print(f"First chunk: {asset.chunks()[0]}")
    print()


if __name__ == '__main__':
    print("Gaussian Splat Compressor - Usage Examples")
    print("=" * 50)
    print()

    # Note: Examples 1, 3 and 4 assume you have scene.npz / an output directory
    # Uncomment the examples you want to run

    # example_basic_compression()
    example_custom_formats()
    # example_clustered_sh()
    # example_load_asset()

    print("Note: Uncomment the examples you want to run")
    print("Make sure you have an input archive (scene.npz)")
