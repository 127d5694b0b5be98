#!/usr/bin/env python3
# ABOUTME: Basic usage examples for the splat PLY -> glTF converter
# ABOUTME: Demonstrates common conversion workflows

import sys
import time
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from authorization import StaticAuthorizer, TokenClaims
from gltf_exporter import ExportConfig, ExportFormat
from pipeline import Pipeline, PipelineConfig, convert, convert_with_clean
from splat_cleaner import CleanOptions
from utils.logging_utils import setup_logging

TOKEN = 'local-token'
KEY = 'local-key'


def local_authorizer():
    """Authorizer granting a generous local quota."""
    now = int(time.time())
    claims = TokenClaims(
        sub='local',
        exp=now + 3600,
        iat=now,
        conversions_remaining=100,
        max_file_size=500 * 1024 * 1024,
        formats=['glb', 'gltf'],
    )
    return StaticAuthorizer(TOKEN, KEY, claims)


def example_basic_conversion():
    """Basic PLY to GLB conversion."""
    print("Example 1: Basic Conversion")
    print("-" * 50)

    ply_data = Path('input.ply').read_bytes()
    glb = convert(ply_data, TOKEN, KEY, local_authorizer())
    Path('output.glb').write_bytes(glb)

    print(f"Wrote {len(glb)} bytes")
    print()


def example_cleaned_compressed():
    """Clean the cloud and write a quantized, compressed GLB."""
    print("Example 2: Cleaning + Compression")
    print("-" * 50)

    ply_data = Path('input.ply').read_bytes()
    result = convert_with_clean(
        ply_data, TOKEN, KEY, local_authorizer(),
        ExportConfig(quantize_positions=True, meshopt_compression=True),
        CleanOptions(outlier_sigma=3.0),
    )
    Path('output_clean.glb').write_bytes(result.data)

    print(f"Removed {result.clean_stats.total_removed} of {result.clean_stats.original_count} splats")
    if result.compression_stats is not None:
        print(f"Compression ratio: {result.compression_stats.ratio:.2f}x")
    print()


def example_embedded_gltf():
    """Write JSON glTF with the full SH set embedded."""
    print("Example 3: Embedded glTF with full SH")
    print("-" * 50)

    data = convert(Path('input.ply').read_bytes(), TOKEN, KEY, local_authorizer(),
                   ExportConfig(format=ExportFormat.GLTF_EMBEDDED, export_full_sh=True))
    Path('output.gltf').write_bytes(data)

    print(f"Wrote {len(data)} bytes")
    print()


def example_pipeline_file():
    """Use the pipeline directly with per-stage timing."""
    print("Example 4: Pipeline with timing")
    print("-" * 50)

    setup_logging(verbose=True)
    config = PipelineConfig(output_format='glb', clean_options=CleanOptions())
    pipeline = Pipeline(config, local_authorizer(), KEY)
    output_path = pipeline.run_file('input.ply', 'output', TOKEN)

    print(f"Wrote {output_path}")
    print()


if __name__ == '__main__':
    print("Splat glTF Converter - Usage Examples")
    print("=" * 50)
    print()

    # Note: These examples assume you have an input.ply splat file
    # Uncomment the examples you want to run

    # example_basic_conversion()
    # example_cleaned_compressed()
    # example_embedded_gltf()
    # example_pipeline_file()

    print("Note: Uncomment the examples you want to run")
    print("Make sure you have a 3DGS input.ply in the current directory")
