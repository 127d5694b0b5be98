# ABOUTME: Main pipeline orchestrator
# ABOUTME: Coordinates authorization, PLY decoding, cleaning and glTF export with timing

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from authorization import Authorizer, TokenClaims, check_claims
from gaussian_splat import GaussianSplat
from gltf_exporter import CompressionStats, ExportConfig, ExportResult, export
from ply_io import parse_ply
from splat_cleaner import CleanOptions, CleanStats, clean_splats
from utils.logging_utils import Timer, TimingStats
from .config import PipelineConfig
from .router import FormatRouter


@dataclass
class ConvertResult:
    """Output of one conversion."""
    data: bytes
    clean_stats: Optional[CleanStats] = None
    compression_stats: Optional[CompressionStats] = None
    timings: List[TimingStats] = field(default_factory=list)


class Pipeline:
    """Main pipeline orchestrator: PLY bytes in, glTF/GLB bytes out."""

    def __init__(self, config: PipelineConfig, authorizer: Authorizer, verification_key: str):
        """
        Initialize pipeline.

        Args:
            config: Conversion settings
            authorizer: Callable validating (token, verification_key) into claims
            verification_key: Key handed to the authorizer on every run
        """
        self.config = config
        self.authorizer = authorizer
        self.verification_key = verification_key
        self.logger = logging.getLogger('gaussian_pipeline')
        self.timing_stats: List[TimingStats] = []

    def run(self, ply_data: bytes, token: str) -> ConvertResult:
        """Execute the complete pipeline on in-memory PLY data."""
        start_time = time.perf_counter()
        self.timing_stats = []

        self.logger.info("=" * 70)
        self.logger.info("SPLAT CONVERSION PIPELINE")
        self.logger.info("=" * 70)
        self.logger.info("Input size: %d bytes", len(ply_data))
        self.logger.info("Processing path: %s", FormatRouter.get_description(self.config.output_format))

        try:
            # 1. Authorization gates everything, including parsing
            self._authorize(ply_data, token)

            # 2. Decode
            gaussians = self._decode(ply_data)

            # 3. Optional cleaning
            gaussians, clean_stats = self._clean(gaussians)

            # 4. Export
            export_result = self._export(gaussians)

        except Exception as e:
            self.logger.error("PIPELINE FAILED: %s", e)
            raise

        self._print_summary(start_time, export_result, clean_stats)

        return ConvertResult(
            data=export_result.data,
            clean_stats=clean_stats,
            compression_stats=export_result.compression_stats,
            timings=list(self.timing_stats),
        )

    def run_file(self, input_file: Union[str, Path], output_dir: Union[str, Path], token: str) -> Path:
        """
        Convert a PLY file and write the result into output_dir.

        Returns:
            Path of the written .glb/.gltf file
        """
        input_file = Path(input_file)
        output_dir = Path(output_dir)

        if not input_file.exists():
            raise FileNotFoundError(f"Input not found: {input_file}")

        result = self.run(input_file.read_bytes(), token)

        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / f"{input_file.stem}{self.config.output_extension}"
        output_path.write_bytes(result.data)
        self.logger.info("Wrote %s", output_path)
        return output_path

    def _authorize(self, ply_data: bytes, token: str) -> TokenClaims:
        with Timer("Authorization", self.logger) as timer:
            claims = self.authorizer(token, self.verification_key)
            check_claims(claims, len(ply_data), self.config.output_format)

        self.timing_stats.append(TimingStats("Authorization", timer.elapsed))
        return claims

    def _decode(self, ply_data: bytes) -> GaussianSplat:
        with Timer("PLY decode", self.logger) as timer:
            gaussians = parse_ply(ply_data)

        self.timing_stats.append(TimingStats("PLY decode", timer.elapsed))
        self.logger.info("Decoded %d gaussians", gaussians.count)
        return gaussians

    def _clean(self, gaussians: GaussianSplat):
        if self.config.clean_options is None:
            self.logger.debug("Cleaning disabled")
            return gaussians, None

        with Timer("Cleaning", self.logger) as timer:
            cleaned, stats = clean_splats(gaussians, self.config.clean_options)

        self.timing_stats.append(TimingStats("Cleaning", timer.elapsed))
        return cleaned, stats

    def _export(self, gaussians: GaussianSplat) -> ExportResult:
        export_config = self.config.export_config()

        with Timer("glTF export", self.logger) as timer:
            result = export(gaussians, export_config)

        self.timing_stats.append(TimingStats("glTF export", timer.elapsed))
        return result

    def _print_summary(self, start_time: float, export_result: ExportResult,
                       clean_stats: Optional[CleanStats]):
        """Print performance summary."""
        total_time = time.perf_counter() - start_time

        self.logger.info("")
        self.logger.info("=" * 70)
        self.logger.info("PIPELINE COMPLETE in %.2fs", total_time)
        self.logger.info("=" * 70)

        if self.timing_stats:
            self.logger.info("TIMING BREAKDOWN:")
            for stat in self.timing_stats:
                self.logger.info(stat.format_tree(total_time))

        if clean_stats is not None:
            self.logger.info("Cleaning: %d -> %d gaussians (%d removed)",
                             clean_stats.original_count, clean_stats.final_count,
                             clean_stats.total_removed)

        stats = export_result.compression_stats
        if stats is not None:
            self.logger.info("Compression: %d compressed, %d skipped, %d -> %d bytes (%.2fx)",
                             stats.compressed_count, stats.skipped_count,
                             stats.original_size, stats.compressed_size, stats.ratio)

        self.logger.info("Output: %d bytes", len(export_result.data))


def convert_with_clean(ply_data: bytes, token: str, verification_key: str, authorizer: Authorizer,
                       export_config: Optional[ExportConfig] = None,
                       clean_options: Optional[CleanOptions] = None) -> ConvertResult:
    """
    Validate the token, parse the PLY data, optionally clean it, and export.

    Args:
        ply_data: Raw bytes of the PLY file
        token: Opaque credential
        verification_key: Key the authorizer verifies the credential against
        authorizer: Authorization collaborator
        export_config: Export configuration (defaults to ExportConfig())
        clean_options: Cleaning configuration, or None to skip cleaning

    Returns:
        ConvertResult with output bytes and statistics
    """
    config = PipelineConfig.from_export_config(export_config or ExportConfig(), clean_options)
    return Pipeline(config, authorizer, verification_key).run(ply_data, token)


def convert(ply_data: bytes, token: str, verification_key: str, authorizer: Authorizer,
            export_config: Optional[ExportConfig] = None) -> bytes:
    """Convert without cleaning and return only the output bytes."""
    return convert_with_clean(ply_data, token, verification_key, authorizer, export_config).data
