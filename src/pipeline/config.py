# ABOUTME: Configuration dataclass for pipeline settings
# ABOUTME: Validates user inputs and provides defaults

import numbers
from dataclasses import dataclass
from typing import Optional

from gltf_exporter import ExportConfig
from splat_cleaner import CleanOptions
from .router import FormatRouter


@dataclass
class PipelineConfig:
    """Configuration for one PLY -> glTF conversion."""

    output_format: str = 'glb'  # 'glb' or 'gltf' (JSON with embedded buffer)
    quantize_colors: bool = True
    export_full_sh: bool = False
    quantize_positions: bool = False
    meshopt_compression: bool = False

    # None skips the cleaning stage entirely
    clean_options: Optional[CleanOptions] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.output_format = self.output_format.lower()

        # Raises ValueError for unknown formats
        FormatRouter.route(self.output_format)

        if self.clean_options is not None:
            opts = self.clean_options

            # Any numeric threshold is accepted; out-of-range values just keep or drop everything
            for name in ('min_opacity', 'min_scale', 'outlier_sigma'):
                value = getattr(opts, name)
                if name == 'outlier_sigma' and value is None:
                    continue
                if isinstance(value, bool) or not isinstance(value, numbers.Real):
                    raise ValueError(f"{name} must be a number: {value!r}")

    @classmethod
    def from_export_config(cls, export_config: ExportConfig,
                           clean_options: Optional[CleanOptions] = None) -> 'PipelineConfig':
        return cls(
            output_format=export_config.format.value,
            quantize_colors=export_config.quantize_colors,
            export_full_sh=export_config.export_full_sh,
            quantize_positions=export_config.quantize_positions,
            meshopt_compression=export_config.meshopt_compression,
            clean_options=clean_options,
        )

    def export_config(self) -> ExportConfig:
        """Build the exporter configuration."""
        return ExportConfig(
            format=FormatRouter.route(self.output_format),
            quantize_colors=self.quantize_colors,
            export_full_sh=self.export_full_sh,
            quantize_positions=self.quantize_positions,
            meshopt_compression=self.meshopt_compression,
        )

    @property
    def output_extension(self) -> str:
        return FormatRouter.get_extension(self.output_format)
