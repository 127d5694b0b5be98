# ABOUTME: Output format routing for the conversion pipeline
# ABOUTME: Maps user-facing format names to exporter containers and file extensions

from gltf_exporter import ExportFormat


class FormatRouter:
    """Resolves output format names for the exporter."""

    FORMATS = {
        'glb': ExportFormat.GLB,
        'gltf': ExportFormat.GLTF_EMBEDDED,
    }

    EXTENSIONS = {
        ExportFormat.GLB: '.glb',
        ExportFormat.GLTF_EMBEDDED: '.gltf',
    }

    @staticmethod
    def route(format_name: str) -> ExportFormat:
        """
        Determine the export container for a format name.

        Args:
            format_name: 'glb' or 'gltf' (case-insensitive)

        Returns:
            ExportFormat for the exporter
        """
        fmt = FormatRouter.FORMATS.get(format_name.lower())
        if fmt is None:
            raise ValueError(
                f"Unsupported output format: {format_name}\n"
                f"Supported: {sorted(FormatRouter.FORMATS)}"
            )
        return fmt

    @staticmethod
    def get_extension(format_name: str) -> str:
        return FormatRouter.EXTENSIONS[FormatRouter.route(format_name)]

    @staticmethod
    def get_description(format_name: str) -> str:
        """
        Get human-readable description of processing path.

        Args:
            format_name: Output format name

        Returns:
            Description string of the processing pipeline
        """
        if FormatRouter.route(format_name) == ExportFormat.GLB:
            return "PLY decode -> cleaning -> binary glTF (GLB)"
        return "PLY decode -> cleaning -> glTF JSON with embedded buffer"
