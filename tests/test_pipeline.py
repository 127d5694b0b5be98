"""
Tests for the conversion pipeline orchestrator.
"""

import json
import struct
import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from authorization import StaticAuthorizer, TokenClaims
from gaussian_splat import GaussianSplat
from gltf_exporter import ExportConfig, ExportFormat
from ply_io import encode_ply
from pipeline import (
    ConvertResult,
    FormatRouter,
    Pipeline,
    PipelineConfig,
    convert,
    convert_with_clean,
)
from splat_cleaner import CleanOptions
from splat_errors import (
    AuthorizationError,
    FileTooLargeError,
    HeaderMalformedError,
    QuotaExceededError,
    TokenExpiredError,
)

TOKEN = 'test-token'
KEY = 'test-key'


def make_authorizer(**overrides):
    values = dict(sub='key_1', exp=2 ** 40, iat=0, conversions_remaining=5,
                  max_file_size=10 * 1024 * 1024, formats=['glb', 'gltf'])
    values.update(overrides)
    return StaticAuthorizer(TOKEN, KEY, TokenClaims(**values))


@pytest.fixture
def ply_bytes():
    rng = np.random.default_rng(1)
    n = 64
    opacities = rng.uniform(0.1, 0.9, size=n)
    opacities[:4] = 0.001
    splats = GaussianSplat(
        positions=rng.normal(size=(n, 3)),
        opacities=opacities,
        scales=rng.uniform(0.01, 0.1, size=(n, 3)),
        rotations=np.tile([0, 0, 0, 1.0], (n, 1)),
        sh_coefficients=rng.normal(size=(n, 48)) * 0.1,
    )
    return encode_ply(splats)


def glb_document(data):
    json_length = struct.unpack_from('<I', data, 12)[0]
    return json.loads(data[20:20 + json_length])


class TestPipelineConfig:
    """Tests for PipelineConfig validation."""

    def test_defaults(self):
        config = PipelineConfig()
        assert config.output_format == 'glb'
        assert config.output_extension == '.glb'
        assert config.clean_options is None
        assert config.export_config() == ExportConfig()

    def test_format_case_insensitive(self):
        config = PipelineConfig(output_format='GLTF')
        assert config.output_format == 'gltf'
        assert config.export_config().format == ExportFormat.GLTF_EMBEDDED

    def test_unsupported_format(self):
        with pytest.raises(ValueError, match="Unsupported output format"):
            PipelineConfig(output_format='splat')

    @pytest.mark.parametrize("options", [
        CleanOptions(min_opacity=1.5),
        CleanOptions(min_scale=-1.0),
        CleanOptions(outlier_sigma=0.0),
        CleanOptions(outlier_sigma=-2.0),
    ])
    def test_out_of_range_thresholds_accepted(self, options):
        config = PipelineConfig(clean_options=options)
        assert config.clean_options == options

    def test_non_numeric_threshold_rejected(self):
        with pytest.raises(ValueError, match="min_opacity must be a number"):
            PipelineConfig(clean_options=CleanOptions(min_opacity='high'))

    def test_non_numeric_sigma_rejected(self):
        with pytest.raises(ValueError, match="outlier_sigma must be a number"):
            PipelineConfig(clean_options=CleanOptions(outlier_sigma='3'))

    def test_from_export_config(self):
        export_config = ExportConfig(format=ExportFormat.GLTF_EMBEDDED, quantize_positions=True)
        config = PipelineConfig.from_export_config(export_config, CleanOptions())
        assert config.output_format == 'gltf'
        assert config.export_config() == export_config
        assert config.clean_options == CleanOptions()


class TestFormatRouter:
    """Tests for format routing."""

    def test_route(self):
        assert FormatRouter.route('glb') == ExportFormat.GLB
        assert FormatRouter.route('GLTF') == ExportFormat.GLTF_EMBEDDED

    def test_extension(self):
        assert FormatRouter.get_extension('glb') == '.glb'
        assert FormatRouter.get_extension('gltf') == '.gltf'

    def test_description(self):
        assert 'GLB' in FormatRouter.get_description('glb')

    def test_unknown(self):
        with pytest.raises(ValueError):
            FormatRouter.route('obj')


class TestAuthorizationGate:
    """Authorization and limits are checked before any parsing."""

    def test_zero_quota_rejects_before_parse(self):
        pipeline = Pipeline(PipelineConfig(), make_authorizer(conversions_remaining=0), KEY)
        with pytest.raises(QuotaExceededError):
            pipeline.run(b'definitely not a ply file', TOKEN)

    def test_oversized_input_rejects_before_parse(self):
        pipeline = Pipeline(PipelineConfig(), make_authorizer(max_file_size=8), KEY)
        with pytest.raises(FileTooLargeError):
            pipeline.run(b'garbage bytes that are too long', TOKEN)

    def test_format_not_permitted(self, ply_bytes):
        pipeline = Pipeline(PipelineConfig(output_format='gltf'), make_authorizer(formats=['glb']), KEY)
        with pytest.raises(AuthorizationError, match="not permitted"):
            pipeline.run(ply_bytes, TOKEN)

    def test_bad_token(self, ply_bytes):
        pipeline = Pipeline(PipelineConfig(), make_authorizer(), KEY)
        with pytest.raises(AuthorizationError, match="Invalid token"):
            pipeline.run(ply_bytes, 'wrong')

    def test_bad_key(self, ply_bytes):
        pipeline = Pipeline(PipelineConfig(), make_authorizer(), 'wrong-key')
        with pytest.raises(AuthorizationError, match="Invalid verification key"):
            pipeline.run(ply_bytes, TOKEN)

    def test_expired(self, ply_bytes):
        pipeline = Pipeline(PipelineConfig(), make_authorizer(exp=1), KEY)
        with pytest.raises(TokenExpiredError):
            pipeline.run(ply_bytes, TOKEN)

    def test_parse_error_after_authorization(self):
        pipeline = Pipeline(PipelineConfig(), make_authorizer(), KEY)
        with pytest.raises(HeaderMalformedError):
            pipeline.run(b'not a ply file', TOKEN)


class TestPipelineRun:
    """Tests for complete conversions."""

    def test_glb(self, ply_bytes):
        result = Pipeline(PipelineConfig(), make_authorizer(), KEY).run(ply_bytes, TOKEN)

        assert isinstance(result, ConvertResult)
        assert result.data[:4] == b'glTF'
        assert result.clean_stats is None
        assert result.compression_stats is None
        assert glb_document(result.data)['accessors'][0]['count'] == 64
        assert [t.name for t in result.timings] == ['Authorization', 'PLY decode', 'glTF export']

    def test_with_cleaning(self, ply_bytes):
        config = PipelineConfig(clean_options=CleanOptions())
        result = Pipeline(config, make_authorizer(), KEY).run(ply_bytes, TOKEN)

        assert result.clean_stats.original_count == 64
        assert result.clean_stats.removed_low_opacity == 4
        assert glb_document(result.data)['accessors'][0]['count'] == result.clean_stats.final_count
        assert 'Cleaning' in [t.name for t in result.timings]

    def test_opacity_above_one_removes_everything(self, ply_bytes):
        config = PipelineConfig(clean_options=CleanOptions(min_opacity=1.5))
        result = Pipeline(config, make_authorizer(), KEY).run(ply_bytes, TOKEN)

        assert result.clean_stats.removed_low_opacity == 64
        assert result.clean_stats.final_count == 0
        assert glb_document(result.data)['accessors'][0]['count'] == 0

    def test_with_compression(self, ply_bytes):
        config = PipelineConfig(meshopt_compression=True)
        result = Pipeline(config, make_authorizer(), KEY).run(ply_bytes, TOKEN)
        assert result.compression_stats is not None
        assert len(result.compression_stats.details) == 4

    def test_embedded_gltf(self, ply_bytes):
        result = Pipeline(PipelineConfig(output_format='gltf'), make_authorizer(), KEY).run(ply_bytes, TOKEN)
        document = json.loads(result.data)
        assert document['buffers'][0]['uri'].startswith('data:application/octet-stream;base64,')

    def test_run_file(self, ply_bytes, tmp_path):
        input_file = tmp_path / 'scene.ply'
        input_file.write_bytes(ply_bytes)
        output_dir = tmp_path / 'out'

        pipeline = Pipeline(PipelineConfig(output_format='gltf'), make_authorizer(), KEY)
        output_path = pipeline.run_file(input_file, output_dir, TOKEN)

        assert output_path == output_dir / 'scene.gltf'
        assert output_path.exists()
        assert json.loads(output_path.read_bytes())['asset']['version'] == '2.0'

    def test_run_file_missing_input(self, tmp_path):
        pipeline = Pipeline(PipelineConfig(), make_authorizer(), KEY)
        with pytest.raises(FileNotFoundError):
            pipeline.run_file(tmp_path / 'missing.ply', tmp_path, TOKEN)


class TestConvertFunctions:
    """Tests for the module-level entry points."""

    def test_convert(self, ply_bytes):
        data = convert(ply_bytes, TOKEN, KEY, make_authorizer())
        assert data[:4] == b'glTF'

    def test_convert_with_clean(self, ply_bytes):
        result = convert_with_clean(ply_bytes, TOKEN, KEY, make_authorizer(),
                                    ExportConfig(quantize_positions=True),
                                    CleanOptions(min_opacity=0.01))
        assert result.clean_stats.removed_low_opacity == 4
        assert 'KHR_mesh_quantization' in glb_document(result.data)['extensionsUsed']

    def test_convert_with_clean_without_options(self, ply_bytes):
        result = convert_with_clean(ply_bytes, TOKEN, KEY, make_authorizer())
        assert result.clean_stats is None
