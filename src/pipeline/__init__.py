"""Splat conversion pipeline - orchestrates authorization, decoding, cleaning and export."""

from .config import PipelineConfig
from .router import FormatRouter
from .orchestrator import Pipeline, ConvertResult, convert, convert_with_clean

__all__ = ['PipelineConfig', 'FormatRouter', 'Pipeline', 'ConvertResult', 'convert', 'convert_with_clean']
