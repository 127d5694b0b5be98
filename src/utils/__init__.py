"""Shared utilities for the splat conversion pipeline."""

from .logging_utils import setup_logging, Timer, TimingStats

__all__ = ['setup_logging', 'Timer', 'TimingStats']
