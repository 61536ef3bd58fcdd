"""Splat compression pipeline - presets, configuration and stage orchestration."""

from .config import CompressionConfig, DataQuality, QUALITY_PRESETS
from .orchestrator import Pipeline

__all__ = ['CompressionConfig', 'DataQuality', 'QUALITY_PRESETS', 'Pipeline']
