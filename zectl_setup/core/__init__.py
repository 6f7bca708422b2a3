#!/usr/bin/env python3
"""
zectl-setup Core Module
Contains the pipeline framework, configuration, detection and manifest
"""

from .builder import SetupPipeline
from .config import SetupConfig
from .context import SetupContext
from .lockfile import InstallManifest

__all__ = ['SetupPipeline', 'SetupConfig', 'SetupContext', 'InstallManifest']
