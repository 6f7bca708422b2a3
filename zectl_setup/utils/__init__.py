#!/usr/bin/env python3
"""
zectl-setup Utilities Module
Contains helper utilities for the setup pipelines
"""

from .terminal_ui import TerminalUI
from .tools import CommandRunner, HostTools

__all__ = ['TerminalUI', 'CommandRunner', 'HostTools']
