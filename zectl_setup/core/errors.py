#!/usr/bin/env python3
# zectl-setup/zectl_setup/core/errors.py

"""
Exception hierarchy shared by the pipeline, its modules and the CLI
"""


class SetupError(Exception):
    """Base class for zectl-setup failures"""


class PreconditionError(SetupError):
    """
    Raised when a step cannot continue on this host.

    Examples: not running as root, a required tool is missing, the system
    was not booted in UEFI mode, or no ZFS pool could be detected. The
    pipeline stops at the module that raised it.
    """


class ConfigurationError(SetupError):
    """Raised for invalid pipeline or module declarations"""
