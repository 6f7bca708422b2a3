#!/usr/bin/env python3
"""
zectl-setup
ZFS boot environments (zectl) and Secure Boot (sbctl) setup for CachyOS
"""

__version__ = "1.0.0"
