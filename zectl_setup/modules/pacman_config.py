#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/pacman_config.py

"""
pacman.conf Modules
Keep the DKMS ZFS packages out of upgrades, and put pacman.conf back on uninstall
"""

from typing import Any, Dict

from .base import SetupModule
from ..utils.pacman_conf import add_ignored_packages, missing_ignores, remove_ignored_packages


class PacmanConfig(SetupModule):
    """
    Adds the configured packages (zfs-dkms, spl-dkms) to IgnorePkg.

    CachyOS ships ZFS in its kernels, so the DKMS variants must never be
    pulled in as dependencies of AUR packages.
    """

    def execute(self) -> Dict[str, Any]:
        conf = self.context.host_path('pacman_conf')
        target = self.context.path(conf)
        ignore = self.config.get('packages', {}).get('ignore', [])

        self.logger.info("Configuring pacman to ignore zfs-dkms (CachyOS has ZFS built-in)...")
        if not target.is_file():
            self.warn(f"{conf} not found, skipping IgnorePkg setup")
            return self.result(added=[])

        text = target.read_text()
        missing = missing_ignores(text, ignore)
        if not missing:
            self.logger.info(f"{' '.join(ignore)} already in IgnorePkg")
            return self.result(added=[])

        self.context.write_file(conf, add_ignored_packages(text, ignore))
        self.logger.info(f"Added {' and '.join(missing)} to IgnorePkg in pacman.conf")
        return self.result(added=missing)


class RestorePacmanConf(SetupModule):
    """Restores pacman.conf from its backup, else strips our IgnorePkg entries"""

    def execute(self) -> Dict[str, Any]:
        conf = self.context.host_path('pacman_conf')
        self.logger.info("Restoring pacman.conf...")

        if self.context.restore_backup(conf):
            return self.result(restored=True)

        target = self.context.path(conf)
        if not target.is_file():
            return self.result(restored=False)

        ignore = self.config.get('packages', {}).get('ignore', [])
        text = target.read_text()
        stripped = remove_ignored_packages(text, ignore)
        if stripped != text:
            target.write_text(stripped)
            self.logger.info(f"Removed {' and '.join(ignore)} from IgnorePkg")
        return self.result(restored=False)
