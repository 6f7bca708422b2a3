#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/boot_environment.py

"""
Boot Environment Modules
Create the first boot environment and verify zectl works
"""

from typing import Any, Dict

from .base import SetupModule
from ..core.detect import SYSTEMD_BOOT


class BootEnvironment(SetupModule):
    """
    Creates `initial-<YYYYMMDD>` unless zectl already lists it, then
    regenerates the systemd-boot entries.
    """

    def execute(self) -> Dict[str, Any]:
        zectl = self.tools.zectl
        prefix = self.config.get('zectl', {}).get('initial_be_prefix', 'initial-')
        name = f"{prefix}{self.context.clock().strftime('%Y%m%d')}"

        self.logger.info("Creating initial boot environment...")
        created = False
        if zectl.has_environment(name):
            self.logger.info(f"Boot environment {name} already exists")
        elif zectl.create(name):
            created = True
            self.success(f"Created boot environment {name}")
        else:
            self.warn("Failed to create initial boot environment")

        detected = self.context.detected
        bootloader = detected.bootloader if detected else SYSTEMD_BOOT
        # The reduced installer only refreshes entries after creating a new environment
        if bootloader == SYSTEMD_BOOT and (created or not self.simple_mode):
            self._refresh_entries()

        return self.result(boot_environment=name, created=created)

    def _refresh_entries(self) -> None:
        self.logger.info("Generating systemd-boot entries for boot environments...")
        if not self.tools.zectl.generate_bootloader_entries():
            self.warn("Failed to generate boot entries - you may need to do this manually")

        if self.tools.bootctl.available() and not self.tools.bootctl.update():
            self.warn("Failed to update systemd-boot")


class Verification(SetupModule):
    """Runs `zectl list` and shows the result"""

    def execute(self) -> Dict[str, Any]:
        self.logger.info("Testing zectl installation...")
        listing = self.tools.zectl.list()
        if listing.ok:
            self.success("zectl is working correctly!")
            self.ui.echo()
            self.ui.echo(listing.stdout.rstrip())
            return self.result(verified=True)

        self.warn("zectl may not be properly configured. Check the logs above.")
        return self.result(verified=False)
