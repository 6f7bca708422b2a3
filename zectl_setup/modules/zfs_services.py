#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/zfs_services.py

"""
ZFS service Modules
"""

from typing import Any, Dict, List

from .base import SetupModule


class ZfsServices(SetupModule):
    """Enables zectl.service (when shipped) and the ZFS import/mount units"""

    def execute(self) -> Dict[str, Any]:
        services = self.config.get('services', {})
        systemctl = self.tools.systemctl
        enabled: List[str] = []

        zectl_unit = services.get('zectl', 'zectl.service')
        if systemctl.any_unit_file_matches(zectl_unit.split('.')[0]):
            self.logger.info("Enabling zectl service...")
            if systemctl.enable(zectl_unit):
                enabled.append(zectl_unit)
            else:
                self.warn("Failed to enable zectl service")

        self.logger.info("Configuring ZFS mount services...")
        for unit in services.get('zfs', []):
            if systemctl.enable(unit):
                enabled.append(unit)
            else:
                self.warn(f"Failed to enable {unit}")

        return self.result(enabled=enabled)


class DisableZfsServices(SetupModule):
    """Asks, unit by unit, whether each enabled ZFS service should be disabled"""

    def execute(self) -> Dict[str, Any]:
        systemctl = self.tools.systemctl
        disabled: List[str] = []

        for unit in self.config.get('services', {}).get('zfs', []):
            if not systemctl.is_enabled(unit):
                continue
            if not self.ui.prompt_confirmation(f"Disable {unit}?"):
                self.logger.info(f"Keeping {unit} enabled")
                continue
            if systemctl.disable(unit):
                disabled.append(unit)
                self.logger.info(f"Disabled {unit}")
            else:
                self.warn(f"Failed to disable {unit}")

        return self.result(disabled=disabled)
