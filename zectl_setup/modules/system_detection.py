#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/system_detection.py

"""
System Detection Modules
Resolve pool, bootloader, ESP and root dataset, and confirm them with the operator
"""

from typing import Any, Dict

from .base import SetupModule
from ..core.detect import (
    UNKNOWN,
    detect_bootloader_from_esp,
    detect_esp,
    detect_system,
    detect_system_simple,
)
from ..core.errors import PreconditionError


class SystemDetection(SetupModule):
    """
    Runs the auto-detector and stores the result on the context.

    Options:
      - mode: "simple" selects the reduced detection of the simplified install
      - confirm: ask before continuing (default: True)
    """

    def execute(self) -> Dict[str, Any]:
        self.logger.info("Detecting system configuration...")

        if self.simple_mode:
            detected = detect_system_simple(self.context.probe, self.config)
            self.logger.info(f"Detected ZFS pool: {detected.pool}")
            self.logger.info(f"Using bootloader: {detected.bootloader}")
            self.logger.info(f"Using ESP path: {detected.esp_path}")
        else:
            detected = detect_system(self.context.probe, self.config)
            self.logger.info(f"Detected ZFS pool: {detected.pool}")
            self.logger.info(f"Detected bootloader: {detected.bootloader}")
            if detected.esp_detected:
                self.logger.info(f"Detected ESP path: {detected.esp_path}")
            if detected.root_dataset:
                self.logger.info(f"Detected root dataset: {detected.root_dataset}")

        if not detected.bootloader_detected:
            self.warnings.append(f"Bootloader not detected, using {detected.bootloader}")
        if not detected.esp_detected:
            self.warnings.append(f"ESP not detected, using {detected.esp_path}")

        self.context.detected = detected

        if self.options.get('confirm', True):
            self.ui.show_summary("System Configuration Detected", {
                'ZFS Pool': detected.pool,
                'Bootloader': detected.bootloader,
                'ESP Path': detected.esp_path,
                'Root Dataset': detected.root_dataset,
            })
            if not self.ui.prompt_confirmation("Continue with installation?"):
                return self.cancelled("Installation cancelled.")

        return self.result(detected=detected.as_dict())


class SecureBootDetection(SetupModule):
    """
    Locates the ESP (required) and identifies the bootloader from the
    loader binaries installed on it.
    """

    def execute(self) -> Dict[str, Any]:
        probe = self.context.probe

        esp_path = detect_esp(probe, self.config)
        if not esp_path:
            raise PreconditionError("Could not find EFI System Partition")
        self.logger.info(f"Found ESP at: {esp_path}")

        bootloader = detect_bootloader_from_esp(probe, esp_path)
        if bootloader == UNKNOWN:
            bootloader = self.config.get('detection', {}).get('default_bootloader', 'systemd-boot')
            self.warn("Could not detect bootloader")
        self.logger.info(f"Detected bootloader: {bootloader}")

        self.context.state['esp_path'] = esp_path
        self.context.state['bootloader'] = bootloader
        return self.result(esp_path=esp_path, bootloader=bootloader)
