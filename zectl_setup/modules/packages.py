#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/packages.py

"""
Package Modules
Repository package installation and removal through pacman
"""

from typing import Any, Dict, List

from tqdm import tqdm

from .base import SetupModule
from ..core.errors import PreconditionError


class PackageSetup(SetupModule):
    """
    Updates the system and installs the build dependencies needed for AUR
    packages. A failed bulk install is retried package by package; in simple
    mode the reduced dependency set is required instead.
    """

    def execute(self) -> Dict[str, Any]:
        packages_config = self.config.get('packages', {})
        pacman = self.tools.pacman

        self.logger.info("Updating system packages...")
        if not pacman.sync_upgrade():
            self.warn("System update failed, continuing anyway...")

        if self.simple_mode:
            deps = packages_config.get('build_deps_simple', ['base-devel', 'git'])
            self.logger.info("Installing dependencies...")
            if not pacman.install(deps):
                raise PreconditionError(f"Failed to install {' '.join(deps)}")
            return self.result(installed=deps)

        deps = packages_config.get('build_deps', [])
        self.logger.info("Installing build dependencies...")
        if pacman.install(deps):
            return self.result(installed=deps)

        self.warn("Some packages failed to install, checking individually...")
        installed: List[str] = []
        for pkg in tqdm(deps, desc="Packages→", unit="pkg"):
            if pacman.install([pkg]):
                installed.append(pkg)
            else:
                self.warn(f"Failed to install {pkg}")
        return self.result(installed=installed)


class SecureBootPackages(SetupModule):
    """Installs the Secure Boot tooling; sbctl itself is mandatory"""

    def execute(self) -> Dict[str, Any]:
        packages = self.config.get('packages', {}).get('secureboot', [])
        self.logger.info("Installing Secure Boot tools...")
        if not self.tools.pacman.install(packages):
            self.warn("Some packages failed to install")

        if not self.tools.sbctl.available():
            raise PreconditionError("sbctl installation failed")

        if self.context.manifest is not None:
            for pkg in packages:
                version = self.tools.pacman.version(pkg)
                if version:
                    self.context.manifest.record_package_version(pkg, version)

        return self.result()


class RemovePackages(SetupModule):
    """Removes whichever zectl packages are installed"""

    def execute(self) -> Dict[str, Any]:
        candidates = self.config.get('packages', {}).get('zectl_remove', [])
        self.logger.info("Removing zectl packages...")

        installed = self.tools.pacman.installed(candidates)
        if not installed:
            self.logger.info("No zectl packages found")
            return self.result(removed=[])

        self.logger.info(f"Removing packages: {' '.join(installed)}")
        if not self.tools.pacman.remove(installed):
            self.warn("Failed to remove some packages")
            return self.result(removed=[])

        self.success("Removed zectl packages")
        return self.result(removed=installed)


class RemoveSecureBootPackages(SetupModule):
    """Removes sbctl/sbsigntools after asking, since other setups may rely on them"""

    def execute(self) -> Dict[str, Any]:
        candidates = self.config.get('packages', {}).get('secureboot_remove', [])
        installed = self.tools.pacman.installed(candidates)
        if not installed:
            return self.result(removed=[])

        if not self.ui.prompt_confirmation("Remove Secure Boot packages (sbctl, sbsigntools)?"):
            self.logger.info("Keeping Secure Boot packages")
            return self.result(removed=[])

        if not self.tools.pacman.remove(installed):
            self.warn("Failed to remove Secure Boot packages")
            return self.result(removed=[])

        self.success("Removed Secure Boot packages")
        return self.result(removed=installed)
