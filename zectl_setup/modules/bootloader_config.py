#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/bootloader_config.py

"""
Bootloader Configuration Modules
Boot menu settings for boot environment selection, and their removal
"""

from typing import Any, Dict, List, Optional

from .base import SetupModule
from ..core.detect import GRUB, REFIND, SYSTEMD_BOOT
from ..core.errors import PreconditionError
from ..utils.templates import render_loader_conf


class BootloaderConfig(SetupModule):
    """
    Configures the detected bootloader.

    Only systemd-boot is configured automatically: loader.conf gets a longer
    timeout and `default @saved` so a boot environment can be picked at boot.
    GRUB gets printed instructions; other variants need manual setup.
    """

    def execute(self) -> Dict[str, Any]:
        detected = self.context.detected
        if detected is None:
            raise PreconditionError("System detection must run before bootloader configuration")

        if detected.bootloader == SYSTEMD_BOOT:
            return self._configure_systemd_boot(detected.esp_path)

        if detected.bootloader == GRUB:
            self.logger.info("Configuring GRUB for boot environment support...")
            self.warn("GRUB configuration requires manual setup. Please refer to zectl documentation.")
            self.ui.echo("Add the following to /etc/default/grub:")
            self.ui.echo(f'  GRUB_CMDLINE_LINUX="zfs={detected.pool}"')
            self.ui.echo("Then run: grub-mkconfig -o /boot/grub/grub.cfg")
        elif detected.bootloader == REFIND:
            self.logger.info("Configuring rEFInd for boot environment support...")
            self.warn("rEFInd configuration requires manual setup. Please refer to zectl documentation.")
        else:
            self.warn(f"Unknown bootloader: {detected.bootloader}. Manual configuration required.")
        return self.result(configured=False)

    def _loader_dir(self, esp_path: str) -> str:
        base = esp_path.rstrip('/')
        for name in self.config.get('systemd_boot', {}).get('loader_dirs', ['loader']):
            candidate = f"{base}/{name}"
            if self.context.path(candidate).is_dir():
                return candidate

        loader_dir = f"{base}/loader"
        self.context.ensure_dir(loader_dir)
        self.warn(f"Loader directory not found, creating at {loader_dir}")
        return loader_dir

    def _configure_systemd_boot(self, esp_path: str) -> Dict[str, Any]:
        self.logger.info("Configuring systemd-boot for boot environment support...")

        loader_dir = self._loader_dir(esp_path)
        loader_conf = f"{loader_dir}/loader.conf"
        settings = self.config.get('systemd_boot', {}).get('loader_conf', {})

        if self.context.write_file(loader_conf, render_loader_conf(settings)):
            self.logger.info(f"Wrote {loader_conf}")

        self.context.ensure_dir(f"{esp_path.rstrip('/')}/loader/entries")

        self.success("Configured systemd-boot with increased timeout for boot environment selection")
        return self.result(configured=True, loader_conf=loader_conf)


class RestoreLoaderConf(SetupModule):
    """Offers to put back any loader.conf backup found on a candidate ESP"""

    def _backups(self) -> List[str]:
        found: List[str] = []
        esp_candidates = self.config.get('detection', {}).get('esp_candidates', [])
        loader_dirs = self.config.get('systemd_boot', {}).get('loader_dirs', ['loader'])
        for esp in esp_candidates:
            for name in loader_dirs:
                directory = f"{esp.rstrip('/')}/{name}"
                local = self.context.path(directory)
                if not local.is_dir():
                    continue
                for backup in sorted(local.glob('loader.conf.backup-*')):
                    found.append(f"{directory}/{backup.name}")
        return found

    def execute(self) -> Dict[str, Any]:
        backups = self._backups()
        if not backups:
            return self.result(restored=[])

        if not self.ui.prompt_confirmation("Restore original loader.conf from backup?"):
            self.logger.info("Keeping current loader.conf")
            return self.result(restored=[])

        restored: List[str] = []
        by_dir: Dict[str, List[str]] = {}
        for backup in backups:
            by_dir.setdefault(backup.rsplit('/', 1)[0], []).append(backup)

        for directory, dir_backups in by_dir.items():
            loader_conf = f"{directory}/loader.conf"
            chosen = self._preferred(loader_conf, dir_backups)
            self.context.restore_backup(loader_conf, chosen)
            restored.append(loader_conf)
            for leftover in dir_backups:
                if leftover != chosen:
                    self.context.remove_file(leftover)

        self.success("Restored loader.conf")
        return self.result(restored=restored)

    def _preferred(self, loader_conf: str, backups: List[str]) -> Optional[str]:
        """Our own one-time backup wins; otherwise the oldest dated copy"""
        ours = self.context.backup_path(loader_conf)
        if ours in backups:
            return ours
        return backups[0]
