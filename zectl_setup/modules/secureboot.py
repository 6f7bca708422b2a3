#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/secureboot.py

"""
Secure Boot Modules
Key creation, boot file signing, key backup and enrollment status with sbctl
"""

import re
import shutil
from typing import Any, Dict, List

from tqdm import tqdm

from .base import SetupModule
from ..core.errors import PreconditionError

ENROLLED_RE = re.compile(r'Enrolled.*yes')


class SecureBootKeys(SetupModule):
    """Creates the sbctl key set when sbctl is not initialized yet"""

    def execute(self) -> Dict[str, Any]:
        sbctl = self.tools.sbctl
        created = False

        if not sbctl.status().ok:
            self.logger.info("Initializing sbctl...")
            if not sbctl.create_keys():
                raise PreconditionError("Failed to create Secure Boot keys")
            created = True

        self.logger.info("Checking sbctl status...")
        status = sbctl.status()
        if status.stdout:
            self.ui.echo(status.stdout.rstrip())
        return self.result(keys_created=created)


class BootSigning(SetupModule):
    """
    Signs the bootloader binaries, kernels and unified kernel images on the
    ESP, then lets sbctl re-sign everything in its database.
    """

    def _targets(self, esp_path: str, bootloader: str) -> List[str]:
        settings = self.config.get('secureboot', {})
        base = esp_path.rstrip('/')

        targets = [f"{base}/{name}" for name in settings.get('signing_targets', {}).get(bootloader, [])]

        esp = self.context.path(esp_path)
        for pattern in (settings.get('kernel_glob', 'vmlinuz-*'), settings.get('uki_glob', 'EFI/Linux/*.efi')):
            for found in sorted(esp.glob(pattern)):
                if found.is_file():
                    targets.append(f"{base}/{found.relative_to(esp).as_posix()}")
        return targets

    def execute(self) -> Dict[str, Any]:
        esp_path = self.context.state.get('esp_path')
        bootloader = self.context.state.get('bootloader')
        if not esp_path or not bootloader:
            raise PreconditionError("ESP detection must run before signing")

        signed: List[str] = []
        self.logger.info("Signing boot files...")
        for target in tqdm(self._targets(esp_path, bootloader), desc="Sign→", unit="file"):
            if not self.context.path(target).is_file():
                self.warn(f"File not found: {target}")
                continue
            self.logger.info(f"Signing {target}...")
            if self.tools.sbctl.sign(target):
                signed.append(target)
            else:
                self.warn(f"Failed to sign {target}")

        self.logger.info("Configuring automatic signing...")
        if not self.tools.sbctl.sign_all():
            self.warn("sbctl sign-all failed")

        return self.result(signed=signed)


class KeyBackup(SetupModule):
    """Copies the sbctl key directory to the backup location"""

    def execute(self) -> Dict[str, Any]:
        keys = self.context.host_path('secureboot_keys')
        backup_dir = self.context.host_path('secureboot_backup')

        self.logger.info("Creating backup of Secure Boot keys...")
        self.context.ensure_dir(backup_dir)

        source = self.context.path(keys)
        if not source.is_dir():
            self.logger.info(f"No keys found at {keys}")
            return self.result(backed_up=False)

        destination = self.context.path(f"{backup_dir}/{source.name}")
        shutil.copytree(source, destination, dirs_exist_ok=True)
        self.success(f"Keys backed up to {backup_dir}/")
        return self.result(backed_up=True)


class EnrollmentCheck(SetupModule):
    """Reports whether the keys are enrolled in firmware"""

    def execute(self) -> Dict[str, Any]:
        status = self.tools.sbctl.status()
        if ENROLLED_RE.search(status.stdout):
            self.success("Secure Boot keys are already enrolled")
            return self.result(enrolled=True)

        self.warn("Secure Boot keys are not enrolled in firmware")
        self.ui.echo()
        self.ui.show_steps("To complete Secure Boot setup", [
            "Review the signed files with: sbctl verify",
            "Enroll keys with: secureboot-manager enroll",
            "Reboot and enable Secure Boot in UEFI settings",
        ])
        return self.result(enrolled=False)


class RemoveSecureBootKeys(SetupModule):
    """Deletes the sbctl key store and its backup after asking"""

    def execute(self) -> Dict[str, Any]:
        candidates = [self.context.host_path('secureboot_dir'), self.context.host_path('secureboot_backup')]
        present = [path for path in candidates if self.context.path(path).is_dir()]
        if not present:
            return self.result(removed=[])

        self.ui.echo("Found Secure Boot keys and configuration")
        if not self.ui.prompt_confirmation("Remove Secure Boot keys and configuration?"):
            self.logger.info("Keeping Secure Boot keys and configuration")
            return self.result(removed=[])

        for path in present:
            self.context.remove_tree(path)
            self.success(f"Removed {path}")

        self.warn("You may need to disable Secure Boot in UEFI settings")
        self.warn("Or enroll your distribution's keys if you want to keep Secure Boot")
        return self.result(removed=present)
