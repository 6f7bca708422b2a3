#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/preflight.py

"""
Precondition checks that stop a pipeline before it touches the host
"""

import glob
from typing import Any, Dict, Optional

from .base import SetupModule
from ..core.errors import PreconditionError


class Preflight(SetupModule):
    """Require root and a working `zfs` command"""

    def execute(self) -> Dict[str, Any]:
        if not self.context.is_root():
            raise PreconditionError("This script must be run as root")
        if not self.tools.zfs.available():
            raise PreconditionError("ZFS is not installed or not in PATH")
        return self.result()


class SecureBootPreflight(SetupModule):
    """
    Require root and UEFI boot, then record the current Secure Boot state.

    The state comes from `mokutil --sb-state` when mokutil is installed,
    else from the SecureBoot efivar, else it is reported as disabled.
    """

    def execute(self) -> Dict[str, Any]:
        if not self.context.is_root():
            raise PreconditionError("This script must be run as root")

        self.logger.info("Starting Secure Boot configuration for CachyOS with ZFS...")

        if not self.context.path(self.context.host_path('efi_firmware')).is_dir():
            raise PreconditionError("System is not booted in UEFI mode. Secure Boot requires UEFI.")

        status = self._secureboot_status()
        self.context.state['secureboot_status'] = status
        self.logger.info(f"Current Secure Boot status: {status}")
        return self.result(secureboot_status=status)

    def _secureboot_status(self) -> str:
        if self.tools.mokutil.available():
            state = self.tools.mokutil.sb_state()
            if state:
                return state

        state = self._efivar_state()
        return state or 'disabled'

    def _efivar_state(self) -> Optional[str]:
        # efivar files carry a 4-byte attribute header before the value byte
        pattern = str(self.context.path(self.context.host_path('efivars')) / 'SecureBoot-*')
        for candidate in sorted(glob.glob(pattern)):
            try:
                with open(candidate, 'rb') as f:
                    data = f.read()
            except OSError as e:
                self.logger.debug(f"Cannot read {candidate}: {e}")
                continue
            if len(data) >= 5:
                return 'enabled' if data[4] == 1 else 'disabled'
        return None
