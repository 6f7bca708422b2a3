#!/usr/bin/env python3
# zectl-setup/zectl_setup/utils/managers.py
"""
Command vocabularies behind the zectl-manager and secureboot-manager wrappers.

Each `run()` returns a process exit status.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .terminal_ui import TerminalUI
from .tools import HostTools

ZECTL_HELP = """zectl Manager - Boot Environment Management

Usage: zectl-manager <command> [options]

Commands:
  list                 - List all boot environments
  create <name>        - Create new boot environment
  activate <name>      - Activate boot environment
  destroy <name>       - Destroy boot environment
  snapshot             - Create timestamped snapshot
  cleanup              - Remove old boot environments (keep last {keep})
  help                 - Show this help

Direct zectl commands are also available:
  zectl <command>      - Run zectl directly"""

SECUREBOOT_HELP = """Secure Boot Manager

Usage: secureboot-manager <command>

Commands:
  status            - Show Secure Boot status
  sign-all          - Sign all boot files
  verify            - Verify all signatures
  enroll            - Enroll keys to firmware (enables enforcement)
  bundle <kernel>   - Create unified kernel image
  help              - Show this help"""

ZECTL_COMMANDS = ('list', 'create', 'activate', 'destroy', 'snapshot', 'cleanup', 'help')
SECUREBOOT_COMMANDS = ('status', 'sign-all', 'verify', 'enroll', 'bundle', 'help')


class ZectlManager:
    """Simplified interface for common boot environment operations"""

    def __init__(
        self,
        tools: HostTools,
        ui: TerminalUI,
        clock: Callable[[], datetime] = datetime.now,
        keep: int = 5,
    ):
        self.tools = tools
        self.ui = ui
        self.clock = clock
        self.keep = keep
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(self, command: str, name: Optional[str] = None) -> int:
        handlers: Dict[str, Callable[[Optional[str]], int]] = {
            'list': self.list,
            'create': self.create,
            'activate': self.activate,
            'destroy': self.destroy,
            'snapshot': self.snapshot,
            'cleanup': self.cleanup,
        }
        handler = handlers.get(command)
        if handler is None:
            return self.help()
        return handler(name)

    def help(self, _name: Optional[str] = None) -> int:
        self.ui.echo(ZECTL_HELP.format(keep=self.keep))
        return 0

    def _usage(self, command: str) -> int:
        self.ui.echo(f"Usage: zectl-manager {command} <name>")
        return 1

    def list(self, _name: Optional[str] = None) -> int:
        self.ui.echo("Boot Environments:")
        result = self.tools.zectl.list()
        self.ui.echo(result.stdout.rstrip())
        return result.returncode

    def create(self, name: Optional[str]) -> int:
        if not name:
            return self._usage('create')
        if not self.tools.zectl.create(name):
            self.logger.error(f"Failed to create boot environment: {name}")
            return 1
        self.ui.echo(f"Created boot environment: {name}")
        return 0

    def activate(self, name: Optional[str]) -> int:
        if not name:
            return self._usage('activate')
        if not self.tools.zectl.activate(name):
            self.logger.error(f"Failed to activate boot environment: {name}")
            return 1
        self.ui.echo(f"Activated boot environment: {name}")
        self.ui.echo("Reboot to use the new boot environment")
        return 0

    def destroy(self, name: Optional[str]) -> int:
        if not name:
            return self._usage('destroy')
        if not self.ui.prompt_confirmation(f"Are you sure you want to destroy boot environment '{name}'?"):
            self.ui.echo("Cancelled")
            return 0
        if not self.tools.zectl.destroy(name):
            self.logger.error(f"Failed to destroy boot environment: {name}")
            return 1
        self.ui.echo(f"Destroyed boot environment: {name}")
        return 0

    def snapshot(self, _name: Optional[str] = None) -> int:
        name = f"manual-{self.clock().strftime('%Y%m%d-%H%M%S')}"
        if not self.tools.zectl.create(name):
            self.logger.error(f"Failed to create snapshot boot environment: {name}")
            return 1
        self.ui.echo(f"Created snapshot boot environment: {name}")
        return 0

    def stale_environments(self) -> List[str]:
        """Inactive environments beyond the newest `keep`, oldest first"""
        inactive = [be.name for be in self.tools.zectl.environments() if not be.is_active]
        if len(inactive) <= self.keep:
            return []
        return inactive[:len(inactive) - self.keep]

    def cleanup(self, _name: Optional[str] = None) -> int:
        self.ui.echo(f"Cleaning old boot environments (keeping last {self.keep})...")
        for name in self.stale_environments():
            self.ui.echo(f"Removing old BE: {name}")
            if not self.tools.zectl.destroy(name, recursive=True):
                self.ui.echo(f"  Failed to remove {name} (might be active)")
        return 0


class SecureBootManager:
    """Day-to-day sbctl operations against the ESP chosen at setup time"""

    def __init__(self, tools: HostTools, ui: TerminalUI, esp_path: str = "/boot"):
        self.tools = tools
        self.ui = ui
        self.esp_path = esp_path
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(self, command: str, argument: Optional[str] = None) -> int:
        if command == 'status':
            return self.status()
        if command == 'sign-all':
            self.ui.echo("Signing all boot files...")
            return 0 if self.tools.sbctl.sign_all() else 1
        if command == 'verify':
            self.ui.echo("Verifying signatures...")
            return 0 if self.tools.sbctl.verify() else 1
        if command == 'enroll':
            return self.enroll()
        if command == 'bundle':
            return self.bundle(argument)
        self.ui.echo(SECUREBOOT_HELP)
        return 0

    def status(self) -> int:
        self.ui.echo("Secure Boot Status:")
        result = self.tools.sbctl.status()
        self.ui.echo(result.stdout.rstrip())
        self.ui.echo()
        state = self.tools.mokutil.sb_state() if self.tools.mokutil.available() else None
        self.ui.echo(f"SecureBoot {state}" if state else "mokutil not available")
        return 0

    def enroll(self) -> int:
        self.ui.echo("Enrolling keys to firmware...")
        self.ui.highlight("WARNING: This will enable Secure Boot enforcement!", "warn")
        if not self.ui.prompt_confirmation("Continue?"):
            return 0
        if not self.tools.sbctl.enroll_keys():
            self.logger.error("Failed to enroll keys")
            return 1
        self.ui.echo("Keys enrolled. Reboot to activate Secure Boot.")
        return 0

    def bundle(self, kernel: Optional[str]) -> int:
        if not kernel:
            self.ui.echo("Usage: secureboot-manager bundle <kernel-name>")
            return 1
        self.ui.echo(f"Creating unified kernel image for {kernel}...")
        try:
            return 0 if self.tools.sbctl.bundle(kernel, self.esp_path) else 1
        except ValueError as e:
            self.logger.error(str(e))
            return 1
