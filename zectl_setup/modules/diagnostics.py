#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/diagnostics.py

"""
Diagnostics Module
Read-only report on ZFS, its services and the power management state that
most often interacts badly with a ZFS root
"""

import re
from typing import Any, Dict, List, Optional

from .base import SetupModule

SLEEP_RE = re.compile(r'suspend|resume|sleep|wake|hibernate', re.IGNORECASE)
GPU_MODULE_RE = re.compile(r'nvidia|nouveau|amdgpu|radeon')


class Diagnostics(SetupModule):
    """Prints six report sections followed by recommendations"""

    SECTIONS = (
        "ZFS Pool Status",
        "ZFS Services Status",
        "Power Management",
        "Recent Sleep/Wake Logs",
        "systemd Sleep Configuration",
        "Potentially Problematic Modules",
    )

    def execute(self) -> Dict[str, Any]:
        self.ui.display_banner("zectl-setup System Diagnostic")

        report: Dict[str, Any] = {}
        collectors = (
            self._zfs_status,
            self._services,
            self._power,
            self._sleep_logs,
            self._sleep_config,
            self._gpu_modules,
        )
        total = len(self.SECTIONS)
        for number, (title, collect) in enumerate(zip(self.SECTIONS, collectors), start=1):
            self.ui.section(f"[{number}/{total}] {title}:")
            report[title] = collect()
            self.ui.echo()

        self._recommendations()
        return self.result(report=report)

    def _read(self, key: str) -> Optional[str]:
        path = self.context.path(self.context.host_path(key))
        try:
            return path.read_text()
        except OSError:
            return None

    def _zfs_status(self) -> bool:
        if self.tools.runner.which('zpool') is None:
            self.ui.highlight("ZFS not found", "error")
            return False
        status = self.tools.zfs.pool_status()
        self.ui.echo(status.stdout.rstrip())
        self.ui.echo()
        filesystems = self.tools.zfs.list_filesystems()
        for line in filesystems.stdout.splitlines()[:10]:
            self.ui.echo(line)
        return status.ok

    def _services(self) -> Dict[str, Dict[str, str]]:
        systemctl = self.tools.systemctl
        states: Dict[str, Dict[str, str]] = {}
        for unit in self.config.get('services', {}).get('diagnose', []):
            if not systemctl.has_unit_file(unit):
                continue
            active = systemctl.state(unit, 'is-active', 'inactive')
            enabled = systemctl.state(unit, 'is-enabled', 'disabled')
            states[unit] = {'active': active, 'enabled': enabled}
            self.ui.echo(f"{unit}: {active} ({enabled})")
        return states

    def _power(self) -> Dict[str, Optional[str]]:
        state = self._read('power_state')
        policy = self._read('power_policy')

        self.ui.echo("Sleep states available:")
        if state is None:
            self.ui.highlight(f"Cannot read {self.context.host_path('power_state')}", "error")
        else:
            self.ui.echo(state.strip())
        self.ui.echo()
        self.ui.echo("Current power policy:")
        self.ui.echo(policy.strip() if policy else "Not available")
        return {'state': state.strip() if state else None, 'policy': policy.strip() if policy else None}

    def _sleep_logs(self) -> List[str]:
        self.ui.echo("Checking for suspend/resume issues in last boot...")
        result = self.tools.runner.run(["journalctl", "-b", "0", "--no-pager", "-q"])
        lines = [line for line in result.stdout.splitlines() if SLEEP_RE.search(line)][-10:]
        if lines:
            for line in lines:
                self.ui.echo(line)
        else:
            self.ui.echo("No sleep/wake related messages found")
        return lines

    def _sleep_config(self) -> Optional[List[str]]:
        text = self._read('sleep_conf')
        if text is None:
            self.ui.echo("Using default sleep configuration")
            return None

        self.ui.echo("Custom sleep configuration found:")
        settings = [line for line in text.splitlines() if line.strip() and not line.startswith('#')]
        for line in settings or ["No custom settings"]:
            self.ui.echo(line)
        return settings

    def _gpu_modules(self) -> List[str]:
        self.ui.echo("Loaded modules that might affect sleep:")
        result = self.tools.runner.run(["lsmod"])
        modules = [line for line in result.stdout.splitlines() if GPU_MODULE_RE.search(line)]
        for line in modules or ["No problematic GPU modules found"]:
            self.ui.echo(line)
        return modules

    def _recommendations(self) -> None:
        self.ui.highlight("=== Recommendations ===", "warn")
        self.ui.echo()

        if self.tools.systemctl.is_active('zfs-import-cache.service'):
            self.ui.highlight("ZFS import services are running.", "warn")
            self.ui.echo("If experiencing sleep issues, try:")
            self.ui.echo("  sudo systemctl disable zfs-import-cache.service")
            self.ui.echo("  sudo systemctl mask zfs-import-cache.service")
            self.ui.echo()

        self.ui.section("To test sleep manually:")
        self.ui.echo("  sudo systemctl suspend")
        self.ui.echo()
        self.ui.section("To check what's preventing sleep:")
        self.ui.echo("  cat /sys/power/wakeup_count")
        self.ui.echo("  cat /proc/acpi/wakeup")
        self.ui.echo()
        self.ui.section("To check systemd sleep inhibitors:")
        self.ui.echo("  systemd-inhibit --list")
        self.ui.echo()
        self.ui.highlight("Diagnostic complete.", "ok")
