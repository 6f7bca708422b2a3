#!/usr/bin/env python3
# zectl-setup/zectl_setup/utils/tools.py

"""
External tool capabilities
Thin wrappers over pacman, ZFS, zectl, bootctl, sbctl, mokutil and systemctl.
All of them go through a single CommandRunner so tests can substitute it.
"""

import logging
import re
import shutil
import subprocess
from typing import List, NamedTuple, Optional, Sequence

from .command_builder import build_sbctl_bundle_command, build_zectl_destroy_command


class CommandResult(NamedTuple):
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs host commands and returns their exit status and output"""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def which(self, program: str) -> Optional[str]:
        """Return the resolved path of `program`, or None when it is not on PATH"""
        return shutil.which(program)

    def run(
        self,
        cmd: Sequence[str],
        check: bool = False,
        capture: bool = True,
        cwd: Optional[str] = None,
    ) -> CommandResult:
        """
        Run a command to completion.

        Args:
            cmd: Command and arguments.
            check: Raise CalledProcessError on a non-zero exit status.
            capture: Capture stdout/stderr; when False the child inherits the
                     terminal (used for interactive builds and status output).
            cwd: Working directory for the child.

        Returns:
            CommandResult with the exit status and captured output. A missing
            executable is reported as exit status 127, like a shell would.
        """
        cmd = list(cmd)
        self.logger.debug(f"Running: {' '.join(cmd)}")
        try:
            proc = subprocess.run(cmd, capture_output=capture, text=True, cwd=cwd)
        except FileNotFoundError as e:
            if check:
                raise
            self.logger.debug(f"Command not found: {cmd[0]}")
            return CommandResult(127, "", str(e))

        result = CommandResult(proc.returncode, proc.stdout or "", proc.stderr or "")
        if result.stderr:
            self.logger.debug(f"{cmd[0]} stderr: {result.stderr.strip()}")

        if check and not result.ok:
            raise subprocess.CalledProcessError(result.returncode, cmd, result.stdout, result.stderr)
        return result


class Pacman:
    """Package database queries and transactions"""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def sync_upgrade(self) -> bool:
        return self.runner.run(["pacman", "-Syu", "--noconfirm"], capture=False).ok

    def install(self, packages: Sequence[str], needed: bool = True) -> bool:
        cmd = ["pacman", "-S"]
        if needed:
            cmd.append("--needed")
        cmd.append("--noconfirm")
        return self.runner.run(cmd + list(packages), capture=False).ok

    def remove(self, packages: Sequence[str]) -> bool:
        return self.runner.run(["pacman", "-R", "--noconfirm"] + list(packages), capture=False).ok

    def is_installed(self, package: str) -> bool:
        return self.runner.run(["pacman", "-Q", package]).ok

    def installed(self, packages: Sequence[str]) -> List[str]:
        """Return the subset of `packages` currently installed, in order"""
        return [pkg for pkg in packages if self.is_installed(pkg)]

    def version(self, package: str) -> Optional[str]:
        result = self.runner.run(["pacman", "-Q", package])
        if not result.ok:
            return None
        parts = result.stdout.split()
        return parts[1] if len(parts) >= 2 else None


class Zfs:
    """Pool and dataset queries"""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def available(self) -> bool:
        return self.runner.which("zfs") is not None

    def list_pools(self) -> List[str]:
        result = self.runner.run(["zpool", "list", "-H", "-o", "name"])
        if not result.ok:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def pool_exists(self, name: str) -> bool:
        return self.runner.run(["zpool", "list", name]).ok

    def dataset_exists(self, name: str) -> bool:
        return self.runner.run(["zfs", "list", name]).ok

    def pool_status(self) -> CommandResult:
        return self.runner.run(["zpool", "status"])

    def list_filesystems(self) -> CommandResult:
        return self.runner.run(["zfs", "list", "-t", "filesystem"])


class BootEnvironment(NamedTuple):
    name: str
    active: str = ""

    @property
    def is_active(self) -> bool:
        return bool(self.active)


ACTIVE_FLAGS = {"N", "R", "NR", "RN"}

# Ignores shim lines such as "SecureBoot validation is disabled in shim"
SB_STATE_RE = re.compile(r"^SecureBoot (enabled|disabled)\b", re.IGNORECASE)


class Zectl:
    """Boot environment management through zectl"""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def available(self) -> bool:
        return self.runner.which("zectl") is not None

    def list(self) -> CommandResult:
        return self.runner.run(["zectl", "list"])

    def environments(self) -> List[BootEnvironment]:
        """
        Parse `zectl list` into boot environments, oldest first.

        The header row is skipped. The Active column is empty for inactive
        environments, so it is only taken when it holds an N/R flag.
        """
        result = self.list()
        if not result.ok:
            return []
        environments = []
        for line in result.stdout.splitlines():
            parts = line.split()
            if not parts or parts[0] == "Name":
                continue
            active = parts[1] if len(parts) > 1 and parts[1] in ACTIVE_FLAGS else ""
            environments.append(BootEnvironment(parts[0], active))
        return environments

    def has_environment(self, name: str) -> bool:
        return any(be.name == name for be in self.environments())

    def create(self, name: str) -> bool:
        return self.runner.run(["zectl", "create", name]).ok

    def activate(self, name: str) -> bool:
        return self.runner.run(["zectl", "activate", name]).ok

    def destroy(self, name: str, recursive: bool = False) -> bool:
        return self.runner.run(build_zectl_destroy_command(name, recursive)).ok

    def generate_bootloader_entries(self) -> bool:
        return self.runner.run(["zectl", "generate-bootloader-entries"]).ok


class BootCtl:
    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def available(self) -> bool:
        return self.runner.which("bootctl") is not None

    def status(self) -> CommandResult:
        return self.runner.run(["bootctl", "status"])

    def update(self) -> bool:
        return self.runner.run(["bootctl", "update"]).ok


class Sbctl:
    """Secure Boot key management and signing"""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def available(self) -> bool:
        return self.runner.which("sbctl") is not None

    def status(self) -> CommandResult:
        return self.runner.run(["sbctl", "status"])

    def create_keys(self) -> bool:
        return self.runner.run(["sbctl", "create-keys"]).ok

    def sign(self, path: str) -> bool:
        return self.runner.run(["sbctl", "sign", "-s", path]).ok

    def sign_all(self) -> bool:
        return self.runner.run(["sbctl", "sign-all"], capture=False).ok

    def verify(self) -> bool:
        return self.runner.run(["sbctl", "verify"], capture=False).ok

    def enroll_keys(self) -> bool:
        return self.runner.run(["sbctl", "enroll-keys"], capture=False).ok

    def bundle(self, kernel: str, esp_path: str) -> bool:
        return self.runner.run(build_sbctl_bundle_command(kernel, esp_path), capture=False).ok


class Mokutil:
    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def available(self) -> bool:
        return self.runner.which("mokutil") is not None

    def sb_state(self) -> Optional[str]:
        """Return 'enabled'/'disabled' from `mokutil --sb-state`, or None when unknown"""
        result = self.runner.run(["mokutil", "--sb-state"])
        for line in result.stdout.splitlines():
            match = SB_STATE_RE.match(line.strip())
            if match:
                return match.group(1).lower()
        return None


class Systemctl:
    """Unit file state queries and changes"""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def enable(self, unit: str) -> bool:
        return self.runner.run(["systemctl", "enable", unit]).ok

    def disable(self, unit: str) -> bool:
        return self.runner.run(["systemctl", "disable", unit]).ok

    def is_enabled(self, unit: str) -> bool:
        return self.runner.run(["systemctl", "is-enabled", unit]).ok

    def is_active(self, unit: str) -> bool:
        return self.runner.run(["systemctl", "is-active", unit]).ok

    def state(self, unit: str, query: str, fallback: str) -> str:
        """Return the first output word of `systemctl <query> <unit>`, or `fallback`"""
        result = self.runner.run(["systemctl", query, unit])
        words = result.stdout.split()
        return words[0] if result.ok and words else fallback

    def has_unit_file(self, unit: str) -> bool:
        result = self.runner.run(["systemctl", "list-unit-files", unit])
        return result.ok and unit in result.stdout

    def any_unit_file_matches(self, fragment: str) -> bool:
        result = self.runner.run(["systemctl", "list-unit-files"])
        return result.ok and fragment in result.stdout


class HostTools:
    """Every external collaborator, sharing one runner"""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()
        self.pacman = Pacman(self.runner)
        self.zfs = Zfs(self.runner)
        self.zectl = Zectl(self.runner)
        self.bootctl = BootCtl(self.runner)
        self.sbctl = Sbctl(self.runner)
        self.mokutil = Mokutil(self.runner)
        self.systemctl = Systemctl(self.runner)
