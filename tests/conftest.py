#!/usr/bin/env python3
# zectl-setup/tests/conftest.py

"""
Shared fixtures: a scripted command runner, a quiet terminal UI and a
SetupContext rooted in a temporary directory
"""

import io
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from zectl_setup.core.config import default_config
from zectl_setup.core.context import SetupContext
from zectl_setup.utils.terminal_ui import TerminalUI
from zectl_setup.utils.tools import CommandResult, HostTools

PACMAN_CONF = """\
[options]
HoldPkg     = pacman glibc
Architecture = auto
#IgnorePkg   =

[core]
Include = /etc/pacman.d/mirrorlist
"""

FIXED_NOW = datetime(2024, 5, 17, 9, 30, 15)


class FakeRunner:
    """
    Stands in for CommandRunner.

    Responses are registered by command prefix; the longest matching prefix
    wins. Unregistered commands succeed with empty output. Every call is
    recorded in `calls`.
    """

    def __init__(self):
        self.responses: Dict[Tuple[str, ...], CommandResult] = {}
        self.programs = set()
        self.calls: List[List[str]] = []
        self.cwds: List[Optional[str]] = []

    def on(self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.responses[tuple(prefix)] = CommandResult(returncode, stdout, stderr)

    def install(self, *programs: str) -> None:
        self.programs.update(programs)

    def which(self, program: str) -> Optional[str]:
        return f"/usr/bin/{program}" if program in self.programs else None

    def run(self, cmd: Sequence[str], check: bool = False, capture: bool = True,
            cwd: Optional[str] = None) -> CommandResult:
        cmd = list(cmd)
        self.calls.append(cmd)
        self.cwds.append(cwd)
        best = None
        for prefix, response in self.responses.items():
            if tuple(cmd[:len(prefix)]) == prefix and (best is None or len(prefix) > len(best[0])):
                best = (prefix, response)
        return best[1] if best else CommandResult(0)

    def called(self, *prefix: str) -> List[List[str]]:
        return [cmd for cmd in self.calls if tuple(cmd[:len(prefix)]) == prefix]


def zfs_root_host(runner: FakeRunner, pool: str = 'zroot', dataset: str = 'ROOT/cachyos',
                  esp: str = '/boot') -> None:
    """Script a host booted from `<pool>/<dataset>` with systemd-boot on `esp`"""
    runner.install('zfs', 'zpool', 'zectl', 'bootctl', 'yay')
    runner.on('findmnt', '-n', '-o', 'FSTYPE,SOURCE', '--mountpoint', '/',
              stdout=f"zfs    {pool}/{dataset}\n")
    runner.on('findmnt', '-n', '-o', 'FSTYPE,SOURCE', '--mountpoint', esp,
              stdout="vfat   /dev/nvme0n1p1\n")
    for other in ('/boot', '/boot/efi', '/efi'):
        if other != esp:
            runner.on('findmnt', '-n', '-o', 'FSTYPE,SOURCE', '--mountpoint', other, returncode=1)
    runner.on('bootctl', 'status', stdout=f"System:\n     ESP: {esp} (/dev/disk/by-partuuid/1234)\n")
    runner.on('zpool', 'list', '-H', '-o', 'name', stdout=f"{pool}\n")
    runner.on('getent', 'passwd', stdout=(
        "root:x:0:0::/root:/bin/bash\n"
        "nobody:x:65534:65534:Nobody:/:/usr/bin/nologin\n"
        "alice:x:1000:1000::/home/alice:/bin/zsh\n"))
    runner.on('zectl', 'list', stdout="Name          Active  Mountpoint  Creation\ndefault       NR      /           2024-01-01\n")
    runner.on('systemctl', 'list-unit-files', stdout="zfs-mount.service enabled\n")
    runner.on('pacman', '-Q', returncode=1)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def tools(runner) -> HostTools:
    return HostTools(runner)


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def ui(output) -> TerminalUI:
    return TerminalUI(assume_yes=True, stream=output, color=False)


@pytest.fixture
def config():
    return default_config()


@pytest.fixture
def host_root(tmp_path) -> Path:
    """Minimal host tree: pacman.conf and an ESP with systemd-boot installed"""
    root = tmp_path / "host"
    (root / "etc").mkdir(parents=True)
    (root / "etc" / "pacman.conf").write_text(PACMAN_CONF)
    (root / "boot" / "loader").mkdir(parents=True)
    (root / "boot" / "EFI" / "systemd").mkdir(parents=True)
    (root / "boot" / "EFI" / "systemd" / "systemd-bootx64.efi").write_bytes(b"MZ")
    (root / "tmp").mkdir()
    return root


@pytest.fixture
def make_context(config, tools, ui, host_root):
    def factory(euid: int = 0, **overrides) -> SetupContext:
        params = dict(config=config, tools=tools, ui=ui, root=host_root,
                      clock=lambda: FIXED_NOW, euid=euid)
        params.update(overrides)
        return SetupContext(**params)
    return factory


@pytest.fixture
def context(make_context) -> SetupContext:
    return make_context()
