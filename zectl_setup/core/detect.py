#!/usr/bin/env python3
# zectl-setup/zectl_setup/core/detect.py

"""
Configuration Auto-Detector

Resolves the ZFS pool, bootloader variant, EFI System Partition and root
dataset of the running host. Each property is found by an ordered list of
heuristics where the first match wins. Detection only reads: every query
goes through a HostProbe, which tests replace with a fake.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from .errors import PreconditionError
from ..utils.tools import HostTools

logger = logging.getLogger(__name__)

SYSTEMD_BOOT = 'systemd-boot'
GRUB = 'grub'
REFIND = 'refind'
UNKNOWN = 'unknown'
BOOTLOADER_VARIANTS = (SYSTEMD_BOOT, GRUB, REFIND, UNKNOWN)

# Loader binaries identifying the bootloader on an ESP, checked in order
ESP_BOOTLOADER_FILES = (
    (SYSTEMD_BOOT, ('EFI/systemd/systemd-bootx64.efi',)),
    (GRUB, ('EFI/BOOT/grubx64.efi', 'EFI/cachyos/grubx64.efi')),
    (REFIND, ('EFI/refind/refind_x64.efi',)),
)

SYSTEMD_BOOT_EFI = 'EFI/systemd/systemd-bootx64.efi'


class MountInfo(NamedTuple):
    fstype: str
    source: str


class DetectedSystem(NamedTuple):
    """Resolved host configuration consumed by every install step"""
    pool: str
    bootloader: str
    esp_path: str
    root_dataset: Optional[str] = None
    bootloader_detected: bool = True
    esp_detected: bool = True

    @property
    def be_root(self) -> str:
        """Boot environment root: second component of the root dataset, else ROOT"""
        if self.root_dataset:
            parts = self.root_dataset.split('/')
            if len(parts) >= 2 and parts[1]:
                return parts[1]
        return 'ROOT'

    def as_dict(self) -> Dict[str, Any]:
        data = self._asdict()
        data['be_root'] = self.be_root
        return data


class HostProbe:
    """
    Read-only queries against the host.

    Mount and ZFS queries run through the tool runner. File checks are
    resolved under `root`, so an alternate root can stand in for `/`.
    """

    def __init__(self, tools: HostTools, root: Path = Path('/')):
        self.tools = tools
        self.root = Path(root)

    def _host_path(self, path: str) -> Path:
        return self.root / str(path).lstrip('/')

    def mounts(self, mountpoint: str) -> List[MountInfo]:
        """
        Every filesystem mounted on `mountpoint`, bottom to top.

        findmnt prints one line per stacked mount, e.g. an autofs trigger
        followed by the real filesystem of an automounted ESP.
        """
        result = self.tools.runner.run(
            ['findmnt', '-n', '-o', 'FSTYPE,SOURCE', '--mountpoint', mountpoint])
        if not result.ok:
            return []
        found = []
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) >= 2:
                found.append(MountInfo(parts[0], parts[1]))
        return found

    def mount_info(self, mountpoint: str, fstypes: Iterable[str] = ()) -> Optional[MountInfo]:
        """
        Filesystem type and source of `mountpoint`, or None if it is not a mount point.

        With `fstypes`, the first stacked mount of one of those types is
        preferred over the first mount listed.
        """
        mounts = self.mounts(mountpoint)
        wanted = {fs.lower() for fs in fstypes}
        for info in mounts:
            if info.fstype.lower() in wanted:
                return info
        return mounts[0] if mounts else None

    def root_mount(self) -> Optional[MountInfo]:
        return self.mount_info('/', ('zfs',))

    def list_pools(self) -> List[str]:
        return self.tools.zfs.list_pools()

    def pool_exists(self, name: str) -> bool:
        return self.tools.zfs.pool_exists(name)

    def dataset_exists(self, name: str) -> bool:
        return self.tools.zfs.dataset_exists(name)

    def bootctl_status(self) -> Optional[str]:
        """Output of `bootctl status` when bootctl is installed and succeeds"""
        if not self.tools.bootctl.available():
            return None
        result = self.tools.bootctl.status()
        return result.stdout if result.ok else None

    def is_file(self, path: str) -> bool:
        return self._host_path(path).is_file()

    def is_dir(self, path: str) -> bool:
        return self._host_path(path).is_dir()


def _detection(config: Dict[str, Any]) -> Dict[str, Any]:
    return config.get('detection', {})


def detect_pool(probe: HostProbe, config: Dict[str, Any]) -> Optional[str]:
    """
    Find the active ZFS pool.

    Order: pool of the mounted root filesystem, first pool listed by
    `zpool list`, first conventional pool name that exists.
    """
    root = probe.root_mount()
    if root and root.fstype == 'zfs':
        pool = root.source.split('/')[0]
        logger.debug(f"Detected pool from mounted root: {pool}")
        return pool

    pools = probe.list_pools()
    if pools:
        logger.debug(f"Detected pool from zpool list: {pools[0]}")
        return pools[0]

    for candidate in _detection(config).get('pool_candidates', []):
        if probe.pool_exists(candidate):
            logger.debug(f"Found common pool name: {candidate}")
            return candidate

    return None


def parse_bootctl_esp(status_output: str) -> Optional[str]:
    """First absolute path on an `ESP` line of `bootctl status` output"""
    for line in status_output.splitlines():
        if 'ESP' in line:
            match = re.search(r'(/\S+)', line)
            if match:
                return match.group(1)
    return None


def detect_bootloader(probe: HostProbe, config: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """
    Identify the installed bootloader.

    Returns:
        {'bootloader': variant, 'esp_hint': path or None}. The variant is
        UNKNOWN when no signature matched; the caller applies the default.
    """
    detection = _detection(config)

    status = probe.bootctl_status()
    if status is not None:
        esp_hint = parse_bootctl_esp(status)
        logger.debug(f"Detected systemd-boot with ESP at: {esp_hint}")
        return {'bootloader': SYSTEMD_BOOT, 'esp_hint': esp_hint}

    if any(probe.is_file(path) for path in detection.get('grub_configs', [])):
        logger.debug("Detected GRUB")
        return {'bootloader': GRUB, 'esp_hint': None}

    if any(probe.is_dir(path) for path in detection.get('refind_dirs', [])):
        logger.debug("Detected rEFInd")
        return {'bootloader': REFIND, 'esp_hint': None}

    return {'bootloader': UNKNOWN, 'esp_hint': None}


def detect_esp(probe: HostProbe, config: Dict[str, Any], hint: Optional[str] = None) -> Optional[str]:
    """
    Find the EFI System Partition mount point.

    Candidates are scanned in order (the bootctl hint first when present);
    the first that is a mount point carrying a FAT filesystem is accepted.
    """
    detection = _detection(config)
    fat_types = {fs.lower() for fs in detection.get('fat_filesystems', ['vfat'])}

    candidates: List[str] = []
    for path in ([hint] if hint else []) + list(detection.get('esp_candidates', [])):
        if path not in candidates:
            candidates.append(path)

    for path in candidates:
        info = probe.mount_info(path, fat_types)
        if info and info.fstype.lower() in fat_types:
            logger.debug(f"Found ESP at: {path}")
            return path
    return None


def detect_root_dataset(probe: HostProbe, config: Dict[str, Any], pool: str) -> Optional[str]:
    """
    Find the dataset mounted as `/`.

    Order: source of the live root mount when it is ZFS, then the first
    conventional dataset pattern that exists under `pool`.
    """
    root = probe.root_mount()
    if root and root.fstype == 'zfs':
        logger.debug(f"Root dataset from mount: {root.source}")
        return root.source

    for pattern in _detection(config).get('dataset_patterns', []):
        dataset = f"{pool}/{pattern}"
        if probe.dataset_exists(dataset):
            logger.debug(f"Found root dataset: {dataset}")
            return dataset
    return None


def detect_system(probe: HostProbe, config: Dict[str, Any]) -> DetectedSystem:
    """
    Run every heuristic and resolve defaults.

    Raises:
        PreconditionError: When no pool can be found.
    """
    detection = _detection(config)

    pool = detect_pool(probe, config)
    if not pool:
        raise PreconditionError("Could not detect ZFS pool. Please ensure system is running on ZFS root.")

    found = detect_bootloader(probe, config)
    bootloader = found['bootloader']
    bootloader_detected = bootloader != UNKNOWN
    if not bootloader_detected:
        bootloader = detection.get('default_bootloader', SYSTEMD_BOOT)
        logger.warning(f"Could not detect bootloader. Defaulting to {bootloader}")

    esp_path = detect_esp(probe, config, found['esp_hint'])
    esp_detected = esp_path is not None
    if not esp_detected:
        esp_path = detection.get('default_esp', '/boot')
        logger.warning(f"Could not detect ESP path. Using default: {esp_path}")

    root_dataset = detect_root_dataset(probe, config, pool)

    return DetectedSystem(
        pool=pool,
        bootloader=bootloader,
        esp_path=esp_path,
        root_dataset=root_dataset,
        bootloader_detected=bootloader_detected,
        esp_detected=esp_detected,
    )


def detect_system_simple(probe: HostProbe, config: Dict[str, Any]) -> DetectedSystem:
    """
    Reduced detection: first listed pool, systemd-boot, ESP located by its loader binary.

    Raises:
        PreconditionError: When `zpool list` reports no pool.
    """
    pools = probe.list_pools()
    if not pools:
        raise PreconditionError("Could not detect ZFS pool")

    esp_path = _detection(config).get('default_esp', '/boot')
    for candidate in ('/boot/efi', '/efi'):
        if probe.is_file(f"{candidate}/{SYSTEMD_BOOT_EFI}"):
            esp_path = candidate
            break

    return DetectedSystem(pool=pools[0], bootloader=SYSTEMD_BOOT, esp_path=esp_path)


def detect_bootloader_from_esp(probe: HostProbe, esp_path: str) -> str:
    """Identify the bootloader by the loader binaries present on the ESP; UNKNOWN if none"""
    base = esp_path.rstrip('/')
    for variant, files in ESP_BOOTLOADER_FILES:
        if any(probe.is_file(f"{base}/{name}") for name in files):
            return variant
    return UNKNOWN
