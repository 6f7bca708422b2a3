#!/usr/bin/env python3
"""
Tests for the configuration auto-detector.

Every heuristic runs against a HostProbe backed by the fake runner and a
temporary filesystem root, so no ZFS host is required.
"""

import pytest

from zectl_setup.core.detect import (
    GRUB, REFIND, SYSTEMD_BOOT, UNKNOWN,
    DetectedSystem, HostProbe,
    detect_bootloader, detect_bootloader_from_esp, detect_esp, detect_pool,
    detect_root_dataset, detect_system, detect_system_simple, parse_bootctl_esp,
)
from zectl_setup.core.errors import PreconditionError

from conftest import zfs_root_host

FINDMNT = ('findmnt', '-n', '-o', 'FSTYPE,SOURCE', '--mountpoint')


@pytest.fixture
def probe(tools, tmp_path):
    return HostProbe(tools, tmp_path)


class TestPoolDetection:
    def test_pool_from_zfs_root_mount(self, runner, probe, config):
        runner.on(*FINDMNT, '/', stdout="zfs zfast/ROOT/cachyos\n")
        runner.on('zpool', 'list', '-H', '-o', 'name', stdout="zroot\n")
        assert detect_pool(probe, config) == 'zfast'

    def test_pool_from_zpool_list_when_root_is_not_zfs(self, runner, probe, config):
        runner.on(*FINDMNT, '/', stdout="ext4 /dev/sda2\n")
        runner.on('zpool', 'list', '-H', '-o', 'name', stdout="tank\nbackup\n")
        assert detect_pool(probe, config) == 'tank'

    def test_pool_from_conventional_names(self, runner, probe, config):
        runner.on(*FINDMNT, '/', returncode=1)
        runner.on('zpool', 'list', '-H', '-o', 'name', stdout="")
        runner.on('zpool', 'list', 'zroot', returncode=1)
        runner.on('zpool', 'list', 'rpool')
        assert detect_pool(probe, config) == 'rpool'

    def test_no_pool_is_fatal(self, runner, probe, config):
        runner.on('findmnt', returncode=1)
        runner.on('zpool', 'list', returncode=1)
        assert detect_pool(probe, config) is None
        with pytest.raises(PreconditionError):
            detect_system(probe, config)


class TestBootloaderDetection:
    def test_bootctl_status_means_systemd_boot(self, runner, probe, config):
        runner.install('bootctl')
        runner.on('bootctl', 'status', stdout="     ESP: /efi (/dev/disk/by-partuuid/abcd)\n")
        found = detect_bootloader(probe, config)
        assert found == {'bootloader': SYSTEMD_BOOT, 'esp_hint': '/efi'}

    def test_failing_bootctl_falls_through_to_grub(self, runner, probe, config, tmp_path):
        runner.install('bootctl')
        runner.on('bootctl', 'status', returncode=1)
        (tmp_path / 'boot' / 'grub2').mkdir(parents=True)
        (tmp_path / 'boot' / 'grub2' / 'grub.cfg').write_text("menuentry {}\n")
        assert detect_bootloader(probe, config)['bootloader'] == GRUB

    def test_refind_directory(self, probe, config, tmp_path):
        (tmp_path / 'efi' / 'EFI' / 'refind').mkdir(parents=True)
        assert detect_bootloader(probe, config)['bootloader'] == REFIND

    def test_unknown_defaults_to_systemd_boot_with_warning(self, runner, probe, config, caplog):
        runner.on('findmnt', returncode=1)
        runner.on(*FINDMNT, '/', stdout="zfs zroot/ROOT/arch\n")
        assert detect_bootloader(probe, config)['bootloader'] == UNKNOWN

        detected = detect_system(probe, config)
        assert detected.bootloader == SYSTEMD_BOOT
        assert detected.bootloader_detected is False
        assert "Could not detect bootloader" in caplog.text

    def test_parse_bootctl_esp(self):
        output = "System:\n  Firmware: UEFI 2.70\n     ESP: /boot/efi (/dev/disk/by-partuuid/x)\n"
        assert parse_bootctl_esp(output) == '/boot/efi'
        assert parse_bootctl_esp("no partition here\n") is None


class TestEspDetection:
    def test_first_fat_mount_point_wins(self, runner, probe, config):
        runner.on(*FINDMNT, '/boot', stdout="ext4 /dev/sda2\n")
        runner.on(*FINDMNT, '/boot/efi', stdout="vfat /dev/sda1\n")
        runner.on(*FINDMNT, '/efi', stdout="vfat /dev/sdb1\n")
        assert detect_esp(probe, config) == '/boot/efi'

    def test_bootctl_hint_is_checked_first(self, runner, probe, config):
        runner.on(*FINDMNT, '/boot', stdout="vfat /dev/sda1\n")
        runner.on(*FINDMNT, '/efi', stdout="vfat /dev/sdb1\n")
        assert detect_esp(probe, config, hint='/efi') == '/efi'
        assert runner.calls[0][-1] == '/efi'

    def test_hint_that_is_not_fat_is_rejected(self, runner, probe, config):
        runner.on(*FINDMNT, '/mnt/esp', stdout="xfs /dev/sdc1\n")
        runner.on(*FINDMNT, '/boot', stdout="FAT32 /dev/sda1\n")
        assert detect_esp(probe, config, hint='/mnt/esp') == '/boot'

    def test_automounted_esp(self, runner, probe, config):
        runner.on(*FINDMNT, '/boot', stdout="autofs systemd-1\nvfat   /dev/nvme0n1p1\n")
        assert detect_esp(probe, config) == '/boot'
        assert probe.mount_info('/boot', ['vfat']) == ('vfat', '/dev/nvme0n1p1')

    def test_automount_without_fat_is_rejected(self, runner, probe, config):
        runner.on(*FINDMNT, '/boot', stdout="autofs systemd-1\n")
        runner.on(*FINDMNT, '/efi', stdout="vfat /dev/sda1\n")
        assert detect_esp(probe, config) == '/efi'

    def test_missing_esp_uses_default_with_warning(self, runner, probe, config, caplog):
        runner.on('findmnt', returncode=1)
        runner.on(*FINDMNT, '/', stdout="zfs zroot/ROOT/default\n")
        detected = detect_system(probe, config)
        assert detected.esp_path == '/boot'
        assert detected.esp_detected is False
        assert "Could not detect ESP path" in caplog.text


class TestRootDataset:
    def test_from_root_mount(self, runner, probe, config):
        runner.on(*FINDMNT, '/', stdout="zfs zroot/ROOT/cachyos\n")
        assert detect_root_dataset(probe, config, 'zroot') == 'zroot/ROOT/cachyos'

    def test_from_stacked_root_mount(self, runner, probe, config):
        runner.on(*FINDMNT, '/', stdout="tmpfs tmpfs\nzfs zroot/ROOT/cachyos\n")
        assert detect_root_dataset(probe, config, 'zroot') == 'zroot/ROOT/cachyos'
        assert detect_pool(probe, config) == 'zroot'

    def test_from_patterns(self, runner, probe, config):
        runner.on(*FINDMNT, '/', returncode=1)
        runner.on('zfs', 'list', 'tank/ROOT/cachyos', returncode=1)
        runner.on('zfs', 'list', 'tank/ROOT/arch')
        assert detect_root_dataset(probe, config, 'tank') == 'tank/ROOT/arch'

    def test_none_found(self, runner, probe, config):
        runner.on(*FINDMNT, '/', returncode=1)
        runner.on('zfs', 'list', returncode=1)
        assert detect_root_dataset(probe, config, 'tank') is None

    def test_be_root(self):
        assert DetectedSystem('zroot', SYSTEMD_BOOT, '/boot', 'zroot/BE/cachyos').be_root == 'BE'
        assert DetectedSystem('zroot', SYSTEMD_BOOT, '/boot').be_root == 'ROOT'
        assert DetectedSystem('zroot', SYSTEMD_BOOT, '/boot', 'zroot').be_root == 'ROOT'


def test_full_detection_on_zfs_root(runner, probe, config):
    zfs_root_host(runner, pool='zroot', dataset='ROOT/cachyos', esp='/boot/efi')
    detected = detect_system(probe, config)
    assert detected == DetectedSystem(
        pool='zroot', bootloader=SYSTEMD_BOOT, esp_path='/boot/efi',
        root_dataset='zroot/ROOT/cachyos')
    assert detected.as_dict()['be_root'] == 'ROOT'


class TestSimpleDetection:
    def test_esp_found_by_loader_binary(self, runner, probe, config, tmp_path):
        runner.on('zpool', 'list', '-H', '-o', 'name', stdout="rpool\n")
        loader = tmp_path / 'efi' / 'EFI' / 'systemd'
        loader.mkdir(parents=True)
        (loader / 'systemd-bootx64.efi').write_bytes(b"MZ")

        detected = detect_system_simple(probe, config)
        assert (detected.pool, detected.bootloader, detected.esp_path) == ('rpool', SYSTEMD_BOOT, '/efi')
        assert detected.be_root == 'ROOT'

    def test_defaults_to_boot(self, runner, probe, config):
        runner.on('zpool', 'list', '-H', '-o', 'name', stdout="rpool\n")
        assert detect_system_simple(probe, config).esp_path == '/boot'

    def test_requires_a_listed_pool(self, runner, probe, config):
        runner.on('zpool', 'list', '-H', '-o', 'name', stdout="")
        with pytest.raises(PreconditionError):
            detect_system_simple(probe, config)


@pytest.mark.parametrize("relative, expected", [
    ('EFI/systemd/systemd-bootx64.efi', SYSTEMD_BOOT),
    ('EFI/cachyos/grubx64.efi', GRUB),
    ('EFI/refind/refind_x64.efi', REFIND),
])
def test_bootloader_from_esp_files(probe, tmp_path, relative, expected):
    target = tmp_path / 'boot' / relative
    target.parent.mkdir(parents=True)
    target.write_bytes(b"MZ")
    assert detect_bootloader_from_esp(probe, '/boot') == expected


def test_bootloader_from_empty_esp_is_unknown(probe):
    assert detect_bootloader_from_esp(probe, '/boot') == UNKNOWN
