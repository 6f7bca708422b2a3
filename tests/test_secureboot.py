#!/usr/bin/env python3
"""Tests for the Secure Boot pipeline."""

import pytest

from zectl_setup.core.builder import SetupPipeline

FINDMNT = ('findmnt', '-n', '-o', 'FSTYPE,SOURCE', '--mountpoint')


@pytest.fixture
def uefi_host(runner, host_root):
    """UEFI host with sbctl initialized and a kernel on the ESP at /boot"""
    (host_root / 'sys' / 'firmware' / 'efi' / 'efivars').mkdir(parents=True)
    (host_root / 'boot' / 'vmlinuz-linux-cachyos').write_bytes(b"kernel")
    keys = host_root / 'usr' / 'share' / 'secureboot' / 'keys' / 'db'
    keys.mkdir(parents=True)
    (keys / 'db.key').write_text("private")

    runner.install('sbctl', 'mokutil')
    runner.on('mokutil', '--sb-state', stdout="SecureBoot disabled\n")
    runner.on(*FINDMNT, '/boot', stdout="vfat /dev/nvme0n1p1\n")
    runner.on('sbctl', 'status', stdout="Installed:\t✓ sbctl is installed\nSetup Mode:\t✗ Enabled\nEnrolled:\tno\n")
    return runner


def run(context):
    return SetupPipeline(context).execute_pipeline('secureboot')


def test_secureboot_setup(uefi_host, context, host_root):
    result = run(context)
    assert result['status'] == 'success', result

    assert context.state['secureboot_status'] == 'disabled'
    signed = result['results']['BootSigning']['signed']
    assert signed == ['/boot/EFI/systemd/systemd-bootx64.efi', '/boot/vmlinuz-linux-cachyos']
    assert ['sbctl', 'sign', '-s', '/boot/vmlinuz-linux-cachyos'] in uefi_host.calls
    assert uefi_host.calls.index(['sbctl', 'sign-all']) > uefi_host.calls.index(
        ['sbctl', 'sign', '-s', '/boot/vmlinuz-linux-cachyos'])
    assert "File not found: /boot/EFI/BOOT/BOOTX64.EFI" in result['warnings']

    hook = host_root / 'etc' / 'pacman.d' / 'hooks' / '99-secureboot-kernel-sign.hook'
    assert "Exec = /usr/bin/sbctl sign-all\n" in hook.read_text()
    script = (host_root / 'usr' / 'local' / 'bin' / 'secureboot-manager').read_text()
    assert 'secureboot-manager --esp /boot "$@"' in script

    backup = host_root / 'root' / 'secureboot-backup' / 'keys' / 'db' / 'db.key'
    assert backup.read_text() == "private"

    assert result['results']['EnrollmentCheck']['enrolled'] is False
    assert "Secure Boot keys are not enrolled in firmware" in result['warnings']
    assert not uefi_host.called('sbctl', 'create-keys')
    assert context.manifest.get_module_result('BootSigning')['signed'] == signed


def test_keys_created_when_sbctl_uninitialized(uefi_host, context):
    uefi_host.on('sbctl', 'status', returncode=1)
    run(context)
    assert uefi_host.called('sbctl', 'create-keys')


def test_enrolled_keys(uefi_host, context):
    uefi_host.on('sbctl', 'status', stdout="Setup Mode:\t✓ Disabled\nEnrolled:\tyes\n")
    result = run(context)
    assert result['results']['EnrollmentCheck']['enrolled'] is True


def test_unified_kernel_images_are_signed(uefi_host, context, host_root):
    uki_dir = host_root / 'boot' / 'EFI' / 'Linux'
    uki_dir.mkdir(parents=True)
    (uki_dir / 'linux-cachyos.efi').write_bytes(b"uki")
    result = run(context)
    assert '/boot/EFI/Linux/linux-cachyos.efi' in result['results']['BootSigning']['signed']


def test_failed_signature_is_a_warning(uefi_host, context):
    uefi_host.on('sbctl', 'sign', '-s', '/boot/vmlinuz-linux-cachyos', returncode=1)
    result = run(context)
    assert result['status'] == 'success'
    assert "Failed to sign /boot/vmlinuz-linux-cachyos" in result['warnings']


def test_requires_uefi(runner, context):
    result = run(context)
    assert result['status'] == 'error'
    assert result['error'] == "System is not booted in UEFI mode. Secure Boot requires UEFI."


def test_missing_esp_is_fatal(uefi_host, context, host_root):
    uefi_host.on(*FINDMNT, '/boot', stdout="ext4 /dev/sda2\n")
    result = run(context)
    assert result['status'] == 'error'
    assert result['module'] == 'SecureBootDetection'
    assert not uefi_host.called('sbctl', 'sign')


def test_sbctl_required(uefi_host, context):
    uefi_host.programs.discard('sbctl')
    result = run(context)
    assert result['status'] == 'error'
    assert result['error'] == "sbctl installation failed"


def test_efivar_state_without_mokutil(uefi_host, context, host_root):
    uefi_host.programs.discard('mokutil')
    efivar = host_root / 'sys' / 'firmware' / 'efi' / 'efivars' / 'SecureBoot-8be4df61-93ca-11d2-aa0d-00e098032b8c'
    efivar.write_bytes(b"\x06\x00\x00\x00\x01")
    run(context)
    assert context.state['secureboot_status'] == 'enabled'


def test_shim_validation_line_is_not_the_state(uefi_host, context, tools):
    uefi_host.on('mokutil', '--sb-state',
                 stdout="SecureBoot validation is disabled in shim\nSecureBoot enabled\n")
    assert tools.mokutil.sb_state() == 'enabled'
    run(context)
    assert context.state['secureboot_status'] == 'enabled'


def test_unrecognised_mokutil_output_falls_back_to_disabled(uefi_host, context):
    uefi_host.on('mokutil', '--sb-state', stdout="SecureBoot validation is disabled in shim\n")
    run(context)
    assert context.state['secureboot_status'] == 'disabled'
