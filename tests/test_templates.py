#!/usr/bin/env python3
"""Tests for generated file content and external command construction."""

import pytest

from zectl_setup.utils.command_builder import (
    build_aur_install_command, build_makepkg_command, build_sbctl_bundle_command,
    build_sudo_command, build_zectl_destroy_command,
)
from zectl_setup.utils.templates import (
    HOOKS, render_hook, render_loader_conf, render_manager_script, render_zectl_conf,
)

EXPECTED_ZECTL_CONF = (
    "# zectl configuration for CachyOS\n"
    "[zectl]\n"
    "pool = zroot\n"
    "boot_environment_root = ROOT\n"
    "kernel_prefix = vmlinuz-\n"
    "initramfs_prefix = initramfs-\n"
    "unified_kernel_images = false\n"
    "\n"
    "[bootloader]\n"
    "bootloader = systemd-boot\n"
    "kernel_options = \n"
)


class TestGeneratedFiles:
    def test_zectl_conf_format(self, config):
        assert render_zectl_conf('zroot', 'ROOT', 'systemd-boot', config['zectl']) == EXPECTED_ZECTL_CONF

    def test_zectl_conf_is_deterministic(self, config):
        first = render_zectl_conf('tank', 'BE', 'grub', config['zectl'])
        assert first == render_zectl_conf('tank', 'BE', 'grub', config['zectl'])

    def test_loader_conf(self, config):
        assert render_loader_conf(config['systemd_boot']['loader_conf']) == (
            "default @saved\ntimeout 10\nconsole-mode max\neditor no\n"
            "auto-entries yes\nauto-firmware yes\n")

    def test_kernel_hook(self):
        hook = render_hook(HOOKS['zectl-kernel'])
        assert hook.startswith("[Trigger]\nOperation = Install\nOperation = Upgrade\nType = Package\n")
        assert "Target = linux*\nTarget = *-kernel\n" in hook
        assert "When = PreTransaction\n" in hook
        assert "Exec = /bin/sh -c 'zectl create \"pre-kernel-$(date +%Y%m%d-%H%M%S)\"'\n" in hook
        assert "Depends" not in hook

    def test_signing_hook(self):
        hook = render_hook(HOOKS['secureboot-sign'])
        assert hook.endswith("When = PostTransaction\nExec = /usr/bin/sbctl sign-all\nDepends = sbctl\n")

    def test_manager_script_execs_python_module(self):
        script = render_manager_script('zectl-manager', '/usr/bin/python3')
        assert script.startswith("#!/bin/sh\n")
        assert script.endswith('exec /usr/bin/python3 -m zectl_setup zectl-manager "$@"\n')

    def test_secureboot_manager_bound_to_esp(self):
        script = render_manager_script('secureboot-manager', '/opt/venv/bin/python', '/boot/efi')
        assert 'secureboot-manager --esp /boot/efi "$@"' in script

    def test_unknown_manager_rejected(self):
        with pytest.raises(ValueError):
            render_manager_script('rm-rf', '/usr/bin/python3')


class TestCommandBuilder:
    def test_aur_install_with_ignores(self):
        assert build_aur_install_command('zectl-git', 'alice', ignore=['zfs-dkms', 'spl-dkms']) == [
            'sudo', '-u', 'alice', 'yay', '-S', '--noconfirm', '--ignore', 'zfs-dkms,spl-dkms', 'zectl-git']

    def test_makepkg(self):
        assert build_makepkg_command('builduser') == ['sudo', '-u', 'builduser', 'makepkg', '-si', '--noconfirm']

    def test_sudo_refuses_root(self):
        with pytest.raises(ValueError):
            build_sudo_command('root', ['makepkg'])
        with pytest.raises(ValueError):
            build_sudo_command('', ['makepkg'])

    def test_bundle_paths_follow_esp(self):
        assert build_sbctl_bundle_command('linux-cachyos', '/efi/') == [
            'sbctl', 'bundle', '-s',
            '-k', '/efi/vmlinuz-linux-cachyos',
            '-f', '/efi/initramfs-linux-cachyos.img',
            '/efi/EFI/Linux/linux-cachyos.efi']

    @pytest.mark.parametrize("kernel", ["", "../linux", "linux zen"])
    def test_bundle_rejects_bad_kernel_names(self, kernel):
        with pytest.raises(ValueError):
            build_sbctl_bundle_command(kernel)

    def test_destroy(self):
        assert build_zectl_destroy_command('old', recursive=True) == ['zectl', 'destroy', '-r', 'old']
        assert build_zectl_destroy_command('old') == ['zectl', 'destroy', 'old']
