#!/usr/bin/env python3
# zectl-setup/zectl_setup/utils/templates.py
"""
Renderers for the generated files: zectl.conf, loader.conf, pacman hooks
and the manager wrapper scripts. Output depends only on the arguments so
that regenerating a file yields identical bytes.
"""
import shlex
from typing import Any, Dict, List, NamedTuple


class HookSpec(NamedTuple):
    filename: str
    description: str
    when: str
    exec_line: str
    depends: str = ""


KERNEL_TARGETS = ["linux*", "*-kernel"]

HOOKS: Dict[str, HookSpec] = {
    'zectl-kernel': HookSpec(
        filename='95-zectl-kernel.hook',
        description='Creating boot environment before kernel update...',
        when='PreTransaction',
        exec_line="/bin/sh -c 'zectl create \"pre-kernel-$(date +%Y%m%d-%H%M%S)\"'",
    ),
    'secureboot-sign': HookSpec(
        filename='99-secureboot-kernel-sign.hook',
        description='Signing kernel for Secure Boot...',
        when='PostTransaction',
        exec_line='/usr/bin/sbctl sign-all',
        depends='sbctl',
    ),
}

MANAGER_SCRIPTS = ('zectl-manager', 'secureboot-manager')


def render_zectl_conf(pool: str, be_root: str, bootloader: str, options: Dict[str, Any]) -> str:
    unified = 'true' if options.get('unified_kernel_images') else 'false'
    return (
        "# zectl configuration for CachyOS\n"
        "[zectl]\n"
        f"pool = {pool}\n"
        f"boot_environment_root = {be_root}\n"
        f"kernel_prefix = {options.get('kernel_prefix', 'vmlinuz-')}\n"
        f"initramfs_prefix = {options.get('initramfs_prefix', 'initramfs-')}\n"
        f"unified_kernel_images = {unified}\n"
        "\n"
        "[bootloader]\n"
        f"bootloader = {bootloader}\n"
        f"kernel_options = {options.get('kernel_options', '')}\n"
    )


def render_loader_conf(settings: Dict[str, Any]) -> str:
    return ''.join(f"{key} {value}\n" for key, value in settings.items())


def render_hook(spec: HookSpec) -> str:
    lines: List[str] = ["[Trigger]", "Operation = Install", "Operation = Upgrade", "Type = Package"]
    lines.extend(f"Target = {target}" for target in KERNEL_TARGETS)
    lines.extend([
        "",
        "[Action]",
        f"Description = {spec.description}",
        f"When = {spec.when}",
        f"Exec = {spec.exec_line}",
    ])
    if spec.depends:
        lines.append(f"Depends = {spec.depends}")
    return "\n".join(lines) + "\n"


def render_manager_script(name: str, interpreter: str, esp_path: str = "") -> str:
    """
    Shell shim that hands its arguments to the Python manager of the same name.

    The secureboot-manager shim is bound to the ESP detected at setup time.
    """
    if name not in MANAGER_SCRIPTS:
        raise ValueError(f"Unknown manager script: {name}")
    args = [shlex.quote(interpreter), "-m", "zectl_setup", name]
    if name == 'secureboot-manager' and esp_path:
        args.extend(["--esp", shlex.quote(esp_path)])
    return (
        "#!/bin/sh\n"
        "# Generated by zectl-setup; removed by 'zectl-setup uninstall'.\n"
        f"exec {' '.join(args)} \"$@\"\n"
    )
