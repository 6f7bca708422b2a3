#!/usr/bin/env python3
# zectl-setup/zectl_setup/cli.py - Main entry point
"""
zectl-setup
Install, configure, diagnose and remove zectl boot environments and
sbctl Secure Boot signing on a CachyOS system with a ZFS root
"""
import sys
import logging
import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional

from .core.builder import SetupPipeline
from .core.config import SetupConfig
from .core.context import SetupContext
from .core.detect import detect_esp
from .core.errors import SetupError
from .utils.logging_setup import SUCCESS, configure_logging, debug_requested
from .utils.managers import SECUREBOOT_COMMANDS, ZECTL_COMMANDS, SecureBootManager, ZectlManager
from .utils.terminal_ui import TerminalUI

logger = logging.getLogger('zectl-setup')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='zectl-setup',
        description='Set up zectl boot environments and Secure Boot on CachyOS with ZFS root')
    parser.add_argument('--config', help='YAML configuration file (created with defaults if missing)')
    parser.add_argument('--root', default='/', help='Filesystem root for every file read and write')
    parser.add_argument('--log-file', type=Path, help='Also write a timestamped log to this file')

    commands = parser.add_subparsers(dest='command', required=True)

    install = commands.add_parser('install', help='Install and configure zectl')
    install.add_argument('--simple', action='store_true',
                         help='Reduced install: systemd-boot only, no prompts before changes')
    install.add_argument('-y', '--yes', action='store_true', help='Answer yes to every prompt')

    secureboot = commands.add_parser('secureboot', help='Set up Secure Boot signing with sbctl')
    secureboot.add_argument('-y', '--yes', action='store_true', help='Answer yes to every prompt')

    uninstall = commands.add_parser('uninstall', help='Remove everything zectl-setup installed')
    uninstall.add_argument('-y', '--yes', action='store_true', help='Answer yes to every prompt')

    commands.add_parser('diagnose', help='Report ZFS, service and power management state')

    zectl_manager = commands.add_parser('zectl-manager', help='Common boot environment operations')
    zectl_manager.add_argument('action', nargs='?', default='help', choices=ZECTL_COMMANDS)
    zectl_manager.add_argument('name', nargs='?')

    sb_manager = commands.add_parser('secureboot-manager', help='Common Secure Boot operations')
    sb_manager.add_argument('--esp', help='EFI System Partition holding kernels and UKIs')
    sb_manager.add_argument('action', nargs='?', default='help', choices=SECUREBOOT_COMMANDS)
    sb_manager.add_argument('argument', nargs='?')

    return parser


def run_pipeline(context: SetupContext, name: str) -> Dict[str, Any]:
    return SetupPipeline(context).execute_pipeline(name)


def exit_status(result: Dict[str, Any]) -> int:
    """Cancelled pipelines exit 0 like completed ones; only errors fail"""
    return 1 if result['status'] == 'error' else 0


def report_warnings(warnings: List[str]) -> None:
    if warnings:
        logger.info(f"Completed with {len(warnings)} warning(s)")


def execute_install(context: SetupContext, simple: bool) -> int:
    """Run the install pipeline and print the configuration summary"""
    ui = context.ui
    result = run_pipeline(context, 'install_simple' if simple else 'install')
    if result['status'] != 'success':
        return exit_status(result)

    detected = result['detected']
    ui.echo()
    ui.echo("===============================================")
    logger.log(SUCCESS, "zectl installation completed!")
    ui.echo("===============================================")
    ui.show_summary("System Configuration", {
        'ZFS Pool': detected.pool,
        'Boot Environment Root': detected.be_root,
        'Bootloader': detected.bootloader,
        'ESP Path': detected.esp_path,
    })
    ui.show_steps("Next steps", [
        "Reboot your system to ensure all changes take effect",
        "Use 'zectl list' to see your boot environments",
        "Use 'zectl-manager help' for common operations",
        "Create snapshots before major system changes with 'zectl-manager snapshot'",
    ])
    if not simple:
        ui.echo("Boot environments will be automatically created before kernel updates.")
    ui.echo("For debugging, run with DEBUG=1 environment variable.")
    report_warnings(result['warnings'])
    return 0


def execute_secureboot(context: SetupContext) -> int:
    """Run the Secure Boot pipeline and print the follow-up steps"""
    ui = context.ui
    result = run_pipeline(context, 'secureboot')
    if result['status'] != 'success':
        return exit_status(result)

    ui.echo()
    ui.echo("===============================================")
    logger.log(SUCCESS, "Secure Boot configuration completed!")
    ui.echo("===============================================")
    ui.echo()
    ui.echo("Current Status:")
    ui.echo(context.tools.sbctl.status().stdout.rstrip())
    ui.echo()

    steps = ["Verify all files are signed: secureboot-manager verify"]
    if context.state.get('secureboot_status') != 'enabled':
        steps.append("Enroll keys if not done: secureboot-manager enroll")
        steps.append("Reboot and enable Secure Boot in UEFI firmware settings")
    else:
        steps.append("Secure Boot is already enabled")
    ui.show_steps("Next steps", steps)
    ui.echo("Kernels will be automatically signed after updates.")
    ui.echo("Use 'secureboot-manager help' for management commands.")
    report_warnings(result['warnings'])
    return 0


def execute_uninstall(context: SetupContext) -> int:
    result = run_pipeline(context, 'uninstall')
    if result['status'] == 'success':
        logger.log(SUCCESS, "Uninstallation completed!")
    return exit_status(result)


def secureboot_esp(context: SetupContext, esp: Optional[str]) -> str:
    if esp:
        return esp
    found = detect_esp(context.probe, context.config)
    return found or context.setting('detection', 'default_esp', '/boot')


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for zectl-setup"""
    args = build_parser().parse_args(argv)
    configure_logging(debug=debug_requested(), log_file=args.log_file)

    config = SetupConfig(args.config)
    ui = TerminalUI(assume_yes=getattr(args, 'yes', False))
    context = SetupContext(config.data, ui=ui, root=args.root)

    try:
        if args.command == 'install':
            ui.display_banner("zectl installer for CachyOS with ZFS root")
            return execute_install(context, args.simple)
        if args.command == 'secureboot':
            ui.display_banner("Secure Boot setup for CachyOS with ZFS")
            return execute_secureboot(context)
        if args.command == 'uninstall':
            ui.display_banner("zectl-setup Uninstaller")
            return execute_uninstall(context)
        if args.command == 'diagnose':
            return exit_status(run_pipeline(context, 'diagnose'))
        if args.command == 'zectl-manager':
            keep = context.setting('zectl', 'cleanup_keep', 5)
            return ZectlManager(context.tools, ui, keep=keep).run(args.action, args.name)
        if args.command == 'secureboot-manager':
            manager = SecureBootManager(context.tools, ui, secureboot_esp(context, args.esp))
            return manager.run(args.action, args.argument)
    except SetupError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 130

    return 1


if __name__ == "__main__":
    sys.exit(main())
