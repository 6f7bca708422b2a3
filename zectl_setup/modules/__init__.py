#!/usr/bin/env python3
"""
zectl-setup pipeline modules

Maps each module class name usable in a pipeline declaration to the file
that defines it.
"""

MODULE_INDEX = {
    # install
    'Preflight': 'preflight',
    'SystemDetection': 'system_detection',
    'PackageSetup': 'packages',
    'PacmanConfig': 'pacman_config',
    'AurInstall': 'aur_install',
    'ZectlConfig': 'zectl_config',
    'BootloaderConfig': 'bootloader_config',
    'ZfsServices': 'zfs_services',
    'BootEnvironment': 'boot_environment',
    'KernelHooks': 'generated_files',
    'ManagerScripts': 'generated_files',
    'Verification': 'boot_environment',
    # secureboot
    'SecureBootPreflight': 'preflight',
    'SecureBootPackages': 'packages',
    'SecureBootKeys': 'secureboot',
    'SecureBootDetection': 'system_detection',
    'BootSigning': 'secureboot',
    'KeyBackup': 'secureboot',
    'EnrollmentCheck': 'secureboot',
    # uninstall
    'UninstallConfirm': 'uninstall',
    'RemovePackages': 'packages',
    'RemoveSecureBootPackages': 'packages',
    'RestoreBackups': 'uninstall',
    'RemoveFiles': 'uninstall',
    'RestorePacmanConf': 'pacman_config',
    'RemoveSecureBootKeys': 'secureboot',
    'DisableZfsServices': 'zfs_services',
    'RestoreLoaderConf': 'bootloader_config',
    'CleanupBuildDirs': 'uninstall',
    'UninstallReport': 'uninstall',
    # diagnose
    'Diagnostics': 'diagnostics',
}

__all__ = ['MODULE_INDEX']
