#!/usr/bin/env python3
# zectl-setup/zectl_setup/core/config.py

"""
Setup Configuration Manager
Handles loading, validation, and access to the zectl-setup configuration
"""

import copy
import sys
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Union

import yaml

# Initialize a logger for this module
logger = logging.getLogger(__name__)


def default_config() -> Dict[str, Any]:
    """
    Return the built-in configuration.

    Every path is absolute on the target host; the pipeline context
    relocates them under an alternate root when one is given.
    """
    return {
        # Fixed locations read or written by the pipelines
        'paths': {
            'zectl_config_dir': '/etc/zectl',
            'hooks_dir': '/etc/pacman.d/hooks',
            'bin_dir': '/usr/local/bin',
            'pacman_conf': '/etc/pacman.conf',
            'manifest': '/var/lib/zectl-setup/manifest.json',
            'efi_firmware': '/sys/firmware/efi',
            'efivars': '/sys/firmware/efi/efivars',
            'secureboot_dir': '/usr/share/secureboot',
            'secureboot_keys': '/usr/share/secureboot/keys',
            'secureboot_backup': '/root/secureboot-backup',
            'tmp_dir': '/tmp',
            'sudoers_dir': '/etc/sudoers.d',
            'power_state': '/sys/power/state',
            'power_policy': '/sys/power/policy',
            'sleep_conf': '/etc/systemd/sleep.conf',
        },
        # Suffix appended to a file's name for its one-time backup copy
        'backup_suffix': '.backup-zectl',
        # Ordered heuristics used by the auto-detector (first match wins)
        'detection': {
            'pool_candidates': ['zroot', 'rpool', 'tank', 'pool'],
            'dataset_patterns': ['ROOT/cachyos', 'ROOT/arch', 'ROOT/default'],
            'esp_candidates': ['/boot', '/boot/efi', '/efi'],
            'fat_filesystems': ['vfat', 'fat', 'fat16', 'fat32', 'msdos'],
            'grub_configs': ['/boot/grub/grub.cfg', '/boot/grub2/grub.cfg'],
            'refind_dirs': ['/boot/efi/EFI/refind', '/efi/EFI/refind'],
            'default_bootloader': 'systemd-boot',
            'default_esp': '/boot',
            'default_be_root': 'ROOT',
        },
        # Package sets handled through pacman and the AUR
        'packages': {
            'build_deps': ['base-devel', 'git', 'cmake', 'make', 'scdoc'],
            'build_deps_simple': ['base-devel', 'git'],
            'aur': ['zectl-git', 'zectl-pacman-hook'],
            'ignore': ['zfs-dkms', 'spl-dkms'],
            'secureboot': ['sbctl', 'sbsigntools', 'efibootmgr', 'mokutil',
                           'tpm2-tools', 'tpm2-tss'],
            'zectl_remove': ['zectl-cachyos', 'zectl-pacman-hook-cachyos',
                             'zectl-git', 'zectl', 'zectl-pacman-hook'],
            'secureboot_remove': ['sbctl', 'sbsigntools'],
        },
        'aur': {
            'helper': 'yay',
            'base_url': 'https://aur.archlinux.org',
            'rpc_lookup': True,
            'request_timeout': 15,
            'temp_user': 'builduser',
        },
        # Values written into /etc/zectl/zectl.conf
        'zectl': {
            'kernel_prefix': 'vmlinuz-',
            'initramfs_prefix': 'initramfs-',
            'unified_kernel_images': False,
            'kernel_options': '',
            'initial_be_prefix': 'initial-',
            'cleanup_keep': 5,
        },
        'systemd_boot': {
            'loader_dirs': ['loader', 'EFI/systemd', 'EFI/BOOT'],
            'loader_conf': {
                'default': '@saved',
                'timeout': 10,
                'console-mode': 'max',
                'editor': 'no',
                'auto-entries': 'yes',
                'auto-firmware': 'yes',
            },
        },
        'services': {
            'zectl': 'zectl.service',
            'zfs': ['zfs-import-cache.service', 'zfs-mount.service', 'zfs.target'],
            'diagnose': ['zfs-import-cache.service', 'zfs-import-scan.service',
                         'zfs-mount.service', 'zfs.target'],
        },
        # Files signed per bootloader variant, relative to the ESP
        'secureboot': {
            'signing_targets': {
                'systemd-boot': ['EFI/systemd/systemd-bootx64.efi', 'EFI/BOOT/BOOTX64.EFI'],
                'grub': ['EFI/BOOT/grubx64.efi', 'EFI/cachyos/grubx64.efi'],
                'refind': ['EFI/refind/refind_x64.efi'],
            },
            'kernel_glob': 'vmlinuz-*',
            'uki_glob': 'EFI/Linux/*.efi',
        },
        # Interpreter exec'd by the generated wrapper scripts (null: current one)
        'manager_interpreter': None,
        # Ordered module lists per pipeline; order defines execution sequence
        'pipelines': {
            'install': {
                'record': True,
                'modules': [
                    {'name': 'Preflight', 'enabled': True},
                    {'name': 'SystemDetection', 'enabled': True},
                    {'name': 'PackageSetup', 'enabled': True},
                    {'name': 'PacmanConfig', 'enabled': True},
                    {'name': 'AurInstall', 'enabled': True},
                    {'name': 'ZectlConfig', 'enabled': True},
                    {'name': 'BootloaderConfig', 'enabled': True},
                    {'name': 'ZfsServices', 'enabled': True},
                    {'name': 'BootEnvironment', 'enabled': True},
                    {'name': 'KernelHooks', 'enabled': True,
                     'options': {'hooks': ['zectl-kernel']}},
                    {'name': 'ManagerScripts', 'enabled': True,
                     'options': {'scripts': ['zectl-manager']}},
                    {'name': 'Verification', 'enabled': True},
                ],
            },
            'install_simple': {
                'record': True,
                'modules': [
                    {'name': 'Preflight', 'enabled': True},
                    {'name': 'PacmanConfig', 'enabled': True},
                    {'name': 'PackageSetup', 'enabled': True, 'options': {'mode': 'simple'}},
                    {'name': 'AurInstall', 'enabled': True, 'options': {'mode': 'simple'}},
                    {'name': 'SystemDetection', 'enabled': True,
                     'options': {'mode': 'simple', 'confirm': False}},
                    {'name': 'ZectlConfig', 'enabled': True},
                    {'name': 'BootloaderConfig', 'enabled': True},
                    {'name': 'BootEnvironment', 'enabled': True, 'options': {'mode': 'simple'}},
                    {'name': 'ManagerScripts', 'enabled': True,
                     'options': {'scripts': ['zectl-manager']}},
                    {'name': 'Verification', 'enabled': True},
                ],
            },
            'secureboot': {
                'record': True,
                'modules': [
                    {'name': 'SecureBootPreflight', 'enabled': True},
                    {'name': 'SecureBootPackages', 'enabled': True},
                    {'name': 'SecureBootKeys', 'enabled': True},
                    {'name': 'SecureBootDetection', 'enabled': True},
                    {'name': 'BootSigning', 'enabled': True},
                    {'name': 'KernelHooks', 'enabled': True,
                     'options': {'hooks': ['secureboot-sign']}},
                    {'name': 'ManagerScripts', 'enabled': True,
                     'options': {'scripts': ['secureboot-manager']}},
                    {'name': 'KeyBackup', 'enabled': True},
                    {'name': 'EnrollmentCheck', 'enabled': True},
                ],
            },
            'uninstall': {
                'record': False,
                'modules': [
                    {'name': 'UninstallConfirm', 'enabled': True},
                    {'name': 'RemovePackages', 'enabled': True},
                    {'name': 'RemoveSecureBootPackages', 'enabled': True},
                    {'name': 'RestoreBackups', 'enabled': True},
                    {'name': 'RemoveFiles', 'enabled': True},
                    {'name': 'RestorePacmanConf', 'enabled': True},
                    {'name': 'RemoveSecureBootKeys', 'enabled': True},
                    {'name': 'DisableZfsServices', 'enabled': True},
                    {'name': 'RestoreLoaderConf', 'enabled': True},
                    {'name': 'CleanupBuildDirs', 'enabled': True},
                    {'name': 'UninstallReport', 'enabled': True},
                ],
            },
            'diagnose': {
                'record': False,
                'modules': [
                    {'name': 'Diagnostics', 'enabled': True},
                ],
            },
        },
    }


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge `override` into a copy of `base`; nested dicts merge, everything else replaces"""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class SetupConfig:
    """
    Manages the zectl-setup configuration.

    Without a path the built-in defaults are used as-is. With a path, the
    YAML file is loaded and deep-merged over the defaults; a path that does
    not exist yet is populated with the defaults so the operator has a file
    to edit.
    """

    REQUIRED_SECTIONS: List[str] = ['paths', 'pipelines']

    def __init__(self, config_path: Optional[Union[str, Path]] = None) -> None:
        """
        Args:
            config_path: Optional path to a YAML configuration file.

        Raises:
            SystemExit: If the config file is invalid or cannot be read/written.
        """
        self.config_path: Optional[Path] = Path(config_path) if config_path else None
        self.data: Dict[str, Any] = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from `self.config_path`, falling back to defaults.

        Returns:
            The effective configuration dictionary.

        Raises:
            SystemExit: On YAML parse errors, I/O errors, or failed validation.
        """
        defaults = default_config()
        if self.config_path is None:
            logger.debug("No configuration file given, using built-in defaults.")
            return defaults

        try:
            if not self.config_path.exists():
                logger.info(f"Configuration file not found at {self.config_path}. Creating a default configuration.")
                self.save(defaults)
                return defaults

            logger.debug(f"Loading configuration from: {self.config_path}")
            with self.config_path.open('r') as f:
                loaded: Optional[Dict[str, Any]] = yaml.safe_load(f)

            if loaded is None:
                logger.error(f"Configuration file {self.config_path} is empty or not valid YAML.")
                sys.exit(1)
            if not isinstance(loaded, dict):
                logger.error(f"Configuration file {self.config_path} must contain a mapping at the top level.")
                sys.exit(1)

            config = _deep_merge(defaults, loaded)

            for field in self.REQUIRED_SECTIONS:
                if not config.get(field):
                    logger.error(f"Missing required top-level field '{field}' in {self.config_path}.")
                    sys.exit(1)

            logger.debug("Configuration loaded successfully.")
            return config

        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML file {self.config_path}: {e}")
            sys.exit(1)
        except OSError as e:
            logger.error(f"I/O error accessing configuration file {self.config_path}: {e}")
            sys.exit(1)

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Get a top-level configuration value"""
        return self.data.get(key, default)

    def section(self, key: str) -> Dict[str, Any]:
        """Get a top-level mapping, or an empty dict when absent"""
        value = self.data.get(key)
        return value if isinstance(value, dict) else {}

    def set(self, key: str, value: Any) -> None:
        """
        Set a top-level configuration value in memory.

        Call `save()` to persist it.
        """
        self.data[key] = value
        logger.debug(f"Configuration key '{key}' set to: {value}")

    def save(self, data_to_save: Optional[Dict[str, Any]] = None) -> None:
        """
        Write the current (or provided) configuration to `self.config_path`.

        Raises:
            SystemExit: If no path is configured or an I/O error occurs.
        """
        data: Dict[str, Any] = data_to_save if data_to_save is not None else self.data
        if self.config_path is None:
            logger.error("Cannot save configuration: no configuration file path was given.")
            sys.exit(1)
        logger.info(f"Saving configuration to: {self.config_path}")
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with self.config_path.open('w') as f:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False)
            logger.debug("Configuration saved successfully.")
        except OSError as e:
            logger.error(f"I/O error saving configuration file {self.config_path}: {e}")
            sys.exit(1)
        except yaml.YAMLError as e:
            logger.error(f"Error serializing configuration to YAML at {self.config_path}: {e}")
            sys.exit(1)
