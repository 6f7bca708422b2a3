#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/uninstall.py

"""
Uninstall Modules
Undo what the install and Secure Boot pipelines left on the host, guided by
the install manifest when one exists and by the fixed install locations
otherwise
"""

from pathlib import Path
from typing import Any, Dict, List

from .base import SetupModule
from ..core.errors import PreconditionError
from ..utils.templates import HOOKS, MANAGER_SCRIPTS


class UninstallConfirm(SetupModule):
    """Requires root, opens the manifest and asks before anything is removed"""

    def execute(self) -> Dict[str, Any]:
        if not self.context.is_root():
            raise PreconditionError("This script must be run as root")

        self.ui.echo("This will remove all components installed by zectl-setup:")
        self.ui.echo("- zectl packages (zectl-cachyos, zectl-git, zectl-pacman-hook)")
        self.ui.echo("- Secure Boot components (sbctl, keys, hooks)")
        self.ui.echo("- Configuration files and utility scripts")
        self.ui.echo("- pacman.conf modifications (restore IgnorePkg)")
        self.ui.echo()
        if not self.ui.prompt_confirmation("Continue with uninstallation?"):
            return self.cancelled("Uninstallation cancelled.")

        manifest = self.context.load_manifest()
        if manifest is None:
            self.logger.info("No install manifest found, removing default install locations")
        else:
            self.logger.debug(f"Using install manifest {manifest.manifest_path}")

        self.logger.info("Starting zectl-setup uninstallation...")
        return self.result(manifest=manifest is not None)


class RestoreBackups(SetupModule):
    """
    Restores every recorded backup except pacman.conf and loader.conf, which
    have dedicated steps.
    """

    def execute(self) -> Dict[str, Any]:
        manifest = self.context.manifest
        if manifest is None:
            return self.result(restored=[])

        pacman_conf = self.context.host_path('pacman_conf')
        restored: List[str] = []
        for original, backup in manifest.backups.items():
            if original == pacman_conf or original.endswith('/loader.conf'):
                continue
            if self.context.restore_backup(original, backup):
                restored.append(original)
            else:
                self.warn(f"Backup {backup} of {original} is missing")

        return self.result(restored=restored)


class RemoveFiles(SetupModule):
    """Removes generated configuration, hooks and wrapper scripts"""

    def _fixed_paths(self) -> List[str]:
        hooks_dir = self.context.host_path('hooks_dir')
        bin_dir = self.context.host_path('bin_dir')
        paths = [f"{hooks_dir}/{spec.filename}" for spec in HOOKS.values()]
        paths.extend(f"{bin_dir}/{name}" for name in MANAGER_SCRIPTS)
        return paths

    def execute(self) -> Dict[str, Any]:
        self.logger.info("Removing configuration files...")
        removed: List[str] = []
        manifest = self.context.manifest

        created = manifest.created_files if manifest is not None else []
        for path in created + [p for p in self._fixed_paths() if p not in created]:
            if self.context.remove_file(path):
                removed.append(path)
                self.success(f"Removed {path}")
            if manifest is not None:
                manifest.forget_file(path)

        zectl_dir = self.context.host_path('zectl_config_dir')
        if self._owns_directory(zectl_dir) and self.context.remove_tree(zectl_dir):
            removed.append(zectl_dir)
            self.success(f"Removed {zectl_dir} directory")

        if not removed:
            self.logger.info("No installed files found to remove")
        return self.result(removed=removed)

    def _owns_directory(self, directory: str) -> bool:
        """
        Without a manifest the directory is assumed to be ours. With one, only
        a directory the install created is removed; a pre-existing one is kept
        with whatever the restored backups put back into it.
        """
        manifest = self.context.manifest
        if manifest is None or directory in manifest.created_directories:
            return True
        if self.context.path(directory).is_dir():
            self.logger.info(f"Keeping {directory}, it existed before installation")
            self.context.state.setdefault('kept_paths', []).append(directory)
        return False


class CleanupBuildDirs(SetupModule):
    """Removes leftover build trees, emptied directories and the manifest"""

    BUILD_PATTERNS = ('zectl-*-build', 'yay', 'yay-git')

    def execute(self) -> Dict[str, Any]:
        self.logger.info("Cleaning up temporary files...")
        removed: List[str] = []

        tmp_dir = self.context.host_path('tmp_dir')
        local_tmp = self.context.path(tmp_dir)
        for pattern in self.BUILD_PATTERNS:
            for found in sorted(local_tmp.glob(pattern)):
                host = f"{tmp_dir}/{found.name}"
                if self.context.remove_tree(host):
                    removed.append(host)

        manifest = self.context.manifest
        if manifest is not None:
            manifest.delete()
            # Deepest first so parents empty out before they are checked
            for directory in sorted(manifest.created_directories, key=len, reverse=True):
                if self._remove_if_empty(self.context.path(directory)):
                    removed.append(directory)
            self.context.manifest = None

        return self.result(removed=removed)

    def _remove_if_empty(self, path: Path) -> bool:
        if path.is_dir() and not any(path.iterdir()):
            path.rmdir()
            return True
        return False


class UninstallReport(SetupModule):
    """Lists whatever is still present after the uninstall steps"""

    def execute(self) -> Dict[str, Any]:
        issues: List[str] = []

        if self.tools.runner.which('zectl') is not None:
            issues.append("zectl command still available")

        zectl_dir = self.context.host_path('zectl_config_dir')
        kept = self.context.state.get('kept_paths', [])
        if self.context.path(zectl_dir).exists() and zectl_dir not in kept:
            issues.append(f"{zectl_dir} directory still exists")

        pacman_conf = self.context.path(self.context.host_path('pacman_conf'))
        if pacman_conf.is_file() and 'zfs-dkms' in pacman_conf.read_text():
            issues.append("zfs-dkms still in pacman.conf IgnorePkg")

        self.ui.display_banner("Uninstallation Summary")
        if issues:
            self.warn("Some components may still be present:")
            for issue in issues:
                self.ui.echo(f"  - {issue}")
            self.ui.echo()
            self.ui.echo("You may need to manually remove these components.")
        else:
            self.success("All zectl-setup components have been removed")

        self.ui.echo()
        self.ui.echo("Notes:")
        self.ui.echo("- ZFS functionality is still available (built into CachyOS kernel)")
        self.ui.echo("- Boot environments created by zectl still exist in your ZFS pool")
        self.ui.echo("- Run 'zfs list -t snapshot' to see any remaining snapshots")
        return self.result(issues=issues)
